"""create companies, applications, tags and state transitions

Revision ID: 4c2e9a7d1b53
Revises:
Create Date: 2026-10-19 09:12:41.503118

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = '4c2e9a7d1b53'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

APP_STATES = (
    "INTERESTED", "APPLIED", "SCREENING", "INTERVIEW", "INTERVIEW_2", "INTERVIEW_3",
    "OFFER", "ACCEPTED", "DECLINED", "REJECTED", "GHOSTED", "TRASH",
)
WORK_LOCATIONS = ("REMOTE", "ONSITE", "HYBRID", "CONTRACT")


def _enum(name, values):
    # postgres types are created once up front and shared by both tables
    if op.get_bind().dialect.name == "postgresql":
        return postgresql.ENUM(*values, name=name, create_type=False)
    return sa.Enum(*values, name=name)


def upgrade():
    bind = op.get_bind()
    if bind.dialect.name == "postgresql":
        postgresql.ENUM(*APP_STATES, name="app_state").create(bind, checkfirst=True)
        postgresql.ENUM(*WORK_LOCATIONS, name="work_location").create(bind, checkfirst=True)

    op.create_table(
        "companies",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("owner_id", sa.String(64), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_companies_id", "companies", ["id"])
    op.create_index("ix_companies_owner_id", "companies", ["owner_id"])

    op.create_table(
        "applications",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("owner_id", sa.String(64), nullable=False),
        sa.Column("company_id", sa.Integer(), sa.ForeignKey("companies.id", ondelete="CASCADE"), nullable=False),
        sa.Column("job_title", sa.String(255), nullable=False),
        sa.Column("job_req_url", sa.String(1024)),
        sa.Column("job_description_md", sa.Text(), nullable=False, server_default=""),
        sa.Column("work_location", _enum("work_location", WORK_LOCATIONS), nullable=True),
        sa.Column("easy_apply", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("cover_letter", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("hot", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("hot_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("current_state", _enum("app_state", APP_STATES), nullable=False, server_default="INTERESTED"),
        sa.Column("applied_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_applications_owner_id", "applications", ["owner_id"])
    op.create_index("ix_applications_company_id", "applications", ["company_id"])
    op.create_index("ix_applications_owner_state", "applications", ["owner_id", "current_state"])
    op.create_index("ix_applications_owner_applied_at", "applications", ["owner_id", "applied_at"])

    op.create_table(
        "application_tags",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "application_id", sa.Integer(),
            sa.ForeignKey("applications.id", ondelete="CASCADE"), nullable=False,
        ),
        sa.Column("tag", sa.String(100), nullable=False),
        sa.UniqueConstraint("application_id", "tag", name="uq_application_tag"),
    )
    op.create_index("ix_application_tags_application_id", "application_tags", ["application_id"])
    op.create_index("ix_application_tags_tag", "application_tags", ["tag"])

    op.create_table(
        "state_transitions",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "application_id", sa.Integer(),
            sa.ForeignKey("applications.id", ondelete="CASCADE"), nullable=False,
        ),
        sa.Column("from_state", _enum("app_state", APP_STATES), nullable=True),
        sa.Column("to_state", _enum("app_state", APP_STATES), nullable=False),
        sa.Column("transitioned_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("note", sa.Text(), nullable=True),
        sa.Column("actor_user_id", sa.String(64), nullable=False),
    )
    op.create_index("ix_state_transitions_application_id", "state_transitions", ["application_id"])


def downgrade():
    op.drop_index("ix_state_transitions_application_id", table_name="state_transitions")
    op.drop_table("state_transitions")
    op.drop_index("ix_application_tags_tag", table_name="application_tags")
    op.drop_index("ix_application_tags_application_id", table_name="application_tags")
    op.drop_table("application_tags")
    op.drop_index("ix_applications_owner_applied_at", table_name="applications")
    op.drop_index("ix_applications_owner_state", table_name="applications")
    op.drop_index("ix_applications_company_id", table_name="applications")
    op.drop_index("ix_applications_owner_id", table_name="applications")
    op.drop_table("applications")
    op.drop_index("ix_companies_owner_id", table_name="companies")
    op.drop_index("ix_companies_id", table_name="companies")
    op.drop_table("companies")

    bind = op.get_bind()
    if bind.dialect.name == "postgresql":
        postgresql.ENUM(name="work_location").drop(bind, checkfirst=True)
        postgresql.ENUM(name="app_state").drop(bind, checkfirst=True)
