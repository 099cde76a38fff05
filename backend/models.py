# models.py
import enum

from sqlalchemy import (
    Column, Integer, String, DateTime, Boolean, ForeignKey, Text, Enum as SAEnum, Index,
    UniqueConstraint, func,
)
from sqlalchemy.orm import relationship
from db import Base
from services.state_graph import AppState

app_state_enum = SAEnum(AppState, name="app_state")


class WorkLocation(str, enum.Enum):
    REMOTE = "REMOTE"
    ONSITE = "ONSITE"
    HYBRID = "HYBRID"
    CONTRACT = "CONTRACT"


class Company(Base):
    __tablename__ = "companies"

    id = Column(Integer, primary_key=True, index=True)
    owner_id = Column(String(64), index=True, nullable=False)
    name = Column(String(255), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)


class Application(Base):
    __tablename__ = "applications"
    __table_args__ = (
        Index("ix_applications_owner_state", "owner_id", "current_state"),
        Index("ix_applications_owner_applied_at", "owner_id", "applied_at"),
    )

    id = Column(Integer, primary_key=True)
    owner_id = Column(String(64), index=True, nullable=False)
    company_id = Column(Integer, ForeignKey("companies.id", ondelete="CASCADE"), index=True, nullable=False)

    job_title = Column(String(255), nullable=False)
    job_req_url = Column(String(1024))
    job_description_md = Column(Text, nullable=False, default="")
    work_location = Column(SAEnum(WorkLocation, name="work_location"), nullable=True)
    easy_apply = Column(Boolean, nullable=False, default=False)
    cover_letter = Column(Boolean, nullable=False, default=False)
    hot = Column(Boolean, nullable=False, default=False)
    hot_date = Column(DateTime(timezone=True), nullable=True)

    # cached projection of the newest ledger entry, only the lifecycle service writes it
    current_state = Column(app_state_enum, nullable=False, default=AppState.INTERESTED)
    applied_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    company = relationship("Company", lazy="joined")
    tag_rows = relationship(
        "ApplicationTag",
        back_populates="application",
        cascade="all, delete-orphan",
        passive_deletes=True,
        lazy="selectin",
    )
    transitions = relationship(
        "StateTransition",
        back_populates="application",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="StateTransition.id",
    )

    @property
    def tags(self):
        return sorted(t.tag for t in self.tag_rows)

    def set_tags(self, tags):
        wanted = {t.strip() for t in tags if t and t.strip()}
        existing = {t.tag: t for t in self.tag_rows}
        for name, row in existing.items():
            if name not in wanted:
                self.tag_rows.remove(row)
        for name in sorted(wanted - set(existing)):
            self.tag_rows.append(ApplicationTag(tag=name))


class ApplicationTag(Base):
    __tablename__ = "application_tags"
    __table_args__ = (
        UniqueConstraint("application_id", "tag", name="uq_application_tag"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    application_id = Column(Integer, ForeignKey("applications.id", ondelete="CASCADE"), index=True, nullable=False)
    tag = Column(String(100), nullable=False, index=True)

    application = relationship("Application", back_populates="tag_rows")


class StateTransition(Base):
    __tablename__ = "state_transitions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    application_id = Column(Integer, ForeignKey("applications.id", ondelete="CASCADE"), index=True, nullable=False)

    # from/to never change after insert; only transitioned_at and note are editable
    from_state = Column(app_state_enum, nullable=True)
    to_state = Column(app_state_enum, nullable=False)
    transitioned_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    note = Column(Text, nullable=True)
    actor_user_id = Column(String(64), nullable=False)

    application = relationship("Application", back_populates="transitions")
