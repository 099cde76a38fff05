# services/records.py
"""Owner-scoped reads of applications and companies.

Every lookup filters on ``owner_id``; a row owned by someone else is treated
exactly like a missing row.
"""
from datetime import date
from typing import List, Optional, Tuple

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from models import Application, ApplicationTag, Company, StateTransition
from services.errors import InvalidArgument, NotFound
from services.state_graph import AppState
from services.timeutil import day_bounds_utc

SORT_FIELDS = ("updated_at", "applied_at", "job_title", "company", "state", "work_location", "hot")


def get_owned_application(db: Session, application_id: int, owner_id: str) -> Optional[Application]:
    return db.query(Application).filter_by(id=application_id, owner_id=owner_id).first()


def require_owned_application(db: Session, application_id: int, owner_id: str) -> Application:
    app = get_owned_application(db, application_id, owner_id)
    if not app:
        raise NotFound("Application not found")
    return app


def application_exists(db: Session, application_id: int, owner_id: str) -> bool:
    return db.query(
        db.query(Application.id).filter_by(id=application_id, owner_id=owner_id).exists()
    ).scalar()


def company_exists(db: Session, company_id: int, owner_id: str) -> bool:
    return db.query(
        db.query(Company.id).filter_by(id=company_id, owner_id=owner_id).exists()
    ).scalar()


def create_company(db: Session, owner_id: str, name: str) -> Company:
    rec = Company(owner_id=owner_id, name=name.strip())
    db.add(rec)
    db.commit()
    db.refresh(rec)
    return rec


def list_companies(db: Session, owner_id: str) -> List[Company]:
    return db.query(Company).filter(Company.owner_id == owner_id).order_by(Company.name.asc()).all()


def require_owned_company(db: Session, company_id: int, owner_id: str) -> Company:
    rec = db.query(Company).filter_by(id=company_id, owner_id=owner_id).first()
    if not rec:
        raise NotFound("Company not found")
    return rec


def _order_by(sort: str, order: str):
    desc = order == "desc"
    if sort == "hot":
        # hot first, then the most recently flagged
        return [Application.hot.desc(), Application.hot_date.desc(), Application.id.desc()]
    column = {
        "updated_at": Application.updated_at,
        "applied_at": Application.applied_at,
        "job_title": Application.job_title,
        "company": Company.name,
        "state": Application.current_state,
        "work_location": Application.work_location,
    }[sort]
    if desc:
        return [column.desc(), Application.id.desc()]
    return [column.asc(), Application.id.asc()]


def list_applications(
    db: Session,
    owner_id: str,
    state: Optional[AppState] = None,
    company_id: Optional[int] = None,
    tag: Optional[str] = None,
    search: Optional[str] = None,
    applied_date: Optional[date] = None,
    sort: str = "updated_at",
    order: str = "desc",
    page: int = 1,
    limit: int = 20,
) -> Tuple[List[Tuple[Application, object]], int]:
    """Filtered, sorted page of the owner's applications plus the unpaged total.

    Each row is ``(application, last_transition_at)``.
    """
    if sort not in SORT_FIELDS:
        raise InvalidArgument(f"Unsupported sort field: {sort}", field="sort")
    if order not in ("asc", "desc"):
        raise InvalidArgument("order must be 'asc' or 'desc'", field="order")
    if page < 1:
        raise InvalidArgument("page must be >= 1", field="page")
    if not 1 <= limit <= 100:
        raise InvalidArgument("limit must be between 1 and 100", field="limit")

    q = (
        db.query(Application)
        .join(Company, Application.company_id == Company.id)
        .filter(Application.owner_id == owner_id)
    )
    if state is not None:
        q = q.filter(Application.current_state == state)
    if company_id is not None:
        q = q.filter(Application.company_id == company_id)
    if tag:
        q = q.filter(Application.tag_rows.any(ApplicationTag.tag == tag))
    if search:
        pattern = f"%{search.strip()}%"
        q = q.filter(Application.job_title.ilike(pattern) | Company.name.ilike(pattern))
    if applied_date is not None:
        start, end = day_bounds_utc(applied_date)
        q = q.filter(Application.applied_at >= start, Application.applied_at < end)

    total = q.count()

    last_transition_at = (
        select(func.max(StateTransition.transitioned_at))
        .where(StateTransition.application_id == Application.id)
        .correlate(Application)
        .scalar_subquery()
    )
    rows = (
        q.add_columns(last_transition_at.label("last_transition_at"))
        .order_by(*_order_by(sort, order))
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return [(app, last_at) for app, last_at in rows], total
