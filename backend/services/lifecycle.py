# services/lifecycle.py
"""Write side of the application lifecycle.

Each public function runs as one transaction on the session it is given:
it either commits every row it touched or rolls back and raises.
"""
import logging
from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy import func, literal
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from models import Application, StateTransition
from services import ledger, records
from services.errors import ConcurrentModification, Conflict, InvalidArgument, NotFound
from services.state_graph import AppState, can_transition, ordered_allowed_next, parse_state
from services.timeutil import as_utc, utcnow

logger = logging.getLogger(__name__)

CREATE_FIELDS = {
    "job_title", "job_req_url", "job_description_md", "work_location",
    "easy_apply", "cover_letter", "tags", "applied_at", "hot",
}
PATCH_FIELDS = CREATE_FIELDS
NOT_NULL_FLAGS = ("easy_apply", "cover_letter", "hot")

_UNSET = ledger._UNSET


def _check_fields(data: Dict[str, Any], allowed) -> None:
    unknown = sorted(set(data) - set(allowed))
    if unknown:
        raise InvalidArgument(f"Unsupported field(s): {', '.join(unknown)}", field=unknown[0])


def _check_title(title) -> str:
    if title is None or not str(title).strip():
        raise InvalidArgument("job_title must not be empty", field="job_title")
    return str(title).strip()


def create_application(
    db: Session,
    owner_id: str,
    company_id: int,
    data: Dict[str, Any],
    initial_state=None,
    now: Optional[datetime] = None,
) -> Application:
    data = dict(data)
    _check_fields(data, CREATE_FIELDS)
    state = parse_state(initial_state) if initial_state is not None else AppState.INTERESTED
    data["job_title"] = _check_title(data.get("job_title"))

    if not records.company_exists(db, company_id, owner_id):
        raise NotFound("Company not found")

    now = now or utcnow()
    tags = data.pop("tags", None) or []
    hot = bool(data.pop("hot", False))
    applied_at = as_utc(data.pop("applied_at", None))
    if applied_at is None and state == AppState.APPLIED:
        applied_at = now
    if data.get("job_description_md") is None:
        data["job_description_md"] = ""

    app = Application(
        owner_id=owner_id,
        company_id=company_id,
        current_state=state,
        applied_at=applied_at,
        hot=hot,
        hot_date=now if hot else None,
        **data,
    )
    app.set_tags(tags)
    db.add(app)
    try:
        db.flush()
        ledger.append(db, app.id, None, state, owner_id, now)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Error creating application for owner %s", owner_id)
        raise

    db.refresh(app)
    logger.info("Created application %s in %s", app.id, state.value)
    return app


def move_application(
    db: Session,
    application_id: int,
    owner_id: str,
    to_state,
    note: Optional[str] = None,
    expected_state=None,
    now: Optional[datetime] = None,
) -> StateTransition:
    """Move an application along one edge of the state graph.

    The state check and the write are tied together by a conditional update on
    ``current_state``: if another writer moved the application after we read
    it, no row matches and the move fails with ConcurrentModification instead
    of recording a second transition out of the same state.

    ``expected_state`` lets a caller pin the state it last saw.
    """
    target = parse_state(to_state)
    app = records.require_owned_application(db, application_id, owner_id)
    observed = AppState(app.current_state)

    if expected_state is not None:
        expected = parse_state(expected_state)
        if expected != observed:
            logger.warning(
                "Stale move on application %s: expected %s, found %s", application_id, expected.value, observed.value
            )
            raise ConcurrentModification(application_id, expected, target)

    if not can_transition(observed, target):
        logger.warning("Rejected move on application %s: %s -> %s", application_id, observed.value, target.value)
        raise Conflict(observed, target, ordered_allowed_next(observed))

    now = now or utcnow()
    values = {Application.current_state: target}
    if target == AppState.APPLIED:
        # stamp only if still unset, evaluated inside the same UPDATE
        values[Application.applied_at] = func.coalesce(
            Application.applied_at, literal(now, Application.applied_at.type)
        )

    try:
        updated = (
            db.query(Application)
            .filter(
                Application.id == application_id,
                Application.owner_id == owner_id,
                Application.current_state == observed,
            )
            .update(values, synchronize_session=False)
        )
        if updated != 1:
            db.rollback()
            if not records.application_exists(db, application_id, owner_id):
                raise NotFound("Application not found")
            logger.warning("Concurrent move on application %s from %s lost the race", application_id, observed.value)
            raise ConcurrentModification(application_id, observed, target)

        entry = ledger.append(db, application_id, observed, target, owner_id, now, note)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Error moving application %s", application_id)
        raise

    db.refresh(entry)
    logger.info("Moved application %s: %s -> %s", application_id, observed.value, target.value)
    return entry


def update_transition(
    db: Session,
    transition_id: int,
    owner_id: str,
    transitioned_at: Optional[datetime] = None,
    note=_UNSET,
    application_id: Optional[int] = None,
) -> StateTransition:
    entry = ledger.find_owned(db, transition_id, owner_id, application_id)
    if not entry:
        raise NotFound("Transition not found")

    ledger.amend(entry, transitioned_at=transitioned_at, note=note)
    try:
        db.commit()
    except StaleDataError:
        # application (and its ledger) was deleted underneath us
        db.rollback()
        raise NotFound("Transition not found")
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Error updating transition %s", transition_id)
        raise

    db.refresh(entry)
    return entry


def update_attributes(
    db: Session,
    application_id: int,
    owner_id: str,
    patch: Dict[str, Any],
    now: Optional[datetime] = None,
) -> Application:
    """Field-level patch of everything except the state projection."""
    patch = dict(patch)
    _check_fields(patch, PATCH_FIELDS)
    app = records.require_owned_application(db, application_id, owner_id)

    for flag in NOT_NULL_FLAGS:
        if flag in patch and patch[flag] is None:
            raise InvalidArgument(f"{flag} must be true or false", field=flag)
    if "applied_at" in patch:
        patch["applied_at"] = as_utc(patch["applied_at"])
    if "job_title" in patch:
        patch["job_title"] = _check_title(patch["job_title"])
    if "tags" in patch:
        app.set_tags(patch.pop("tags") or [])
    if "hot" in patch:
        hot = bool(patch.pop("hot"))
        if hot and not app.hot:
            app.hot = True
            app.hot_date = now or utcnow()
        elif not hot and app.hot:
            app.hot = False
            app.hot_date = None
    if "job_description_md" in patch and patch["job_description_md"] is None:
        patch["job_description_md"] = ""
    for k, v in patch.items():
        setattr(app, k, v)

    try:
        db.commit()
    except StaleDataError:
        db.rollback()
        raise NotFound("Application not found")
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Error updating application %s", application_id)
        raise

    db.refresh(app)
    return app


def remove_application(db: Session, application_id: int, owner_id: str) -> None:
    app = records.require_owned_application(db, application_id, owner_id)
    db.delete(app)
    try:
        db.commit()
    except StaleDataError:
        db.rollback()
        raise NotFound("Application not found")
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Error deleting application %s", application_id)
        raise
    logger.info("Deleted application %s", application_id)
