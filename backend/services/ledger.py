# services/ledger.py
"""Transition ledger access.

Entries are inserted by the lifecycle service only. Nothing here can change
``from_state`` or ``to_state`` of an existing row: the only mutation offered
is ``amend``, which touches the timestamp and the note.
"""
from datetime import datetime
from typing import List, Optional

from sqlalchemy.orm import Session

from models import Application, StateTransition
from services.state_graph import AppState
from services.timeutil import as_utc

_UNSET = object()


def append(
    db: Session,
    application_id: int,
    from_state: Optional[AppState],
    to_state: AppState,
    actor_user_id: str,
    at: datetime,
    note: Optional[str] = None,
) -> StateTransition:
    entry = StateTransition(
        application_id=application_id,
        from_state=from_state,
        to_state=to_state,
        transitioned_at=as_utc(at),
        note=note or None,
        actor_user_id=actor_user_id,
    )
    db.add(entry)
    return entry


def amend(entry: StateTransition, transitioned_at: Optional[datetime] = None, note=_UNSET) -> StateTransition:
    if transitioned_at is not None:
        entry.transitioned_at = as_utc(transitioned_at)
    if note is not _UNSET:
        entry.note = note or None
    return entry


def find_owned(
    db: Session, transition_id: int, owner_id: str, application_id: Optional[int] = None
) -> Optional[StateTransition]:
    q = (
        db.query(StateTransition)
        .join(Application, StateTransition.application_id == Application.id)
        .filter(StateTransition.id == transition_id, Application.owner_id == owner_id)
    )
    if application_id is not None:
        q = q.filter(StateTransition.application_id == application_id)
    return q.first()


def for_application(db: Session, application_id: int, newest_first: bool = False) -> List[StateTransition]:
    q = db.query(StateTransition).filter(StateTransition.application_id == application_id)
    if newest_first:
        return q.order_by(StateTransition.transitioned_at.desc(), StateTransition.id.desc()).all()
    return q.order_by(StateTransition.transitioned_at.asc(), StateTransition.id.asc()).all()


def latest_written(db: Session, application_id: int) -> Optional[StateTransition]:
    """Newest entry by write order; edited timestamps do not affect it."""
    return (
        db.query(StateTransition)
        .filter(StateTransition.application_id == application_id)
        .order_by(StateTransition.id.desc())
        .first()
    )


def for_owner(db: Session, owner_id: str) -> List[StateTransition]:
    return (
        db.query(StateTransition)
        .join(Application, StateTransition.application_id == Application.id)
        .filter(Application.owner_id == owner_id)
        .order_by(StateTransition.id.asc())
        .all()
    )


def count_for_owner(db: Session, owner_id: str) -> int:
    return (
        db.query(StateTransition)
        .join(Application, StateTransition.application_id == Application.id)
        .filter(Application.owner_id == owner_id)
        .count()
    )
