# services/analytics.py
"""Read-side derivations over the transition ledger and the application rows.

Nothing here is cached: every call recomputes from a fresh read, and an owner
without data simply gets empty results. ``sweep_stale_hot`` is the one
maintenance write kept alongside the reports.
"""
import logging
from collections import defaultdict
from datetime import datetime, timedelta
from typing import Any, Dict, Iterable, List, Optional, Tuple

from sqlalchemy import func, or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from models import Application, ApplicationTag, Company, StateTransition, WorkLocation
from services.errors import InvalidArgument
from services.state_graph import OUTCOME_STATES, AppState
from services.timeutil import as_utc, day_bounds_utc, local_date, local_today, one_calendar_month_before, utcnow

logger = logging.getLogger(__name__)

START_NODE = "START"
MAX_TIMELINE_DAYS = 366

APPLIED_STATES = (AppState.APPLIED,)
INTERVIEWED_STATES = (AppState.SCREENING, AppState.INTERVIEW, AppState.OFFER, AppState.ACCEPTED, AppState.DECLINED)
PASSED_ON_STATES = (AppState.REJECTED, AppState.GHOSTED, AppState.DECLINED)

# never drawn on a swimlane: before applying, or thrown away
SWIMLANE_SKIPPED = (AppState.INTERESTED, AppState.TRASH)


def _name(state) -> str:
    return getattr(state, "value", state)


# ---------- flow graph (sankey) ----------
def flow_graph(db: Session, owner_id: str) -> Dict[str, List[Dict[str, Any]]]:
    pairs = (
        db.query(StateTransition.from_state, StateTransition.to_state)
        .join(Application, StateTransition.application_id == Application.id)
        .filter(Application.owner_id == owner_id)
        .order_by(StateTransition.id.asc())
        .all()
    )
    # applications normally always carry their creation entry; count the odd one without
    bare = (
        db.query(Application.current_state)
        .filter(Application.owner_id == owner_id, ~Application.transitions.any())
        .order_by(Application.id.asc())
        .all()
    )
    edges = [(from_state, to_state) for from_state, to_state in pairs]
    edges.extend((None, state) for (state,) in bare)
    return build_flow_graph(edges)


def build_flow_graph(edges: Iterable[Tuple[Optional[AppState], AppState]]) -> Dict[str, List[Dict[str, Any]]]:
    counts: Dict[Tuple[str, str], int] = {}
    for from_state, to_state in edges:
        key = (_name(from_state) if from_state is not None else START_NODE, _name(to_state))
        counts[key] = counts.get(key, 0) + 1

    nodes: List[str] = []
    index: Dict[str, int] = {}
    for source, target in counts:
        for name in (source, target):
            if name not in index:
                index[name] = len(nodes)
                nodes.append(name)

    return {
        "nodes": [{"name": n} for n in nodes],
        "links": [
            {"source": index[source], "target": index[target], "value": value}
            for (source, target), value in counts.items()
        ],
    }


# ---------- daily timeline ----------
def _check_days(days) -> int:
    if isinstance(days, bool) or not isinstance(days, int):
        raise InvalidArgument("days must be an integer", field="days")
    if days < 1 or days > MAX_TIMELINE_DAYS:
        raise InvalidArgument(f"days must be between 1 and {MAX_TIMELINE_DAYS}", field="days")
    return days


def daily_timeline(db: Session, owner_id: str, days: int = 30, now: Optional[datetime] = None) -> List[Dict[str, Any]]:
    """One entry per calendar day for the last ``days`` days (today included), oldest first."""
    days = _check_days(days)
    today = local_today(now)
    first = today - timedelta(days=days - 1)
    window_start, _ = day_bounds_utc(first)
    _, window_end = day_bounds_utc(today)

    rows = (
        db.query(Application.applied_at, Company.name)
        .join(Company, Application.company_id == Company.id)
        .filter(
            Application.owner_id == owner_id,
            Application.applied_at >= window_start,
            Application.applied_at < window_end,
        )
        .order_by(Application.applied_at.asc(), Application.id.asc())
        .all()
    )

    buckets = {first + timedelta(days=i): {"count": 0, "companies": []} for i in range(days)}
    for applied_at, company_name in rows:
        bucket = buckets.get(local_date(applied_at))
        if bucket is None:
            continue
        bucket["count"] += 1
        bucket["companies"].append(company_name)

    return [{"date": day.isoformat(), **bucket} for day, bucket in sorted(buckets.items())]


# ---------- swimlane ----------
def build_lane(entries: Iterable[StateTransition], now: datetime):
    """Turn one application's ledger into contiguous segments plus an optional outcome marker.

    The marker comes from the newest entry by write order, so a backdated
    outcome still closes the lane. Outcome entries never become segments.

    Returns ``(segments, terminal_marker)``.
    """
    entries = list(entries)
    if not entries:
        return [], None

    marker = None
    final = max(entries, key=lambda e: e.id or 0)
    if final.to_state in OUTCOME_STATES:
        marker = {"state": _name(final.to_state), "at": as_utc(final.transitioned_at)}

    steps = sorted(
        (e for e in entries if e.to_state not in SWIMLANE_SKIPPED and e.to_state not in OUTCOME_STATES),
        key=lambda e: (as_utc(e.transitioned_at), e.id or 0),
    )
    if not steps:
        return [], marker

    lane_end = marker["at"] if marker else now
    segments = []
    for i, step in enumerate(steps):
        start = as_utc(step.transitioned_at)
        end = as_utc(steps[i + 1].transitioned_at) if i + 1 < len(steps) else max(start, lane_end)
        segments.append({"state": _name(step.to_state), "start": start, "end": end})
    return segments, marker


def swimlane(db: Session, owner_id: str, now: Optional[datetime] = None) -> List[Dict[str, Any]]:
    now = as_utc(now) if now else utcnow()
    apps = (
        db.query(Application)
        .filter(
            Application.owner_id == owner_id,
            Application.current_state.notin_(SWIMLANE_SKIPPED),
            Application.applied_at.isnot(None),
        )
        .order_by(Application.applied_at.asc(), Application.id.asc())
        .all()
    )
    if not apps:
        return []

    by_app = defaultdict(list)
    entries = (
        db.query(StateTransition)
        .filter(StateTransition.application_id.in_([a.id for a in apps]))
        .order_by(StateTransition.id.asc())
        .all()
    )
    for entry in entries:
        by_app[entry.application_id].append(entry)

    lanes = []
    for app in apps:
        segments, marker = build_lane(by_app[app.id], now)
        if not segments:
            continue
        lanes.append({
            "application_id": app.id,
            "company": app.company.name,
            "job_title": app.job_title,
            "applied_at": as_utc(app.applied_at),
            "current_state": _name(app.current_state),
            "segments": segments,
            "terminal_marker": marker,
        })
    return lanes


# ---------- dashboard ----------
def _reached_count(db: Session, owner_id: str, states) -> int:
    return (
        db.query(Application)
        .filter(
            Application.owner_id == owner_id,
            or_(
                Application.current_state.in_(states),
                Application.transitions.any(StateTransition.to_state.in_(states)),
            ),
        )
        .count()
    )


def dashboard_stats(db: Session, owner_id: str) -> Dict[str, int]:
    """Independent, overlapping funnel counts. applied/interviewed look at history, passed_on at the present."""
    passed_on = (
        db.query(Application)
        .filter(Application.owner_id == owner_id, Application.current_state.in_(PASSED_ON_STATES))
        .count()
    )
    return {
        "applied": _reached_count(db, owner_id, APPLIED_STATES),
        "interviewed": _reached_count(db, owner_id, INTERVIEWED_STATES),
        "passed_on": passed_on,
    }


# ---------- maintenance ----------
def sweep_stale_hot(db: Session, owner_id: str, now: Optional[datetime] = None) -> int:
    """Drop the hot flag from anything flagged more than a calendar month ago."""
    cutoff = one_calendar_month_before(as_utc(now) if now else utcnow())
    try:
        cleared = (
            db.query(Application)
            .filter(
                Application.owner_id == owner_id,
                Application.hot.is_(True),
                Application.hot_date < cutoff,
            )
            .update({Application.hot: False, Application.hot_date: None}, synchronize_session=False)
        )
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Error clearing stale hot flags for owner %s", owner_id)
        raise
    if cleared:
        logger.info("Cleared %d stale hot flag(s) for owner %s", cleared, owner_id)
    return cleared


# ---------- distributions ----------
def work_location_distribution(db: Session, owner_id: str) -> Dict[str, Any]:
    rows = (
        db.query(Application.work_location, func.count(Application.id))
        .filter(Application.owner_id == owner_id)
        .group_by(Application.work_location)
        .all()
    )
    by_location = {(_name(loc) if loc is not None else "UNSPECIFIED"): cnt for loc, cnt in rows}
    order = [w.value for w in WorkLocation] + ["UNSPECIFIED"]
    items = [{"location": loc, "count": by_location[loc]} for loc in order if by_location.get(loc)]
    items.sort(key=lambda item: -item["count"])
    return {"items": items, "total": sum(by_location.values())}


def tag_distribution(db: Session, owner_id: str) -> Dict[str, Any]:
    rows = (
        db.query(ApplicationTag.tag, func.count(ApplicationTag.id).label("cnt"))
        .join(Application, ApplicationTag.application_id == Application.id)
        .filter(Application.owner_id == owner_id)
        .group_by(ApplicationTag.tag)
        .all()
    )
    items = sorted(({"tag": tag, "count": cnt} for tag, cnt in rows), key=lambda i: (-i["count"], i["tag"]))
    return {"items": items, "total_tags": len(items)}


def hot_list(db: Session, owner_id: str) -> Dict[str, Any]:
    apps = (
        db.query(Application)
        .filter(Application.owner_id == owner_id, Application.hot.is_(True))
        .order_by(Application.hot_date.desc(), Application.id.desc())
        .all()
    )
    items = [
        {
            "id": a.id,
            "company": a.company.name,
            "job_title": a.job_title,
            "applied_at": as_utc(a.applied_at),
            "hot_date": as_utc(a.hot_date),
        }
        for a in apps
    ]
    return {"items": items, "total": len(items)}
