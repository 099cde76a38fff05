# services/state_graph.py
import enum
from typing import Dict, FrozenSet, Tuple

from services.errors import InvalidArgument


class AppState(str, enum.Enum):
    INTERESTED = "INTERESTED"
    APPLIED = "APPLIED"
    SCREENING = "SCREENING"
    INTERVIEW = "INTERVIEW"
    INTERVIEW_2 = "INTERVIEW_2"
    INTERVIEW_3 = "INTERVIEW_3"
    OFFER = "OFFER"
    ACCEPTED = "ACCEPTED"
    DECLINED = "DECLINED"
    REJECTED = "REJECTED"
    GHOSTED = "GHOSTED"
    TRASH = "TRASH"


# Legal forward moves. Order is kept so error messages list states the same way every time.
ALLOWED_TRANSITIONS: Dict[AppState, Tuple[AppState, ...]] = {
    AppState.INTERESTED: (AppState.APPLIED, AppState.TRASH),
    AppState.APPLIED: (AppState.SCREENING, AppState.REJECTED, AppState.GHOSTED, AppState.TRASH),
    AppState.SCREENING: (AppState.INTERVIEW, AppState.REJECTED, AppState.GHOSTED, AppState.TRASH),
    AppState.INTERVIEW: (
        AppState.INTERVIEW_2, AppState.OFFER, AppState.REJECTED, AppState.GHOSTED, AppState.TRASH,
    ),
    AppState.INTERVIEW_2: (
        AppState.INTERVIEW_3, AppState.OFFER, AppState.REJECTED, AppState.GHOSTED, AppState.TRASH,
    ),
    AppState.INTERVIEW_3: (AppState.OFFER, AppState.REJECTED, AppState.GHOSTED, AppState.TRASH),
    AppState.OFFER: (AppState.ACCEPTED, AppState.DECLINED, AppState.REJECTED, AppState.GHOSTED),
    AppState.ACCEPTED: (),
    AppState.DECLINED: (),
    AppState.REJECTED: (),
    AppState.GHOSTED: (),
    AppState.TRASH: (),
}

TERMINAL_STATES: FrozenSet[AppState] = frozenset(s for s, nxt in ALLOWED_TRANSITIONS.items() if not nxt)

# Terminal states that close out a real hiring process (TRASH is just "discarded").
OUTCOME_STATES: FrozenSet[AppState] = frozenset(
    {AppState.ACCEPTED, AppState.DECLINED, AppState.REJECTED, AppState.GHOSTED}
)


def parse_state(value) -> AppState:
    """Coerce a literal (or an AppState) into AppState, raising InvalidArgument for unknown names."""
    if isinstance(value, AppState):
        return value
    try:
        return AppState(str(value).strip().upper())
    except ValueError:
        raise InvalidArgument(f"Unknown state: {value!r}", field="state")


def ordered_allowed_next(state) -> Tuple[AppState, ...]:
    return ALLOWED_TRANSITIONS[parse_state(state)]


def allowed_next(state) -> FrozenSet[AppState]:
    return frozenset(ordered_allowed_next(state))


def can_transition(from_state, to_state) -> bool:
    return parse_state(to_state) in allowed_next(from_state)


def is_terminal(state) -> bool:
    return parse_state(state) in TERMINAL_STATES
