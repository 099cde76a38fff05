# services/errors.py
from typing import Any, Dict, Iterable, Optional


class LifecycleError(Exception):
    """Base class for domain errors raised by the services layer.

    Every error carries a human readable message plus a structured payload,
    so a client can render precise feedback without knowing the state graph.
    """

    code = "error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def detail(self) -> Dict[str, Any]:
        return {"detail": self.message, "error": self.code}


class NotFound(LifecycleError):
    code = "not_found"


class InvalidArgument(LifecycleError):
    code = "invalid_argument"

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field

    def detail(self) -> Dict[str, Any]:
        body = super().detail()
        if self.field:
            body["field"] = self.field
        return body


class Conflict(LifecycleError):
    """Illegal move: target not reachable from the current state."""

    code = "conflict"

    def __init__(self, current_state, target_state, allowed: Iterable):
        self.current_state = _name(current_state)
        self.target_state = _name(target_state)
        self.allowed = [_name(s) for s in allowed]
        listed = ", ".join(self.allowed) or "none (terminal state)"
        super().__init__(
            f"Cannot transition from {self.current_state} to {self.target_state}. Allowed: {listed}"
        )

    @property
    def terminal(self) -> bool:
        return not self.allowed

    def detail(self) -> Dict[str, Any]:
        body = super().detail()
        body.update(
            current_state=self.current_state,
            target_state=self.target_state,
            allowed=self.allowed,
            terminal=self.terminal,
        )
        return body


class ConcurrentModification(LifecycleError):
    """Another writer changed current_state between our read and our write."""

    code = "concurrent_modification"

    def __init__(self, application_id, observed_state, target_state):
        self.application_id = application_id
        self.observed_state = _name(observed_state)
        self.target_state = _name(target_state)
        super().__init__(
            f"Application {application_id} changed state while moving from "
            f"{self.observed_state} to {self.target_state}; reload and retry"
        )

    def detail(self) -> Dict[str, Any]:
        body = super().detail()
        body.update(
            observed_state=self.observed_state,
            target_state=self.target_state,
            retryable=True,
        )
        return body


def _name(state) -> str:
    return getattr(state, "value", state)
