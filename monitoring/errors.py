"""
Exceptions raised by the crisis monitoring engine.

Every error carries a ``context`` dict (workspace, crisis id, attempted
transition, ...) so callers can report failures to operators.
"""

from typing import Any, Dict, Optional


class CrisisMonitorError(Exception):
    """Base class for crisis monitoring errors."""

    def __init__(self, message: str, **context: Any):
        super().__init__(message)
        self.context: Dict[str, Any] = {
            key: value for key, value in context.items() if value is not None
        }

    def __str__(self) -> str:
        message = super().__str__()
        if not self.context:
            return message
        details = ", ".join(f"{key}={value}" for key, value in self.context.items())
        return f"{message} ({details})"


class ValidationError(CrisisMonitorError):
    """Raised when monitoring options or inputs are malformed."""

    def __init__(self, field: str, message: str, value: Any = None):
        super().__init__(message, field=field, value=value)
        self.field = field


class NotFoundError(CrisisMonitorError):
    """Raised when a crisis id does not resolve to a stored incident."""

    def __init__(self, crisis_id: Any):
        super().__init__(f"Crisis not found: {crisis_id}", crisis_id=crisis_id)
        self.crisis_id = crisis_id


class InvalidTransitionError(CrisisMonitorError):
    """Raised when a lifecycle move is not allowed from the current status."""

    def __init__(self, crisis_id: Any, from_status: Any, to_status: Any):
        super().__init__(
            f"Illegal crisis status transition {_name(from_status)} -> {_name(to_status)}",
            crisis_id=crisis_id,
            from_status=_name(from_status),
            to_status=_name(to_status),
        )
        self.crisis_id = crisis_id
        self.from_status = from_status
        self.to_status = to_status


class CrisisConflictError(CrisisMonitorError):
    """Raised when a concurrent writer changed or locked the same crisis or workspace."""


class StoreUnavailableError(CrisisMonitorError):
    """Raised when the mention or incident store times out or cannot be reached."""

    def __init__(
        self,
        operation: str,
        cause: Optional[BaseException] = None,
        **context: Any,
    ):
        super().__init__(
            f"Store unavailable during {operation}: {cause}",
            operation=operation,
            **context,
        )
        self.operation = operation


def _name(status: Any) -> Any:
    return getattr(status, "value", status)
