"""Error taxonomy for the session and task workflow."""

from datetime import datetime, time


class WorkflowError(Exception):
    """Base class for every error an operation can return."""

    code = "workflow_error"

    def details(self) -> dict[str, object]:
        """Return extra fields for API error bodies."""
        return {}


class ValidationError(WorkflowError):
    """Malformed or missing input."""

    code = "validation_error"

    def __init__(self, message: str, field: str | None = None) -> None:
        super().__init__(message)
        self.field = field

    def details(self) -> dict[str, object]:
        return {"field": self.field} if self.field else {}


class AuthorizationError(WorkflowError):
    """The caller's role or ownership does not permit the action."""

    code = "authorization_error"


class NotFoundError(WorkflowError):
    """A referenced session or record does not exist."""

    code = "not_found"


class ConflictError(WorkflowError):
    """The action conflicts with the current state; retrying will not help."""

    code = "conflict"


class DuplicateSessionError(ConflictError):
    code = "duplicate_session"


class InvalidTransitionError(ConflictError):
    code = "invalid_transition"


class AlreadyPunchedInError(ConflictError):
    code = "already_punched_in"


class NotPunchedInError(ConflictError):
    code = "not_punched_in"


class AlreadyPunchedOutError(ConflictError):
    code = "already_punched_out"


class DuplicateTaskError(ConflictError):
    code = "duplicate_task"


class PolicyDeniedError(WorkflowError):
    """The window policy refused the action at the evaluated instant."""

    code = "policy_denied"

    def __init__(  # noqa: PLR0913
        self,
        message: str,
        window_name: str,
        reason: str,
        opens_at: time | None = None,
        closes_at: time | None = None,
        deadline: datetime | None = None,
    ) -> None:
        super().__init__(message)
        self.window_name = window_name
        self.reason = reason
        self.opens_at = opens_at
        self.closes_at = closes_at
        self.deadline = deadline

    def details(self) -> dict[str, object]:
        return {
            "window": self.window_name,
            "reason": self.reason,
            "opens_at": self.opens_at.isoformat() if self.opens_at else None,
            "closes_at": self.closes_at.isoformat() if self.closes_at else None,
            "deadline": self.deadline.isoformat() if self.deadline else None,
        }


class WindowClosedError(PolicyDeniedError):
    code = "window_closed"


class FinalizationExpiredError(PolicyDeniedError):
    code = "finalization_expired"


class SessionLockedError(WorkflowError):
    """The session is finalized and accepts no further task writes."""

    code = "session_locked"


class ImmutableRecordError(WorkflowError):
    """The task record type cannot be modified once written."""

    code = "immutable_record"


class StorageError(WorkflowError):
    """The persistence collaborator failed."""

    code = "storage_error"


class NotificationError(WorkflowError):
    """Publishing a change event failed after the mutation was committed."""

    code = "notification_error"

    def __init__(self, message: str, result: object | None = None) -> None:
        super().__init__(message)
        self.result = result
