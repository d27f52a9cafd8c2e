"""
Exception types raised by the MEL services and workflow.

Every service failure is a MelError subclass carrying a human-readable
message; UI handlers catch MelError and surface str(exc).
"""


class MelError(Exception):
    """Base class for all MEL dashboard errors."""


class NotFoundError(MelError):
    """Raised when an entity lookup by id or key has no match."""

    def __init__(self, entity: str, value, key: str = "Id"):
        super().__init__(f"{entity} with {key} {value} not found")
        self.entity = entity
        self.key = key
        self.value = value


class ValidationError(MelError):
    """Raised when an operation is refused because its input is invalid."""


class TransitionError(MelError):
    """Raised when a data point workflow transition is invalid."""

    def __init__(self, record_id, action: str, current: str, reason: str | None = None):
        msg = f"Cannot '{action}' data point {record_id} (status={current})"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)
        self.record_id = record_id
        self.action = action
        self.current_status = current
        self.reason = reason


class PermissionDenied(MelError):
    """Raised when a user lacks the permission required for an action."""

    def __init__(self, user_name: str, action: str, scope: str | None = None):
        scope_msg = f" in {scope}" if scope else ""
        super().__init__(f"User {user_name} does not have permission for '{action}'{scope_msg}")
        self.user_name = user_name
        self.action = action
        self.scope = scope


class ImportFileError(MelError):
    """Raised when a bulk-import file cannot be read or parsed."""
