"""
Platform-wide exception hierarchy.

Services raise these types; blueprints register handlers against them once
and get consistent HTTP status codes everywhere.

Usage:
    from pica_monitor.core.exceptions import NotFoundError, ValidationError

    raise NotFoundError(resource="Pica", resource_id=42)
    raise ValidationError("Invalid PICA data", details={"due_date": "is required"})
"""


class NotFoundError(Exception):
    """Raised when a requested resource does not exist within the given scope.

    Security note: Used for BOTH genuinely missing records AND cross-tenant
    access attempts. A 403 would confirm the resource exists; a 404 does not.

    Args:
        resource: Human-readable model/entity name (e.g. "Pica").
        resource_id: The key that was looked up. Included in logs, not in HTTP response.
        organization_id: Optional — the scope that was enforced. For debug logging only.
    """

    def __init__(
        self,
        resource: str,
        resource_id: int | str | None = None,
        organization_id: int | None = None,
    ) -> None:
        self.resource = resource
        self.resource_id = resource_id
        self.organization_id = organization_id
        msg = f"{resource}"
        if resource_id is not None:
            msg += f" id={resource_id}"
        msg += " not found"
        if organization_id is not None:
            msg += f" (organization={organization_id})"
        super().__init__(msg)


class ValidationError(Exception):
    """Raised when input is malformed or fails a business rule.

    Maps to HTTP 422 in blueprint error handlers (400 for self-protection
    rules, see ``status``).

    Args:
        message: Human-readable explanation of what failed.
        details: Optional field-level breakdown for structured API responses.
                 Keys are field names; values are error descriptions.
    """

    status = 422

    def __init__(self, message: str, details: dict | None = None) -> None:
        self.details = details or {}
        super().__init__(message)


class SelfDeletionError(ValidationError):
    """Raised when an actor tries to delete their own user record."""

    status = 400

    def __init__(self, user_id: int) -> None:
        self.user_id = user_id
        super().__init__("Cannot delete your own account", details={"user_id": "is the current actor"})


class ConflictError(Exception):
    """Raised when an operation would violate a uniqueness or concurrency guard.

    Maps to HTTP 409.

    Args:
        resource: Model name.
        field: The field that conflicted.
        value: The conflicting value (truncated in HTTP response; full in logs).
    """

    def __init__(
        self,
        resource: str,
        field: str,
        value: str | None = None,
        message: str | None = None,
    ) -> None:
        self.resource = resource
        self.field = field
        self.value = value
        super().__init__(message or f"{resource} with {field}={value!r} already exists")


class StaleStatusError(ConflictError):
    """Raised when the persisted status changed between read and write."""

    def __init__(self, resource: str, resource_id: int, expected: str) -> None:
        self.resource_id = resource_id
        self.expected = expected
        super().__init__(
            resource, "status", expected,
            message=f"{resource} id={resource_id} status is no longer {expected!r}",
        )


class AuthenticationRequired(Exception):
    """Raised when an anonymous actor attempts a write.  Maps to HTTP 401."""

    def __init__(self, action: str) -> None:
        self.action = action
        super().__init__(f"Authentication required for '{action}'")


class PermissionDenied(Exception):
    """Raised when the actor's role or organization does not allow an action.

    Maps to HTTP 403.
    """

    def __init__(self, actor_id: int | None, action: str, reason: str | None = None) -> None:
        reason_msg = f": {reason}" if reason else ""
        super().__init__(f"Actor {actor_id} is not allowed to '{action}'{reason_msg}")
        self.actor_id = actor_id
        self.action = action
        self.reason = reason


class LedgerWriteError(Exception):
    """A history append failed.

    Never surfaced to callers: the record update it belongs to still
    completes, and the failure is logged with ``event_type=ledger_write_failure``.
    """

    def __init__(self, pica_id: int, cause: Exception) -> None:
        self.pica_id = pica_id
        self.cause = cause
        super().__init__(f"History append failed for pica id={pica_id}: {cause}")
