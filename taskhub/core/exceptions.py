"""
Engine-wide exception hierarchy.

Every stage of request handling (session validation, permission matrix,
scope evaluation, field validators, cascade) raises one of these types.
Blueprints never build error bodies by hand: the handlers registered in
``taskhub.utils.errors`` turn them into the standard JSON envelope.

Each error carries a stable ``kind`` (the contract clients switch on), a
public ``message``, optional field-level ``details`` and a UTC timestamp.
Internal identifiers (primary keys, tenant ids) are kept on the instance
for logging and never appear in ``message``.

Usage:
    from taskhub.core.exceptions import NotFoundError, ConflictError

    raise NotFoundError(resource="Department", resource_id=42)
    raise ConflictError("User", "email", value, message="Email already exists in this organization")
"""

from datetime import datetime, timezone


class EngineError(Exception):
    """Base class for every error the engine surfaces to callers."""

    kind = "Internal"
    status_code = 500

    def __init__(self, message: str, details: dict | None = None) -> None:
        self.message = message
        self.details = details or {}
        self.timestamp = datetime.now(timezone.utc)
        super().__init__(message)

    def to_dict(self) -> dict:
        body = {
            "code": self.kind,
            "message": self.message,
            "timestamp": self.timestamp.isoformat(),
        }
        if self.details:
            body["details"] = self.details
        return body


class UnauthenticatedError(EngineError):
    """Session is missing, invalid, expired, or its owning chain is dead.

    Never retried; the client must re-authenticate.
    """

    kind = "Unauthenticated"
    status_code = 401


class ForbiddenError(EngineError):
    """Permission matrix or scope evaluator denied the operation."""

    kind = "Forbidden"
    status_code = 403


class NotFoundError(EngineError):
    """Raised when a referenced entity has no record at all.

    Args:
        resource: Human-readable model name (e.g. "Department").
        resource_id: The PK that was looked up. Logged, never rendered.
        message: Optional override for the public message.
    """

    kind = "NotFound"
    status_code = 404

    def __init__(
        self,
        resource: str,
        resource_id: int | str | None = None,
        message: str | None = None,
    ) -> None:
        self.resource = resource
        self.resource_id = resource_id
        super().__init__(message or f"{resource} not found")

    def __str__(self) -> str:
        if self.resource_id is None:
            return self.message
        return f"{self.message} (id={self.resource_id})"


class ConflictError(EngineError):
    """The record exists but is in the wrong lifecycle state, or a scoped
    uniqueness constraint would be violated.

    Args:
        resource: Model name.
        field: The field that conflicts (``"is_deleted"`` for lifecycle).
        value: The conflicting value. Logged, never rendered.
        message: Public message; defaults to "<Resource> with this <field> already exists".
    """

    kind = "Conflict"
    status_code = 409

    def __init__(
        self,
        resource: str,
        field: str,
        value=None,
        message: str | None = None,
    ) -> None:
        self.resource = resource
        self.field = field
        self.value = value
        text = message or f"{resource} with this {field} already exists"
        super().__init__(text, details={field: text})


class ValidationError(EngineError):
    """Input was well-formed but violated one or more business rules.

    Args:
        message: Human-readable summary.
        details: Field-level breakdown; keys are field names.
    """

    kind = "ValidationFailed"
    status_code = 422
