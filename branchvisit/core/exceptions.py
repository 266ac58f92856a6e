"""
Platform-wide exception hierarchy.

Services raise these types; blueprints register handlers against them once
and get consistent HTTP status codes everywhere.

Two families live here:

  * Request-level errors (NotFoundError, ValidationError, AuthorizationError,
    TransitionError, ConflictError, StoreUnavailableError, EmptyExportError)
    cross the service boundary and are mapped to HTTP responses.
  * Field-level failures (FieldValidationError and subclasses) are collected
    by the visit validator into a list.  They are never raised on their own
    across a service boundary; ValidationError carries them instead.

Usage:
    from branchvisit.core.exceptions import NotFoundError, ValidationError

    raise NotFoundError(resource="Branch", resource_id=branch_id)
    raise ValidationError("Visit is incomplete", details={"visit_date": {...}})
"""


class NotFoundError(Exception):
    """Raised when a requested resource does not exist.

    Maps to HTTP 404.

    Args:
        resource: Human-readable model/entity name (e.g. "Branch", "Visit").
        resource_id: The PK that was looked up. Included in logs and message.
    """

    def __init__(self, resource: str, resource_id: int | str | None = None) -> None:
        self.resource = resource
        self.resource_id = resource_id
        msg = f"{resource}"
        if resource_id is not None:
            msg += f" id={resource_id}"
        msg += " not found"
        super().__init__(msg)


class ValidationError(Exception):
    """Raised when input fails business-rule validation in the service layer.

    Maps to HTTP 422 in blueprint error handlers.

    Args:
        message: Human-readable explanation of what failed.
        details: Optional field-level breakdown for structured API responses.
                 Keys are field names; values are error descriptions.
    """

    def __init__(self, message: str, details: dict | None = None) -> None:
        self.details = details or {}
        super().__init__(message)

    @classmethod
    def from_failures(cls, failures: list["FieldValidationError"], message: str | None = None):
        """Build a ValidationError from the validator's failure list."""
        details = {}
        for failure in failures:
            # First failure per field wins; the validator checks most specific first.
            details.setdefault(failure.field, failure.to_dict())
        return cls(message or f"{len(failures)} field(s) failed validation", details=details)


class AuthorizationError(Exception):
    """Raised when the actor is not allowed to perform an action.

    Maps to HTTP 403.  Always raised before any mutation happens.
    """

    def __init__(self, actor_id: str | None, action: str, reason: str | None = None) -> None:
        self.actor_id = actor_id
        self.action = action
        self.reason = reason
        msg = f"User {actor_id} is not allowed to '{action}'"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)


class TransitionError(Exception):
    """Raised when a visit lifecycle transition is invalid for its current status.

    Maps to HTTP 409.
    """

    def __init__(self, visit_id: str, action: str, current: str, reason: str | None = None):
        msg = f"Cannot '{action}' visit {visit_id} (status={current})"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)
        self.visit_id = visit_id
        self.action = action
        self.current_status = current
        self.reason = reason


class ConflictError(Exception):
    """Raised when an operation would create a duplicate unique constraint violation.

    Maps to HTTP 409.

    Args:
        resource: Model name.
        field: The unique field that would be duplicated.
        value: The conflicting value.
    """

    def __init__(self, resource: str, field: str, value: str | None = None) -> None:
        self.resource = resource
        self.field = field
        self.value = value
        msg = f"{resource} with {field}={value!r} already exists"
        super().__init__(msg)


class StoreUnavailableError(Exception):
    """Raised when the database could not serve a read or write.

    Maps to HTTP 503.  The operation is not retried; the caller re-triggers.
    """

    def __init__(self, operation: str, detail: str | None = None) -> None:
        self.operation = operation
        self.detail = detail
        super().__init__(f"Data store unavailable during {operation}")


class EmptyExportError(Exception):
    """Raised by the export formatter when there are no records to write.

    Blueprints turn this into a user-facing notice instead of a file.
    """

    def __init__(self, report: str | None = None) -> None:
        self.report = report
        super().__init__("No data to export")


# ── Field-level validation failures ──────────────────────────────────────


class FieldValidationError(ValueError):
    """One failed check on one visit field."""

    code = "FieldValidationError"

    def __init__(self, field: str, message: str) -> None:
        self.field = field
        self.message = message
        super().__init__(f"{field}: {message}")

    def to_dict(self) -> dict:
        return {"code": self.code, "message": self.message}


class RequiredError(FieldValidationError):
    code = "RequiredError"


class RangeError(FieldValidationError):
    code = "RangeError"


class LengthError(FieldValidationError):
    code = "LengthError"


class InvalidEnumError(FieldValidationError):
    code = "InvalidEnumError"


class InvalidValueError(FieldValidationError):
    code = "InvalidValueError"


class FutureDateError(FieldValidationError):
    code = "FutureDateError"
