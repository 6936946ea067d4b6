"""
Application-wide exception hierarchy.

Services raise these types; blueprints register handlers against them
once (see ``app.blueprints.register_error_handlers``) and get consistent
HTTP status codes everywhere.

Usage:
    from app.core.exceptions import NotFoundError, ValidationError

    raise NotFoundError(resource="Project", resource_id=42)
    raise ValidationError("Project name is required", details={"name": "required"})
"""


class NotFoundError(Exception):
    """Raised when a requested resource does not exist.

    Maps to HTTP 404.

    Args:
        resource: Human-readable entity name (e.g. "Project", "Task").
        resource_id: The key that was looked up. Included in the message.
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
    """Raised when input is malformed or violates a business rule.

    Maps to HTTP 400.

    Args:
        message: Human-readable explanation of what failed.
        details: Optional field-level breakdown for structured API responses.
                 Keys are field names; values are error descriptions.
    """

    def __init__(self, message: str, details: dict | None = None) -> None:
        self.message = message
        self.details = details or {}
        super().__init__(message)


class ConflictError(Exception):
    """Raised when an operation would duplicate a unique value or break a state rule.

    Maps to HTTP 409.

    Args:
        resource: Model name.
        field: The unique field (or state field) in conflict.
        value: The conflicting value.
        message: Optional override of the generated message.
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


class AuthenticationError(Exception):
    """Raised when a request carries no valid session (missing, invalid or expired token).

    Maps to HTTP 401.
    """

    def __init__(self, message: str = "Authentication required") -> None:
        self.message = message
        super().__init__(message)


class AuthorizationError(Exception):
    """Raised when the caller is known but not allowed to perform the action.

    Maps to HTTP 403.
    """

    def __init__(self, message: str = "Forbidden") -> None:
        self.message = message
        super().__init__(message)


class PersistenceError(Exception):
    """Raised when the persistence collaborator fails for reasons outside the caller's input.

    Maps to HTTP 500 with a generic message; the cause is logged, never returned.

    Args:
        message: Description for logs.
        retryable: True when repeating the same call may succeed (timeouts,
                   dropped connections).
        status_code: Upstream HTTP status when the failure came from an API call.
    """

    def __init__(
        self,
        message: str = "Persistence failure",
        retryable: bool = False,
        status_code: int | None = None,
    ) -> None:
        self.message = message
        self.retryable = retryable
        self.status_code = status_code
        super().__init__(message)


class ApiTimeoutError(PersistenceError):
    """An outbound API call timed out or could not connect. Always retryable."""

    def __init__(self, message: str = "Request timed out") -> None:
        super().__init__(message, retryable=True)
