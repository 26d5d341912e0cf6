"""Domain errors raised by the form and submission services."""


class FormServiceError(Exception):
    """Base exception for form service errors."""

    pass


class SchemaNotFoundError(FormServiceError):
    """Form does not exist or is inactive."""

    def __init__(self, message: str = "Form not found or inactive"):
        super().__init__(message)


class AccessDeniedError(FormServiceError):
    """Submission refused by the acceptance gate.

    ``reason`` is a stable code the API layer maps to a status code.
    """

    LOGIN_REQUIRED = "login_required"
    NOT_YET_OPEN = "not_yet_open"
    CLOSED = "closed"
    LIMIT_REACHED = "limit_reached"
    ALREADY_SUBMITTED = "already_submitted"
    FORBIDDEN = "forbidden"

    def __init__(self, reason: str, message: str):
        super().__init__(message)
        self.reason = reason


class SubmissionValidationError(FormServiceError):
    """Submission failed field validation."""

    def __init__(self, errors: list[str], field_errors: dict[str, list[str]] | None = None):
        super().__init__("Validation failed")
        self.errors = errors
        self.field_errors = field_errors or {}


class PersistenceFailureError(FormServiceError):
    """Storage layer failed while saving a submission."""

    pass


class InvalidTransitionError(FormServiceError):
    """Submission status change not allowed from the current status."""

    pass
