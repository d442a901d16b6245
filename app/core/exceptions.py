"""Exception taxonomy for the assessment service.

Every error carries the HTTP status it maps to at the handler boundary.
Messages are short and safe to return to clients; diagnostic context lives
in the extra attributes and is only logged.
"""

from typing import Optional


class AssessmentServiceError(Exception):
    """Base class for all service errors."""

    status_code = 500
    default_message = "Internal server error"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class InvalidInputError(AssessmentServiceError):
    """Missing or malformed request data. Never retried."""

    status_code = 400
    default_message = "Invalid request"


class NotFoundError(AssessmentServiceError):
    """No matching record."""

    status_code = 404
    default_message = "Not found"


class TokenInvalidError(NotFoundError):
    """Download token does not exist or is no longer active."""

    default_message = "invalid token"


class TokenExpiredError(NotFoundError):
    """Download token passed its expiry instant."""

    default_message = "expired"


class BackendError(AssessmentServiceError):
    """A backend operation failed."""

    status_code = 500
    default_message = "Backend operation failed"

    def __init__(self, operation: str, detail: Optional[str] = None):
        self.operation = operation
        self.detail = detail
        super().__init__(self.default_message)

    def __str__(self) -> str:
        return f"{self.operation}: {self.detail or self.message}"


class BackendUnavailableError(BackendError):
    """The backend is not configured or cannot be reached."""

    status_code = 503
    default_message = "Service unavailable"


class MailDeliveryError(BackendError):
    """The mail transport did not accept the message."""

    default_message = "Failed to send email"


class ReportRenderError(AssessmentServiceError):
    """The headless browser failed to launch, load or print."""

    status_code = 500
    default_message = "PDF generation failed"

    def __init__(self, environment: str, detail: str):
        self.environment = environment
        self.detail = detail
        super().__init__(self.default_message)

    def __str__(self) -> str:
        return f"PDF generation failed [{self.environment}]: {self.detail}"
