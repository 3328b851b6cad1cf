import logging
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)


class BaseAPIException(Exception):
    """
    Error raised by services and caught by the Flask error handlers.

    ``message`` is shown to the visitor (flash message, error page or JSON
    envelope); ``internal_message`` only goes to the log.
    """

    status_code = 500
    error_code = "ERROR"
    default_message = "Something went wrong."

    def __init__(
        self,
        message: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        internal_message: Optional[str] = None,
    ):
        self.message = message or self.default_message
        self.internal_message = internal_message or self.message
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": False,
            "error": {
                "code": self.error_code,
                "message": self.message,
                "details": self.details,
            },
        }


class ValidationError(BaseAPIException):
    """Form or query input failed validation"""

    status_code = 400
    error_code = "VALIDATION_ERROR"
    default_message = "Validation failed"

    def __init__(self, message: Optional[str] = None, field_errors: Optional[List[Dict[str, str]]] = None):
        super().__init__(message, {"field_errors": field_errors} if field_errors else None)


class CsrfError(BaseAPIException):
    status_code = 400
    error_code = "CSRF_ERROR"
    default_message = "Invalid CSRF token."


class RecaptchaError(BaseAPIException):
    status_code = 400
    error_code = "RECAPTCHA_ERROR"
    default_message = "reCAPTCHA verification failed."


class UnauthorizedError(BaseAPIException):
    status_code = 401
    error_code = "UNAUTHORIZED"
    default_message = "Please log in to continue."


class ForbiddenError(BaseAPIException):
    status_code = 403
    error_code = "FORBIDDEN"
    default_message = "You do not have permission to do that."


class NotFoundError(BaseAPIException):
    status_code = 404
    error_code = "NOT_FOUND"
    default_message = "Resource not found."

    def __init__(self, message: Optional[str] = None, resource_id: Optional[Any] = None):
        super().__init__(message, {"resource_id": resource_id} if resource_id is not None else None)


class ConflictError(BaseAPIException):
    """Unique username, email, slug, tag or category name already taken"""

    status_code = 409
    error_code = "CONFLICT"
    default_message = "Resource conflict"

    def __init__(self, message: Optional[str] = None, field: Optional[str] = None):
        super().__init__(message, {"field": field} if field else None)


class ExternalServiceError(BaseAPIException):
    """SMTP or reCAPTCHA could not be reached"""

    status_code = 503
    error_code = "EXTERNAL_SERVICE_ERROR"
    default_message = "External service unavailable"

    def __init__(self, service: str, message: Optional[str] = None, internal_message: Optional[str] = None):
        super().__init__(message, {"service": service}, internal_message)


class DatabaseError(BaseAPIException):
    """Wraps SQLAlchemy failures; the visitor never sees the driver's text."""

    status_code = 500
    error_code = "DATABASE_ERROR"
    default_message = "An internal error occurred. Please try again later."

    def __init__(self, internal_message: str = "Database operation failed", operation: Optional[str] = None):
        super().__init__(None, {"operation": operation} if operation else None, internal_message)


class InternalServerError(BaseAPIException):
    status_code = 500
    error_code = "INTERNAL_ERROR"
    default_message = "An internal server error occurred. Please try again later."

    def __init__(self, internal_message: str = "An unexpected error occurred"):
        super().__init__(None, None, internal_message)


def handle_error(message: str, config) -> str:
    """
    Report an internal failure according to the environment.

    ``local`` raises so the failure surfaces in the debugger; ``live`` logs
    the message and hands it back for the caller to show something generic.
    """
    if config.is_local:
        raise InternalServerError(message)
    logger.error(message)
    return message
