"""API errors and their translation from core pipeline errors."""

from fastapi import HTTPException

from . import errors


class APIError(HTTPException):
    """API error with the standard response envelope.

    All errors will be formatted as:
    {"success": false, "message": "error message", "data": null}
    """

    def __init__(self, status_code: int, message: str):
        super().__init__(status_code=status_code, detail=message)
        self.message = message


class ValidationError(APIError):
    """422 - Request validation failed."""

    def __init__(self, message: str):
        super().__init__(422, message)


class NotFoundError(APIError):
    """404 - Feed, article or user not found."""

    def __init__(self, resource: str, resource_id: str):
        super().__init__(404, f"{resource} not found: {resource_id}")


class ConflictError(APIError):
    """409 - Feed URL, email or guid already taken."""

    def __init__(self, message: str):
        super().__init__(409, message)


class MailDeliveryError(APIError):
    """502 - The SMTP server didn't accept the message."""

    def __init__(self, message: str = "Failed to send email"):
        super().__init__(502, message)


class ServerError(APIError):
    """500 - Internal server error."""

    def __init__(self, message: str):
        super().__init__(500, message)


def from_reader_error(exc: Exception, action: str) -> APIError:
    """Map a core exception raised while performing ``action`` to an APIError.

    NotFoundError -> 404, DuplicateKeyError -> 409, ValueError -> 422,
    anything else -> 500 prefixed with the failed action.
    """
    if isinstance(exc, APIError):
        return exc
    if isinstance(exc, errors.NotFoundError):
        return NotFoundError(exc.resource, exc.resource_id)
    if isinstance(exc, errors.DuplicateKeyError):
        return ConflictError(str(exc))
    if isinstance(exc, ValueError):
        return ValidationError(str(exc))
    return ServerError(f"Failed to {action}: {exc}")
