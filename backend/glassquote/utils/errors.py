from typing import Dict, Optional
from fastapi import HTTPException, status
import logging

logger = logging.getLogger(__name__)


def _http_exception(message: str, field_errors: Dict[str, str], code: int) -> HTTPException:
    detail = {"message": message, "field_errors": field_errors}
    return HTTPException(status_code=code, detail=detail)


def error_response(
    message: str,
    field_errors: Dict[str, str],
    code: int = status.HTTP_422_UNPROCESSABLE_ENTITY,
) -> HTTPException:
    """Return an HTTPException with a consistent structure and log details.

    Client errors log at WARNING; only server-side failures reach ERROR.
    """
    level = logging.ERROR if code >= status.HTTP_500_INTERNAL_SERVER_ERROR else logging.WARNING
    logger.log(level, "%s %s", message, field_errors)
    return _http_exception(message, field_errors, code)


class QuoteError(Exception):
    """Base class for quoting failures.

    ``message`` is shown to the end user as-is, so it is always a complete,
    human readable sentence. ``field_errors`` names the offending input.
    """

    status_code = status.HTTP_400_BAD_REQUEST
    code = "error"

    def __init__(self, message: str, field_errors: Optional[Dict[str, str]] = None):
        super().__init__(message)
        self.message = message
        self.field_errors = dict(field_errors or {})

    def to_http(self) -> HTTPException:
        # already logged by the service layer at the point of failure
        return _http_exception(self.message, self.field_errors, self.status_code)


class InvalidArgumentError(QuoteError):
    """Malformed or out-of-range input; the caller can fix it and retry."""

    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    code = "invalid_argument"


class NotFoundError(QuoteError):
    status_code = status.HTTP_404_NOT_FOUND
    code = "not_found"


class PermissionDeniedError(QuoteError):
    status_code = status.HTTP_403_FORBIDDEN
    code = "permission_denied"


class InvalidStateError(QuoteError):
    """Operation not legal for the quote's current lifecycle status."""

    status_code = status.HTTP_409_CONFLICT
    code = "invalid_state"


class InternalError(QuoteError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    code = "internal"
