from .errors import (
    error_response,
    QuoteError,
    InvalidArgumentError,
    NotFoundError,
    PermissionDeniedError,
    InvalidStateError,
    InternalError,
)
from .email import send_email
from .notifications import notify_vendor
