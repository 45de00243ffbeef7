"""Internal machinery: HTTP transport and retry."""

from .http import Auth, BearerAuth, HttpClient, HttpError
from .retry import any_of, on_exception_message, on_status_code, retry

__all__ = [
    "Auth",
    "BearerAuth",
    "HttpClient",
    "HttpError",
    "any_of",
    "on_exception_message",
    "on_status_code",
    "retry",
]
