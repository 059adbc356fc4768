"""
prosbc_files.errors
===================
Exception taxonomy for appliance operations.

Every error carries enough structure (kind, HTTP status, response excerpt)
for a caller to log it and for a user-facing banner to render it.  Only
:class:`SessionError` is retried automatically; everything else is
surfaced on first occurrence.
"""

from __future__ import annotations

from .config import SESSION_ERROR_INDICATORS
from .models import ErrorKind


class ApplianceError(Exception):
    kind = ErrorKind.UNKNOWN

    def __init__(
        self,
        message: str,
        status: int = 0,
        excerpt: str | None = None,
        details: str | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status = status
        self.excerpt = excerpt
        self.details = details


class TokenNotFound(ApplianceError):
    """The page markup held no recognisable CSRF token."""
    kind = ErrorKind.TOKEN_NOT_FOUND


class SessionError(ApplianceError):
    kind = ErrorKind.SESSION


class ValidationError(ApplianceError):
    kind = ErrorKind.VALIDATION


class ServerError(ApplianceError):
    kind = ErrorKind.SERVER


class ServiceUnavailable(ServerError):
    kind = ErrorKind.SERVICE_UNAVAILABLE


class RequestTimeout(ApplianceError):
    kind = ErrorKind.TIMEOUT


class ConnectionRefused(ApplianceError):
    kind = ErrorKind.CONNECTION_REFUSED


class NetworkError(ApplianceError):
    kind = ErrorKind.NETWORK


class HttpError(ApplianceError):
    kind = ErrorKind.HTTP


class InvalidPayload(ApplianceError):
    kind = ErrorKind.INVALID_PAYLOAD


class BusyError(ApplianceError):
    kind = ErrorKind.BUSY


class BatchAborted(ApplianceError):
    """Raised when a batch stops on its first failure; carries the partial result."""

    def __init__(self, message: str, result) -> None:
        super().__init__(message)
        self.result = result


# HTTP status → (exception class, default message)
_STATUS_ERRORS: dict[int, tuple[type[ApplianceError], str]] = {
    401: (SessionError, "Authentication failed or session expired"),
    403: (SessionError, "Authentication failed or session expired (forbidden)"),
    422: (ValidationError, "File validation failed - invalid format or size"),
    500: (ServerError, "Server error occurred during file operation"),
    502: (ServiceUnavailable, "Service temporarily unavailable"),
    503: (ServiceUnavailable, "Service temporarily unavailable"),
    504: (ServiceUnavailable, "Service temporarily unavailable"),
}


def error_for_status(status: int) -> tuple[type[ApplianceError], str]:
    """Return the exception class and base message for an HTTP failure status."""
    if status in _STATUS_ERRORS:
        return _STATUS_ERRORS[status]
    if status >= 500:
        return ServerError, f"Server error (HTTP {status})"
    return HttpError, f"Request failed with status {status}"


def is_session_error(error: "BaseException | str | None") -> bool:
    """
    Decide whether a failure should invalidate the session and be retried.

    Accepts an exception or a plain message.  A :class:`SessionError`
    always qualifies; anything else qualifies only if its message carries
    one of the session indicators.  :class:`TokenNotFound` never does,
    since a markup shape we cannot parse will not change on retry.
    """
    if error is None or isinstance(error, TokenNotFound):
        return False
    if isinstance(error, SessionError):
        return True
    text = str(error).lower()
    return any(indicator in text for indicator in SESSION_ERROR_INDICATORS)


_USER_MESSAGES: dict[ErrorKind, tuple[str, str]] = {
    ErrorKind.SESSION: (
        "Authentication failed. Please check your credentials.",
        "The session may have expired or credentials are invalid.",
    ),
    ErrorKind.VALIDATION: (
        "File validation failed. Please check the file format and size.",
        "The file may be too large, have an invalid format, or contain invalid data.",
    ),
    ErrorKind.SERVER: (
        "Server error occurred. Please try again later.",
        "The ProSBC server encountered an internal error.",
    ),
    ErrorKind.SERVICE_UNAVAILABLE: (
        "Service temporarily unavailable. Please try again later.",
        "The ProSBC service is temporarily unavailable.",
    ),
    ErrorKind.TIMEOUT: (
        "Request timed out. Please check your connection and try again.",
        "The server took too long to respond.",
    ),
    ErrorKind.CONNECTION_REFUSED: (
        "Cannot connect to ProSBC server. Please check the server status.",
        "Connection to the server was refused.",
    ),
    ErrorKind.NETWORK: (
        "Network error while contacting ProSBC. Please check your connection.",
        "The request did not complete.",
    ),
    ErrorKind.BUSY: (
        "A file update is already in progress.",
        "Wait for the running operation to finish and try again.",
    ),
}


def describe_failure(kind: ErrorKind | None, status: int = 0) -> tuple[str, str]:
    """Map a failure kind to a (banner message, detail line) pair."""
    if kind in _USER_MESSAGES:
        return _USER_MESSAGES[kind]
    if status:
        return f"Operation failed with status {status}", "See the response excerpt for details."
    return "An unexpected error occurred", "No additional details available."
