"""Error taxonomy.

- ConfigError: upstream credentials missing, surfaced at startup
- RefreshError: refresh token rejected, the session is over
- FetchError: an events request failed
  - AuthError: token invalid/expired, recoverable with one refresh + retry
  - TransientError: network or server failure, recoverable with bounded retry

Classification prefers HTTP status codes. Matching keywords in the error
message is only a fallback for failures that carry no usable status, since
message wording is not a stable contract.
"""

from __future__ import annotations

AUTH_KEYWORDS = ("token", "auth", "authentication", "unauthorized", "401")
AUTH_STATUS_CODES = frozenset({401, 403})


class CalendarSyncError(Exception):
    """Base exception for calendar sync errors."""


class ConfigError(CalendarSyncError):
    """Raised when required configuration is missing."""


class RefreshError(CalendarSyncError):
    """Raised when the access token cannot be refreshed."""


class FetchError(CalendarSyncError):
    """Raised when an events request fails."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class AuthError(FetchError):
    """Raised when the access token was rejected."""


class TransientError(FetchError):
    """Raised on network or server failures worth retrying."""


def is_auth_message(message: str | None) -> bool:
    """Check an error message against the auth keyword set."""
    if not message:
        return False
    lowered = message.lower()
    return any(keyword in lowered for keyword in AUTH_KEYWORDS)


def classify_error(status_code: int | None, message: str) -> FetchError:
    """Build the right FetchError subclass for a failed request.

    Args:
        status_code: HTTP status of the failed response, if any
        message: Human-readable failure description

    Returns:
        AuthError or TransientError
    """
    if status_code is not None:
        if status_code in AUTH_STATUS_CODES:
            return AuthError(message, status_code=status_code)
        if status_code >= 500 or status_code == 429:
            return TransientError(message, status_code=status_code)

    if is_auth_message(message):
        return AuthError(message, status_code=status_code)
    return TransientError(message, status_code=status_code)
