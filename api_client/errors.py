"""
Exceptions raised by the API client.
"""

SESSION_EXPIRED_MESSAGE = "Session expired. Please sign in again."


class ApiClientError(Exception):
    """Base class for every error raised by api_client."""


class RefreshError(ApiClientError):
    """The refresh token could not be exchanged for a new access token."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class SessionChangedError(RefreshError):
    """The stored credential was cleared or replaced while an exchange was in flight; its result is discarded."""


class SessionExpiredError(ApiClientError):
    """Terminal: the session cannot be renewed and the user must sign in again."""

    def __init__(self, message: str = SESSION_EXPIRED_MESSAGE):
        super().__init__(message)


class ApiError(ApiClientError):
    """Non-2xx response from the API (business-level error)."""

    def __init__(self, status_code: int, message: str):
        super().__init__(message)
        self.status_code = status_code
        self.message = message
