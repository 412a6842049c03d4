"""Exception hierarchy for commit retrieval."""

from __future__ import annotations

from datetime import datetime


class YearbookError(Exception):
    """Base exception for commit retrieval errors."""


class TransientRateLimitError(YearbookError):
    """Raised when the upstream API rejects a request because of rate limiting."""

    def __init__(
        self,
        message: str,
        retry_after: float | None = None,
        reset_time: datetime | None = None,
    ) -> None:
        super().__init__(message)
        self.retry_after = retry_after
        self.reset_time = reset_time


class NotFoundError(YearbookError):
    """Raised when a login or repository does not exist."""

    def __init__(self, message: str, login: str | None = None) -> None:
        super().__init__(message)
        self.login = login


class MalformedResponseError(YearbookError):
    """Raised when a payload does not match any recognized shape."""


class TransportError(YearbookError):
    """Raised when a query could not be executed at all."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class DeadlineExceededError(YearbookError):
    """Raised between page fetches once the caller's deadline has passed."""


class CacheError(YearbookError):
    """Raised when the commit cache cannot be written or cleared."""


class ConfigurationError(YearbookError):
    """Raised when the retrieval setup is invalid (e.g. missing token)."""
