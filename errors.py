"""
Error taxonomy shared by every platform client.
Hard errors propagate to the caller; PartialDataError is only ever logged.
"""
from typing import Optional


class GitServiceError(Exception):
    """Base class for all errors raised by the platform layer."""

    def __init__(self, message: str, platform: Optional[str] = None, status: Optional[int] = None):
        super().__init__(message)
        self.platform = platform
        self.status = status


class AuthenticationError(GitServiceError):
    """Invalid or expired token. Never retried."""


class RateLimitError(GitServiceError):
    """The platform is throttling this credential. Try again later."""

    def __init__(self, message: str = "API rate limit exceeded. Please try again later.", platform: Optional[str] = None, status: Optional[int] = None, retry_after: Optional[float] = None):
        super().__init__(message, platform=platform, status=status)
        self.retry_after = retry_after


class TransportError(GitServiceError):
    """Network failure, timeout or an unexpected HTTP status."""


class NotFoundError(TransportError):
    """Repository or project does not exist or is not visible to the token."""


class UnsupportedPlatformError(GitServiceError, ValueError):
    """Programmer error: unknown platform identifier."""


class IdentityMismatchError(GitServiceError, TypeError):
    """A repository identity of the wrong platform was handed to a client."""


class PartialDataError(GitServiceError):
    """A sub-fetch degraded to an empty/zero value. Logged, not raised."""


__all__ = [
    "GitServiceError",
    "AuthenticationError",
    "RateLimitError",
    "TransportError",
    "NotFoundError",
    "UnsupportedPlatformError",
    "IdentityMismatchError",
    "PartialDataError",
]
