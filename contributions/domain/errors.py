"""Error taxonomy shared by the aggregation engine and its adapters."""

from datetime import datetime
from typing import Optional


class RemoteFetchError(Exception):
    """Raised when the GitHub API returns a non-success response."""

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status


class RateLimitExceeded(RemoteFetchError):
    """Raised when GitHub API rate limit is exceeded."""

    def __init__(
        self,
        message: str,
        reset_at: Optional[datetime] = None,
        remaining: Optional[int] = 0,
        status: Optional[int] = 403,
    ):
        super().__init__(message, status=status)
        self.reset_at = reset_at
        self.remaining = remaining


class MalformedReferenceError(ValueError):
    """A pull request record points at something that is not a repository."""
    pass


class PersistenceError(OSError):
    """The durable snapshot file could not be read or written."""
    pass
