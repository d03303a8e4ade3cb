"""
Error taxonomy for market-data fetching.

ProviderError is absorbed by the fallback chain or by stale serving.
Only AllProvidersFailedError (with nothing usable cached) and
InvalidRequestError reach the HTTP boundary.
"""
from typing import List, Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from .providers.base import ProviderAttempt


class CryptoTrackerError(Exception):
    """Base class for all service errors."""


class ProviderError(CryptoTrackerError):
    """A single upstream call failed (timeout, HTTP error, malformed body)."""

    def __init__(
        self,
        message: str,
        provider_id: str = "unknown",
        status_code: Optional[int] = None,
        is_timeout: bool = False,
    ):
        super().__init__(message)
        self.provider_id = provider_id
        self.status_code = status_code
        self.is_timeout = is_timeout


class RateLimitedError(ProviderError):
    """Upstream answered with HTTP 429."""

    def __init__(self, message: str, provider_id: str = "unknown", retry_after: Optional[int] = None):
        super().__init__(message, provider_id=provider_id, status_code=429)
        self.retry_after = retry_after


class AllProvidersFailedError(CryptoTrackerError):
    """Every provider in the chain failed for a request."""

    def __init__(
        self,
        message: str,
        last_error: Optional[Exception] = None,
        attempts: Optional[List["ProviderAttempt"]] = None,
    ):
        super().__init__(message)
        self.last_error = last_error
        self.attempts = attempts or []

    @property
    def attempt_count(self) -> int:
        return len(self.attempts)

    @property
    def rate_limited(self) -> bool:
        """True when the terminal provider signaled rate limiting."""
        return isinstance(self.last_error, RateLimitedError)


class InvalidRequestError(CryptoTrackerError):
    """Malformed resource request; rejected before touching cache or providers."""


class NotFoundError(InvalidRequestError):
    """The requested resource does not exist upstream."""
