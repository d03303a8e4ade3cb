"""Base data provider abstraction for upstream market-data APIs.

Providers are thin adapters: one HTTP call per fetch, no internal retries.
Fallback between providers is the chain's job.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import requests

from ..errors import ProviderError, RateLimitedError
from ..resources import ResourceDescriptor

logger = logging.getLogger("providers")


@dataclass
class ProviderAttempt:
    """A failed attempt against one provider."""
    provider_id: str
    error: str
    elapsed_ms: int = 0
    rate_limited: bool = False
    timed_out: bool = False


@dataclass
class ProviderResult:
    """Payload from the first provider that succeeded."""
    payload: Any
    provider_id: str
    attempts: List[ProviderAttempt] = field(default_factory=list)

    @property
    def used_fallback(self) -> bool:
        return bool(self.attempts)


class DataProvider(ABC):
    """
    Abstract base class for upstream data providers.

    Implementations must be safe to call concurrently and must raise
    ProviderError (or a subclass) for every failure.
    """

    @property
    @abstractmethod
    def provider_id(self) -> str:
        """Return the identifier of this provider."""
        pass

    @abstractmethod
    def supports(self, descriptor: ResourceDescriptor) -> bool:
        """Check if this provider can serve the requested resource."""
        pass

    @abstractmethod
    def fetch(self, descriptor: ResourceDescriptor, timeout: float) -> Any:
        """
        Fetch a resource.

        Args:
            descriptor: What to fetch
            timeout: Request timeout in seconds

        Returns:
            Payload in the CoinGecko response shape

        Raises:
            ProviderError: on timeout, HTTP error, or malformed payload
        """
        pass

    def ping(self, timeout: float = 5.0) -> bool:
        """Check if the upstream is reachable."""
        return True


class HTTPDataProvider(DataProvider):
    """Shared JSON-over-HTTP plumbing for REST providers."""

    def __init__(
        self,
        base_url: str,
        session: Optional[requests.Session] = None,
        headers: Optional[Dict[str, str]] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self._session = session or requests.Session()
        self._headers = {"Accept": "application/json"}
        if headers:
            self._headers.update(headers)

    def _get_json(
        self,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        timeout: float = 10.0,
    ) -> Any:
        """
        GET a JSON document.

        Raises:
            RateLimitedError: on HTTP 429
            ProviderError: on timeout, connection failure, non-2xx, or non-JSON body
        """
        url = f"{self.base_url}/{path.lstrip('/')}"
        try:
            response = self._session.get(
                url,
                headers=self._headers,
                params=params,
                timeout=timeout,
            )
        except requests.Timeout as e:
            raise ProviderError(
                f"{self.provider_id} timeout after {timeout}s: {url}",
                provider_id=self.provider_id,
                is_timeout=True,
            ) from e
        except requests.RequestException as e:
            raise ProviderError(
                f"{self.provider_id} request failed: {e}",
                provider_id=self.provider_id,
            ) from e

        if response.status_code == 429:
            retry_after = response.headers.get("Retry-After")
            raise RateLimitedError(
                f"{self.provider_id} rate limited",
                provider_id=self.provider_id,
                retry_after=int(retry_after) if retry_after and retry_after.isdigit() else None,
            )
        if not 200 <= response.status_code < 300:
            raise ProviderError(
                f"{self.provider_id} API error: {response.status_code} - {response.text[:200]}",
                provider_id=self.provider_id,
                status_code=response.status_code,
            )
        try:
            return response.json()
        except ValueError as e:
            raise ProviderError(
                f"{self.provider_id} returned malformed JSON",
                provider_id=self.provider_id,
                status_code=response.status_code,
            ) from e

    def _malformed(self, what: str) -> ProviderError:
        return ProviderError(f"{self.provider_id} returned malformed {what}", provider_id=self.provider_id)
