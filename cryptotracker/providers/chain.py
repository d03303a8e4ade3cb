"""
Provider fallback chain.

Tries providers in order and returns the first success, annotated with
the provider that served it.
"""
import logging
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Dict, List, Optional, Sequence

from ..errors import AllProvidersFailedError, ProviderError, RateLimitedError
from ..resources import ResourceDescriptor
from .base import DataProvider, ProviderAttempt, ProviderResult

logger = logging.getLogger("providers.chain")


class ProviderChain:
    """
    Ordered list of data providers with first-success-wins fallback.

    Providers that cannot serve a descriptor are skipped and do not
    count as attempts. Every failure is recorded; when all providers
    fail, AllProvidersFailedError carries the last error and the
    attempt list.
    """

    def __init__(self, providers: Sequence[DataProvider], timeout: float = 8.0):
        """
        Args:
            providers: Providers in priority order
            timeout: Per-provider request timeout in seconds
        """
        if not providers:
            raise ValueError("ProviderChain needs at least one provider")
        self._providers: List[DataProvider] = list(providers)
        self._timeout = timeout

    @property
    def providers(self) -> List[DataProvider]:
        return list(self._providers)

    def fetch(self, descriptor: ResourceDescriptor) -> ProviderResult:
        """
        Fetch a resource from the first provider that succeeds.

        Raises:
            AllProvidersFailedError: if every supporting provider failed
        """
        key = descriptor.cache_key
        attempts: List[ProviderAttempt] = []
        last_error: Optional[Exception] = None

        for provider in self._providers:
            if not provider.supports(descriptor):
                logger.debug(f"{provider.provider_id} does not support {key}, skipping")
                continue

            started = time.monotonic()
            try:
                payload = provider.fetch(descriptor, self._timeout)
            except ProviderError as e:
                last_error = e
            except Exception as e:
                logger.exception(f"Unexpected error from {provider.provider_id} for {key}")
                last_error = ProviderError(str(e), provider_id=provider.provider_id)
            else:
                if attempts:
                    logger.info(
                        f"Served {key} from fallback provider {provider.provider_id} "
                        f"after {len(attempts)} failed attempt(s)"
                    )
                return ProviderResult(payload=payload, provider_id=provider.provider_id, attempts=attempts)

            elapsed_ms = int((time.monotonic() - started) * 1000)
            attempts.append(ProviderAttempt(
                provider_id=provider.provider_id,
                error=str(last_error),
                elapsed_ms=elapsed_ms,
                rate_limited=isinstance(last_error, RateLimitedError),
                timed_out=getattr(last_error, "is_timeout", False),
            ))
            logger.warning(f"{provider.provider_id} failed for {key} ({elapsed_ms}ms): {last_error}")

        if not attempts:
            raise AllProvidersFailedError(f"No provider supports {key}")

        raise AllProvidersFailedError(
            f"Failed to fetch {key} from all sources ({len(attempts)} attempts)",
            last_error=last_error,
            attempts=attempts,
        )

    def health(self, timeout: float = 5.0) -> Dict[str, bool]:
        """Ping every provider concurrently."""
        with ThreadPoolExecutor(max_workers=len(self._providers)) as executor:
            futures = {
                provider.provider_id: executor.submit(provider.ping, timeout)
                for provider in self._providers
            }
            return {provider_id: future.result() for provider_id, future in futures.items()}
