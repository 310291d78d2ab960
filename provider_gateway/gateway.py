"""
Provider Gateway Client - Per-provider facade.

Layering (outermost first):
    CacheStore.get_or_fetch  ->  retry/backoff loop  ->  RateLimiter.add
        ->  timeout  ->  ProviderTransport.request

Every call ends as a NormalizedResponse or NormalizedError. Provider
failures never escape call().
"""

import asyncio
import logging
from typing import Any, Dict, Mapping, Optional

from core.clock import ClockProtocol, SystemClock

from .cache import CacheStore
from .config import GatewayConfig
from .exceptions import (
    NetworkTimeout,
    ProviderError,
    ProviderUnavailable,
    RateLimitExceeded,
)
from .models import (
    NormalizedError,
    NormalizedResponse,
    ProviderHealth,
    ProviderRequest,
    ProviderResult,
    ProviderStatus,
)
from .rate_limiter import RateLimiter
from .transport import ProviderTransport


logger = logging.getLogger(__name__)


class ProviderGatewayClient:
    """
    Throttled, cached, retrying client for one provider.

    Transient errors (rate limit, timeout, provider unavailable) are
    retried with capped exponential backoff. Permanent errors (invalid
    input, not found) fail fast.

    Usage:
        client = ProviderGatewayClient("whois", transport, limiter, cache)
        result = await client.call("whois", {"domain": "example.com"})
        if result.ok:
            ...
    """

    def __init__(
        self,
        provider: str,
        transport: ProviderTransport,
        rate_limiter: RateLimiter,
        cache: CacheStore,
        config: Optional[GatewayConfig] = None,
        clock: Optional[ClockProtocol] = None,
    ) -> None:
        self.provider = provider
        self._transport = transport
        self._limiter = rate_limiter
        self._cache = cache
        self._config = config or GatewayConfig()
        self._clock = clock or SystemClock()

        self._health = ProviderHealth()
        self._stats = {
            "calls": 0,
            "upstream_attempts": 0,
            "retries": 0,
            "errors": 0,
        }

    @property
    def config(self) -> GatewayConfig:
        return self._config

    # ─────────────────────────────────────────────────────────────
    # Public API
    # ─────────────────────────────────────────────────────────────

    async def call(
        self,
        operation: str,
        params: Optional[Mapping[str, Any]] = None,
    ) -> ProviderResult:
        """
        Call an operation on this provider.

        NEVER raises for provider failures - returns NormalizedError.
        """
        request = ProviderRequest(self.provider, operation, dict(params or {}))
        self._stats["calls"] += 1

        try:
            return await self._cache.get_or_fetch(
                request.cache_key(),
                self._config.ttl_for(operation),
                lambda: self._fetch_with_retry(request),
            )
        except ProviderError as e:
            self._stats["errors"] += 1
            return self._to_normalized_error(e, request)

    # ─────────────────────────────────────────────────────────────
    # Retry loop
    # ─────────────────────────────────────────────────────────────

    async def _fetch_with_retry(self, request: ProviderRequest) -> NormalizedResponse:
        """Fetch with capped exponential backoff on transient errors."""
        attempt = 0
        while True:
            try:
                data = await self._limiter.add(lambda: self._attempt(request))
            except ProviderError as e:
                e.context["attempts"] = attempt + 1

                if not e.retriable:
                    logger.warning(
                        f"[{self.provider}] {request.operation} failed permanently: {e}"
                    )
                    self._on_error(e)
                    raise

                if attempt >= self._config.max_retries:
                    logger.error(
                        f"[{self.provider}] {request.operation} failed after "
                        f"{attempt + 1} attempts: {e}"
                    )
                    self._on_error(e)
                    raise

                wait_time = self._retry_delay(e, attempt)
                logger.warning(
                    f"[{self.provider}] {e.kind.value} on {request.operation}, "
                    f"retrying in {wait_time:.2f}s (attempt {attempt + 1}/{self._config.max_retries})"
                )
                self._stats["retries"] += 1
                await asyncio.sleep(wait_time)
                attempt += 1
                continue

            self._on_success()
            return NormalizedResponse(
                provider=self.provider,
                operation=request.operation,
                data=data,
                fetched_at=self._clock.now(),
                attempts=attempt + 1,
            )

    async def _attempt(self, request: ProviderRequest) -> Any:
        """One timed transport attempt with errors classified."""
        self._stats["upstream_attempts"] += 1
        try:
            return await asyncio.wait_for(
                self._transport.request(request.operation, request.params),
                timeout=self._config.timeout_seconds,
            )
        except ProviderError as e:
            if e.provider is None:
                e.provider = self.provider
            raise
        except asyncio.TimeoutError as e:
            raise NetworkTimeout(
                f"{request.operation} exceeded {self._config.timeout_seconds}s",
                provider=self.provider,
                timeout_seconds=self._config.timeout_seconds,
                original_error=e,
            )
        except Exception as e:
            raise ProviderUnavailable(
                f"Unexpected transport error: {e}",
                provider=self.provider,
                original_error=e,
            )

    def _retry_delay(self, error: ProviderError, attempt: int) -> float:
        delay = self._config.backoff_delay(attempt)
        if isinstance(error, RateLimitExceeded) and error.retry_after_seconds:
            delay = min(max(delay, error.retry_after_seconds), self._config.max_delay_seconds)
        return delay

    def _to_normalized_error(
        self,
        error: ProviderError,
        request: ProviderRequest,
    ) -> NormalizedError:
        return NormalizedError(
            provider=self.provider,
            operation=request.operation,
            kind=error.kind,
            message=error.message,
            retriable=error.retriable,
            status_code=error.status_code,
            attempts=int(error.context.get("attempts", 1)),
        )

    # ─────────────────────────────────────────────────────────────
    # Health tracking
    # ─────────────────────────────────────────────────────────────

    def _on_success(self) -> None:
        self._health.request_count += 1
        self._health.success_count += 1
        self._health.consecutive_failures = 0
        self._health.last_success_time = self._clock.now()

        if self._health.status != ProviderStatus.HEALTHY:
            if self._health.status != ProviderStatus.UNKNOWN:
                logger.info(f"[{self.provider}] Recovered to HEALTHY status")
            self._health.status = ProviderStatus.HEALTHY

    def _on_error(self, error: ProviderError) -> None:
        self._health.request_count += 1
        self._health.error_count += 1
        self._health.consecutive_failures += 1
        self._health.last_error = str(error)
        self._health.last_error_time = self._clock.now()

        failures = self._health.consecutive_failures
        if failures >= self._config.unavailable_threshold:
            if self._health.status != ProviderStatus.UNAVAILABLE:
                self._health.status = ProviderStatus.UNAVAILABLE
                logger.error(f"[{self.provider}] Marked UNAVAILABLE after {failures} failures")
        elif failures >= self._config.degraded_threshold:
            if self._health.status != ProviderStatus.DEGRADED:
                self._health.status = ProviderStatus.DEGRADED
                logger.warning(f"[{self.provider}] Marked DEGRADED after {failures} failures")

    def get_health(self) -> ProviderHealth:
        return self._health

    def get_stats(self) -> Dict[str, Any]:
        return {
            "provider": self.provider,
            **self._stats,
            "health": self._health.to_dict(),
            "rate_limiter": self._limiter.stats(),
        }

    async def close(self) -> None:
        await self._transport.close()

    def __repr__(self) -> str:
        return f"<ProviderGatewayClient(provider={self.provider}, status={self._health.status.value})>"
