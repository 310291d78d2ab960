"""
Provider Rate Limiter.

============================================================
PURPOSE
============================================================
Serializes outbound calls to one provider at a configured rate.

- Strict FIFO: start slots are handed out at submission time
- Spacing is between STARTS, not completions: a slow call does not
  hold back the queue, but two calls never start within one interval
- Unbounded queue; backpressure is the caller's concern
- Each outcome (result or exception) goes to its own caller only
- No retries here (see ProviderGatewayClient)

============================================================
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, Optional, TypeVar


logger = logging.getLogger(__name__)

T = TypeVar("T")


class RateLimiter:
    """
    Start-spacing rate limiter for a single provider.

    Usage:
        limiter = RateLimiter(rate_per_second=2, name="whois")
        data = await limiter.add(lambda: transport.request("whois", params))
    """

    def __init__(self, rate_per_second: float, name: str = "") -> None:
        if rate_per_second <= 0:
            raise ValueError("rate_per_second must be positive")
        self._rate = rate_per_second
        self._interval = 1.0 / rate_per_second
        self._name = name

        # Loop time at which the next submission may start
        self._next_start: Optional[float] = None
        # Loop time of the most recent actual start
        self._last_start: Optional[float] = None
        # Set when the most recently submitted operation has started (or gave up)
        self._tail: Optional[asyncio.Event] = None
        self._pending = 0

        self._stats = {
            "submitted": 0,
            "started": 0,
            "failed": 0,
        }

    @property
    def name(self) -> str:
        return self._name

    @property
    def rate(self) -> float:
        return self._rate

    @property
    def interval(self) -> float:
        """Minimum seconds between two starts."""
        return self._interval

    @property
    def pending(self) -> int:
        """Operations submitted but not yet started."""
        return self._pending

    async def add(self, operation: Callable[[], Awaitable[T]]) -> T:
        """
        Queue an operation and return its result once it has run.

        Args:
            operation: Zero-argument callable returning an awaitable

        Returns:
            Whatever the operation returns

        Raises:
            Whatever the operation raises
        """
        loop = asyncio.get_running_loop()

        # Slot assignment happens before the first suspension point,
        # so submission order is start order.
        now = loop.time()
        if self._next_start is None or self._next_start <= now:
            start_at = now
        else:
            start_at = self._next_start
        self._next_start = start_at + self._interval

        predecessor = self._tail
        started = asyncio.Event()
        self._tail = started

        self._stats["submitted"] += 1
        self._pending += 1
        try:
            if predecessor is not None:
                await predecessor.wait()
            while True:
                ready_at = start_at
                if self._last_start is not None:
                    ready_at = max(ready_at, self._last_start + self._interval)
                delay = ready_at - loop.time()
                if delay <= 0:
                    break
                await asyncio.sleep(delay)
            self._last_start = loop.time()
        finally:
            self._pending -= 1
            started.set()

        self._stats["started"] += 1
        if self._pending:
            logger.debug(f"[{self._name}] Starting queued call ({self._pending} still waiting)")

        try:
            return await operation()
        except BaseException:
            self._stats["failed"] += 1
            raise

    def stats(self) -> Dict[str, Any]:
        """Return limiter statistics."""
        return {
            "name": self._name,
            "rate_per_second": self._rate,
            "pending": self._pending,
            **self._stats,
        }

    def __repr__(self) -> str:
        return f"<RateLimiter(name={self._name}, rate={self._rate}/s)>"


class RateLimiterRegistry:
    """
    One shared RateLimiter per provider.

    Limiters are process-wide state for their provider: every gateway
    client for the same provider must go through the same instance.
    """

    def __init__(
        self,
        rates: Optional[Dict[str, float]] = None,
        default_rate: float = 1.0,
    ) -> None:
        self._rates = dict(rates or {})
        self._default_rate = default_rate
        self._limiters: Dict[str, RateLimiter] = {}

    def get(self, provider: str) -> RateLimiter:
        """Get (or lazily create) the limiter for a provider."""
        limiter = self._limiters.get(provider)
        if limiter is None:
            rate = self._rates.get(provider, self._default_rate)
            limiter = RateLimiter(rate, name=provider)
            self._limiters[provider] = limiter
            logger.info(f"[{provider}] Rate limiter created at {rate}/s")
        return limiter

    def providers(self) -> list[str]:
        return list(self._limiters)

    def stats(self) -> Dict[str, Dict[str, Any]]:
        return {name: limiter.stats() for name, limiter in self._limiters.items()}
