"""
Provider Transports - The raw request/response edge.

A transport performs exactly one attempt of one operation and either
returns the decoded JSON payload or raises a ProviderError subclass.
Throttling, caching and retries are layered on top by the gateway.
"""

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, Mapping, Optional, Union

import aiohttp

from .exceptions import (
    InvalidInput,
    NetworkTimeout,
    ProviderError,
    ProviderUnavailable,
    error_for_status,
)


logger = logging.getLogger(__name__)


class ProviderTransport(ABC):
    """Abstract single-attempt transport for one provider."""

    @abstractmethod
    async def request(
        self,
        operation: str,
        params: Mapping[str, Any],
    ) -> Any:
        """
        Perform one attempt of an operation.

        Returns:
            JSON-like payload (dict or list)

        Raises:
            ProviderError: Classified failure
        """
        pass

    async def close(self) -> None:
        """Release resources."""
        return None

    async def __aenter__(self) -> "ProviderTransport":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()


# ============================================================
# HTTP TRANSPORT
# ============================================================

class HttpProviderTransport(ProviderTransport):
    """
    aiohttp transport for "one endpoint per operation" JSON APIs.

    GET {base_url}/{operation}?{params} with an X-Api-Key header.
    """

    DEFAULT_TIMEOUT = 10.0

    def __init__(
        self,
        provider: str,
        base_url: str,
        api_key: Optional[str] = None,
        timeout: float = DEFAULT_TIMEOUT,
        session: Optional[aiohttp.ClientSession] = None,
    ) -> None:
        self.provider = provider
        self._base_url = base_url.rstrip("/")
        self._api_key = api_key
        self._timeout = timeout
        self._session = session
        self._owns_session = session is None

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create HTTP session."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self._timeout),
                headers=self._get_default_headers(),
            )
            self._owns_session = True
        return self._session

    def _get_default_headers(self) -> Dict[str, str]:
        headers = {
            "Accept": "application/json",
            "User-Agent": "CustomerIntelligenceEngine/1.0",
        }
        if self._api_key:
            headers["X-Api-Key"] = self._api_key
        return headers

    async def request(
        self,
        operation: str,
        params: Mapping[str, Any],
    ) -> Any:
        session = await self._get_session()
        url = f"{self._base_url}/{operation}"
        query = {k: str(v) for k, v in params.items() if v is not None}

        start_time = time.time()
        try:
            async with session.get(url, params=query) as response:
                latency_ms = (time.time() - start_time) * 1000

                if response.status >= 400:
                    body = await response.text()
                    retry_after = _parse_retry_after(response.headers.get("Retry-After"))
                    raise error_for_status(
                        response.status,
                        f"HTTP {response.status} from {operation}: {body[:200]}",
                        provider=self.provider,
                        retry_after_seconds=retry_after,
                    )

                try:
                    data = await response.json(content_type=None)
                except ValueError as e:
                    raise ProviderUnavailable(
                        f"Non-JSON response from {operation}",
                        provider=self.provider,
                        status_code=response.status,
                        original_error=e,
                    )

                logger.debug(f"[{self.provider}] {operation} completed in {latency_ms:.1f}ms")
                return data

        except asyncio.TimeoutError as e:
            raise NetworkTimeout(
                f"Timed out calling {operation}",
                provider=self.provider,
                timeout_seconds=self._timeout,
                original_error=e,
            )
        except aiohttp.ClientError as e:
            raise ProviderUnavailable(
                f"Connection error: {e}",
                provider=self.provider,
                original_error=e,
            )

    async def close(self) -> None:
        if self._owns_session and self._session and not self._session.closed:
            await self._session.close()

    def __repr__(self) -> str:
        return f"<HttpProviderTransport(provider={self.provider}, base_url={self._base_url})>"


def _parse_retry_after(value: Optional[str]) -> Optional[float]:
    if not value:
        return None
    try:
        return float(value)
    except ValueError:
        return None


# ============================================================
# STATIC TRANSPORT
# ============================================================

StaticReply = Union[Any, ProviderError, Callable[[Mapping[str, Any]], Any]]


class StaticTransport(ProviderTransport):
    """
    In-process transport serving canned replies per operation.

    A reply may be a payload, a ProviderError instance (raised on every
    call), or a callable taking the params and returning a payload (it
    may also raise, or be a coroutine function).

    Used for offline batch runs and tests.
    """

    def __init__(
        self,
        provider: str,
        replies: Optional[Dict[str, StaticReply]] = None,
        latency: float = 0.0,
    ) -> None:
        self.provider = provider
        self._replies: Dict[str, StaticReply] = dict(replies or {})
        self._latency = latency
        self.calls: list[tuple[str, Dict[str, Any]]] = []

    def set_reply(self, operation: str, reply: StaticReply) -> None:
        self._replies[operation] = reply

    async def request(
        self,
        operation: str,
        params: Mapping[str, Any],
    ) -> Any:
        self.calls.append((operation, dict(params)))
        if self._latency:
            await asyncio.sleep(self._latency)

        if operation not in self._replies:
            raise InvalidInput(
                f"Unknown operation '{operation}'",
                provider=self.provider,
                status_code=400,
            )

        reply = self._replies[operation]
        if isinstance(reply, ProviderError):
            raise reply
        if callable(reply):
            result = reply(params)
            if asyncio.iscoroutine(result):
                result = await result
            return result
        return reply

    @property
    def call_count(self) -> int:
        return len(self.calls)
