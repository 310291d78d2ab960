"""
Provider Gateway - Throttled, cached, retrying access to upstream providers.

This package provides:
- RateLimiter: FIFO start-spacing per provider
- CacheStore: TTL + LRU cache with request coalescing
- ProviderGatewayClient: cache -> retry -> rate limit -> transport
- Transports: aiohttp JSON transport and a static in-process transport
- Catalog: known operations and their parameters

Usage:
    from provider_gateway import (
        CacheStore, RateLimiterRegistry, ProviderGatewayClient, HttpProviderTransport,
    )

    cache = CacheStore(capacity=1000)
    limiters = RateLimiterRegistry({"news": 1.0}, default_rate=2.0)
    client = ProviderGatewayClient(
        "news",
        HttpProviderTransport("news", base_url, api_key),
        limiters.get("news"),
        cache,
    )
    result = await client.call("news", {"query": "Acme"})
"""

from .cache import CacheEntry, CacheStore
from .catalog import CATALOG, Operation, OperationSpec, build_request, get_spec
from .config import GatewayConfig
from .exceptions import (
    ClassificationSkipped,
    InvalidInput,
    NetworkTimeout,
    ProviderError,
    ProviderUnavailable,
    RateLimitExceeded,
    ResourceNotFound,
    error_for_status,
)
from .gateway import ProviderGatewayClient
from .models import (
    ErrorKind,
    NormalizedError,
    NormalizedResponse,
    ProviderHealth,
    ProviderRequest,
    ProviderResult,
    ProviderStatus,
)
from .rate_limiter import RateLimiter, RateLimiterRegistry
from .transport import HttpProviderTransport, ProviderTransport, StaticTransport


__all__ = [
    # Components
    "RateLimiter",
    "RateLimiterRegistry",
    "CacheStore",
    "CacheEntry",
    "ProviderGatewayClient",
    "GatewayConfig",

    # Transports
    "ProviderTransport",
    "HttpProviderTransport",
    "StaticTransport",

    # Catalog
    "CATALOG",
    "Operation",
    "OperationSpec",
    "build_request",
    "get_spec",

    # Models
    "ErrorKind",
    "ProviderRequest",
    "NormalizedResponse",
    "NormalizedError",
    "ProviderResult",
    "ProviderHealth",
    "ProviderStatus",

    # Exceptions
    "ProviderError",
    "RateLimitExceeded",
    "NetworkTimeout",
    "ProviderUnavailable",
    "InvalidInput",
    "ResourceNotFound",
    "ClassificationSkipped",
    "error_for_status",
]
