"""
Provider Gateway - Configuration.

Retry, backoff, timeout and cache TTL settings shared by gateway clients.

Environment variables:
- INTEL_GATEWAY_MAX_RETRIES
- INTEL_GATEWAY_BASE_DELAY
- INTEL_GATEWAY_MAX_DELAY
- INTEL_GATEWAY_TIMEOUT
- INTEL_GATEWAY_CACHE_TTL
"""

import os
from dataclasses import dataclass, field
from typing import Any, Dict


@dataclass
class GatewayConfig:
    """Retry/backoff/TTL settings for a ProviderGatewayClient."""
    max_retries: int = 3
    base_delay_seconds: float = 0.5
    max_delay_seconds: float = 8.0
    timeout_seconds: float = 10.0

    # Cache TTL per operation; anything not listed uses default_ttl_seconds
    default_ttl_seconds: float = 900.0
    cache_ttl_seconds: Dict[str, float] = field(default_factory=lambda: {
        "whois": 86400.0,
        "website-status": 300.0,
        "news": 1800.0,
        "location": 86400.0,
        "timezone": 86400.0,
        "holidays": 86400.0,
    })

    # Consecutive failures before the client reports DEGRADED / UNAVAILABLE
    degraded_threshold: int = 3
    unavailable_threshold: int = 5

    def __post_init__(self) -> None:
        if self.max_retries < 0:
            raise ValueError("max_retries must be >= 0")
        if self.base_delay_seconds < 0:
            raise ValueError("base_delay_seconds must be >= 0")
        if self.max_delay_seconds < self.base_delay_seconds:
            raise ValueError("max_delay_seconds must be >= base_delay_seconds")
        if self.timeout_seconds <= 0:
            raise ValueError("timeout_seconds must be positive")
        if self.default_ttl_seconds <= 0:
            raise ValueError("default_ttl_seconds must be positive")

    def ttl_for(self, operation: str) -> float:
        return self.cache_ttl_seconds.get(operation, self.default_ttl_seconds)

    def backoff_delay(self, attempt: int) -> float:
        """Delay before retry number `attempt` (0-based): base * 2^attempt, capped."""
        return min(self.base_delay_seconds * (2 ** attempt), self.max_delay_seconds)

    @classmethod
    def from_env(cls) -> "GatewayConfig":
        config = cls()
        if os.getenv("INTEL_GATEWAY_MAX_RETRIES"):
            config.max_retries = int(os.getenv("INTEL_GATEWAY_MAX_RETRIES"))
        if os.getenv("INTEL_GATEWAY_BASE_DELAY"):
            config.base_delay_seconds = float(os.getenv("INTEL_GATEWAY_BASE_DELAY"))
        if os.getenv("INTEL_GATEWAY_MAX_DELAY"):
            config.max_delay_seconds = float(os.getenv("INTEL_GATEWAY_MAX_DELAY"))
        if os.getenv("INTEL_GATEWAY_TIMEOUT"):
            config.timeout_seconds = float(os.getenv("INTEL_GATEWAY_TIMEOUT"))
        if os.getenv("INTEL_GATEWAY_CACHE_TTL"):
            config.default_ttl_seconds = float(os.getenv("INTEL_GATEWAY_CACHE_TTL"))
        config.__post_init__()
        return config

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "GatewayConfig":
        defaults = cls()
        return cls(
            max_retries=int(data.get("max_retries", defaults.max_retries)),
            base_delay_seconds=float(data.get("base_delay_seconds", defaults.base_delay_seconds)),
            max_delay_seconds=float(data.get("max_delay_seconds", defaults.max_delay_seconds)),
            timeout_seconds=float(data.get("timeout_seconds", defaults.timeout_seconds)),
            default_ttl_seconds=float(data.get("default_ttl_seconds", defaults.default_ttl_seconds)),
            cache_ttl_seconds={
                **defaults.cache_ttl_seconds,
                **{k: float(v) for k, v in data.get("cache_ttl_seconds", {}).items()},
            },
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "max_retries": self.max_retries,
            "base_delay_seconds": self.base_delay_seconds,
            "max_delay_seconds": self.max_delay_seconds,
            "timeout_seconds": self.timeout_seconds,
            "default_ttl_seconds": self.default_ttl_seconds,
            "cache_ttl_seconds": dict(self.cache_ttl_seconds),
        }
