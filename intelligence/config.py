"""
Intelligence - Engine Configuration.

============================================================
SOURCES
============================================================

- Defaults below
- Environment variables (INTEL_*), with a .env file loaded first
- YAML file with `engine`, `gateway` and `scoring` sections

============================================================
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List

import yaml
from dotenv import load_dotenv

from health_scoring.config import ScoringConfig
from provider_gateway.config import GatewayConfig


logger = logging.getLogger(__name__)


@dataclass
class EngineConfig:
    """Configuration for a fully wired intelligence engine."""

    # Upstream API
    api_base_url: str = "http://localhost:8080/api"
    """Base URL of the provider API; operations are paths below it."""

    api_key: str = ""
    """Sent as X-Api-Key when set."""

    # Throttling
    provider_rates: Dict[str, float] = field(default_factory=lambda: {
        "whois": 1.0,
        "website": 2.0,
        "news": 1.0,
        "geo": 5.0,
    })
    """Requests per second, per provider."""

    default_rate: float = 1.0
    """Rate for providers missing from provider_rates."""

    # Cache
    cache_capacity: int = 1000

    # Fan-out
    source_timeout_seconds: float = 60.0
    """Overall ceiling on one source fetch, retries included."""

    # Logging
    log_level: str = "INFO"
    log_format: str = "text"

    gateway: GatewayConfig = field(default_factory=GatewayConfig)
    scoring: ScoringConfig = field(default_factory=ScoringConfig)

    def __post_init__(self) -> None:
        errors = self.validate()
        if errors:
            raise ValueError("; ".join(errors))

    def validate(self) -> List[str]:
        """Validate configuration, return list of errors."""
        errors = []
        if not self.api_base_url:
            errors.append("api_base_url is required")
        if self.cache_capacity <= 0:
            errors.append("cache_capacity must be positive")
        if self.source_timeout_seconds <= 0:
            errors.append("source_timeout_seconds must be positive")
        if self.default_rate <= 0:
            errors.append("default_rate must be positive")
        for provider, rate in self.provider_rates.items():
            if rate <= 0:
                errors.append(f"rate for {provider} must be positive")
        if self.log_format not in ("json", "text"):
            errors.append("log_format must be 'json' or 'text'")
        return errors

    @classmethod
    def from_env(cls) -> "EngineConfig":
        """
        Load configuration from environment variables.

        Environment variables:
        - INTEL_API_BASE_URL, INTEL_API_KEY
        - INTEL_RATE_<PROVIDER> (e.g. INTEL_RATE_NEWS=0.5)
        - INTEL_DEFAULT_RATE
        - INTEL_CACHE_CAPACITY
        - INTEL_SOURCE_TIMEOUT
        - INTEL_LOG_LEVEL, INTEL_LOG_FORMAT
        - plus the INTEL_GATEWAY_* and INTEL_WEIGHT_* families
        """
        load_dotenv()

        defaults = cls()
        rates = dict(defaults.provider_rates)
        for key, value in os.environ.items():
            if key.startswith("INTEL_RATE_") and value:
                rates[key[len("INTEL_RATE_"):].lower()] = float(value)

        return cls(
            api_base_url=os.getenv("INTEL_API_BASE_URL", defaults.api_base_url),
            api_key=os.getenv("INTEL_API_KEY", ""),
            provider_rates=rates,
            default_rate=float(os.getenv("INTEL_DEFAULT_RATE", str(defaults.default_rate))),
            cache_capacity=int(os.getenv("INTEL_CACHE_CAPACITY", str(defaults.cache_capacity))),
            source_timeout_seconds=float(
                os.getenv("INTEL_SOURCE_TIMEOUT", str(defaults.source_timeout_seconds))
            ),
            log_level=os.getenv("INTEL_LOG_LEVEL", defaults.log_level),
            log_format=os.getenv("INTEL_LOG_FORMAT", defaults.log_format),
            gateway=GatewayConfig.from_env(),
            scoring=ScoringConfig.from_env(),
        )

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "EngineConfig":
        engine = data.get("engine", {})
        defaults = cls()
        return cls(
            api_base_url=engine.get("api_base_url", defaults.api_base_url),
            api_key=engine.get("api_key", ""),
            provider_rates={
                **defaults.provider_rates,
                **{k: float(v) for k, v in engine.get("provider_rates", {}).items()},
            },
            default_rate=float(engine.get("default_rate", defaults.default_rate)),
            cache_capacity=int(engine.get("cache_capacity", defaults.cache_capacity)),
            source_timeout_seconds=float(
                engine.get("source_timeout_seconds", defaults.source_timeout_seconds)
            ),
            log_level=engine.get("log_level", defaults.log_level),
            log_format=engine.get("log_format", defaults.log_format),
            gateway=GatewayConfig.from_dict(data.get("gateway", {})),
            scoring=ScoringConfig.from_dict(data.get("scoring", {})),
        )

    @classmethod
    def from_yaml(cls, path: Path) -> "EngineConfig":
        """Load configuration from a YAML file."""
        path = Path(path)
        with open(path, "r") as f:
            data = yaml.safe_load(f) or {}
        logger.info(f"Loaded engine configuration from {path}")
        return cls.from_dict(data)

    def to_dict(self) -> Dict[str, Any]:
        """Serializable view; the API key is masked."""
        return {
            "engine": {
                "api_base_url": self.api_base_url,
                "api_key": "***" if self.api_key else "",
                "provider_rates": dict(self.provider_rates),
                "default_rate": self.default_rate,
                "cache_capacity": self.cache_capacity,
                "source_timeout_seconds": self.source_timeout_seconds,
                "log_level": self.log_level,
                "log_format": self.log_format,
            },
            "gateway": self.gateway.to_dict(),
            "scoring": self.scoring.to_dict(),
        }
