"""
Provider Gateway Models - Normalized request/response structures.

No downstream module depends on provider-specific payload formats:
every call ends as a NormalizedResponse or a NormalizedError.
"""

import hashlib
import json
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Mapping, Optional, Union


class ErrorKind(Enum):
    """Normalized error kinds."""
    RATE_LIMIT_EXCEEDED = "rate_limit_exceeded"
    NETWORK_TIMEOUT = "network_timeout"
    PROVIDER_UNAVAILABLE = "provider_unavailable"
    INVALID_INPUT = "invalid_input"
    NOT_FOUND = "not_found"
    CLASSIFICATION_SKIPPED = "classification_skipped"


class ProviderStatus(Enum):
    """Rolling health status of a provider client."""
    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNAVAILABLE = "unavailable"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class ProviderRequest:
    """A single operation against a provider. Consumed, then discarded."""
    provider: str
    operation: str
    params: Mapping[str, Any] = field(default_factory=dict)

    def cache_key(self) -> str:
        """Deterministic key over provider, operation and parameters."""
        payload = json.dumps(
            {
                "provider": self.provider,
                "operation": self.operation,
                "params": dict(self.params),
            },
            sort_keys=True,
            default=str,
        )
        digest = hashlib.sha256(payload.encode("utf-8")).hexdigest()
        return f"{self.provider}:{self.operation}:{digest[:32]}"

    def to_dict(self) -> dict[str, Any]:
        return {
            "provider": self.provider,
            "operation": self.operation,
            "params": dict(self.params),
        }


@dataclass(frozen=True)
class NormalizedResponse:
    """Successful provider call."""
    provider: str
    operation: str
    data: Any
    fetched_at: datetime
    status_code: int = 200
    attempts: int = 1

    @property
    def ok(self) -> bool:
        return True

    def to_dict(self) -> dict[str, Any]:
        return {
            "ok": True,
            "provider": self.provider,
            "operation": self.operation,
            "data": self.data,
            "status_code": self.status_code,
            "fetched_at": self.fetched_at.isoformat(),
            "attempts": self.attempts,
        }


@dataclass(frozen=True)
class NormalizedError:
    """Failed provider call, after any retries."""
    provider: str
    operation: str
    kind: ErrorKind
    message: str
    retriable: bool
    status_code: Optional[int] = None
    attempts: int = 1

    @property
    def ok(self) -> bool:
        return False

    def to_dict(self) -> dict[str, Any]:
        return {
            "ok": False,
            "provider": self.provider,
            "operation": self.operation,
            "kind": self.kind.value,
            "message": self.message,
            "retriable": self.retriable,
            "status_code": self.status_code,
            "attempts": self.attempts,
        }


ProviderResult = Union[NormalizedResponse, NormalizedError]


@dataclass
class ProviderHealth:
    """Health counters for one provider client."""
    status: ProviderStatus = ProviderStatus.UNKNOWN
    request_count: int = 0
    success_count: int = 0
    error_count: int = 0
    consecutive_failures: int = 0
    last_error: Optional[str] = None
    last_error_time: Optional[datetime] = None
    last_success_time: Optional[datetime] = None

    @property
    def uptime_percentage(self) -> float:
        if self.request_count == 0:
            return 100.0
        return self.success_count / self.request_count * 100

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status.value,
            "request_count": self.request_count,
            "success_count": self.success_count,
            "error_count": self.error_count,
            "consecutive_failures": self.consecutive_failures,
            "uptime_percentage": self.uptime_percentage,
            "last_error": self.last_error,
            "last_error_time": self.last_error_time.isoformat() if self.last_error_time else None,
            "last_success_time": self.last_success_time.isoformat() if self.last_success_time else None,
        }
