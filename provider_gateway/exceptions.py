"""
Provider Gateway Exceptions - Error taxonomy for upstream data providers.

Every failure a provider can produce is mapped to one of these classes.
The gateway converts them to NormalizedError before anything leaves it,
so callers of the orchestrator never see them raised.
"""

from datetime import datetime, timezone
from typing import Any, Optional

from .models import ErrorKind


class ProviderError(Exception):
    """Base exception for all provider errors."""

    kind: ErrorKind = ErrorKind.PROVIDER_UNAVAILABLE
    retriable: bool = True

    def __init__(
        self,
        message: str,
        provider: Optional[str] = None,
        status_code: Optional[int] = None,
        original_error: Optional[Exception] = None,
        context: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.provider = provider
        self.status_code = status_code
        self.original_error = original_error
        self.context = context or {}
        self.timestamp = datetime.now(timezone.utc)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging/serialization."""
        return {
            "error_type": self.__class__.__name__,
            "kind": self.kind.value,
            "message": self.message,
            "provider": self.provider,
            "retriable": self.retriable,
            "status_code": self.status_code,
            "original_error": str(self.original_error) if self.original_error else None,
            "context": self.context,
            "timestamp": self.timestamp.isoformat(),
        }

    def __str__(self) -> str:
        parts = [f"{self.__class__.__name__}: {self.message}"]
        if self.provider:
            parts.append(f"[provider={self.provider}]")
        if self.status_code is not None:
            parts.append(f"[status={self.status_code}]")
        if self.original_error:
            parts.append(f"(caused by: {self.original_error})")
        return " ".join(parts)


# ============================================================
# TRANSIENT (RETRIABLE)
# ============================================================

class RateLimitExceeded(ProviderError):
    """Provider answered 429."""

    kind = ErrorKind.RATE_LIMIT_EXCEEDED
    retriable = True

    def __init__(
        self,
        message: str,
        provider: Optional[str] = None,
        retry_after_seconds: Optional[float] = None,
        original_error: Optional[Exception] = None,
        context: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(
            message,
            provider,
            status_code=429,
            original_error=original_error,
            context=context,
        )
        self.retry_after_seconds = retry_after_seconds

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["retry_after_seconds"] = self.retry_after_seconds
        return data


class NetworkTimeout(ProviderError):
    """Provider did not answer within the call timeout."""

    kind = ErrorKind.NETWORK_TIMEOUT
    retriable = True

    def __init__(
        self,
        message: str,
        provider: Optional[str] = None,
        timeout_seconds: Optional[float] = None,
        original_error: Optional[Exception] = None,
        context: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, provider, original_error=original_error, context=context)
        self.timeout_seconds = timeout_seconds


class ProviderUnavailable(ProviderError):
    """Provider is down, erroring server-side, or unreachable."""

    kind = ErrorKind.PROVIDER_UNAVAILABLE
    retriable = True


# ============================================================
# PERMANENT (NO RETRY)
# ============================================================

class InvalidInput(ProviderError):
    """Request was rejected as malformed or unauthorized."""

    kind = ErrorKind.INVALID_INPUT
    retriable = False


class ResourceNotFound(ProviderError):
    """Provider has no record for the requested subject."""

    kind = ErrorKind.NOT_FOUND
    retriable = False


# ============================================================
# NON-FATAL
# ============================================================

class ClassificationSkipped(ProviderError):
    """A text record could not be classified; the record is dropped."""

    kind = ErrorKind.CLASSIFICATION_SKIPPED
    retriable = False


def error_for_status(
    status_code: int,
    message: str,
    provider: Optional[str] = None,
    retry_after_seconds: Optional[float] = None,
) -> ProviderError:
    """Map an HTTP-like status code to the matching provider error."""
    if status_code == 429:
        return RateLimitExceeded(message, provider, retry_after_seconds=retry_after_seconds)
    if status_code == 404:
        return ResourceNotFound(message, provider, status_code=status_code)
    if status_code == 408:
        return NetworkTimeout(message, provider)
    if 400 <= status_code < 500:
        return InvalidInput(message, provider, status_code=status_code)
    return ProviderUnavailable(message, provider, status_code=status_code)
