"""
Intelligence - Models.

============================================================
RESPONSIBILITY
============================================================
Defines data models for the assessment orchestrator.

- Assessment states with a strict transition table
- Per-provider fetch outcome
- The immutable IntelligenceSnapshot handed to collaborators

============================================================
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, FrozenSet, Mapping, Optional, Tuple

from core.customer import Customer, CustomerTier, InvalidCustomerError
from health_scoring.models import HealthScore
from provider_gateway.models import NormalizedError
from sentiment.models import TextRecord


# ============================================================
# ASSESSMENT STATES
# ============================================================

class AssessmentState(Enum):
    """
    Lifecycle of one assessment.

    PENDING -> FETCHING -> CLASSIFYING -> SCORING -> COMPLETE | COMPLETE_DEGRADED
    """

    PENDING = "pending"
    FETCHING = "fetching"
    CLASSIFYING = "classifying"
    SCORING = "scoring"
    COMPLETE = "complete"
    COMPLETE_DEGRADED = "complete_degraded"

    @property
    def is_terminal(self) -> bool:
        return self in (AssessmentState.COMPLETE, AssessmentState.COMPLETE_DEGRADED)


VALID_TRANSITIONS: Mapping[AssessmentState, FrozenSet[AssessmentState]] = MappingProxyType({
    AssessmentState.PENDING: frozenset({AssessmentState.FETCHING}),
    AssessmentState.FETCHING: frozenset({AssessmentState.CLASSIFYING}),
    AssessmentState.CLASSIFYING: frozenset({AssessmentState.SCORING}),
    AssessmentState.SCORING: frozenset({
        AssessmentState.COMPLETE,
        AssessmentState.COMPLETE_DEGRADED,
    }),
    AssessmentState.COMPLETE: frozenset(),
    AssessmentState.COMPLETE_DEGRADED: frozenset(),
})


class InvalidTransitionError(RuntimeError):
    """A state change outside the transition table was attempted."""

    def __init__(self, current: AssessmentState, target: AssessmentState) -> None:
        super().__init__(f"Invalid transition {current.value} -> {target.value}")
        self.current = current
        self.target = target


# ============================================================
# PROVIDER OUTCOME
# ============================================================

class FetchStatus(Enum):
    """Outcome of one provider fetch within an assessment."""

    SUCCESS = "success"
    """Call succeeded and the payload fed its factor."""

    DEGRADED = "degraded"
    """Call succeeded but the payload was unusable in part or whole."""

    FAILED = "failed"
    """Call ended in an error or timed out."""


@dataclass(frozen=True)
class ProviderFetchResult:
    """What happened to one data source during an assessment."""
    source: str
    provider: str
    operation: str
    status: FetchStatus
    attempts: int = 0
    message: str = ""
    error: Optional[NormalizedError] = None

    @property
    def failed(self) -> bool:
        return self.status == FetchStatus.FAILED

    def to_dict(self) -> Dict[str, Any]:
        return {
            "source": self.source,
            "provider": self.provider,
            "operation": self.operation,
            "status": self.status.value,
            "attempts": self.attempts,
            "message": self.message,
            "error": self.error.to_dict() if self.error else None,
        }


# ============================================================
# SNAPSHOT
# ============================================================

@dataclass(frozen=True)
class IntelligenceSnapshot:
    """
    Everything learned about a customer in one assessment.

    Immutable once assembled; a re-assessment produces a new snapshot.
    """
    assessment_id: str
    customer: Customer
    health_score: HealthScore
    text_records: Tuple[TextRecord, ...]
    provider_status: Mapping[str, ProviderFetchResult]
    state: AssessmentState
    assembled_at: datetime
    context: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not self.state.is_terminal:
            raise ValueError(f"Snapshot state must be terminal, got {self.state.value}")
        object.__setattr__(self, "text_records", tuple(self.text_records))
        object.__setattr__(self, "provider_status", MappingProxyType(dict(self.provider_status)))
        object.__setattr__(self, "context", MappingProxyType(dict(self.context)))

    @property
    def is_degraded(self) -> bool:
        return self.state == AssessmentState.COMPLETE_DEGRADED

    @property
    def failed_providers(self) -> Tuple[str, ...]:
        return tuple(name for name, r in self.provider_status.items() if r.failed)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a JSON-serializable dictionary."""
        return {
            "assessment_id": self.assessment_id,
            "customer": self.customer.to_dict(),
            "health_score": self.health_score.to_dict(),
            "text_records": [r.to_dict() for r in self.text_records],
            "provider_status": {k: v.to_dict() for k, v in self.provider_status.items()},
            "state": self.state.value,
            "assembled_at": self.assembled_at.isoformat(),
            "context": dict(self.context),
        }


__all__ = [
    "AssessmentState",
    "VALID_TRANSITIONS",
    "InvalidTransitionError",
    "FetchStatus",
    "ProviderFetchResult",
    "IntelligenceSnapshot",
    "Customer",
    "CustomerTier",
    "InvalidCustomerError",
]
