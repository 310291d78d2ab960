"""
Health Scoring - Data Models.

============================================================
CORE DATA STRUCTURES
============================================================

- FactorType: The four scored factors
- Confidence: How much of the input was live vs defaulted
- Trend: Direction of the customer's health
- FactorScore: Score for a single factor, with explanation
- HealthScore: Aggregated, immutable assessment result
- ProviderData: Normalized scoring inputs

============================================================
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional, Sequence

from sentiment.models import Sentiment, TextRecord


# =============================================================
# ENUMS
# =============================================================


class FactorType(str, Enum):
    """The four weighted factors of the overall score."""
    DOMAIN_STABILITY = "domain_stability"
    WEBSITE_HEALTH = "website_health"
    MARKET_PRESENCE = "market_presence"
    ENGAGEMENT_LEVEL = "engagement_level"


class Confidence(str, Enum):
    """Confidence in the overall score, ordered high -> low."""
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    def downgrade(self, levels: int = 1) -> "Confidence":
        """Drop by `levels`, never below LOW."""
        order = [Confidence.HIGH, Confidence.MEDIUM, Confidence.LOW]
        index = min(order.index(self) + max(levels, 0), len(order) - 1)
        return order[index]


class Trend(str, Enum):
    """Direction of customer health."""
    IMPROVING = "improving"
    STABLE = "stable"
    DECLINING = "declining"


# =============================================================
# DATA CLASSES
# =============================================================


@dataclass(frozen=True)
class FactorScore:
    """
    Score for a single factor.

    Each factor is scored 0-100 with the inputs that produced it.
    """
    factor: FactorType
    score: float  # 0-100
    weight: float  # 0-1
    explanation: str
    details: Mapping[str, Any] = field(default_factory=dict)
    is_default: bool = False

    def __post_init__(self) -> None:
        """Validate ranges and freeze details."""
        if not 0 <= self.score <= 100:
            raise ValueError(f"Score must be 0-100, got {self.score}")
        if not 0 <= self.weight <= 1:
            raise ValueError(f"Weight must be 0-1, got {self.weight}")
        object.__setattr__(self, "details", MappingProxyType(dict(self.details)))

    @property
    def weighted_score(self) -> float:
        return self.score * self.weight

    def to_dict(self) -> Dict[str, Any]:
        return {
            "factor": self.factor.value,
            "score": self.score,
            "weight": self.weight,
            "weighted_score": self.weighted_score,
            "explanation": self.explanation,
            "details": dict(self.details),
            "is_default": self.is_default,
        }


@dataclass(frozen=True)
class HealthScore:
    """
    Aggregated health score.

    Always carries exactly four factors. Never mutated; a
    re-assessment produces a new instance.
    """
    overall: int  # 0-100
    trend: Trend
    factors: Mapping[FactorType, FactorScore]
    confidence: Confidence
    computed_at: datetime

    def __post_init__(self) -> None:
        if set(self.factors) != set(FactorType):
            raise ValueError("HealthScore requires exactly one score per factor")
        if not 0 <= self.overall <= 100:
            raise ValueError(f"Overall must be 0-100, got {self.overall}")
        object.__setattr__(self, "factors", MappingProxyType(dict(self.factors)))

    @property
    def defaulted_factors(self) -> List[FactorType]:
        return [f for f in FactorType if self.factors[f].is_default]

    def factor(self, factor: FactorType) -> FactorScore:
        return self.factors[factor]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "overall": self.overall,
            "trend": self.trend.value,
            "confidence": self.confidence.value,
            "computed_at": self.computed_at.isoformat(),
            "factors": {f.value: self.factors[f].to_dict() for f in FactorType},
            "defaulted_factors": [f.value for f in self.defaulted_factors],
        }


@dataclass(frozen=True)
class ProviderData:
    """
    Normalized scoring inputs.

    None means the source was unavailable; an empty article list means
    the source answered with zero articles.
    """
    whois: Optional[Mapping[str, Any]] = None
    website: Optional[Mapping[str, Any]] = None
    articles: Optional[Sequence[TextRecord]] = None

    def net_sentiment(self) -> int:
        """Positive minus negative records; 0 when articles are unavailable."""
        if not self.articles:
            return 0
        positive = sum(1 for r in self.articles if r.sentiment == Sentiment.POSITIVE)
        negative = sum(1 for r in self.articles if r.sentiment == Sentiment.NEGATIVE)
        return positive - negative
