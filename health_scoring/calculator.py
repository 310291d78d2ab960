"""
Health Scoring - Calculator.

============================================================
HEALTH SCORE CALCULATOR
============================================================

Combines the four factor scorers into one HealthScore:

    overall = round_half_up(sum(score_i * weight_i))

- Every factor is always present (defaults stand in for missing data)
- Confidence drops one level per defaulted factor
- Trend derived from overall, net sentiment and engagement recency

Pure for a fixed `as_of`: the same inputs always produce the
same HealthScore.

============================================================
"""

import logging
import math
from datetime import datetime
from typing import Dict, List, Optional

from core.clock import ClockProtocol, SystemClock
from core.customer import Customer

from .config import ScoringConfig
from .models import (
    Confidence,
    FactorScore,
    FactorType,
    HealthScore,
    ProviderData,
    Trend,
)
from .scorers import (
    BaseFactorScorer,
    DomainStabilityScorer,
    EngagementLevelScorer,
    MarketPresenceScorer,
    WebsiteHealthScorer,
    days_since,
)


logger = logging.getLogger(__name__)


class HealthScoreCalculator:
    """
    Computes a customer's HealthScore from normalized provider data.

    ============================================================
    USAGE
    ============================================================

    ```python
    calculator = HealthScoreCalculator()
    score = calculator.compute(customer, ProviderData(whois=..., website=..., articles=[...]))
    print(score.overall, score.confidence.value, score.trend.value)
    ```

    ============================================================
    """

    def __init__(
        self,
        config: Optional[ScoringConfig] = None,
        clock: Optional[ClockProtocol] = None,
    ) -> None:
        self._config = config or ScoringConfig.from_env()
        self._clock = clock or SystemClock()
        self._scorers: List[BaseFactorScorer] = [
            DomainStabilityScorer(self._config),
            WebsiteHealthScorer(self._config),
            MarketPresenceScorer(self._config),
            EngagementLevelScorer(self._config),
        ]

    @property
    def config(self) -> ScoringConfig:
        return self._config

    def compute(
        self,
        customer: Customer,
        provider_data: ProviderData,
        as_of: Optional[datetime] = None,
    ) -> HealthScore:
        """
        Compute the health score.

        Args:
            customer: Customer being assessed
            provider_data: Normalized provider inputs (None = unavailable)
            as_of: Reference time; defaults to the clock's now

        Returns:
            Fully populated HealthScore
        """
        as_of = as_of or self._clock.now()

        factors: Dict[FactorType, FactorScore] = {}
        for scorer in self._scorers:
            factors[scorer.factor_type] = self._score_factor(scorer, customer, provider_data, as_of)

        weighted = sum(f.weighted_score for f in factors.values())
        overall = round_half_up(weighted)

        defaulted = sum(1 for f in factors.values() if f.is_default)
        confidence = Confidence.HIGH.downgrade(defaulted)

        trend = self._determine_trend(overall, customer, provider_data, as_of)

        health = HealthScore(
            overall=overall,
            trend=trend,
            factors=factors,
            confidence=confidence,
            computed_at=as_of,
        )

        logger.debug(
            f"Health score for {customer.customer_id}: {overall} "
            f"({confidence.value}, {trend.value}, {defaulted} defaulted)"
        )
        return health

    def _score_factor(
        self,
        scorer: BaseFactorScorer,
        customer: Customer,
        data: ProviderData,
        as_of: datetime,
    ) -> FactorScore:
        """Run one scorer; a malformed payload defaults that factor only."""
        try:
            return scorer.score(customer, data, as_of)
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            logger.warning(
                f"{scorer.factor_type.value} scoring failed for "
                f"{customer.customer_id}, using default: {e}"
            )
            return scorer.default(f"unusable data: {e}")

    def _determine_trend(
        self,
        overall: int,
        customer: Customer,
        data: ProviderData,
        as_of: datetime,
    ) -> Trend:
        net = data.net_sentiment()

        improving = overall > self._config.improving_above or net > 0

        disengaged = (
            customer.last_activity is not None
            and days_since(customer.last_activity, as_of) > self._config.engagement.window_days
        )
        declining = overall < self._config.declining_below or net < 0 or disengaged

        if improving and not declining:
            return Trend.IMPROVING
        if declining and not improving:
            return Trend.DECLINING
        return Trend.STABLE


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves away from zero, clamped to 0-100."""
    # Absorb float noise from the weighted sum (e.g. 87.49999999)
    rounded = int(math.floor(round(value, 6) + 0.5))
    return max(0, min(100, rounded))
