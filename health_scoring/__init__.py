"""
Health Scoring Package.

============================================================
PURPOSE
============================================================

Deterministic, explainable four-factor customer health score:

- Domain Stability  (registration age, status)
- Website Health    (availability, certificate)
- Market Presence   (news volume, sentiment)
- Engagement Level  (activity recency, tier)

Missing data never drops a factor: it is scored at a neutral
default and lowers the confidence of the result.

============================================================
USAGE
============================================================

```python
from health_scoring import HealthScoreCalculator, ProviderData

calculator = HealthScoreCalculator()
health = calculator.compute(customer, ProviderData(whois=whois, website=site, articles=records))
```

============================================================
"""

from .calculator import HealthScoreCalculator, round_half_up
from .config import (
    DomainThresholds,
    EngagementThresholds,
    FactorWeights,
    MarketThresholds,
    ScoringConfig,
    WebsiteThresholds,
)
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
    parse_creation_date,
)


__all__ = [
    # Calculator
    "HealthScoreCalculator",
    "round_half_up",
    # Config
    "ScoringConfig",
    "FactorWeights",
    "DomainThresholds",
    "WebsiteThresholds",
    "MarketThresholds",
    "EngagementThresholds",
    # Models
    "FactorType",
    "Confidence",
    "Trend",
    "FactorScore",
    "HealthScore",
    "ProviderData",
    # Scorers
    "BaseFactorScorer",
    "DomainStabilityScorer",
    "WebsiteHealthScorer",
    "MarketPresenceScorer",
    "EngagementLevelScorer",
    "parse_creation_date",
]
