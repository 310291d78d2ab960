"""
Health Scoring - Configuration.

============================================================
CONFIGURABLE HEALTH SCORING
============================================================

All scoring parameters are configurable:
- Factor weights
- Per-factor band thresholds
- Missing-data default
- Tier multipliers and engagement window

Configuration can be loaded from:
- Default values
- Environment variables
- YAML config file

============================================================
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict

import yaml

from .models import FactorType


logger = logging.getLogger(__name__)


# =============================================================
# FACTOR WEIGHTS
# =============================================================


@dataclass
class FactorWeights:
    """
    Weights for each factor.

    All weights must sum to 1.0 for proper scoring.
    """
    domain_stability: float = 0.25
    website_health: float = 0.25
    market_presence: float = 0.25
    engagement_level: float = 0.25

    def __post_init__(self) -> None:
        """Validate weights sum to 1.0."""
        if any(w < 0 for w in self.to_dict().values()):
            raise ValueError("Factor weights must be non-negative")
        total = self.total()
        if total <= 0:
            raise ValueError("Factor weights must not all be zero")
        if abs(total - 1.0) > 0.001:
            logger.warning(f"Factor weights sum to {total}, normalizing to 1.0")
            self._normalize()

    def total(self) -> float:
        return (
            self.domain_stability +
            self.website_health +
            self.market_presence +
            self.engagement_level
        )

    def _normalize(self) -> None:
        total = self.total()
        if total > 0:
            self.domain_stability /= total
            self.website_health /= total
            self.market_presence /= total
            self.engagement_level /= total

    def get_weight(self, factor: FactorType) -> float:
        return {
            FactorType.DOMAIN_STABILITY: self.domain_stability,
            FactorType.WEBSITE_HEALTH: self.website_health,
            FactorType.MARKET_PRESENCE: self.market_presence,
            FactorType.ENGAGEMENT_LEVEL: self.engagement_level,
        }[factor]

    def to_dict(self) -> Dict[str, float]:
        return {
            "domain_stability": self.domain_stability,
            "website_health": self.website_health,
            "market_presence": self.market_presence,
            "engagement_level": self.engagement_level,
        }


# =============================================================
# FACTOR-SPECIFIC THRESHOLDS
# =============================================================


@dataclass
class DomainThresholds:
    """Domain age bands, in years."""
    young_years: float = 1.0        # below -> score_young
    established_years: float = 3.0  # below -> score_recent
    mature_years: float = 5.0       # below -> score_established, else score_mature
    score_young: float = 20.0
    score_recent: float = 50.0
    score_established: float = 80.0
    score_mature: float = 100.0
    score_inactive: float = 0.0


@dataclass
class WebsiteThresholds:
    """Availability and certificate sub-scores."""
    score_available: float = 100.0
    score_unavailable: float = 0.0
    score_cert_valid: float = 100.0
    score_cert_invalid: float = 50.0
    score_cert_absent: float = 0.0


@dataclass
class MarketThresholds:
    """Article count bands and sentiment adjustment."""
    score_none: float = 10.0         # 0 articles
    few_max: int = 3                 # 1..few_max -> score_few
    several_max: int = 9             # few_max+1..several_max -> score_several
    score_few: float = 40.0
    score_several: float = 80.0
    score_many: float = 100.0        # more than several_max
    sentiment_adjustment: float = 20.0


@dataclass
class EngagementThresholds:
    """Recency bands (days since last activity) and tier multipliers."""
    active_days: int = 7      # below -> score_active
    recent_days: int = 30     # up to -> score_recent
    lapsing_days: int = 90    # up to -> score_lapsing, else score_dormant
    score_active: float = 100.0
    score_recent: float = 70.0
    score_lapsing: float = 40.0
    score_dormant: float = 10.0
    tier_multipliers: Dict[str, float] = field(default_factory=lambda: {
        "enterprise": 1.2,
        "growth": 1.0,
        "startup": 0.8,
    })

    @property
    def window_days(self) -> int:
        """No activity beyond this many days counts as disengaged."""
        return self.lapsing_days


# =============================================================
# MAIN CONFIGURATION
# =============================================================


@dataclass
class ScoringConfig:
    """
    Main configuration for health scoring.

    Combines all sub-configurations.
    """
    weights: FactorWeights = field(default_factory=FactorWeights)
    domain: DomainThresholds = field(default_factory=DomainThresholds)
    website: WebsiteThresholds = field(default_factory=WebsiteThresholds)
    market: MarketThresholds = field(default_factory=MarketThresholds)
    engagement: EngagementThresholds = field(default_factory=EngagementThresholds)

    # Score given to a factor whose data is missing
    neutral_default: float = 50.0

    # Trend thresholds on the overall score
    improving_above: float = 80.0
    declining_below: float = 50.0

    def __post_init__(self) -> None:
        if not 0 <= self.neutral_default <= 100:
            raise ValueError("neutral_default must be 0-100")
        if self.declining_below > self.improving_above:
            raise ValueError("declining_below must be <= improving_above")

    @classmethod
    def from_env(cls) -> "ScoringConfig":
        """
        Load configuration from environment variables.

        Environment variables:
        - INTEL_WEIGHT_DOMAIN
        - INTEL_WEIGHT_WEBSITE
        - INTEL_WEIGHT_MARKET
        - INTEL_WEIGHT_ENGAGEMENT
        - INTEL_NEUTRAL_DEFAULT
        """
        config = cls()

        if os.getenv("INTEL_WEIGHT_DOMAIN"):
            config.weights.domain_stability = float(os.getenv("INTEL_WEIGHT_DOMAIN"))
        if os.getenv("INTEL_WEIGHT_WEBSITE"):
            config.weights.website_health = float(os.getenv("INTEL_WEIGHT_WEBSITE"))
        if os.getenv("INTEL_WEIGHT_MARKET"):
            config.weights.market_presence = float(os.getenv("INTEL_WEIGHT_MARKET"))
        if os.getenv("INTEL_WEIGHT_ENGAGEMENT"):
            config.weights.engagement_level = float(os.getenv("INTEL_WEIGHT_ENGAGEMENT"))

        # Normalize weights after loading
        config.weights._normalize()

        if os.getenv("INTEL_NEUTRAL_DEFAULT"):
            config.neutral_default = float(os.getenv("INTEL_NEUTRAL_DEFAULT"))

        return config

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ScoringConfig":
        config = cls()

        if "weights" in data:
            w = data["weights"]
            config.weights = FactorWeights(
                domain_stability=w.get("domain_stability", 0.25),
                website_health=w.get("website_health", 0.25),
                market_presence=w.get("market_presence", 0.25),
                engagement_level=w.get("engagement_level", 0.25),
            )

        if "tier_multipliers" in data:
            config.engagement.tier_multipliers.update(
                {k: float(v) for k, v in data["tier_multipliers"].items()}
            )

        if "neutral_default" in data:
            config.neutral_default = float(data["neutral_default"])

        config.__post_init__()
        return config

    @classmethod
    def from_yaml(cls, path: Path) -> "ScoringConfig":
        """Load configuration from a YAML file (a missing file yields defaults)."""
        path = Path(path)
        if not path.exists():
            logger.warning(f"Scoring config {path} not found, using defaults")
            return cls()
        with open(path, "r") as f:
            data = yaml.safe_load(f) or {}
        return cls.from_dict(data.get("scoring", data))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "weights": self.weights.to_dict(),
            "neutral_default": self.neutral_default,
            "tier_multipliers": dict(self.engagement.tier_multipliers),
            "improving_above": self.improving_above,
            "declining_below": self.declining_below,
        }

