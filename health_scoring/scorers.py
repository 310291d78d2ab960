"""
Health Scoring - Factor Scorers.

============================================================
FACTOR SCORING
============================================================

One scorer per factor:
1. Domain Stability  - registration age bands, inactive gate
2. Website Health    - HTTP availability + certificate validity
3. Market Presence   - article count bands +/- net sentiment
4. Engagement Level  - recency bands x customer tier multiplier

Each scorer:
- Takes the customer, normalized provider data and a reference time
- Returns a FactorScore (0-100) with explanation and details
- Returns the neutral default (is_default=True) when its data is missing

============================================================
SCORING PHILOSOPHY
============================================================

- All scores normalized to 0-100
- Higher is always better
- Fully explainable (no ML)
- Configurable thresholds

============================================================
"""

import logging
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, Mapping, Optional

from core.clock import from_iso8601
from core.customer import Customer
from sentiment.models import Sentiment

from .config import ScoringConfig
from .models import FactorScore, FactorType, ProviderData


logger = logging.getLogger(__name__)


DAYS_PER_YEAR = 365.25

# Registration states that mean the domain is no longer in good standing
INACTIVE_STATUS_MARKERS = (
    "inactive",
    "expired",
    "redemptionperiod",
    "pendingdelete",
    "suspended",
)


# =============================================================
# BASE FACTOR SCORER
# =============================================================


class BaseFactorScorer(ABC):
    """
    Abstract base class for factor scorers.

    Each factor scorer calculates a normalized score (0-100)
    from the customer record and provider data.
    """

    factor_type: FactorType

    def __init__(self, config: Optional[ScoringConfig] = None) -> None:
        self._config = config or ScoringConfig.from_env()

    @property
    def weight(self) -> float:
        return self._config.weights.get_weight(self.factor_type)

    @abstractmethod
    def score(
        self,
        customer: Customer,
        data: ProviderData,
        as_of: datetime,
    ) -> FactorScore:
        """
        Calculate score for this factor.

        Args:
            customer: Customer being assessed
            data: Normalized provider data
            as_of: Reference time for age/recency calculations

        Returns:
            FactorScore with score, explanation and details
        """
        pass

    def _normalize_score(self, raw_score: float) -> float:
        """Normalize score to 0-100 range."""
        return max(0.0, min(100.0, raw_score))

    def _result(
        self,
        score: float,
        explanation: str,
        details: Dict[str, Any],
    ) -> FactorScore:
        return FactorScore(
            factor=self.factor_type,
            score=self._normalize_score(score),
            weight=self.weight,
            explanation=explanation,
            details=details,
        )

    def default(self, reason: str, details: Optional[Dict[str, Any]] = None) -> FactorScore:
        """Neutral score for a factor whose data is missing."""
        logger.debug(f"{self.factor_type.value} defaulted: {reason}")
        return FactorScore(
            factor=self.factor_type,
            score=self._config.neutral_default,
            weight=self.weight,
            explanation=f"No data - neutral default ({reason})",
            details={"missing": reason, **(details or {})},
            is_default=True,
        )


# =============================================================
# DOMAIN STABILITY SCORER
# =============================================================


class DomainStabilityScorer(BaseFactorScorer):
    """
    Scores the domain registration:
    - Age bands: <1y, 1-3y, 3-5y, >=5y
    - Inactive registration overrides age with 0
    """

    factor_type = FactorType.DOMAIN_STABILITY

    def score(self, customer: Customer, data: ProviderData, as_of: datetime) -> FactorScore:
        if data.whois is None:
            return self.default("whois unavailable")

        t = self._config.domain
        status = _registration_status(data.whois)

        if status is not None and not status["active"]:
            return self._result(
                t.score_inactive,
                f"Registration inactive ({status['raw']})",
                {"active": False, "status": status["raw"]},
            )

        created = parse_creation_date(data.whois)
        if created is None or created > as_of:
            return self.default("creation date missing", {"active": True})

        age_years = (as_of - created).days / DAYS_PER_YEAR
        if age_years < t.young_years:
            score, band = t.score_young, f"<{t.young_years:g}y"
        elif age_years < t.established_years:
            score, band = t.score_recent, f"{t.young_years:g}-{t.established_years:g}y"
        elif age_years < t.mature_years:
            score, band = t.score_established, f"{t.established_years:g}-{t.mature_years:g}y"
        else:
            score, band = t.score_mature, f">={t.mature_years:g}y"

        return self._result(
            score,
            f"Domain is {age_years:.1f} years old ({band})",
            {
                "active": True,
                "created_at": created.isoformat(),
                "age_years": round(age_years, 2),
                "band": band,
            },
        )


# =============================================================
# WEBSITE HEALTH SCORER
# =============================================================


class WebsiteHealthScorer(BaseFactorScorer):
    """
    Scores the public website:
    - Availability: HTTP 200 -> 100, anything else -> 0
    - Certificate: valid 100, invalid 50, absent 0
    - Factor score is the mean of the two
    """

    factor_type = FactorType.WEBSITE_HEALTH

    def score(self, customer: Customer, data: ProviderData, as_of: datetime) -> FactorScore:
        if data.website is None:
            return self.default("website status unavailable")

        status_code = _first_int(data.website, ("status_code", "status", "http_status"))
        if status_code is None:
            return self.default("status code missing")

        t = self._config.website
        availability = t.score_available if status_code == 200 else t.score_unavailable

        cert_valid = _certificate_validity(data.website)
        if cert_valid is None:
            certificate, cert_label = t.score_cert_absent, "absent"
        elif cert_valid:
            certificate, cert_label = t.score_cert_valid, "valid"
        else:
            certificate, cert_label = t.score_cert_invalid, "invalid"

        return self._result(
            (availability + certificate) / 2,
            f"HTTP {status_code}, certificate {cert_label}",
            {
                "status_code": status_code,
                "availability_score": availability,
                "certificate": cert_label,
                "certificate_score": certificate,
            },
        )


# =============================================================
# MARKET PRESENCE SCORER
# =============================================================


class MarketPresenceScorer(BaseFactorScorer):
    """
    Scores news coverage:
    - Article count bands: 0, 1-3, 4-9, >=10
    - +/- adjustment for net positive/negative sentiment
    """

    factor_type = FactorType.MARKET_PRESENCE

    def score(self, customer: Customer, data: ProviderData, as_of: datetime) -> FactorScore:
        if data.articles is None:
            return self.default("news unavailable")

        t = self._config.market
        count = len(data.articles)
        if count == 0:
            base = t.score_none
        elif count <= t.few_max:
            base = t.score_few
        elif count <= t.several_max:
            base = t.score_several
        else:
            base = t.score_many

        positive = sum(1 for r in data.articles if r.sentiment == Sentiment.POSITIVE)
        negative = sum(1 for r in data.articles if r.sentiment == Sentiment.NEGATIVE)
        net = positive - negative
        if net > 0:
            adjustment = t.sentiment_adjustment
        elif net < 0:
            adjustment = -t.sentiment_adjustment
        else:
            adjustment = 0.0

        return self._result(
            base + adjustment,
            f"{count} articles, net sentiment {net:+d}",
            {
                "article_count": count,
                "base_score": base,
                "positive": positive,
                "negative": negative,
                "net_sentiment": net,
                "adjustment": adjustment,
            },
        )


# =============================================================
# ENGAGEMENT LEVEL SCORER
# =============================================================


class EngagementLevelScorer(BaseFactorScorer):
    """
    Scores customer engagement:
    - Days since last activity: <7, 7-30, 30-90, >90
    - Multiplied by the tier factor, then clamped
    """

    factor_type = FactorType.ENGAGEMENT_LEVEL

    def score(self, customer: Customer, data: ProviderData, as_of: datetime) -> FactorScore:
        if customer.last_activity is None:
            return self.default("no recorded activity")

        t = self._config.engagement
        days = days_since(customer.last_activity, as_of)
        if days < t.active_days:
            base = t.score_active
        elif days <= t.recent_days:
            base = t.score_recent
        elif days <= t.lapsing_days:
            base = t.score_lapsing
        else:
            base = t.score_dormant

        multiplier = t.tier_multipliers.get(customer.tier.value, 1.0)

        return self._result(
            base * multiplier,
            f"Last activity {days} days ago, {customer.tier.value} tier x{multiplier:g}",
            {
                "days_since_activity": days,
                "base_score": base,
                "tier": customer.tier.value,
                "tier_multiplier": multiplier,
            },
        )


# =============================================================
# PAYLOAD HELPERS
# =============================================================


def days_since(moment: datetime, as_of: datetime) -> int:
    """Whole days between a moment and the reference time (never negative)."""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return max(0, (as_of - moment).days)


def parse_creation_date(whois: Mapping[str, Any]) -> Optional[datetime]:
    """
    Extract the registration date from a whois payload.

    Accepts epoch seconds, ISO strings, or lists of either (earliest wins).
    """
    raw = whois.get("creation_date", whois.get("created"))
    values: Iterable[Any] = raw if isinstance(raw, (list, tuple)) else [raw]

    parsed = []
    for value in values:
        if value is None or value == "":
            continue
        try:
            if isinstance(value, (int, float)):
                parsed.append(datetime.fromtimestamp(float(value), tz=timezone.utc))
            elif isinstance(value, datetime):
                parsed.append(value if value.tzinfo else value.replace(tzinfo=timezone.utc))
            else:
                parsed.append(from_iso8601(str(value).replace(" ", "T")))
        except (ValueError, TypeError, OverflowError, OSError):
            logger.debug(f"Unparseable creation date: {value!r}")

    return min(parsed) if parsed else None


def _registration_status(whois: Mapping[str, Any]) -> Optional[Dict[str, Any]]:
    """Active/inactive reading of a whois payload, None if it says nothing."""
    for flag in ("active", "registered"):
        if isinstance(whois.get(flag), bool):
            return {"active": whois[flag], "raw": f"{flag}={whois[flag]}"}

    raw = whois.get("status")
    if raw is None:
        return None
    statuses = raw if isinstance(raw, (list, tuple)) else [raw]
    normalized = [str(s).lower().replace(" ", "").replace("_", "") for s in statuses]
    inactive = any(marker in s for s in normalized for marker in INACTIVE_STATUS_MARKERS)
    return {"active": not inactive, "raw": ", ".join(str(s) for s in statuses)}


def _certificate_validity(website: Mapping[str, Any]) -> Optional[bool]:
    """True/False for a present certificate, None when absent."""
    for key in ("ssl_valid", "certificate_valid"):
        if key in website and website[key] is not None:
            return bool(website[key])
    cert = website.get("certificate", website.get("ssl"))
    if isinstance(cert, Mapping):
        if cert.get("valid") is None:
            return None
        return bool(cert.get("valid"))
    if isinstance(cert, bool):
        return cert
    return None


def _first_int(payload: Mapping[str, Any], keys: Iterable[str]) -> Optional[int]:
    for key in keys:
        value = payload.get(key)
        if isinstance(value, bool):
            continue
        if isinstance(value, (int, float)):
            return int(value)
        if isinstance(value, str) and value.isdigit():
            return int(value)
    return None
