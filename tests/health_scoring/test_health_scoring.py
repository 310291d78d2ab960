"""
Tests for the Health Scoring Engine.

============================================================
PURPOSE
============================================================
- Factor bands and gates
- Missing data -> neutral default + confidence downgrade
- Trend rules, ties toward stable
- Reference scenarios (perfect, declining)
- Purity: same inputs, same score

============================================================
"""

from datetime import datetime, timedelta, timezone

import pytest

from core.clock import MockClock
from core.customer import Customer, CustomerTier
from health_scoring import (
    Confidence,
    DomainStabilityScorer,
    EngagementLevelScorer,
    FactorScore,
    FactorType,
    FactorWeights,
    HealthScore,
    HealthScoreCalculator,
    MarketPresenceScorer,
    ProviderData,
    ScoringConfig,
    Trend,
    WebsiteHealthScorer,
    parse_creation_date,
    round_half_up,
)
from sentiment.models import Sentiment, TextRecord


NOW = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


# ============================================================
# FIXTURES
# ============================================================

@pytest.fixture
def config():
    return ScoringConfig()


@pytest.fixture
def calculator(config):
    return HealthScoreCalculator(config, MockClock(NOW))


def make_customer(tier=CustomerTier.GROWTH, days_idle=0, **kwargs):
    last_activity = None if days_idle is None else NOW - timedelta(days=days_idle)
    return Customer(
        customer_id=kwargs.pop("customer_id", "c-1"),
        name=kwargs.pop("name", "Acme Corp"),
        domain=kwargs.pop("domain", "acme.com"),
        tier=tier,
        last_activity=last_activity,
        **kwargs,
    )


def make_articles(count, sentiment=Sentiment.NEUTRAL):
    return [TextRecord(title=f"Story {i}", body="", sentiment=sentiment) for i in range(count)]


def whois_aged(years=0.0, days=0, **extra):
    created = NOW - timedelta(days=int(years * 365.25) + days)
    return {"creation_date": created.isoformat(), **extra}


# ============================================================
# DOMAIN STABILITY
# ============================================================

class TestDomainStability:

    @pytest.mark.parametrize("years,expected", [
        (0.5, 20.0),
        (1.5, 50.0),
        (4.0, 80.0),
        (5.1, 100.0),
        (12.0, 100.0),
    ])
    def test_age_bands(self, config, years, expected):
        scorer = DomainStabilityScorer(config)
        score = scorer.score(make_customer(), ProviderData(whois=whois_aged(years)), NOW)
        assert score.score == expected
        assert not score.is_default

    @pytest.mark.parametrize("whois", [
        {"creation_date": "2001-01-01", "status": "redemptionPeriod"},
        {"creation_date": "2001-01-01", "status": ["clientTransferProhibited", "pendingDelete"]},
        {"creation_date": "2001-01-01", "active": False},
        {"status": "expired"},
    ])
    def test_inactive_overrides_age(self, config, whois):
        score = DomainStabilityScorer(config).score(make_customer(), ProviderData(whois=whois), NOW)
        assert score.score == 0.0
        assert score.details["active"] is False

    def test_missing_whois_defaults(self, config):
        score = DomainStabilityScorer(config).score(make_customer(), ProviderData(), NOW)
        assert score.is_default
        assert score.score == 50.0

    def test_default_is_public_neutral_score(self, config):
        score = DomainStabilityScorer(config).default("whois unavailable", {"attempts": 2})
        assert score.is_default
        assert score.score == 50.0
        assert dict(score.details) == {"missing": "whois unavailable", "attempts": 2}

    def test_missing_creation_date_defaults(self, config):
        score = DomainStabilityScorer(config).score(
            make_customer(), ProviderData(whois={"status": "active"}), NOW,
        )
        assert score.is_default

    def test_creation_date_formats(self):
        epoch = datetime(2010, 1, 1, tzinfo=timezone.utc).timestamp()
        assert parse_creation_date({"creation_date": epoch}).year == 2010
        assert parse_creation_date({"created": "2012-06-01 08:00:00"}).year == 2012
        earliest = parse_creation_date({"creation_date": ["2015-01-01", "2009-03-01T00:00:00Z"]})
        assert earliest == datetime(2009, 3, 1, tzinfo=timezone.utc)
        assert parse_creation_date({"creation_date": "garbage"}) is None


# ============================================================
# WEBSITE HEALTH
# ============================================================

class TestWebsiteHealth:

    @pytest.mark.parametrize("website,expected", [
        ({"status_code": 200, "ssl_valid": True}, 100.0),
        ({"status_code": 200, "ssl_valid": False}, 75.0),
        ({"status_code": 200}, 50.0),
        ({"status_code": 500, "certificate": {"valid": True}}, 50.0),
        ({"status_code": 503}, 0.0),
    ])
    def test_availability_and_certificate(self, config, website, expected):
        score = WebsiteHealthScorer(config).score(make_customer(), ProviderData(website=website), NOW)
        assert score.score == expected

    def test_missing_status_code_defaults(self, config):
        score = WebsiteHealthScorer(config).score(
            make_customer(), ProviderData(website={"ssl_valid": True}), NOW,
        )
        assert score.is_default


# ============================================================
# MARKET PRESENCE
# ============================================================

class TestMarketPresence:

    @pytest.mark.parametrize("count,expected", [
        (0, 10.0),
        (1, 40.0),
        (3, 40.0),
        (4, 80.0),
        (9, 80.0),
        (10, 100.0),
        (25, 100.0),
    ])
    def test_count_bands(self, config, count, expected):
        score = MarketPresenceScorer(config).score(
            make_customer(), ProviderData(articles=make_articles(count)), NOW,
        )
        assert score.score == expected

    def test_net_positive_adds(self, config):
        articles = make_articles(2, Sentiment.POSITIVE) + make_articles(1, Sentiment.NEGATIVE)
        score = MarketPresenceScorer(config).score(make_customer(), ProviderData(articles=articles), NOW)
        assert score.score == 60.0
        assert score.details["net_sentiment"] == 1

    def test_net_negative_subtracts_and_clamps(self, config):
        score = MarketPresenceScorer(config).score(
            make_customer(), ProviderData(articles=[]), NOW,
        )
        assert score.score == 10.0

        articles = make_articles(2, Sentiment.NEGATIVE)
        score = MarketPresenceScorer(config).score(make_customer(), ProviderData(articles=articles), NOW)
        assert score.score == 20.0

    def test_unavailable_news_defaults(self, config):
        score = MarketPresenceScorer(config).score(make_customer(), ProviderData(articles=None), NOW)
        assert score.is_default


# ============================================================
# ENGAGEMENT LEVEL
# ============================================================

class TestEngagementLevel:

    @pytest.mark.parametrize("days,expected", [
        (0, 100.0),
        (6, 100.0),
        (7, 70.0),
        (30, 70.0),
        (31, 40.0),
        (90, 40.0),
        (91, 10.0),
    ])
    def test_recency_bands(self, config, days, expected):
        score = EngagementLevelScorer(config).score(make_customer(days_idle=days), ProviderData(), NOW)
        assert score.score == expected

    @pytest.mark.parametrize("tier,days,expected", [
        (CustomerTier.ENTERPRISE, 0, 100.0),
        (CustomerTier.ENTERPRISE, 20, 84.0),
        (CustomerTier.STARTUP, 20, 56.0),
        (CustomerTier.STARTUP, 120, 8.0),
    ])
    def test_tier_multiplier(self, config, tier, days, expected):
        score = EngagementLevelScorer(config).score(
            make_customer(tier=tier, days_idle=days), ProviderData(), NOW,
        )
        assert score.score == pytest.approx(expected)

    def test_no_activity_defaults(self, config):
        score = EngagementLevelScorer(config).score(make_customer(days_idle=None), ProviderData(), NOW)
        assert score.is_default


# ============================================================
# CALCULATOR
# ============================================================

class TestCalculator:

    def test_scenario_perfect(self, calculator):
        customer = make_customer(tier=CustomerTier.ENTERPRISE, days_idle=0)
        data = ProviderData(
            whois=whois_aged(10, status="active"),
            website={"status_code": 200, "ssl_valid": True},
            articles=make_articles(12, Sentiment.POSITIVE),
        )

        health = calculator.compute(customer, data, as_of=NOW)

        assert health.overall == 100
        assert health.confidence == Confidence.HIGH
        assert health.trend == Trend.IMPROVING
        assert health.defaulted_factors == []

    def test_scenario_declining(self, calculator):
        customer = make_customer(tier=CustomerTier.STARTUP, days_idle=120)
        data = ProviderData(
            whois=whois_aged(days=90),
            website={"status_code": 500},
            articles=[],
        )

        health = calculator.compute(customer, data, as_of=NOW)

        # (20 + 0 + 10 + 8) / 4 = 9.5
        assert health.overall == 10
        assert health.overall < 50
        assert health.trend == Trend.DECLINING
        assert health.factor(FactorType.WEBSITE_HEALTH).details["certificate"] == "absent"
        # A 500 payload is live data scored as unavailable, not missing data
        assert health.confidence == Confidence.HIGH
        assert health.defaulted_factors == []

    def test_always_four_factors(self, calculator):
        health = calculator.compute(make_customer(days_idle=None), ProviderData(), as_of=NOW)

        assert set(health.factors) == set(FactorType)
        assert all(f.is_default for f in health.factors.values())
        assert health.overall == 50
        assert health.confidence == Confidence.LOW

    @pytest.mark.parametrize("missing,expected", [
        (0, Confidence.HIGH),
        (1, Confidence.MEDIUM),
        (2, Confidence.LOW),
        (3, Confidence.LOW),
    ])
    def test_confidence_drops_per_defaulted_factor(self, calculator, missing, expected):
        full = {
            "whois": whois_aged(10),
            "website": {"status_code": 200, "ssl_valid": True},
            "articles": make_articles(5),
        }
        for key in list(full)[:missing]:
            full[key] = None

        health = calculator.compute(make_customer(), ProviderData(**full), as_of=NOW)
        assert health.confidence == expected
        assert len(health.defaulted_factors) == missing

    def test_pure_for_fixed_reference_time(self, calculator):
        customer = make_customer(days_idle=12)
        data = ProviderData(
            whois=whois_aged(2),
            website={"status_code": 200},
            articles=make_articles(3, Sentiment.NEGATIVE),
        )

        first = calculator.compute(customer, data, as_of=NOW)
        second = calculator.compute(customer, data, as_of=NOW)

        assert first == second
        assert first.to_dict() == second.to_dict()

    def test_defaults_to_clock_time(self, calculator):
        health = calculator.compute(make_customer(), ProviderData())
        assert health.computed_at == NOW

    def test_malformed_payload_defaults_factor(self, calculator):
        data = ProviderData(whois={"creation_date": {"nested": "object"}})
        health = calculator.compute(make_customer(), data, as_of=NOW)
        assert health.factor(FactorType.DOMAIN_STABILITY).is_default


class TestTrend:

    def test_stable_in_the_middle(self, calculator):
        data = ProviderData(
            whois=whois_aged(2),
            website={"status_code": 200},
            articles=make_articles(2),
        )
        health = calculator.compute(make_customer(days_idle=10), data, as_of=NOW)

        # (50 + 50 + 40 + 70) / 4 = 52.5
        assert health.overall == 53
        assert health.trend == Trend.STABLE

    def test_conflicting_signals_resolve_to_stable(self, calculator):
        data = ProviderData(
            whois=whois_aged(10),
            website={"status_code": 200, "ssl_valid": True},
            articles=make_articles(12, Sentiment.NEGATIVE),
        )
        health = calculator.compute(make_customer(), data, as_of=NOW)

        assert health.overall == 95
        assert health.trend == Trend.STABLE

    def test_no_activity_in_window_declines(self, calculator):
        data = ProviderData(
            whois=whois_aged(10),
            website={"status_code": 200, "ssl_valid": True},
            articles=make_articles(12),
        )
        health = calculator.compute(make_customer(days_idle=120), data, as_of=NOW)

        # (100 + 100 + 100 + 10) / 4 = 77.5
        assert health.overall == 78
        assert health.trend == Trend.DECLINING


# ============================================================
# MODELS AND CONFIG
# ============================================================

class TestModels:

    def test_confidence_downgrade_floors_at_low(self):
        assert Confidence.HIGH.downgrade(0) == Confidence.HIGH
        assert Confidence.HIGH.downgrade(1) == Confidence.MEDIUM
        assert Confidence.MEDIUM.downgrade(5) == Confidence.LOW

    def test_factor_score_range_checked(self):
        with pytest.raises(ValueError):
            FactorScore(FactorType.WEBSITE_HEALTH, 101, 0.25, "too high")

    def test_health_score_requires_all_factors(self):
        only_one = {
            FactorType.WEBSITE_HEALTH: FactorScore(FactorType.WEBSITE_HEALTH, 50, 0.25, "x"),
        }
        with pytest.raises(ValueError):
            HealthScore(50, Trend.STABLE, only_one, Confidence.HIGH, NOW)

    def test_factors_are_read_only(self, calculator):
        health = calculator.compute(make_customer(), ProviderData(), as_of=NOW)
        with pytest.raises(TypeError):
            health.factors[FactorType.WEBSITE_HEALTH] = None

    @pytest.mark.parametrize("value,expected", [
        (87.5, 88),
        (22.5, 23),
        (9.5, 10),
        (87.4999, 87),
        (87.49999999999, 88),
        (100.4, 100),
    ])
    def test_round_half_up(self, value, expected):
        assert round_half_up(value) == expected


class TestScoringConfig:

    def test_weights_normalized(self):
        weights = FactorWeights(1, 1, 1, 1)
        assert weights.total() == pytest.approx(1.0)
        assert weights.domain_stability == pytest.approx(0.25)

    def test_negative_weight_rejected(self):
        with pytest.raises(ValueError):
            FactorWeights(-0.25, 0.5, 0.5, 0.25)

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("INTEL_WEIGHT_DOMAIN", "0.4")
        monkeypatch.setenv("INTEL_WEIGHT_WEBSITE", "0.2")
        monkeypatch.setenv("INTEL_WEIGHT_MARKET", "0.2")
        monkeypatch.setenv("INTEL_WEIGHT_ENGAGEMENT", "0.2")
        config = ScoringConfig.from_env()
        assert config.weights.domain_stability == pytest.approx(0.4)

    def test_from_yaml(self, tmp_path):
        path = tmp_path / "scoring.yaml"
        path.write_text(
            "scoring:\n"
            "  neutral_default: 40\n"
            "  tier_multipliers:\n"
            "    startup: 0.5\n"
        )
        config = ScoringConfig.from_yaml(path)
        assert config.neutral_default == 40
        assert config.engagement.tier_multipliers["startup"] == 0.5
        assert config.engagement.tier_multipliers["enterprise"] == 1.2

    def test_missing_yaml_uses_defaults(self, tmp_path):
        config = ScoringConfig.from_yaml(tmp_path / "absent.yaml")
        assert config.neutral_default == 50

    def test_custom_weights_change_overall(self):
        config = ScoringConfig(weights=FactorWeights(1.0, 0.0, 0.0, 0.0))
        calculator = HealthScoreCalculator(config, MockClock(NOW))
        health = calculator.compute(
            make_customer(), ProviderData(whois=whois_aged(10)), as_of=NOW,
        )
        assert health.overall == 100

    def test_calculator_without_config_reads_env(self, monkeypatch):
        monkeypatch.setenv("INTEL_NEUTRAL_DEFAULT", "40")
        first = HealthScoreCalculator(clock=MockClock(NOW))
        health = first.compute(make_customer(), ProviderData(), as_of=NOW)
        assert health.factor(FactorType.DOMAIN_STABILITY).score == 40.0

        monkeypatch.setenv("INTEL_NEUTRAL_DEFAULT", "60")
        second = HealthScoreCalculator(clock=MockClock(NOW))
        health = second.compute(make_customer(), ProviderData(), as_of=NOW)
        assert health.factor(FactorType.DOMAIN_STABILITY).score == 60.0
        assert first._config is not second._config

    def test_no_module_level_config(self):
        import health_scoring
        assert not hasattr(health_scoring, "get_config")
