"""
Tests for the Intelligence Orchestrator.

============================================================
PURPOSE
============================================================
End-to-end assessments over in-process transports.

TEST PRINCIPLES:
- Always a snapshot for a valid customer, however providers fail
- Failed provider -> "failed" status, neutral factor, one confidence level
- Degraded payloads are recorded, not fatal
- Abort discards the result but not the cache fill

============================================================
"""

import asyncio
import json
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest

from core.clock import MockClock
from health_scoring import Confidence, FactorType, Trend
from provider_gateway import (
    ErrorKind,
    GatewayConfig,
    ProviderUnavailable,
    StaticTransport,
)
from intelligence import (
    VALID_TRANSITIONS,
    AssessmentAbortedError,
    AssessmentState,
    Customer,
    CustomerTier,
    EngineConfig,
    FetchStatus,
    IntelligenceOrchestrator,
    IntelligenceSnapshot,
    InvalidCustomerError,
    default_sources,
)


NOW = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)

WHOIS_MATURE = {"creation_date": "2014-01-01T00:00:00Z", "status": "active"}
WEBSITE_OK = {"status_code": 200, "ssl_valid": True}
POSITIVE_NEWS = [
    {"title": f"Acme Corp wins award {i}", "body": "Record growth continues"}
    for i in range(12)
]


# ============================================================
# FIXTURES
# ============================================================

@pytest.fixture
def clock():
    return MockClock(NOW)


@pytest.fixture
def engine_config():
    return EngineConfig(
        provider_rates={"whois": 1000, "website": 1000, "news": 1000, "geo": 1000},
        default_rate=1000,
        source_timeout_seconds=5.0,
        gateway=GatewayConfig(
            max_retries=2,
            base_delay_seconds=0.0,
            max_delay_seconds=0.0,
            timeout_seconds=2.0,
        ),
    )


def healthy_replies():
    return {
        "whois": {"whois": WHOIS_MATURE},
        "website": {"website-status": WEBSITE_OK},
        "news": {"news": {"articles": POSITIVE_NEWS}},
        "geo": {"location": {"city": "Berlin", "country": "DE"}},
    }


def build(engine_config, clock, replies):
    transports = {
        provider: StaticTransport(provider, replies.get(provider, {}))
        for provider in ("whois", "website", "news", "geo")
    }
    orchestrator = IntelligenceOrchestrator.build_default(
        engine_config,
        transport_factory=lambda provider: transports[provider],
        clock=clock,
    )
    return orchestrator, transports


def make_customer(tier=CustomerTier.GROWTH, days_idle=0, **kwargs):
    return Customer(
        customer_id="c-1",
        name="Acme Corp",
        domain="acme.com",
        tier=tier,
        last_activity=NOW - timedelta(days=days_idle),
        **kwargs,
    )


# ============================================================
# HAPPY PATH
# ============================================================

class TestAssessment:

    @pytest.mark.asyncio
    async def test_all_providers_healthy(self, engine_config, clock):
        orchestrator, transports = build(engine_config, clock, healthy_replies())

        snapshot = await orchestrator.assess(make_customer(tier=CustomerTier.ENTERPRISE))

        assert isinstance(snapshot, IntelligenceSnapshot)
        assert snapshot.state == AssessmentState.COMPLETE
        assert snapshot.health_score.overall == 100
        assert snapshot.health_score.confidence == Confidence.HIGH
        assert snapshot.health_score.trend == Trend.IMPROVING
        assert len(snapshot.text_records) == 12
        assert set(snapshot.provider_status) == {"whois", "website", "news"}
        assert all(r.status == FetchStatus.SUCCESS for r in snapshot.provider_status.values())
        assert transports["geo"].call_count == 0

    @pytest.mark.asyncio
    async def test_state_history(self, engine_config, clock):
        orchestrator, _ = build(engine_config, clock, healthy_replies())

        handle = orchestrator.start(make_customer())
        assert handle.state == AssessmentState.PENDING
        await handle.result()

        assert handle.history == (
            AssessmentState.PENDING,
            AssessmentState.FETCHING,
            AssessmentState.CLASSIFYING,
            AssessmentState.SCORING,
            AssessmentState.COMPLETE,
        )
        assert orchestrator.active_assessments() == []

    @pytest.mark.asyncio
    async def test_location_enriches_context(self, engine_config, clock):
        orchestrator, transports = build(engine_config, clock, healthy_replies())

        snapshot = await orchestrator.assess(make_customer(location="Berlin"))

        assert transports["geo"].calls == [("location", {"name": "Berlin"})]
        assert snapshot.context["geo"] == {"city": "Berlin", "country": "DE"}
        assert snapshot.provider_status["geo"].status == FetchStatus.SUCCESS

    @pytest.mark.asyncio
    async def test_snapshot_is_immutable_and_serializable(self, engine_config, clock):
        orchestrator, _ = build(engine_config, clock, healthy_replies())
        snapshot = await orchestrator.assess(make_customer(location="Berlin"))

        with pytest.raises(TypeError):
            snapshot.provider_status["whois"] = None
        with pytest.raises(AttributeError):
            snapshot.state = AssessmentState.COMPLETE_DEGRADED

        encoded = json.dumps(snapshot.to_dict())
        assert json.loads(encoded)["state"] == "complete"

    @pytest.mark.asyncio
    async def test_concurrent_assessments_share_fetches(self, engine_config, clock):
        orchestrator, transports = build(engine_config, clock, healthy_replies())
        customer = make_customer()

        first, second = await asyncio.gather(
            orchestrator.assess(customer),
            orchestrator.assess(customer),
        )

        assert first.assessment_id != second.assessment_id
        assert first.health_score == second.health_score
        assert transports["news"].call_count == 1
        assert transports["whois"].call_count == 1


# ============================================================
# FAILURES AND DEGRADATION
# ============================================================

class TestDegradation:

    @pytest.mark.asyncio
    async def test_news_failure_degrades_one_level(self, engine_config, clock):
        """A failing news provider costs exactly one confidence level."""
        replies = healthy_replies()
        replies["news"] = {"news": ProviderUnavailable("news backend down", status_code=503)}
        orchestrator, transports = build(engine_config, clock, replies)

        snapshot = await orchestrator.assess(make_customer())

        news = snapshot.provider_status["news"]
        assert news.status == FetchStatus.FAILED
        assert news.error.kind == ErrorKind.PROVIDER_UNAVAILABLE
        assert news.attempts == engine_config.gateway.max_retries + 1
        assert transports["news"].call_count == engine_config.gateway.max_retries + 1

        health = snapshot.health_score
        market = health.factor(FactorType.MARKET_PRESENCE)
        assert market.is_default
        assert market.score == 50.0
        assert health.confidence == Confidence.MEDIUM
        # (100 + 100 + 50 + 100) / 4 = 87.5
        assert health.overall == 88
        assert health.trend == Trend.IMPROVING
        assert snapshot.state == AssessmentState.COMPLETE_DEGRADED
        assert snapshot.failed_providers == ("news",)
        assert snapshot.text_records == ()

    @pytest.mark.asyncio
    async def test_declining_customer_with_failed_website(self, engine_config, clock):
        replies = {
            "whois": {"whois": {"creation_date": (NOW - timedelta(days=90)).isoformat()}},
            "website": {"website-status": ProviderUnavailable("HTTP 500", status_code=500)},
            "news": {"news": []},
        }
        orchestrator, _ = build(engine_config, clock, replies)

        snapshot = await orchestrator.assess(
            make_customer(tier=CustomerTier.STARTUP, days_idle=120)
        )

        health = snapshot.health_score
        # (20 + 50 + 10 + 8) / 4 = 22
        assert health.overall == 22
        assert health.confidence == Confidence.MEDIUM
        assert health.trend == Trend.DECLINING
        assert snapshot.provider_status["website"].status == FetchStatus.FAILED
        assert snapshot.state == AssessmentState.COMPLETE_DEGRADED

    @pytest.mark.asyncio
    async def test_every_provider_failing_still_returns(self, engine_config, clock):
        replies = {
            "whois": {"whois": ProviderUnavailable("down")},
            "website": {"website-status": ProviderUnavailable("down")},
            "news": {"news": ProviderUnavailable("down")},
        }
        orchestrator, _ = build(engine_config, clock, replies)

        snapshot = await orchestrator.assess(make_customer())

        assert snapshot.state == AssessmentState.COMPLETE_DEGRADED
        assert snapshot.health_score.confidence == Confidence.LOW
        assert set(snapshot.health_score.defaulted_factors) == {
            FactorType.DOMAIN_STABILITY,
            FactorType.WEBSITE_HEALTH,
            FactorType.MARKET_PRESENCE,
        }

    @pytest.mark.asyncio
    async def test_unusable_news_payload_is_degraded_not_failed(self, engine_config, clock):
        replies = healthy_replies()
        replies["news"] = {"news": {"message": "quota notice"}}
        orchestrator, _ = build(engine_config, clock, replies)

        snapshot = await orchestrator.assess(make_customer())

        assert snapshot.provider_status["news"].status == FetchStatus.DEGRADED
        assert snapshot.health_score.factor(FactorType.MARKET_PRESENCE).is_default
        assert snapshot.state == AssessmentState.COMPLETE

    @pytest.mark.asyncio
    async def test_skipped_articles_mark_news_degraded(self, engine_config, clock):
        replies = healthy_replies()
        replies["news"] = {"news": [
            {"title": "Acme Corp wins award"},
            {"title": "", "body": ""},
        ]}
        orchestrator, _ = build(engine_config, clock, replies)

        snapshot = await orchestrator.assess(make_customer())

        news = snapshot.provider_status["news"]
        assert news.status == FetchStatus.DEGRADED
        assert "1 of 2" in news.message
        assert len(snapshot.text_records) == 1
        assert not snapshot.health_score.factor(FactorType.MARKET_PRESENCE).is_default

    @pytest.mark.asyncio
    async def test_odd_publication_dates_still_return_snapshot(self, engine_config, clock):
        replies = healthy_replies()
        replies["news"] = {"news": [
            {"title": "Acme Corp wins", "published_at": 1714564800000},
            {"title": "Acme Corp expands", "published_at": 10 ** 30},
        ]}
        orchestrator, _ = build(engine_config, clock, replies)

        snapshot = await orchestrator.assess(make_customer())

        assert snapshot.state == AssessmentState.COMPLETE
        assert snapshot.provider_status["news"].status == FetchStatus.SUCCESS
        published = {r.title: r.published_at for r in snapshot.text_records}
        assert published["Acme Corp wins"] == datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)
        assert published["Acme Corp expands"] is None

    @pytest.mark.asyncio
    async def test_whois_without_dates_is_degraded(self, engine_config, clock):
        replies = healthy_replies()
        replies["whois"] = {"whois": {"registrar": "Example Registrar"}}
        orchestrator, _ = build(engine_config, clock, replies)

        snapshot = await orchestrator.assess(make_customer())

        assert snapshot.provider_status["whois"].status == FetchStatus.DEGRADED
        assert snapshot.state == AssessmentState.COMPLETE

    @pytest.mark.asyncio
    async def test_hung_source_times_out(self, clock):
        config = EngineConfig(
            default_rate=1000,
            provider_rates={},
            source_timeout_seconds=0.05,
            gateway=GatewayConfig(
                max_retries=0, base_delay_seconds=0.0, max_delay_seconds=0.0, timeout_seconds=5.0,
            ),
        )

        async def hang(params):
            await asyncio.sleep(0.2)
            return WEBSITE_OK

        replies = healthy_replies()
        replies["website"] = {"website-status": hang}
        orchestrator, _ = build(config, clock, replies)

        snapshot = await orchestrator.assess(make_customer())

        website = snapshot.provider_status["website"]
        assert website.status == FetchStatus.FAILED
        assert website.error.kind == ErrorKind.NETWORK_TIMEOUT
        assert snapshot.provider_status["whois"].status == FetchStatus.SUCCESS

        # Let the abandoned fetch finish
        await asyncio.sleep(0.25)


# ============================================================
# ABORT
# ============================================================

class TestAbort:

    @pytest.mark.asyncio
    async def test_abort_discards_result_but_fills_cache(self, engine_config, clock):
        async def slow_news(params):
            await asyncio.sleep(0.1)
            return POSITIVE_NEWS

        replies = healthy_replies()
        replies["news"] = {"news": slow_news}
        orchestrator, transports = build(engine_config, clock, replies)

        handle = orchestrator.start(make_customer())
        await asyncio.sleep(0.02)
        assert handle.state == AssessmentState.FETCHING

        assert handle.abort() is True
        with pytest.raises(AssessmentAbortedError):
            await handle.result()
        assert handle.aborted

        # The in-flight news fetch completes and lands in the cache
        await asyncio.sleep(0.2)
        snapshot = await orchestrator.assess(make_customer())

        assert transports["news"].call_count == 1
        assert snapshot.provider_status["news"].status == FetchStatus.SUCCESS

    @pytest.mark.asyncio
    async def test_abort_after_completion_is_noop(self, engine_config, clock):
        orchestrator, _ = build(engine_config, clock, healthy_replies())

        handle = orchestrator.start(make_customer())
        snapshot = await handle.result()

        assert handle.abort() is False
        assert await handle.result() is snapshot


# ============================================================
# CONTRACT VIOLATIONS
# ============================================================

class TestContract:

    @pytest.mark.asyncio
    async def test_invalid_customer_propagates(self, engine_config, clock):
        orchestrator, transports = build(engine_config, clock, healthy_replies())

        with pytest.raises(InvalidCustomerError):
            await orchestrator.assess(Customer("c-1", "Acme", "not a domain"))
        assert all(t.call_count == 0 for t in transports.values())

    @pytest.mark.asyncio
    async def test_non_customer_rejected(self, engine_config, clock):
        orchestrator, _ = build(engine_config, clock, healthy_replies())

        with pytest.raises(InvalidCustomerError):
            await orchestrator.assess({"name": "Acme"})

    @pytest.mark.asyncio
    async def test_missing_gateway_disables_source(self, engine_config, clock):
        orchestrator = IntelligenceOrchestrator({}, clock=clock, config=engine_config)

        snapshot = await orchestrator.assess(make_customer())

        assert orchestrator.sources == ()
        assert snapshot.provider_status == {}
        assert snapshot.state == AssessmentState.COMPLETE
        assert len(snapshot.health_score.defaulted_factors) == 3

    def test_transition_table(self):
        assert VALID_TRANSITIONS[AssessmentState.PENDING] == {AssessmentState.FETCHING}
        assert VALID_TRANSITIONS[AssessmentState.SCORING] == {
            AssessmentState.COMPLETE,
            AssessmentState.COMPLETE_DEGRADED,
        }
        assert all(not VALID_TRANSITIONS[s] for s in AssessmentState if s.is_terminal)

    @pytest.mark.asyncio
    async def test_unexpected_gateway_error_fails_source(self, engine_config, clock):
        gateway = MagicMock()
        gateway.call = AsyncMock(side_effect=RuntimeError("boom"))
        whois_only = [s for s in default_sources() if s.provider == "whois"]
        orchestrator = IntelligenceOrchestrator(
            {"whois": gateway}, sources=whois_only, clock=clock, config=engine_config,
        )

        snapshot = await orchestrator.assess(make_customer())

        whois = snapshot.provider_status["whois"]
        assert whois.status == FetchStatus.FAILED
        assert whois.error.kind == ErrorKind.PROVIDER_UNAVAILABLE
        assert snapshot.state == AssessmentState.COMPLETE_DEGRADED
        gateway.call.assert_awaited_once_with("whois", {"domain": "acme.com"})
