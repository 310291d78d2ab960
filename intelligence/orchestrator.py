"""
Intelligence - Orchestrator.

============================================================
RESPONSIBILITY
============================================================
Runs one customer assessment end to end:

    PENDING -> FETCHING -> CLASSIFYING -> SCORING -> COMPLETE[_DEGRADED]

- FETCHING: one gateway call per applicable data source, concurrently,
  settled all together before moving on
- CLASSIFYING: news payloads become TextRecords
- SCORING: HealthScoreCalculator over the normalized inputs

A provider failure never aborts the assessment: it is recorded as
"failed" in the snapshot and its factor falls back to the neutral
default. Only a malformed customer record propagates to the caller.

============================================================
"""

import asyncio
import logging
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import (
    Any,
    Callable,
    Dict,
    Iterable,
    List,
    Mapping,
    Optional,
    Sequence,
    Tuple,
)

from core.clock import ClockProtocol, SystemClock
from core.customer import Customer, InvalidCustomerError
from health_scoring.calculator import HealthScoreCalculator
from health_scoring.models import HealthScore, ProviderData
from provider_gateway.cache import CacheStore
from provider_gateway.catalog import build_request, providers
from provider_gateway.exceptions import ProviderError
from provider_gateway.gateway import ProviderGatewayClient
from provider_gateway.models import ErrorKind, NormalizedError, NormalizedResponse
from provider_gateway.rate_limiter import RateLimiterRegistry
from provider_gateway.transport import HttpProviderTransport, ProviderTransport
from sentiment.classifier import TextClassifier
from sentiment.models import TextRecord

from .config import EngineConfig
from .models import (
    VALID_TRANSITIONS,
    AssessmentState,
    FetchStatus,
    IntelligenceSnapshot,
    InvalidTransitionError,
    ProviderFetchResult,
)
from .sources import DataSource, ScoringInput, default_sources


logger = logging.getLogger(__name__)


TransportFactory = Callable[[str], ProviderTransport]


class AssessmentAbortedError(Exception):
    """The assessment was aborted before it produced a snapshot."""

    def __init__(self, assessment_id: str) -> None:
        super().__init__(f"Assessment {assessment_id} was aborted")
        self.assessment_id = assessment_id


# ============================================================
# ASSESSMENT TRACKING
# ============================================================

class _Assessment:
    """Mutable bookkeeping for one in-progress assessment."""

    def __init__(self, customer: Customer) -> None:
        self.assessment_id = uuid.uuid4().hex
        self.customer = customer
        self.state = AssessmentState.PENDING
        self.history: List[AssessmentState] = [AssessmentState.PENDING]

    def transition(self, target: AssessmentState) -> None:
        if target not in VALID_TRANSITIONS[self.state]:
            raise InvalidTransitionError(self.state, target)
        logger.debug(
            f"Assessment {self.assessment_id}: {self.state.value} -> {target.value}"
        )
        self.state = target
        self.history.append(target)


class AssessmentHandle:
    """
    Caller-side view of a running assessment.

    Usage:
        handle = orchestrator.start(customer)
        ...
        handle.abort()          # caller went away
        snapshot = await handle.result()
    """

    def __init__(self, assessment: _Assessment, task: "asyncio.Task[IntelligenceSnapshot]") -> None:
        self._assessment = assessment
        self._task = task
        self._aborted = False

    @property
    def assessment_id(self) -> str:
        return self._assessment.assessment_id

    @property
    def customer(self) -> Customer:
        return self._assessment.customer

    @property
    def state(self) -> AssessmentState:
        return self._assessment.state

    @property
    def history(self) -> Tuple[AssessmentState, ...]:
        return tuple(self._assessment.history)

    @property
    def aborted(self) -> bool:
        return self._aborted

    def done(self) -> bool:
        return self._task.done()

    def abort(self) -> bool:
        """
        Discard this assessment.

        Provider fetches already in flight keep running and still fill
        the shared cache. Returns False if the assessment had finished.
        """
        if self._task.done():
            return False
        self._aborted = True
        self._task.cancel()
        logger.info(f"Assessment {self.assessment_id} aborted in {self.state.value}")
        return True

    async def result(self) -> IntelligenceSnapshot:
        """
        Wait for the snapshot.

        Raises:
            AssessmentAbortedError: abort() was called first
        """
        try:
            return await asyncio.shield(self._task)
        except asyncio.CancelledError:
            if self._aborted and self._task.cancelled():
                raise AssessmentAbortedError(self.assessment_id)
            raise


@dataclass
class _SourceOutcome:
    """Raw result of one fan-out call, before classification."""
    source: DataSource
    response: Optional[NormalizedResponse] = None
    error: Optional[NormalizedError] = None

    @property
    def ok(self) -> bool:
        return self.response is not None


# ============================================================
# ORCHESTRATOR
# ============================================================

class IntelligenceOrchestrator:
    """
    Assembles IntelligenceSnapshots for customers.

    Cache and rate limiters are owned by the gateways passed in, so
    independent orchestrators (e.g. one per test) share nothing.

    ============================================================
    USAGE
    ============================================================

    ```python
    orchestrator = IntelligenceOrchestrator.build_default(EngineConfig.from_env())
    snapshot = await orchestrator.assess(customer)
    print(snapshot.health_score.overall, snapshot.state.value)
    ```

    ============================================================
    """

    def __init__(
        self,
        gateways: Mapping[str, ProviderGatewayClient],
        classifier: Optional[TextClassifier] = None,
        calculator: Optional[HealthScoreCalculator] = None,
        sources: Optional[Iterable[DataSource]] = None,
        clock: Optional[ClockProtocol] = None,
        config: Optional[EngineConfig] = None,
    ) -> None:
        self._config = config or EngineConfig()
        self._clock = clock or SystemClock()
        self._gateways: Dict[str, ProviderGatewayClient] = dict(gateways)
        self._classifier = classifier or TextClassifier(self._clock)
        self._calculator = calculator or HealthScoreCalculator(self._config.scoring, self._clock)

        self._sources: List[DataSource] = []
        for source in (default_sources() if sources is None else sources):
            if source.provider not in self._gateways:
                logger.warning(
                    f"[{source.provider}] No gateway configured, source '{source.name}' disabled"
                )
                continue
            self._sources.append(source)

        self._active: Dict[str, AssessmentHandle] = {}

        logger.info(
            f"IntelligenceOrchestrator initialized with sources: "
            f"{', '.join(s.name for s in self._sources) or 'none'}"
        )

    @classmethod
    def build_default(
        cls,
        config: Optional[EngineConfig] = None,
        transport_factory: Optional[TransportFactory] = None,
        clock: Optional[ClockProtocol] = None,
    ) -> "IntelligenceOrchestrator":
        """
        Wire a complete engine: one shared cache, one rate limiter per
        provider, one gateway client per catalog provider.

        Args:
            config: Engine configuration (defaults to environment)
            transport_factory: Builds the transport for a provider id;
                defaults to HTTP against config.api_base_url
            clock: Time source shared by every component
        """
        config = config or EngineConfig.from_env()
        clock = clock or SystemClock()

        if transport_factory is None:
            def transport_factory(provider: str) -> ProviderTransport:
                return HttpProviderTransport(
                    provider,
                    config.api_base_url,
                    api_key=config.api_key or None,
                    timeout=config.gateway.timeout_seconds,
                )

        cache = CacheStore(
            capacity=config.cache_capacity,
            default_ttl=config.gateway.default_ttl_seconds,
            clock=clock,
        )
        limiters = RateLimiterRegistry(config.provider_rates, config.default_rate)

        gateways = {
            provider: ProviderGatewayClient(
                provider,
                transport_factory(provider),
                limiters.get(provider),
                cache,
                config.gateway,
                clock,
            )
            for provider in providers()
        }

        return cls(
            gateways,
            classifier=TextClassifier(clock),
            calculator=HealthScoreCalculator(config.scoring, clock),
            clock=clock,
            config=config,
        )

    # =========================================================
    # PUBLIC API
    # =========================================================

    @property
    def sources(self) -> Tuple[DataSource, ...]:
        return tuple(self._sources)

    @property
    def gateways(self) -> Mapping[str, ProviderGatewayClient]:
        return dict(self._gateways)

    def active_assessments(self) -> List[AssessmentHandle]:
        return list(self._active.values())

    async def assess(self, customer: Customer) -> IntelligenceSnapshot:
        """
        Assess a customer.

        Always returns a snapshot for a valid customer, however many
        providers fail.

        Raises:
            InvalidCustomerError: The customer record is malformed
        """
        return await self.start(customer).result()

    def start(self, customer: Customer) -> AssessmentHandle:
        """
        Begin an assessment in the background.

        Must be called from a running event loop.

        Raises:
            InvalidCustomerError: The customer record is malformed
        """
        if not isinstance(customer, Customer):
            raise InvalidCustomerError(
                f"Expected Customer, got {type(customer).__name__}", "customer"
            )
        customer.validate()

        assessment = _Assessment(customer)
        task = asyncio.ensure_future(self._run(assessment))
        handle = AssessmentHandle(assessment, task)

        self._active[assessment.assessment_id] = handle
        task.add_done_callback(lambda _: self._active.pop(assessment.assessment_id, None))

        logger.info(f"Assessment {assessment.assessment_id} started for {customer.customer_id}")
        return handle

    async def close(self) -> None:
        """Abort running assessments and close every gateway transport."""
        for handle in list(self._active.values()):
            handle.abort()
        for gateway in self._gateways.values():
            await gateway.close()

    # =========================================================
    # PIPELINE
    # =========================================================

    async def _run(self, assessment: _Assessment) -> IntelligenceSnapshot:
        customer = assessment.customer
        as_of = self._clock.now()

        # FETCHING
        assessment.transition(AssessmentState.FETCHING)
        applicable = [s for s in self._sources if s.applies(customer)]
        outcomes = await self._fan_out(applicable, customer)

        # CLASSIFYING
        assessment.transition(AssessmentState.CLASSIFYING)
        statuses: Dict[str, ProviderFetchResult] = {}
        records, articles = self._classify(outcomes, customer, as_of, statuses)

        # SCORING
        assessment.transition(AssessmentState.SCORING)
        provider_data, context = self._collect_inputs(outcomes, articles, statuses)
        health = self._calculator.compute(customer, provider_data, as_of=as_of)
        self._finalize_statuses(outcomes, health, statuses)

        any_failed = any(r.failed for r in statuses.values())
        final_state = AssessmentState.COMPLETE_DEGRADED if any_failed else AssessmentState.COMPLETE
        assessment.transition(final_state)

        snapshot = IntelligenceSnapshot(
            assessment_id=assessment.assessment_id,
            customer=customer,
            health_score=health,
            text_records=tuple(records),
            provider_status={o.source.name: statuses[o.source.name] for o in outcomes},
            state=final_state,
            assembled_at=self._clock.now(),
            context=context,
        )

        logger.info(
            f"Assessment {assessment.assessment_id} {final_state.value} for "
            f"{customer.customer_id}: overall={health.overall} "
            f"confidence={health.confidence.value} trend={health.trend.value}"
        )
        return snapshot

    async def _fan_out(
        self,
        sources: Sequence[DataSource],
        customer: Customer,
    ) -> List[_SourceOutcome]:
        """Call every source concurrently and wait for all to settle."""
        results = await asyncio.gather(
            *(self._fetch(source, customer) for source in sources),
            return_exceptions=True,
        )

        outcomes: List[_SourceOutcome] = []
        for source, result in zip(sources, results):
            if isinstance(result, _SourceOutcome):
                outcomes.append(result)
                continue
            if not isinstance(result, Exception):
                raise result
            logger.error(
                f"[{source.provider}] Unexpected error fetching {source.name}: {result}",
                exc_info=result,
            )
            outcomes.append(_SourceOutcome(
                source,
                error=NormalizedError(
                    provider=source.provider,
                    operation=source.operation.value,
                    kind=ErrorKind.PROVIDER_UNAVAILABLE,
                    message=f"Unexpected error: {result}",
                    retriable=False,
                    attempts=0,
                ),
            ))
        return outcomes

    async def _fetch(self, source: DataSource, customer: Customer) -> _SourceOutcome:
        gateway = self._gateways[source.provider]
        timeout = self._config.source_timeout_seconds

        try:
            request = build_request(source.operation.value, **source.build_params(customer))
        except ProviderError as e:
            logger.warning(f"[{source.provider}] Cannot build {source.name} request: {e.message}")
            return _SourceOutcome(source, error=NormalizedError(
                provider=source.provider,
                operation=source.operation.value,
                kind=e.kind,
                message=e.message,
                retriable=False,
                attempts=0,
            ))

        try:
            result = await asyncio.wait_for(
                gateway.call(request.operation, request.params),
                timeout=timeout,
            )
        except asyncio.TimeoutError:
            logger.warning(f"[{source.provider}] {source.name} timed out after {timeout}s")
            return _SourceOutcome(source, error=NormalizedError(
                provider=source.provider,
                operation=request.operation,
                kind=ErrorKind.NETWORK_TIMEOUT,
                message=f"No result within {timeout}s",
                retriable=True,
                attempts=0,
            ))

        if isinstance(result, NormalizedResponse):
            return _SourceOutcome(source, response=result)
        return _SourceOutcome(source, error=result)

    def _classify(
        self,
        outcomes: Sequence[_SourceOutcome],
        customer: Customer,
        as_of: datetime,
        statuses: Dict[str, ProviderFetchResult],
    ) -> Tuple[List[TextRecord], Optional[List[TextRecord]]]:
        """
        Turn text-bearing payloads into TextRecords.

        Returns:
            (all records, articles for scoring or None if unusable)
        """
        all_records: List[TextRecord] = []
        market: Optional[List[TextRecord]] = None

        for outcome in outcomes:
            source = outcome.source
            if not outcome.ok or not (source.text_bearing or source.feeds == ScoringInput.MARKET):
                continue

            raw = _extract_articles(outcome.response.data)
            if raw is None:
                statuses[source.name] = self._status(
                    outcome, FetchStatus.DEGRADED, "Payload carries no article list"
                )
                continue

            records, skipped = self._classifier.classify_articles(
                raw,
                subject_name=customer.name,
                industry_keywords=customer.search_keywords,
                as_of=as_of,
            )
            all_records.extend(records)

            if skipped:
                statuses[source.name] = self._status(
                    outcome,
                    FetchStatus.DEGRADED,
                    f"{len(skipped)} of {len(raw)} articles skipped",
                )
                logger.warning(
                    f"[{source.provider}] {len(skipped)} of {len(raw)} articles "
                    f"could not be classified"
                )
                if not records:
                    continue

            if source.feeds == ScoringInput.MARKET:
                market = (market or []) + records

        return all_records, market

    def _collect_inputs(
        self,
        outcomes: Sequence[_SourceOutcome],
        articles: Optional[List[TextRecord]],
        statuses: Dict[str, ProviderFetchResult],
    ) -> Tuple[ProviderData, Dict[str, Any]]:
        whois: Optional[Mapping[str, Any]] = None
        website: Optional[Mapping[str, Any]] = None
        context: Dict[str, Any] = {}

        for outcome in outcomes:
            if not outcome.ok:
                continue
            source, data = outcome.source, outcome.response.data

            if source.feeds == ScoringInput.CONTEXT:
                context[source.name] = data
                continue
            if source.feeds == ScoringInput.MARKET:
                continue
            if not isinstance(data, Mapping):
                statuses[source.name] = self._status(
                    outcome,
                    FetchStatus.DEGRADED,
                    f"Expected an object, got {type(data).__name__}",
                )
                continue
            if source.feeds == ScoringInput.DOMAIN:
                whois = data
            elif source.feeds == ScoringInput.WEBSITE:
                website = data

        return ProviderData(whois=whois, website=website, articles=articles), context

    def _finalize_statuses(
        self,
        outcomes: Sequence[_SourceOutcome],
        health: HealthScore,
        statuses: Dict[str, ProviderFetchResult],
    ) -> None:
        """Record a status for every source not already marked degraded."""
        for outcome in outcomes:
            source = outcome.source
            if source.name in statuses:
                continue

            if not outcome.ok:
                statuses[source.name] = self._status(
                    outcome, FetchStatus.FAILED, outcome.error.message
                )
                continue

            factor = source.feeds.factor
            if factor is not None and health.factors[factor].is_default:
                statuses[source.name] = self._status(
                    outcome, FetchStatus.DEGRADED, health.factors[factor].explanation
                )
            else:
                statuses[source.name] = self._status(outcome, FetchStatus.SUCCESS)

    @staticmethod
    def _status(
        outcome: _SourceOutcome,
        status: FetchStatus,
        message: str = "",
    ) -> ProviderFetchResult:
        source = outcome.source
        if outcome.ok:
            attempts = outcome.response.attempts
        else:
            attempts = outcome.error.attempts
        return ProviderFetchResult(
            source=source.name,
            provider=source.provider,
            operation=source.operation.value,
            status=status,
            attempts=attempts,
            message=message,
            error=outcome.error,
        )


def _extract_articles(data: Any) -> Optional[List[Any]]:
    """Find the article list in a news payload (bare list or wrapped)."""
    if isinstance(data, list):
        return data
    if isinstance(data, Mapping):
        for key in ("articles", "results", "data", "items"):
            if isinstance(data.get(key), list):
                return data[key]
    return None
