"""
Intelligence - Data Sources.

A DataSource binds one catalog operation to:
- the params it needs, derived from a Customer
- the scoring input its payload feeds

The orchestrator fans out one call per applicable source.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Optional, Tuple

from core.customer import Customer
from health_scoring.models import FactorType
from provider_gateway.catalog import Operation, get_spec


class ScoringInput(Enum):
    """Which part of ProviderData a source's payload fills."""
    DOMAIN = "domain"
    WEBSITE = "website"
    MARKET = "market"
    CONTEXT = "context"

    @property
    def factor(self) -> Optional[FactorType]:
        """The factor this input backs; None for context-only inputs."""
        return {
            ScoringInput.DOMAIN: FactorType.DOMAIN_STABILITY,
            ScoringInput.WEBSITE: FactorType.WEBSITE_HEALTH,
            ScoringInput.MARKET: FactorType.MARKET_PRESENCE,
        }.get(self)


ParamsBuilder = Callable[[Customer], Dict[str, Any]]
Applicability = Callable[[Customer], bool]


@dataclass(frozen=True)
class DataSource:
    """One upstream fetch performed for every applicable customer."""
    name: str
    operation: Operation
    feeds: ScoringInput
    build_params: ParamsBuilder
    applies_to: Optional[Applicability] = None

    @property
    def provider(self) -> str:
        return get_spec(self.operation.value).provider

    @property
    def text_bearing(self) -> bool:
        return get_spec(self.operation.value).text_bearing

    def applies(self, customer: Customer) -> bool:
        return self.applies_to is None or bool(self.applies_to(customer))


def default_sources() -> Tuple[DataSource, ...]:
    """Sources every assessment uses unless configured otherwise."""
    return (
        DataSource(
            name="whois",
            operation=Operation.WHOIS,
            feeds=ScoringInput.DOMAIN,
            build_params=lambda c: {"domain": c.domain},
        ),
        DataSource(
            name="website",
            operation=Operation.WEBSITE_STATUS,
            feeds=ScoringInput.WEBSITE,
            build_params=lambda c: {"url": c.website_url},
        ),
        DataSource(
            name="news",
            operation=Operation.NEWS,
            feeds=ScoringInput.MARKET,
            build_params=lambda c: {"query": c.name},
        ),
        DataSource(
            name="geo",
            operation=Operation.LOCATION,
            feeds=ScoringInput.CONTEXT,
            build_params=lambda c: {"name": c.location},
            applies_to=lambda c: bool(c.location),
        ),
    )
