"""
Provider Catalog - Known upstream operations.

Each operation belongs to one provider (the unit of rate limiting) and
declares the flat parameters it needs. Requests are validated here
before they reach a gateway.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Tuple

from .exceptions import InvalidInput
from .models import ProviderRequest


class Operation(str, Enum):
    """Upstream operations the engine knows how to call."""
    WHOIS = "whois"
    WEBSITE_STATUS = "website-status"
    NEWS = "news"
    LOCATION = "location"
    TIMEZONE = "timezone"
    HOLIDAYS = "holidays"


@dataclass(frozen=True)
class OperationSpec:
    """Static description of one operation."""
    operation: Operation
    provider: str
    required_params: Tuple[str, ...]
    description: str = ""
    text_bearing: bool = False


CATALOG: Dict[Operation, OperationSpec] = {
    Operation.WHOIS: OperationSpec(
        operation=Operation.WHOIS,
        provider="whois",
        required_params=("domain",),
        description="Domain registration record",
    ),
    Operation.WEBSITE_STATUS: OperationSpec(
        operation=Operation.WEBSITE_STATUS,
        provider="website",
        required_params=("url",),
        description="HTTP availability and TLS certificate state",
    ),
    Operation.NEWS: OperationSpec(
        operation=Operation.NEWS,
        provider="news",
        required_params=("query",),
        description="Recent articles mentioning the subject",
        text_bearing=True,
    ),
    Operation.LOCATION: OperationSpec(
        operation=Operation.LOCATION,
        provider="geo",
        required_params=("name",),
        description="Geocoded place",
    ),
    Operation.TIMEZONE: OperationSpec(
        operation=Operation.TIMEZONE,
        provider="geo",
        required_params=("city",),
        description="Timezone of a place",
    ),
    Operation.HOLIDAYS: OperationSpec(
        operation=Operation.HOLIDAYS,
        provider="geo",
        required_params=("country", "year"),
        description="Public holidays for a country and year",
    ),
}


def get_spec(operation: str) -> OperationSpec:
    """Look up an operation, raising InvalidInput for unknown names."""
    try:
        return CATALOG[Operation(operation)]
    except ValueError:
        raise InvalidInput(f"Unknown operation '{operation}'")


def build_request(operation: str, **params: Any) -> ProviderRequest:
    """
    Build a validated ProviderRequest.

    Raises:
        InvalidInput: Unknown operation or missing/empty required parameter
    """
    spec = get_spec(operation)
    missing = [p for p in spec.required_params if params.get(p) in (None, "")]
    if missing:
        raise InvalidInput(
            f"{spec.operation.value} requires {', '.join(missing)}",
            provider=spec.provider,
        )
    return ProviderRequest(spec.provider, spec.operation.value, params)


def providers() -> Tuple[str, ...]:
    """All provider ids, in catalog order, without duplicates."""
    seen: Dict[str, None] = {}
    for spec in CATALOG.values():
        seen.setdefault(spec.provider, None)
    return tuple(seen)
