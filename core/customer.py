"""
Core Module - Customer Record.

The customer is an immutable input owned by an external data store.
The engine reads it and never writes it back.
"""

import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional, Tuple

from .clock import from_iso8601


_DOMAIN_RE = re.compile(
    r"^(?=.{1,253}$)([a-z0-9]([a-z0-9-]{0,61}[a-z0-9])?\.)+[a-z]{2,63}$",
    re.IGNORECASE,
)


class InvalidCustomerError(ValueError):
    """A customer record violates the engine's input contract."""

    def __init__(self, message: str, field_name: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        self.field_name = field_name

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "field_name": self.field_name,
        }


class CustomerTier(str, Enum):
    """Commercial tier of a customer."""
    ENTERPRISE = "enterprise"
    GROWTH = "growth"
    STARTUP = "startup"


@dataclass(frozen=True)
class Customer:
    """Identifying attributes of the business being assessed."""
    customer_id: str
    name: str
    domain: str
    tier: CustomerTier = CustomerTier.GROWTH
    location: Optional[str] = None
    last_activity: Optional[datetime] = None
    industry: Optional[str] = None
    industry_keywords: Tuple[str, ...] = field(default_factory=tuple)

    @property
    def website_url(self) -> str:
        return f"https://{self.domain}"

    @property
    def search_keywords(self) -> Tuple[str, ...]:
        """Industry terms used for relevance scoring."""
        terms = list(self.industry_keywords)
        if self.industry and self.industry not in terms:
            terms.insert(0, self.industry)
        return tuple(terms)

    def validate(self) -> None:
        """
        Check the record against the input contract.

        Raises:
            InvalidCustomerError: On the first violation found
        """
        if not self.customer_id or not str(self.customer_id).strip():
            raise InvalidCustomerError("customer_id is required", "customer_id")
        if not self.name or not self.name.strip():
            raise InvalidCustomerError("name is required", "name")
        if not self.domain or not _DOMAIN_RE.match(self.domain):
            raise InvalidCustomerError(f"Invalid domain: {self.domain!r}", "domain")
        if not isinstance(self.tier, CustomerTier):
            raise InvalidCustomerError(f"Invalid tier: {self.tier!r}", "tier")
        if self.last_activity is not None:
            if not isinstance(self.last_activity, datetime):
                raise InvalidCustomerError("last_activity must be a datetime", "last_activity")
            if self.last_activity.tzinfo is None:
                raise InvalidCustomerError("last_activity must be timezone-aware", "last_activity")
        if isinstance(self.industry_keywords, str) or not all(
            isinstance(k, str) for k in self.industry_keywords
        ):
            raise InvalidCustomerError(
                "industry_keywords must be a sequence of strings", "industry_keywords"
            )
        if self.industry is not None and not isinstance(self.industry, str):
            raise InvalidCustomerError("industry must be a string", "industry")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "customer_id": self.customer_id,
            "name": self.name,
            "domain": self.domain,
            "tier": self.tier.value,
            "location": self.location,
            "last_activity": self.last_activity.isoformat() if self.last_activity else None,
            "industry": self.industry,
            "industry_keywords": list(self.industry_keywords),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Customer":
        """
        Build a customer from a data-store record.

        Raises:
            InvalidCustomerError: Unknown tier, unparseable timestamp,
                or a record failing validate()
        """
        try:
            tier = CustomerTier(str(data.get("tier", CustomerTier.GROWTH.value)).lower())
        except ValueError:
            raise InvalidCustomerError(f"Unknown tier: {data.get('tier')!r}", "tier")

        last_activity = data.get("last_activity")
        if isinstance(last_activity, str):
            try:
                last_activity = from_iso8601(last_activity)
            except ValueError:
                raise InvalidCustomerError(
                    f"Unparseable last_activity: {last_activity!r}", "last_activity"
                )
        elif isinstance(last_activity, datetime) and last_activity.tzinfo is None:
            last_activity = last_activity.replace(tzinfo=timezone.utc)

        customer = cls(
            customer_id=str(data.get("customer_id") or data.get("id") or ""),
            name=str(data.get("name") or ""),
            domain=str(data.get("domain") or "").lower(),
            tier=tier,
            location=data.get("location"),
            last_activity=last_activity,
            industry=data.get("industry"),
            industry_keywords=_keyword_tuple(data.get("industry_keywords")),
        )
        customer.validate()
        return customer


def _keyword_tuple(value: Any) -> Tuple[str, ...]:
    """Normalize a stored keyword field; a bare string is one keyword."""
    if value is None or value == "":
        return ()
    if isinstance(value, str):
        return (value,)
    if isinstance(value, (list, tuple)):
        return tuple(value)
    raise InvalidCustomerError(
        f"industry_keywords must be a list of strings, got {type(value).__name__}",
        "industry_keywords",
    )
