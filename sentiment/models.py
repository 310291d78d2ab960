"""
Text Classification Models - Sentiment, event tags and classified records.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, FrozenSet, Optional


class Sentiment(Enum):
    """Keyword-majority sentiment of a text."""
    POSITIVE = "positive"
    NEUTRAL = "neutral"
    NEGATIVE = "negative"


class EventTag(Enum):
    """Business events detected in news-like text."""
    FUNDING = "funding"
    ACQUISITION = "acquisition"
    LAUNCH = "launch"
    HIRING = "hiring"
    LAYOFFS = "layoffs"
    LEGAL = "legal"
    PARTNERSHIP = "partnership"
    EXPANSION = "expansion"
    FINANCIAL_RESULTS = "financial-results"


# Events that make a text matter more for the subject
HIGH_IMPORTANCE_EVENTS: FrozenSet[EventTag] = frozenset({
    EventTag.FUNDING,
    EventTag.ACQUISITION,
    EventTag.LAYOFFS,
})


@dataclass(frozen=True)
class Classification:
    """Result of classifying one text."""
    sentiment: Sentiment
    event_tags: FrozenSet[EventTag]
    relevance: float  # 0.0 to 1.0
    positive_hits: int = 0
    negative_hits: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "sentiment": self.sentiment.value,
            "event_tags": sorted(tag.value for tag in self.event_tags),
            "relevance": self.relevance,
            "positive_hits": self.positive_hits,
            "negative_hits": self.negative_hits,
        }


@dataclass(frozen=True)
class TextRecord:
    """
    A news-like text with its derived classification.

    Derived from a provider fetch; never persisted on its own.
    """
    title: str
    body: str
    sentiment: Sentiment
    event_tags: FrozenSet[EventTag] = field(default_factory=frozenset)
    relevance: float = 0.5
    url: Optional[str] = None
    source: str = ""
    published_at: Optional[datetime] = None

    def __post_init__(self) -> None:
        if not 0.0 <= self.relevance <= 1.0:
            object.__setattr__(self, "relevance", max(0.0, min(1.0, self.relevance)))

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "title": self.title,
            "body": self.body,
            "sentiment": self.sentiment.value,
            "event_tags": sorted(tag.value for tag in self.event_tags),
            "relevance": self.relevance,
            "url": self.url,
            "source": self.source,
            "published_at": self.published_at.isoformat() if self.published_at else None,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "TextRecord":
        """Create from dictionary."""
        published = data.get("published_at")
        return cls(
            title=data.get("title", ""),
            body=data.get("body", ""),
            sentiment=Sentiment(data["sentiment"]),
            event_tags=frozenset(EventTag(t) for t in data.get("event_tags", [])),
            relevance=float(data.get("relevance", 0.5)),
            url=data.get("url"),
            source=data.get("source", ""),
            published_at=datetime.fromisoformat(published) if published else None,
        )
