"""
Sentiment - Text classification for news-like provider payloads.

This package provides:
- TextClassifier: keyword sentiment, event tagging, relevance scoring
- TextRecord: a classified text, as carried in snapshots

Usage:
    from sentiment import TextClassifier

    classifier = TextClassifier()
    records, skipped = classifier.classify_articles(
        articles,
        subject_name="Acme Corp",
        industry_keywords=["logistics"],
    )

Output Schema:
- sentiment: positive | neutral | negative
- event_tags: funding, acquisition, launch, hiring, layoffs, legal,
  partnership, expansion, financial-results
- relevance: 0.0 to 1.0
"""

from .classifier import (
    EVENT_PATTERNS,
    NEGATIVE_KEYWORDS,
    POSITIVE_KEYWORDS,
    TextClassifier,
)
from .models import (
    HIGH_IMPORTANCE_EVENTS,
    Classification,
    EventTag,
    Sentiment,
    TextRecord,
)


__all__ = [
    "TextClassifier",
    "Classification",
    "TextRecord",
    "Sentiment",
    "EventTag",
    "HIGH_IMPORTANCE_EVENTS",
    "EVENT_PATTERNS",
    "POSITIVE_KEYWORDS",
    "NEGATIVE_KEYWORDS",
]
