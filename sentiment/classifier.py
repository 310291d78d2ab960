"""
Text Classifier - Keyword sentiment, event tagging and relevance.

============================================================
CLASSIFICATION RULES
============================================================

Sentiment:
- Whole-word, case-insensitive hits against a positive and a negative
  keyword set over title + body
- More positive hits -> POSITIVE, more negative -> NEGATIVE, tie -> NEUTRAL

Event tags:
- Each text is tested against every category pattern
- Zero, one or many tags per text

Relevance (clamped to [0, 1]):
- 0.5 base
- +0.3 subject name in title, +0.2 subject name in body
- +0.2 any industry keyword present
- +0.1 published within 24h, +0.1 more within 7 days
- +0.2 tagged funding, acquisition or layoffs

Pure and deterministic for a fixed reference time (`as_of`).
Any model honoring classify() can replace this one.

============================================================
"""

import logging
import re
from datetime import datetime, timedelta, timezone
from typing import Any, Iterable, Mapping, Optional, Pattern, Sequence

from core.clock import ClockProtocol, SystemClock, from_iso8601
from provider_gateway.exceptions import ClassificationSkipped

from .models import (
    HIGH_IMPORTANCE_EVENTS,
    Classification,
    EventTag,
    Sentiment,
    TextRecord,
)


logger = logging.getLogger(__name__)

# Numeric publication dates above this are epoch milliseconds (year 5138 in seconds)
EPOCH_MILLIS_THRESHOLD = 1e11


# ============================================================
# KEYWORD SETS
# ============================================================

POSITIVE_KEYWORDS: frozenset = frozenset({
    "growth", "grows", "growing", "record", "success", "successful",
    "profit", "profitable", "award", "awarded", "wins", "win", "strong",
    "surge", "surges", "beats", "exceeds", "milestone", "gains", "boost",
    "innovative", "innovation", "expands", "expansion", "partnership",
    "launches", "raises", "funding", "upgrade", "upgraded", "improves",
    "improved", "positive", "praised", "leading", "breakthrough",
})

NEGATIVE_KEYWORDS: frozenset = frozenset({
    "layoffs", "layoff", "lawsuit", "sued", "loss", "losses", "decline",
    "declines", "drop", "drops", "fraud", "breach", "bankruptcy",
    "bankrupt", "fined", "scandal", "investigation", "cuts", "downturn",
    "weak", "struggles", "struggling", "misses", "recall", "outage",
    "negative", "downgrade", "downgraded", "resigns", "shutdown",
    "closure", "warning", "slump", "plunge", "plunges",
})


# Event category patterns (whole words, case-insensitive)
EVENT_PATTERNS: dict[EventTag, Pattern[str]] = {
    EventTag.FUNDING: re.compile(
        r"\b(funding|raises|raised|raising|series [a-f]|seed round|venture capital|"
        r"investment round|backed by|valuation)\b",
        re.IGNORECASE,
    ),
    EventTag.ACQUISITION: re.compile(
        r"\b(acquires?|acquired|acquiring|acquisition|buyout|merger|merges?|takeover|"
        r"to buy|bought)\b",
        re.IGNORECASE,
    ),
    EventTag.LAUNCH: re.compile(
        r"\b(launch|launches|launched|launching|unveils?|unveiled|debuts?|introduces|"
        r"rolls out|new product)\b",
        re.IGNORECASE,
    ),
    EventTag.HIRING: re.compile(
        r"\b(hiring|hires|hired|recruiting|recruits|job openings?|appoints?|appointed|"
        r"new (ceo|cto|cfo|coo))\b",
        re.IGNORECASE,
    ),
    EventTag.LAYOFFS: re.compile(
        r"\b(layoffs?|laid off|lays off|job cuts|cuts \d+ jobs|downsizing|downsizes|"
        r"workforce reduction|restructuring)\b",
        re.IGNORECASE,
    ),
    EventTag.LEGAL: re.compile(
        r"\b(lawsuit|lawsuits|sued|sues|litigation|settlement|court|regulators?|"
        r"fined|antitrust|investigation|subpoena)\b",
        re.IGNORECASE,
    ),
    EventTag.PARTNERSHIP: re.compile(
        r"\b(partners|partnered|partnership|partnerships|collaboration|collaborates|"
        r"alliance|teams up|joint venture)\b",
        re.IGNORECASE,
    ),
    EventTag.EXPANSION: re.compile(
        r"\b(expands|expanded|expanding|expansion|new office|new offices|new market|"
        r"new headquarters|opens|enters)\b",
        re.IGNORECASE,
    ),
    EventTag.FINANCIAL_RESULTS: re.compile(
        r"\b(earnings|revenue|quarterly results|annual results|net income|"
        r"profit|q[1-4] results|fiscal year|guidance)\b",
        re.IGNORECASE,
    ),
}


def _keyword_pattern(keywords: Iterable[str]) -> Pattern[str]:
    alternatives = sorted((re.escape(k) for k in keywords), key=len, reverse=True)
    return re.compile(r"\b(" + "|".join(alternatives) + r")\b", re.IGNORECASE)


_POSITIVE_RE = _keyword_pattern(POSITIVE_KEYWORDS)
_NEGATIVE_RE = _keyword_pattern(NEGATIVE_KEYWORDS)


# ============================================================
# CLASSIFIER
# ============================================================

class TextClassifier:
    """
    Keyword-driven classifier for news-like text.

    Usage:
        classifier = TextClassifier()
        result = classifier.classify(
            body,
            title=title,
            subject_name="Acme Corp",
            published_at=published,
        )
        print(result.sentiment, result.event_tags, result.relevance)
    """

    BASE_RELEVANCE = 0.5
    NAME_IN_TITLE_BONUS = 0.3
    NAME_IN_BODY_BONUS = 0.2
    INDUSTRY_BONUS = 0.2
    LAST_DAY_BONUS = 0.1
    LAST_WEEK_BONUS = 0.1
    HIGH_IMPORTANCE_BONUS = 0.2

    def __init__(self, clock: Optional[ClockProtocol] = None) -> None:
        self._clock = clock or SystemClock()

    # ─────────────────────────────────────────────────────────────
    # Public API
    # ─────────────────────────────────────────────────────────────

    def classify(
        self,
        text: str,
        *,
        title: str = "",
        subject_name: Optional[str] = None,
        industry_keywords: Sequence[str] = (),
        published_at: Optional[datetime] = None,
        as_of: Optional[datetime] = None,
    ) -> Classification:
        """
        Classify one text.

        Raises:
            ClassificationSkipped: Neither title nor body carries text
        """
        body = text or ""
        title = title or ""
        if not body.strip() and not title.strip():
            raise ClassificationSkipped("Empty text")

        combined = f"{title}\n{body}"
        positive_hits = len(_POSITIVE_RE.findall(combined))
        negative_hits = len(_NEGATIVE_RE.findall(combined))
        tags = self.detect_events(combined)

        relevance = self.score_relevance(
            title=title,
            body=body,
            subject_name=subject_name,
            industry_keywords=industry_keywords,
            published_at=published_at,
            event_tags=tags,
            as_of=as_of,
        )

        return Classification(
            sentiment=self._majority(positive_hits, negative_hits),
            event_tags=tags,
            relevance=relevance,
            positive_hits=positive_hits,
            negative_hits=negative_hits,
        )

    def detect_events(self, text: str) -> frozenset:
        """Return every event tag whose pattern matches the text."""
        return frozenset(tag for tag, pattern in EVENT_PATTERNS.items() if pattern.search(text))

    def score_relevance(
        self,
        *,
        title: str,
        body: str,
        subject_name: Optional[str],
        industry_keywords: Sequence[str],
        published_at: Optional[datetime],
        event_tags: frozenset,
        as_of: Optional[datetime] = None,
    ) -> float:
        """Additive relevance score, clamped to [0, 1]."""
        score = self.BASE_RELEVANCE

        if subject_name and subject_name.strip():
            name_re = _phrase_pattern(subject_name.strip())
            if name_re.search(title):
                score += self.NAME_IN_TITLE_BONUS
            if name_re.search(body):
                score += self.NAME_IN_BODY_BONUS

        keywords = [k for k in industry_keywords if k and k.strip()]
        if keywords and _keyword_pattern(k.strip() for k in keywords).search(f"{title}\n{body}"):
            score += self.INDUSTRY_BONUS

        if published_at is not None:
            reference = as_of or self._clock.now()
            age = reference - _as_utc(published_at)
            if age <= timedelta(hours=24):
                score += self.LAST_DAY_BONUS
            if age <= timedelta(days=7):
                score += self.LAST_WEEK_BONUS

        if event_tags & HIGH_IMPORTANCE_EVENTS:
            score += self.HIGH_IMPORTANCE_BONUS

        return round(max(0.0, min(1.0, score)), 4)

    def build_record(
        self,
        article: Mapping[str, Any],
        *,
        subject_name: Optional[str] = None,
        industry_keywords: Sequence[str] = (),
        as_of: Optional[datetime] = None,
    ) -> TextRecord:
        """
        Classify a raw article payload into a TextRecord.

        Accepted fields: title, body/description/content/text, url,
        source (string or {"name": ...}), published_at/date (ISO string,
        epoch seconds or epoch milliseconds).

        Raises:
            ClassificationSkipped: No usable text
        """
        if not isinstance(article, Mapping):
            raise ClassificationSkipped(f"Article is not an object: {type(article).__name__}")

        title = str(article.get("title") or "")
        body = str(
            article.get("body")
            or article.get("description")
            or article.get("content")
            or article.get("text")
            or ""
        )
        published_at = _parse_published(article.get("published_at") or article.get("date"))

        result = self.classify(
            body,
            title=title,
            subject_name=subject_name,
            industry_keywords=industry_keywords,
            published_at=published_at,
            as_of=as_of,
        )

        source = article.get("source") or ""
        if isinstance(source, Mapping):
            source = source.get("name", "")

        return TextRecord(
            title=title,
            body=body,
            sentiment=result.sentiment,
            event_tags=result.event_tags,
            relevance=result.relevance,
            url=article.get("url"),
            source=str(source),
            published_at=published_at,
        )

    def classify_articles(
        self,
        articles: Iterable[Mapping[str, Any]],
        *,
        subject_name: Optional[str] = None,
        industry_keywords: Sequence[str] = (),
        as_of: Optional[datetime] = None,
    ) -> tuple[list[TextRecord], list[ClassificationSkipped]]:
        """
        Classify a batch. Each article is classified independently.

        Returns:
            (records, skipped) - skipped articles are logged, not raised
        """
        reference = as_of or self._clock.now()
        records: list[TextRecord] = []
        skipped: list[ClassificationSkipped] = []

        for index, article in enumerate(articles):
            try:
                records.append(self.build_record(
                    article,
                    subject_name=subject_name,
                    industry_keywords=industry_keywords,
                    as_of=reference,
                ))
            except ClassificationSkipped as e:
                e.context["index"] = index
                logger.info(f"Skipped article {index}: {e.message}")
                skipped.append(e)

        return records, skipped

    # ─────────────────────────────────────────────────────────────
    # Helpers
    # ─────────────────────────────────────────────────────────────

    @staticmethod
    def _majority(positive_hits: int, negative_hits: int) -> Sentiment:
        if positive_hits > negative_hits:
            return Sentiment.POSITIVE
        if negative_hits > positive_hits:
            return Sentiment.NEGATIVE
        return Sentiment.NEUTRAL


def _phrase_pattern(phrase: str) -> Pattern[str]:
    return re.compile(r"(?<!\w)" + re.escape(phrase) + r"(?!\w)", re.IGNORECASE)


def _as_utc(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt


def _parse_published(value: Any) -> Optional[datetime]:
    """
    Parse ISO strings or epoch seconds/milliseconds.

    Unparseable or out-of-range values become None.
    """
    if value is None or value == "" or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        return _as_utc(value)
    try:
        if isinstance(value, (int, float)):
            seconds = float(value)
            if abs(seconds) > EPOCH_MILLIS_THRESHOLD:
                seconds /= 1000.0
            return datetime.fromtimestamp(seconds, tz=timezone.utc)
        return from_iso8601(str(value))
    except (ValueError, TypeError, OverflowError, OSError):
        logger.debug(f"Unparseable publication date: {value!r}")
        return None
