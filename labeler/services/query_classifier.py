"""
Query intent classification.

Keyword heuristic, not a learned model. Keyword sets are tested in a fixed
priority order (amount, date, category) and the first set with a match
wins; anything else is a content query. ``combined`` is never inferred and
must be requested explicitly.
"""

from __future__ import annotations

import re

from labeler.models.transaction import RetrievalIntent

AMOUNT_KEYWORDS: frozenset[str] = frozenset(
    {
        "amount",
        "amounts",
        "highest",
        "lowest",
        "largest",
        "smallest",
        "biggest",
        "most expensive",
        "cheapest",
        "expensive",
        "cost",
        "costs",
        "price",
        "value",
        "total",
        "sum",
        "how much",
        "more than",
        "less than",
        "above",
        "below",
        "eur",
        "euro",
        "euros",
        "usd",
        "dollar",
        "dollars",
    }
)

# Currency symbols are not word characters, so they are matched as substrings
AMOUNT_SYMBOLS: tuple[str, ...] = ("€", "$", "£")

DATE_KEYWORDS: frozenset[str] = frozenset(
    {
        "date",
        "dates",
        "when",
        "day",
        "days",
        "daily",
        "week",
        "weeks",
        "weekly",
        "weekend",
        "month",
        "months",
        "monthly",
        "quarter",
        "quarterly",
        "year",
        "years",
        "yearly",
        "annual",
        "today",
        "yesterday",
        "recent",
        "recently",
        "latest",
        "earliest",
        "since",
        "ago",
        "january",
        "february",
        "march",
        "april",
        "in may",
        "june",
        "july",
        "august",
        "september",
        "october",
        "november",
        "december",
        "monday",
        "tuesday",
        "wednesday",
        "thursday",
        "friday",
        "saturday",
        "sunday",
    }
)

CATEGORY_KEYWORDS: frozenset[str] = frozenset(
    {
        "category",
        "categories",
        "categorized",
        "categorised",
        "label",
        "labels",
        "labeled",
        "labelled",
        "classified",
        "classification",
        "kind of",
        "type of",
        "types of",
        "expense type",
        "spending on",
    }
)


def _keyword_pattern(keywords: frozenset[str], *extra: str) -> re.Pattern[str]:
    # Longest first so multi-word phrases win over their prefixes
    alternatives = [re.escape(k) for k in sorted(keywords, key=lambda k: (-len(k), k))]
    alternatives.extend(extra)
    return re.compile(r"\b(?:" + "|".join(alternatives) + r")\b")


_AMOUNT_RE = _keyword_pattern(AMOUNT_KEYWORDS)
_DATE_RE = _keyword_pattern(DATE_KEYWORDS, r"(?:19|20)\d{2}", r"\d{4}-\d{2}-\d{2}")
_CATEGORY_RE = _keyword_pattern(CATEGORY_KEYWORDS)

_PRIORITY: tuple[tuple[RetrievalIntent, re.Pattern[str]], ...] = (
    (RetrievalIntent.AMOUNT, _AMOUNT_RE),
    (RetrievalIntent.DATE, _DATE_RE),
    (RetrievalIntent.CATEGORY, _CATEGORY_RE),
)


def classify_query(text: str | None) -> RetrievalIntent:
    """Map free text to the retrieval intent whose index should be scanned.

    Total and deterministic: empty or whitespace-only input is a content
    query, never an error.
    """
    if text is None:
        return RetrievalIntent.CONTENT

    lowered = text.lower().strip()
    if not lowered:
        return RetrievalIntent.CONTENT

    for intent, pattern in _PRIORITY:
        if intent is RetrievalIntent.AMOUNT and any(s in lowered for s in AMOUNT_SYMBOLS):
            return intent
        if pattern.search(lowered):
            return intent

    return RetrievalIntent.CONTENT
