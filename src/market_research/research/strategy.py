"""Research strategy planning.

Deterministic derivation of search queries and focus areas from a market snapshot. Planning
never fails: questions with nothing extractable fall back to a generic strategy built from the
raw question text.
"""

from __future__ import annotations

import math
import re
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from market_research.constants import MAX_SEARCH_QUERIES
from market_research.schemas import ResearchStrategy

if TYPE_CHECKING:
    from market_research.schemas import EventContext, Market

_MONTHS = (
    "january",
    "february",
    "march",
    "april",
    "may",
    "june",
    "july",
    "august",
    "september",
    "october",
    "november",
    "december",
)
_MONTH_PATTERN = (
    r"(?:Jan(?:uary)?|Feb(?:ruary)?|Mar(?:ch)?|Apr(?:il)?|May|June?|July?|Aug(?:ust)?"
    r"|Sep(?:t(?:ember)?)?|Oct(?:ober)?|Nov(?:ember)?|Dec(?:ember)?)"
)
_DATE_RE = re.compile(
    rf"\b{_MONTH_PATTERN}\.?\s+\d{{1,2}}(?:st|nd|rd|th)?(?:,?\s+\d{{4}})?"
    rf"|\b{_MONTH_PATTERN}\s+\d{{4}}\b"
    r"|\b\d{4}-\d{2}-\d{2}\b"
    r"|\bQ[1-4]\s+\d{4}\b"
    r"|\b(?:19|20)\d{2}\b"
)
_THRESHOLD_RE = re.compile(
    r"[$€£]\s?\d[\d,]*(?:\.\d+)?(?:\s?(?:[kKmMbBtT]\b|million\b|billion\b|trillion\b))?"
    r"|\b\d+(?:\.\d+)?\s?%"
    r"|\b\d{1,3}(?:,\d{3})+(?:\.\d+)?\b"
    r"|\b\d+\.\d+\b"
)
_WORD_RE = re.compile(r"[A-Za-z][A-Za-z0-9'&.-]*")

_QUESTION_WORDS = frozenset(
    {"will", "does", "do", "did", "is", "are", "was", "were", "can", "could", "should", "would",
     "who", "what", "which", "when", "where", "how", "has", "have", "before", "after", "by"}
)
_STOP_WORDS = frozenset(
    {"will", "be", "the", "a", "an", "and", "or", "but", "in", "on", "at", "to", "for", "of",
     "with", "by", "from", "as", "is", "are", "was", "were", "been", "have", "has", "had", "do",
     "does", "did", "this", "that", "these", "those", "what", "which", "who", "than", "any",
     "before", "after", "end", "its", "their", "his", "her"}
)
_MAX_KEY_TERMS = 5


def plan_research_strategy(
    market: Market,
    *,
    event_context: EventContext | None = None,
    as_of: datetime | None = None,
) -> ResearchStrategy:
    """
    Plan what to research for a market.

    Args:
        market: Market snapshot
        event_context: Optional sibling markets used to broaden queries
        as_of: Reference time for timeline considerations (defaults to now)

    Returns:
        A ResearchStrategy with at least one search query.
    """
    question = (market.question or "").strip()
    now = as_of or datetime.now(UTC)
    days_until_end = _days_until(market.end_date, now)

    dates = extract_dates(question)
    thresholds = extract_numeric_thresholds(question)
    entities = extract_entities(question)
    key_terms = extract_key_terms(question)

    key_information = _identify_key_information(question, market.category, days_until_end)

    if not (entities or dates or thresholds or key_terms):
        queries = _fallback_queries(market)
    else:
        queries = _generate_search_queries(
            question,
            category=market.category,
            entities=entities,
            dates=dates,
            thresholds=thresholds,
            key_terms=key_terms,
            key_information=key_information,
            event_context=event_context,
        )

    return ResearchStrategy(
        market_question=question,
        search_queries=queries,
        key_information_needed=key_information,
        important_factors=_identify_important_factors(question, market.category, thresholds),
        timeline_considerations=_timeline_considerations(market.end_date, days_until_end),
        entities=entities,
        dates=dates,
        numeric_thresholds=thresholds,
    )


def extract_dates(text: str) -> list[str]:
    """Extract date expressions (month-day-year, month-year, ISO, quarters, years)."""
    return _dedupe([m.group(0).strip() for m in _DATE_RE.finditer(text)])


def extract_numeric_thresholds(text: str) -> list[str]:
    """Extract numeric thresholds (currency, percentages, grouped or decimal numbers)."""
    undated = _DATE_RE.sub(" ", text)
    return _dedupe([m.group(0).strip() for m in _THRESHOLD_RE.finditer(undated)])


def extract_entities(text: str) -> list[str]:
    """Extract capitalized phrases (people, organizations, assets, places)."""
    undated = _DATE_RE.sub(" | ", text)
    entities: list[str] = []
    current: list[str] = []

    for token in re.split(r"(\s+|[?!,;:()\"|])", undated):
        word = token.strip().rstrip(".")
        if not word:
            continue
        is_name = (
            _WORD_RE.fullmatch(word) is not None
            and word[0].isupper()
            and word.lower() not in _QUESTION_WORDS
            and word.lower() not in _MONTHS
        )
        if is_name:
            current.append(word)
            continue
        if current:
            entities.append(" ".join(current))
            current = []

    if current:
        entities.append(" ".join(current))

    return _dedupe(entities)


def extract_key_terms(text: str) -> list[str]:
    """Extract up to five lowercase content words (stop words and months removed)."""
    terms = [
        w.lower().rstrip(".")
        for w in _WORD_RE.findall(text)
        if len(w) > 2 and w.lower() not in _STOP_WORDS and w.lower() not in _MONTHS
    ]
    return _dedupe(terms)[:_MAX_KEY_TERMS]


def _generate_search_queries(
    question: str,
    *,
    category: str | None,
    entities: list[str],
    dates: list[str],
    thresholds: list[str],
    key_terms: list[str],
    key_information: list[str],
    event_context: EventContext | None,
) -> list[str]:
    queries: list[str] = [question]
    focus = " ".join(entities) if entities else " ".join(key_terms)

    composite = " ".join([*entities, *thresholds, *dates[:1]])
    if composite:
        queries.append(composite)
    if key_terms:
        queries.append(" ".join(key_terms))

    if event_context is not None:
        queries.append(f"{event_context.event_title} odds forecast")
        siblings = event_context.sibling_markets
        if siblings:
            queries.append(f"{event_context.event_title} {siblings[0].question.rstrip('?')}")

    category_lower = (category or "").lower()
    if "politic" in category_lower or "election" in category_lower:
        queries.extend([f"{focus} polling", f"{focus} election news"])
    elif "sport" in category_lower:
        queries.extend([f"{focus} season results", f"{focus} recent performance"])
    elif "crypto" in category_lower or "financ" in category_lower:
        queries.extend([f"{focus} price prediction", f"{focus} regulatory news"])
    elif "tech" in category_lower:
        queries.extend([f"{focus} announcement", f"{focus} industry trends"])

    for info in key_information[:2]:
        queries.append(f"{focus} {info.lower()}")

    return _dedupe([q.strip() for q in queries if q.strip()])[:MAX_SEARCH_QUERIES]


def _fallback_queries(market: Market) -> list[str]:
    question = (market.question or "").strip().rstrip("?")
    if not question:
        question = market.slug.replace("-", " ") if market.slug else f"prediction market {market.id}"
    return [question, f"{question} news", f"{question} latest analysis"]


def _identify_key_information(
    question: str, category: str | None, days_until_end: int | None
) -> list[str]:
    info = [
        "Current status and recent developments",
        "Expert opinions and analysis",
        "Historical context and precedents",
    ]
    question_lower = question.lower()
    category_lower = (category or "").lower()

    if "politic" in category_lower or "election" in category_lower:
        info.extend(
            [
                "Polling data and voter sentiment",
                "Political developments and endorsements",
                "Election rules and deadlines",
            ]
        )
    elif "sport" in category_lower:
        info.extend(
            [
                "Team performance and statistics",
                "Player injuries and availability",
                "Recent match results",
            ]
        )
    elif "crypto" in category_lower or "financ" in category_lower:
        info.extend(
            [
                "Market trends and technical analysis",
                "Regulatory developments",
                "Market sentiment indicators",
            ]
        )
    elif "tech" in category_lower:
        info.extend(
            [
                "Product announcements and releases",
                "Company financial reports",
                "Industry trends",
            ]
        )

    if re.search(r"\bwill\b", question_lower):
        info.extend(["Future predictions and forecasts", "Upcoming events and deadlines"])

    if re.search(r"\b(exceed|above|below|reach|hit|surpass)\b", question_lower):
        info.extend(["Current metrics and benchmarks", "Trend analysis"])

    if days_until_end is not None:
        if days_until_end <= 7:
            info.append("Immediate developments and breaking news")
        elif days_until_end <= 30:
            info.append("Short-term trends and upcoming events")

    return _dedupe(info)


def _identify_important_factors(
    question: str, category: str | None, thresholds: list[str]
) -> list[str]:
    factors = ["Current market probability", "Volume and liquidity", "Recent price movements"]
    question_lower = question.lower()
    category_lower = (category or "").lower()

    if re.search(r"\b(before|by)\b", question_lower):
        factors.append("Deadline and timeline constraints")

    if thresholds or re.search(r"\b(exceed|above|below|reach)\b", question_lower):
        factors.extend(["Current value vs target threshold", "Trend direction"])

    if "politic" in category_lower or "election" in category_lower:
        factors.extend(["Public opinion and polling", "Political endorsements"])
    elif "sport" in category_lower:
        factors.extend(["Team/player statistics", "Injury reports"])
    elif "crypto" in category_lower:
        factors.extend(["Market sentiment", "Technical indicators"])

    return _dedupe(factors)


def _timeline_considerations(end_date: datetime | None, days_until_end: int | None) -> str:
    if end_date is None or days_until_end is None:
        return "Market has no specified end date. Focus on long-term trends and developments."
    if days_until_end <= 7:
        return (
            f"Market resolves in {days_until_end} day(s). "
            "Focus on immediate developments and breaking news."
        )
    if days_until_end <= 30:
        return (
            f"Market resolves in {days_until_end} days. "
            "Consider short-term trends and upcoming events."
        )
    if days_until_end <= 90:
        return (
            f"Market resolves in {days_until_end} days. "
            "Balance short-term and medium-term factors."
        )
    return (
        f"Market resolves in {days_until_end} days. "
        "Consider long-term trends and structural factors."
    )


def _days_until(end_date: datetime | None, now: datetime) -> int | None:
    if end_date is None:
        return None
    if end_date.tzinfo is None:
        end_date = end_date.replace(tzinfo=UTC)
    return max(0, math.ceil((end_date - now).total_seconds() / 86400))


def _dedupe(items: list[str]) -> list[str]:
    return list(dict.fromkeys(items))
