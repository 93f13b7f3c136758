"""Source grading.

Grades sources A-D from credibility, recency, objectivity, clarity and (when the market is known)
specificity. Grading is a total function of the source, the market and the reference time: every
source receives exactly one grade and the same inputs always yield the same grade.
"""

from __future__ import annotations

import re
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from market_research.constants import (
    CREDIBLE_DOMAINS,
    GRADE_A_MIN_SCORE,
    GRADE_B_MIN_SCORE,
    GRADE_C_MIN_SCORE,
    LOW_CREDIBILITY_DOMAINS,
)
from market_research.research.strategy import extract_key_terms, extract_numeric_thresholds
from market_research.schemas import Grade, GradedSource

if TYPE_CHECKING:
    from collections.abc import Iterable

    from market_research.schemas import Market, RawSource

# Subjective language lowers the objectivity score.
_BIAS_INDICATORS = (
    "amazing",
    "terrible",
    "worst",
    "best",
    "horrible",
    "fantastic",
    "must",
    "should",
    "unfortunately",
    "fortunately",
    "sadly",
    "obviously",
    "clearly",
    "undoubtedly",
    "shocking",
    "guaranteed",
)
_BIAS_PATTERNS = tuple(re.compile(rf"\b{re.escape(w)}\b") for w in _BIAS_INDICATORS)


def grade_source(
    source: RawSource,
    *,
    market: Market | None = None,
    as_of: datetime | None = None,
) -> GradedSource:
    """
    Grade a single source.

    Args:
        source: Evidence item to grade
        market: Market under research; enables the specificity score and anchors recency
            to the market's resolution date when that is earlier than `as_of`
        as_of: Reference time for recency (defaults to now)

    Returns:
        GradedSource with component scores and an explanation.
    """
    credibility = assess_credibility(source)
    recency = assess_recency(source, reference=_recency_reference(market, as_of))
    bias = assess_bias(source)
    clarity = assess_clarity(source)
    specificity = assess_specificity(source, market) if market is not None else None

    scores = [credibility, recency, bias, clarity]
    if specificity is not None:
        scores.append(specificity)
    grade = score_to_grade(sum(scores) / len(scores))

    return GradedSource(
        source=source,
        grade=grade,
        credibility_score=credibility,
        recency_score=recency,
        bias_score=bias,
        clarity_score=clarity,
        specificity_score=specificity,
        explanation=_explain(
            grade=grade,
            credibility=credibility,
            recency=recency,
            bias=bias,
            specificity=specificity,
            domain=source.domain,
        ),
    )


def sort_graded_sources(graded: Iterable[GradedSource]) -> list[GradedSource]:
    """Order graded sources A first through D last (stable within a grade)."""
    return sorted(graded, key=lambda gs: gs.grade.rank)


def assess_credibility(source: RawSource) -> float:
    """Score domain reputation, with a small bonus for a named author."""
    score = 0.5
    domain = (source.domain or "").lower()

    if domain:
        if any(_domain_matches(domain, d) for d in CREDIBLE_DOMAINS):
            score = 0.9
        elif domain.endswith((".edu", ".gov")) or ".gov." in domain or ".ac." in domain:
            score = 0.95
        elif any(_domain_matches(domain, d) for d in LOW_CREDIBILITY_DOMAINS):
            score = 0.3

    if source.author:
        score = min(1.0, score + 0.1)

    return round(score, 4)


def assess_recency(source: RawSource, *, reference: datetime) -> float:
    """Score how recent the source is relative to the reference time."""
    if source.published_date is None:
        return 0.5

    published = source.published_date
    if published.tzinfo is None:
        published = published.replace(tzinfo=UTC)
    days_ago = (reference - published).total_seconds() / 86400

    if days_ago <= 7:
        return 1.0
    if days_ago <= 30:
        return 0.9
    if days_ago <= 90:
        return 0.7
    if days_ago <= 365:
        return 0.5
    return 0.3


def assess_bias(source: RawSource) -> float:
    """Score objectivity: each subjective indicator costs 0.15 (floor 0.3)."""
    text = f"{source.title} {source.content}".lower()
    hits = sum(1 for pattern in _BIAS_PATTERNS if pattern.search(text))
    return round(max(0.3, 1.0 - hits * 0.15), 4)


def assess_clarity(source: RawSource) -> float:
    """Score clarity from content length and average sentence length."""
    content = source.content or ""
    if len(content) < 100:
        return 0.3
    if len(content) > 5000:
        return 0.6

    sentence_count = len(re.findall(r"[.!?]+", content))
    word_count = len(content.split())
    if sentence_count > 0 and 10 <= word_count / sentence_count <= 25:
        return 1.0
    return 0.8


def assess_specificity(source: RawSource, market: Market) -> float:
    """Score how closely the source addresses the market's subject."""
    key_terms = extract_key_terms(market.question)
    if not key_terms:
        return 0.5

    text = f"{source.title} {source.content}".lower()
    present = sum(1 for term in key_terms if term in text)
    score = 0.3 + 0.7 * (present / len(key_terms))

    thresholds = extract_numeric_thresholds(market.question)
    if any(t.lower() in text for t in thresholds):
        score += 0.1

    return round(min(1.0, score), 4)


def score_to_grade(score: float) -> Grade:
    """Convert an average component score (0..1) into a letter grade."""
    if score >= GRADE_A_MIN_SCORE:
        return Grade.A
    if score >= GRADE_B_MIN_SCORE:
        return Grade.B
    if score >= GRADE_C_MIN_SCORE:
        return Grade.C
    return Grade.D


def _recency_reference(market: Market | None, as_of: datetime | None) -> datetime:
    reference = as_of or datetime.now(UTC)
    if market is not None and market.end_date is not None:
        end_date = market.end_date
        if end_date.tzinfo is None:
            end_date = end_date.replace(tzinfo=UTC)
        reference = min(reference, end_date)
    return reference


def _domain_matches(domain: str, candidate: str) -> bool:
    return domain == candidate or domain.endswith(f".{candidate}")


def _explain(
    *,
    grade: Grade,
    credibility: float,
    recency: float,
    bias: float,
    specificity: float | None,
    domain: str | None,
) -> str:
    parts: list[str] = []

    if credibility >= 0.8:
        parts.append("high credibility")
    elif credibility >= 0.6:
        parts.append("moderate credibility")
    else:
        parts.append("low credibility")

    if recency >= 0.8:
        parts.append("very recent")
    elif recency >= 0.6:
        parts.append("moderately recent")
    else:
        parts.append("older content")

    if bias >= 0.8:
        parts.append("objective")
    elif bias >= 0.6:
        parts.append("somewhat objective")
    else:
        parts.append("potentially biased")

    if specificity is not None:
        parts.append("on-topic" if specificity >= 0.7 else "loosely related")

    if domain:
        parts.append(f"from {domain}")

    return f"Grade {grade.value}: {', '.join(parts)}"
