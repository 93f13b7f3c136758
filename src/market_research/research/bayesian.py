"""Bayesian evidence fusion.

Merges credibility-weighted source evidence and the synthesis pass's conclusion into a posterior
over {yes, no, uncertain}.

Update rule:
- Start from a prior (uniform unless supplied).
- Each source leans toward one outcome with a strength in [0, 1] (the analyzer's `SourceSignal`
  for that URL when present, otherwise a lexical reading of the source text). The leaned-toward
  outcome is multiplied by `1 + grade_weight * strength * SOURCE_LIKELIHOOD_SCALE`.
- The aggregator's stance is multiplied by `1 + confidence * ANALYSIS_LIKELIHOOD_SCALE`.
- Updates are accumulated in log space and renormalized so the outcomes sum to 1.
"""

from __future__ import annotations

import math
import re
from typing import TYPE_CHECKING

from market_research.constants import (
    ANALYSIS_LIKELIHOOD_SCALE,
    CONFIDENCE_VOLUME_SCALE,
    GRADE_EVIDENCE_WEIGHTS,
    GRADE_QUALITY_VALUES,
    GRADE_SHARE_MULTIPLIERS,
    NEUTRAL_SOURCE_STRENGTH,
    SOURCE_LIKELIHOOD_SCALE,
)
from market_research.schemas import (
    BayesianProbabilities,
    BayesianResult,
    Grade,
    SourceSignal,
    Stance,
    WeightedEvidence,
)

if TYPE_CHECKING:
    from market_research.schemas import AnalysisResult, GradedSource, Market

_OUTCOMES = (Stance.YES, Stance.NO, Stance.UNCERTAIN)
_MIN_PRIOR = 1e-9

_AFFIRMING_TERMS = (
    "likely",
    "expected",
    "expects",
    "on track",
    "poised",
    "surge",
    "surges",
    "surged",
    "rally",
    "rallies",
    "rallied",
    "record high",
    "all-time high",
    "bullish",
    "confirmed",
    "confirms",
    "approved",
    "approves",
    "wins",
    "leads",
    "ahead",
    "gains",
    "rising",
    "breakout",
    "success",
    "successful",
    "probable",
    "momentum",
    "outperform",
    "outperforms",
)
_DENYING_TERMS = (
    "unlikely",
    "doubt",
    "doubts",
    "doubtful",
    "fail",
    "fails",
    "failed",
    "failure",
    "reject",
    "rejects",
    "rejected",
    "decline",
    "declines",
    "declined",
    "plunge",
    "plunged",
    "slump",
    "bearish",
    "won't",
    "won’t",
    "will not",
    "falls short",
    "fall short",
    "missed",
    "trailing",
    "crash",
    "crashed",
    "delayed",
    "canceled",
    "cancelled",
)
_NEGATED_AFFIRMATION_RE = re.compile(
    r"\b(?:not|no longer|never|hardly)\s+(?:\w+\s+)?(?:likely|expected|on track|poised|probable)\b"
)


def _terms_pattern(terms: tuple[str, ...]) -> re.Pattern[str]:
    alternation = "|".join(re.escape(t) for t in sorted(terms, key=len, reverse=True))
    return re.compile(rf"(?<!\w)(?:{alternation})(?!\w)")


_AFFIRMING_RE = _terms_pattern(_AFFIRMING_TERMS)
_DENYING_RE = _terms_pattern(_DENYING_TERMS)


def apply_bayesian_reasoning(
    graded_sources: list[GradedSource],
    analysis_result: AnalysisResult,
    market: Market,
    *,
    prior: BayesianProbabilities | None = None,
) -> BayesianResult:
    """
    Fuse graded evidence and the analysis conclusion into a posterior.

    Args:
        graded_sources: Graded evidence (any order)
        analysis_result: Multi-agent analysis; the aggregator pass is authoritative
        market: Market under research (used for the explanation)
        prior: Optional prior; defaults to uniform over the three outcomes

    Returns:
        BayesianResult whose probabilities are non-negative and sum to 1.
    """
    prior_probs = prior or _uniform_prior()
    log_posterior = {
        Stance.YES: math.log(max(prior_probs.yes, _MIN_PRIOR)),
        Stance.NO: math.log(max(prior_probs.no, _MIN_PRIOR)),
        Stance.UNCERTAIN: math.log(max(prior_probs.uncertain, _MIN_PRIOR)),
    }
    evidence_mass = dict.fromkeys(_OUTCOMES, 0.0)

    analyzer_signals = {signal.url: signal for signal in analysis_result.source_signals}
    for graded in graded_sources:
        signal = analyzer_signals.get(graded.source.url) or infer_source_signal(graded)
        weight = GRADE_EVIDENCE_WEIGHTS[graded.grade.value]
        log_posterior[signal.stance] += math.log1p(
            weight * signal.strength * SOURCE_LIKELIHOOD_SCALE
        )
        evidence_mass[signal.stance] += weight * signal.strength

    aggregator = analysis_result.aggregator
    log_posterior[aggregator.stance] += math.log1p(
        aggregator.confidence * ANALYSIS_LIKELIHOOD_SCALE
    )

    probabilities = _normalize(log_posterior)
    confidence = _overall_confidence(
        graded_sources, analysis_result, probabilities, evidence_mass
    )
    weighted_evidence = _grade_shares(graded_sources)

    return BayesianResult(
        probabilities=probabilities,
        confidence=confidence,
        weighted_evidence=weighted_evidence,
        explanation=_explain(
            market=market,
            prior=prior_probs,
            posterior=probabilities,
            weighted_evidence=weighted_evidence,
            confidence=confidence,
        ),
    )


def infer_source_signal(graded: GradedSource) -> SourceSignal:
    """Read a source's lean from affirming/denying language in its title and content.

    Strength grows with the net count of indicators (three or more saturate). Sources with no
    net lean count toward UNCERTAIN at a fixed neutral strength.
    """
    text = f"{graded.source.title} {graded.source.content}".lower()

    negated = len(_NEGATED_AFFIRMATION_RE.findall(text))
    text = _NEGATED_AFFIRMATION_RE.sub(" ", text)
    affirming = len(_AFFIRMING_RE.findall(text))
    denying = len(_DENYING_RE.findall(text)) + negated

    if affirming == denying:
        return SourceSignal(
            url=graded.source.url, stance=Stance.UNCERTAIN, strength=NEUTRAL_SOURCE_STRENGTH
        )

    stance = Stance.YES if affirming > denying else Stance.NO
    strength = min(1.0, abs(affirming - denying) / 3)
    return SourceSignal(url=graded.source.url, stance=stance, strength=round(strength, 4))


def _uniform_prior() -> BayesianProbabilities:
    third = 1.0 / 3.0
    return BayesianProbabilities(yes=third, no=third, uncertain=1.0 - 2 * third)


def _normalize(log_posterior: dict[Stance, float]) -> BayesianProbabilities:
    peak = max(log_posterior.values())
    unnormalized = {k: math.exp(v - peak) for k, v in log_posterior.items()}
    total = sum(unnormalized.values())
    probs = {k: min(1.0, max(0.0, v / total)) for k, v in unnormalized.items()}

    # Second pass absorbs clamping/rounding drift.
    total = sum(probs.values())
    return BayesianProbabilities(
        yes=min(1.0, probs[Stance.YES] / total),
        no=min(1.0, probs[Stance.NO] / total),
        uncertain=min(1.0, probs[Stance.UNCERTAIN] / total),
    )


def _overall_confidence(
    graded_sources: list[GradedSource],
    analysis_result: AnalysisResult,
    probabilities: BayesianProbabilities,
    evidence_mass: dict[Stance, float],
) -> float:
    values = {
        Stance.YES: probabilities.yes,
        Stance.NO: probabilities.no,
        Stance.UNCERTAIN: probabilities.uncertain,
    }

    entropy = -sum(p * math.log(p) for p in values.values() if p > 0)
    concentration = 1.0 - entropy / math.log(3)

    quality = (
        sum(GRADE_QUALITY_VALUES[gs.grade.value] for gs in graded_sources) / len(graded_sources)
        if graded_sources
        else 0.0
    )

    leading = max(values, key=lambda k: values[k])
    total_mass = sum(evidence_mass.values())
    agreement = evidence_mass[leading] / total_mass if total_mass > 0 else 0.0

    volume = 1.0 - math.exp(-len(graded_sources) / CONFIDENCE_VOLUME_SCALE)

    confidence = (
        concentration * 0.3
        + quality * 0.2
        + agreement * 0.2
        + analysis_result.overall_confidence * 0.15
        + volume * 0.15
    )
    return round(max(0.0, min(1.0, confidence)), 6)


def _grade_shares(graded_sources: list[GradedSource]) -> WeightedEvidence:
    counts = dict.fromkeys(Grade, 0)
    for graded in graded_sources:
        counts[graded.grade] += 1

    total = len(graded_sources) or 1
    raw = {g: counts[g] / total * GRADE_SHARE_MULTIPLIERS[g.value] for g in Grade}
    raw_total = sum(raw.values()) or 1.0

    return WeightedEvidence(
        grade_a_weight=raw[Grade.A] / raw_total,
        grade_b_weight=raw[Grade.B] / raw_total,
        grade_c_weight=raw[Grade.C] / raw_total,
        grade_d_weight=raw[Grade.D] / raw_total,
    )


def _explain(
    *,
    market: Market,
    prior: BayesianProbabilities,
    posterior: BayesianProbabilities,
    weighted_evidence: WeightedEvidence,
    confidence: float,
) -> str:
    parts = [
        f"Market: {market.question}",
        (
            f"Prior: YES {prior.yes * 100:.1f}%, NO {prior.no * 100:.1f}%, "
            f"UNCERTAIN {prior.uncertain * 100:.1f}%"
        ),
        (
            f"Posterior: YES {posterior.yes * 100:.1f}%, NO {posterior.no * 100:.1f}%, "
            f"UNCERTAIN {posterior.uncertain * 100:.1f}%"
        ),
    ]

    quality_parts: list[str] = []
    if weighted_evidence.grade_a_weight > 0:
        quality_parts.append(f"{weighted_evidence.grade_a_weight * 100:.0f}% Grade A evidence")
    if weighted_evidence.grade_b_weight > 0:
        quality_parts.append(f"{weighted_evidence.grade_b_weight * 100:.0f}% Grade B evidence")
    if quality_parts:
        parts.append(f"Source quality: {', '.join(quality_parts)}")

    parts.append(f"Overall confidence: {confidence * 100:.1f}%")
    return ". ".join(parts)
