"""Tool input schemas for the analysis passes."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from market_research.schemas import SourceSignal, Stance

# Pass weights for AnalysisResult.overall_confidence (aggregator is authoritative).
ANALYST_CONFIDENCE_WEIGHT = 0.3
CRITIC_CONFIDENCE_WEIGHT = 0.2
AGGREGATOR_CONFIDENCE_WEIGHT = 0.5


class AnalystToolInput(BaseModel):
    """Structured output of the analyst pass."""

    model_config = ConfigDict(frozen=True)

    analysis: str = Field(description="Analysis of the evidence for YES and NO")
    stance: Stance = Field(description="Outcome the evidence favors: yes, no or uncertain")
    confidence: float = Field(ge=0.0, le=1.0, description="Confidence in the stance (0..1)")
    reasoning: str = Field(description="Why this confidence is justified")
    key_evidence: list[str] = Field(
        default_factory=list, description="Most important evidence points, with source URLs"
    )
    source_signals: list[SourceSignal] = Field(
        default_factory=list,
        description="Per-source reading: which outcome each URL supports and how strongly (0..1)",
    )


class CriticToolInput(BaseModel):
    """Structured output of the critic pass."""

    model_config = ConfigDict(frozen=True)

    review: str = Field(description="Review of the analyst's findings")
    accuracy: str = Field(description="Assessment of accuracy and logical consistency")
    bias: str = Field(description="Biases or blind spots identified")
    completeness: str = Field(description="Important factors that were missed, if any")
    confidence: float = Field(
        ge=0.0, le=1.0, description="Confidence in the analyst's assessment (0..1)"
    )


class AggregatorToolInput(BaseModel):
    """Structured output of the synthesis pass."""

    model_config = ConfigDict(frozen=True)

    assessment: str = Field(description="Final balanced assessment")
    stance: Stance = Field(description="Final outcome call: yes, no or uncertain")
    confidence: float = Field(ge=0.0, le=1.0, description="Final confidence (0..1)")
    reasoning: str = Field(description="Reasoning for the final assessment and confidence")


def overall_confidence(analyst: float, critic: float, aggregator: float) -> float:
    """Weighted pass confidence, clamped to [0, 1]."""
    value = (
        analyst * ANALYST_CONFIDENCE_WEIGHT
        + critic * CRITIC_CONFIDENCE_WEIGHT
        + aggregator * AGGREGATOR_CONFIDENCE_WEIGHT
    )
    return round(max(0.0, min(1.0, value)), 6)
