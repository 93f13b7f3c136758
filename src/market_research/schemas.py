"""Shared Pydantic schemas for research pipeline I/O.

These models provide stable JSON serialization for research runs, designed for caching,
history listings and downstream consumption by transports (CLI, HTTP handlers).
"""

from __future__ import annotations

from datetime import UTC, datetime
from enum import Enum
from typing import Annotated, Any, Literal
from urllib.parse import urlparse

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


def utc_now() -> datetime:
    """Return current UTC time with timezone info."""
    return datetime.now(UTC)


class Grade(str, Enum):
    """Credibility tier of a single evidence source (A most credible)."""

    A = "A"
    B = "B"
    C = "C"
    D = "D"

    @property
    def rank(self) -> int:
        """Sort key: A=0 ... D=3."""
        return "ABCD".index(self.value)


class Stance(str, Enum):
    """Which outcome a piece of evidence or an analysis pass leans toward."""

    YES = "yes"
    NO = "no"
    UNCERTAIN = "uncertain"


class FinalVerdict(str, Enum):
    """Categorical answer of a research run."""

    YES = "YES"
    NO = "NO"
    UNCERTAIN = "UNCERTAIN"


# === Collaborator inputs ===


class Market(BaseModel):
    """Immutable market snapshot supplied by the market catalog."""

    model_config = ConfigDict(frozen=True)

    id: str
    question: str
    slug: str | None = None
    category: str | None = None
    description: str | None = None
    end_date: datetime | None = None
    event_id: str | None = None
    event_title: str | None = None
    resolution_source: str | None = None
    resolution_criteria: str | None = None
    yes_price: float | None = Field(default=None, ge=0.0, le=1.0, description="YES price (0..1)")
    active: bool = True


class EventContext(BaseModel):
    """Sibling markets sharing the analyzed market's parent event."""

    model_config = ConfigDict(frozen=True)

    event_id: str
    event_title: str
    markets: list[Market] = Field(min_length=2)
    analyzed_market_id: str

    @property
    def sibling_markets(self) -> list[Market]:
        """Markets in the event other than the one being analyzed."""
        return [m for m in self.markets if m.id != self.analyzed_market_id]


class ResearchStrategy(BaseModel):
    """What to research for a market: ordered queries plus focus areas."""

    model_config = ConfigDict(frozen=True)

    market_question: str
    search_queries: list[str] = Field(min_length=1, description="Ordered search queries")
    key_information_needed: list[str] = Field(default_factory=list)
    important_factors: list[str] = Field(default_factory=list)
    timeline_considerations: str = ""
    entities: list[str] = Field(default_factory=list)
    dates: list[str] = Field(default_factory=list)
    numeric_thresholds: list[str] = Field(default_factory=list)


class RawSource(BaseModel):
    """A single unranked evidence item returned by the gatherer."""

    model_config = ConfigDict(frozen=True)

    url: str
    title: str = ""
    content: str = ""
    published_date: datetime | None = None
    author: str | None = None
    domain: str | None = None

    @model_validator(mode="before")
    @classmethod
    def _derive_domain(cls, data: Any) -> Any:
        if isinstance(data, dict) and not data.get("domain") and data.get("url"):
            netloc = urlparse(str(data["url"])).netloc.lower()
            if netloc.startswith("www."):
                netloc = netloc[4:]
            data = {**data, "domain": netloc or None}
        return data


class GradedSource(BaseModel):
    """A RawSource plus its credibility grade and component scores."""

    model_config = ConfigDict(frozen=True)

    source: RawSource
    grade: Grade
    credibility_score: float = Field(ge=0.0, le=1.0)
    recency_score: float = Field(ge=0.0, le=1.0)
    bias_score: float = Field(ge=0.0, le=1.0)
    clarity_score: float = Field(ge=0.0, le=1.0)
    specificity_score: float | None = Field(default=None, ge=0.0, le=1.0)
    explanation: str


# === Multi-agent analysis ===


class AgentAnalysis(BaseModel):
    """Parsed conclusion of one analysis pass."""

    model_config = ConfigDict(frozen=True)

    agent_name: str
    stance: Stance = Stance.UNCERTAIN
    confidence: float = Field(ge=0.0, le=1.0)
    reasoning: str
    output: str = ""


class SourceSignal(BaseModel):
    """An analysis pass's reading of one source: which way it leans and how hard."""

    model_config = ConfigDict(frozen=True)

    url: str
    stance: Stance
    strength: float = Field(ge=0.0, le=1.0)


class AnalystPassOutput(BaseModel):
    """Raw output of the analyst pass."""

    model_config = ConfigDict(frozen=True)

    pass_name: Literal["analyst"] = "analyst"
    conclusion: str
    stance: Stance = Stance.UNCERTAIN
    confidence: float = Field(default=0.5, ge=0.0, le=1.0)
    key_evidence: list[str] = Field(default_factory=list)
    sources_reviewed: int = Field(default=0, ge=0)


class CriticPassOutput(BaseModel):
    """Raw output of the critic pass."""

    model_config = ConfigDict(frozen=True)

    pass_name: Literal["critic"] = "critic"
    conclusion: str
    confidence: float = Field(default=0.5, ge=0.0, le=1.0)
    accuracy: str | None = None
    bias: str | None = None
    completeness: str | None = None


class AggregatorPassOutput(BaseModel):
    """Raw output of the synthesis pass."""

    model_config = ConfigDict(frozen=True)

    pass_name: Literal["aggregator"] = "aggregator"
    conclusion: str
    stance: Stance = Stance.UNCERTAIN
    confidence: float = Field(default=0.5, ge=0.0, le=1.0)
    reasoning: str | None = None


PassOutput = Annotated[
    AnalystPassOutput | CriticPassOutput | AggregatorPassOutput,
    Field(discriminator="pass_name"),
]


class AnalysisResult(BaseModel):
    """Structured output of the multi-agent analyzer; the aggregator is authoritative."""

    model_config = ConfigDict(frozen=True)

    analyst: AgentAnalysis
    critic: AgentAnalysis
    aggregator: AgentAnalysis
    overall_confidence: float = Field(ge=0.0, le=1.0)
    source_signals: list[SourceSignal] = Field(default_factory=list)
    intermediate: list[PassOutput] | None = Field(
        default=None, description="Per-pass raw outputs kept for audit/debugging"
    )
    model_id: str | None = None
    cost_usd: float | None = Field(
        default=None, ge=0.0, description="Estimated LLM spend for this analysis (USD)"
    )


# === Fusion and verdict ===


class BayesianProbabilities(BaseModel):
    """Probability mass over the three outcomes."""

    model_config = ConfigDict(frozen=True)

    yes: float = Field(ge=0.0, le=1.0)
    no: float = Field(ge=0.0, le=1.0)
    uncertain: float = Field(ge=0.0, le=1.0)

    @model_validator(mode="after")
    def _check_sum(self) -> BayesianProbabilities:
        total = self.yes + self.no + self.uncertain
        if abs(total - 1.0) > 1e-6:
            raise ValueError(f"probabilities must sum to 1 (got {total:.8f})")
        return self


class WeightedEvidence(BaseModel):
    """Share of the evidence mass contributed by each grade."""

    model_config = ConfigDict(frozen=True)

    grade_a_weight: float = Field(ge=0.0, le=1.0)
    grade_b_weight: float = Field(ge=0.0, le=1.0)
    grade_c_weight: float = Field(ge=0.0, le=1.0)
    grade_d_weight: float = Field(ge=0.0, le=1.0)


class BayesianResult(BaseModel):
    """Posterior over outcomes plus a confidence scalar."""

    model_config = ConfigDict(frozen=True)

    probabilities: BayesianProbabilities
    confidence: float = Field(ge=0.0, le=1.0)
    weighted_evidence: WeightedEvidence
    explanation: str


# === Requests and run records ===


class ResearchRequest(BaseModel):
    """Caller request for a research run."""

    model_config = ConfigDict(frozen=True)

    market_id: str
    force_refresh: bool = False
    include_intermediate: bool = True

    @field_validator("market_id")
    @classmethod
    def _require_market_id(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Market ID is required")
        return value


class MarketResearchResult(BaseModel):
    """Complete, immutable record of a research run."""

    model_config = ConfigDict(frozen=True)

    market_id: str
    market_question: str
    verdict: FinalVerdict
    confidence: float = Field(ge=0.0, le=1.0)
    graded_sources: list[GradedSource]
    analysis_result: AnalysisResult
    bayesian_result: BayesianResult
    research_strategy: ResearchStrategy
    timestamp: datetime = Field(default_factory=utc_now)
    intermediate: list[PassOutput] | None = None
    research_id: str | None = Field(default=None, description="Store id once persisted")


class ResearchHistoryItem(BaseModel):
    """Summary row for a stored research run."""

    model_config = ConfigDict(frozen=True)

    id: str
    market_id: str
    market_question: str
    verdict: FinalVerdict
    confidence: float
    created_at: datetime


class ResearchHistoryPage(BaseModel):
    """A page of research history for one user."""

    model_config = ConfigDict(frozen=True)

    results: list[ResearchHistoryItem]
    total: int = Field(ge=0)
    limit: int = Field(ge=1)
    offset: int = Field(ge=0)
