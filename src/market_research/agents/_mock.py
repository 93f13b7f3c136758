"""Deterministic analyzer for tests and offline runs."""

from __future__ import annotations

from typing import TYPE_CHECKING

from market_research.constants import GRADE_EVIDENCE_WEIGHTS
from market_research.research.bayesian import infer_source_signal
from market_research.schemas import (
    AgentAnalysis,
    AggregatorPassOutput,
    AnalysisResult,
    AnalystPassOutput,
    CriticPassOutput,
    Grade,
    Stance,
)

from ._schemas import overall_confidence

if TYPE_CHECKING:
    from collections.abc import Sequence

    from market_research.schemas import GradedSource, Market

# Net lean (-1..1) needed before the mock takes a side.
_LEAN_THRESHOLD = 0.2


class MockAgentAnalyzer:
    """Mock analyzer.

    Reads each source's lean from its text, weights it by grade and reports the net lean.
    No network access; the same input always yields the same output.
    """

    model_id = "mock-v1"

    async def analyze(
        self, market: Market, graded_sources: Sequence[GradedSource]
    ) -> AnalysisResult:
        signals = [infer_source_signal(gs) for gs in graded_sources]

        mass = dict.fromkeys(Stance, 0.0)
        for gs, signal in zip(graded_sources, signals, strict=True):
            mass[signal.stance] += GRADE_EVIDENCE_WEIGHTS[gs.grade.value] * signal.strength

        total = sum(mass.values())
        lean = (mass[Stance.YES] - mass[Stance.NO]) / total if total > 0 else 0.0
        if lean > _LEAN_THRESHOLD:
            stance = Stance.YES
        elif lean < -_LEAN_THRESHOLD:
            stance = Stance.NO
        else:
            stance = Stance.UNCERTAIN

        high_quality = sum(1 for gs in graded_sources if gs.grade in (Grade.A, Grade.B))
        quality_share = high_quality / len(graded_sources) if graded_sources else 0.0

        analyst_confidence = round(0.5 + 0.4 * abs(lean), 4)
        critic_confidence = round(0.5 + 0.3 * quality_share, 4)
        aggregator_confidence = round((analyst_confidence + critic_confidence) / 2, 4)

        summary = (
            f"Mock analysis for {market.question}. {len(graded_sources)} sources reviewed, "
            f"{high_quality} graded A/B; net evidence lean {lean:+.2f}."
        )
        critique = f"{quality_share:.0%} of the evidence is grade A or B."

        return AnalysisResult(
            analyst=AgentAnalysis(
                agent_name="Analyst",
                stance=stance,
                confidence=analyst_confidence,
                reasoning=summary,
                output=summary,
            ),
            critic=AgentAnalysis(
                agent_name="Critic",
                confidence=critic_confidence,
                reasoning=critique,
                output=critique,
            ),
            aggregator=AgentAnalysis(
                agent_name="Aggregator",
                stance=stance,
                confidence=aggregator_confidence,
                reasoning=summary,
                output=summary,
            ),
            overall_confidence=overall_confidence(
                analyst_confidence, critic_confidence, aggregator_confidence
            ),
            source_signals=signals,
            intermediate=[
                AnalystPassOutput(
                    conclusion=summary,
                    stance=stance,
                    confidence=analyst_confidence,
                    key_evidence=[gs.source.url for gs in graded_sources[:3]],
                    sources_reviewed=len(graded_sources),
                ),
                CriticPassOutput(conclusion=critique, confidence=critic_confidence),
                AggregatorPassOutput(
                    conclusion=summary,
                    stance=stance,
                    confidence=aggregator_confidence,
                    reasoning=summary,
                ),
            ],
            model_id=self.model_id,
        )
