"""Claude (Anthropic) multi-agent analyzer."""

from __future__ import annotations

import os
from typing import TYPE_CHECKING, Protocol, TypeVar

import structlog
from anthropic import AsyncAnthropic
from pydantic import BaseModel

from market_research.schemas import (
    AgentAnalysis,
    AggregatorPassOutput,
    AnalysisResult,
    AnalystPassOutput,
    CriticPassOutput,
    SourceSignal,
)

from ._pricing import AnthropicPricing
from ._prompts import (
    AGGREGATOR_PROMPT_TEMPLATE,
    ANALYST_PROMPT_TEMPLATE,
    CRITIC_PROMPT_TEMPLATE,
    SYSTEM_PROMPT,
)
from ._schemas import (
    AggregatorToolInput,
    AnalystToolInput,
    CriticToolInput,
    overall_confidence,
)

if TYPE_CHECKING:
    from collections.abc import Sequence

    from market_research.schemas import GradedSource, Market

logger = structlog.get_logger()

_TOOL_NAME = "submit_pass"
_MAX_SOURCE_CHARS = 600

ToolInputT = TypeVar("ToolInputT", bound=BaseModel)


class _AnthropicMessages(Protocol):
    async def create(self, **kwargs: object) -> object: ...


class _AnthropicClient(Protocol):
    messages: _AnthropicMessages


class ClaudeAgentAnalyzer:
    """Analyst -> Critic -> Aggregator over Anthropic Claude, one tool call per pass."""

    def __init__(
        self,
        *,
        model: str = "claude-sonnet-4-5-20250929",
        max_tokens: int = 1500,
        api_key: str | None = None,
        client: _AnthropicClient | None = None,
    ) -> None:
        if max_tokens <= 0:
            raise ValueError("max_tokens must be positive")

        self.model = model
        self._max_tokens = max_tokens
        self._pricing = AnthropicPricing.from_env()

        if client is not None:
            self._client: _AnthropicClient = client
            return

        resolved_key = api_key or os.getenv("ANTHROPIC_API_KEY")
        if not resolved_key:
            raise ValueError(
                "ANTHROPIC_API_KEY is required for the 'anthropic' analyzer backend. "
                "Set ANTHROPIC_API_KEY or use MARKET_RESEARCH_ANALYZER_BACKEND=mock."
            )
        self._client = AsyncAnthropic(api_key=resolved_key)

    async def analyze(
        self, market: Market, graded_sources: Sequence[GradedSource]
    ) -> AnalysisResult:
        """Run the three passes; each pass sees the previous passes' structured output.

        Every graded source is listed in the analyst prompt (content truncated per source).
        The estimated USD cost of this call's passes is returned on the result.
        """
        analyst, analyst_cost = await self._run_pass(
            ANALYST_PROMPT_TEMPLATE.format(
                question=market.question,
                market_context=_format_market(market),
                sources=_format_sources(graded_sources),
            ),
            AnalystToolInput,
            description="Submit the analyst's evidence assessment",
        )
        logger.debug("analysis_pass_complete", step="analyst", market_id=market.id)

        critic, critic_cost = await self._run_pass(
            CRITIC_PROMPT_TEMPLATE.format(
                question=market.question,
                analyst_stance=analyst.stance.value,
                analyst_confidence=analyst.confidence,
                analyst_analysis=analyst.analysis,
                analyst_reasoning=analyst.reasoning,
            ),
            CriticToolInput,
            description="Submit the critic's review of the analyst's findings",
        )
        logger.debug("analysis_pass_complete", step="critic", market_id=market.id)

        aggregator, aggregator_cost = await self._run_pass(
            AGGREGATOR_PROMPT_TEMPLATE.format(
                question=market.question,
                analyst_stance=analyst.stance.value,
                analyst_confidence=analyst.confidence,
                analyst_analysis=analyst.analysis,
                critic_review=critic.review,
                critic_accuracy=critic.accuracy,
                critic_bias=critic.bias,
                critic_completeness=critic.completeness,
                critic_confidence=critic.confidence,
            ),
            AggregatorToolInput,
            description="Submit the final synthesized assessment",
        )
        logger.debug("analysis_pass_complete", step="aggregator", market_id=market.id)

        cost_usd = analyst_cost + critic_cost + aggregator_cost
        logger.info(
            "analysis_complete",
            market_id=market.id,
            model=self.model,
            sources=len(graded_sources),
            cost_usd=round(cost_usd, 6),
        )
        result = self._build_result(analyst, critic, aggregator, graded_sources)
        return result.model_copy(update={"cost_usd": cost_usd})

    async def _run_pass(
        self,
        prompt: str,
        schema: type[ToolInputT],
        *,
        description: str,
    ) -> tuple[ToolInputT, float]:
        tools: list[dict[str, object]] = [
            {
                "name": _TOOL_NAME,
                "description": description,
                "input_schema": schema.model_json_schema(),
            }
        ]
        response = await self._client.messages.create(
            model=self.model,
            max_tokens=self._max_tokens,
            temperature=0.0,
            system=SYSTEM_PROMPT,
            messages=[{"role": "user", "content": prompt}],
            tools=tools,
            tool_choice={"type": "tool", "name": _TOOL_NAME},
        )
        tool_input = self._extract_tool_input(response, tool_name=_TOOL_NAME)
        return schema.model_validate(tool_input), self._pricing.pass_cost_usd(response)

    def _build_result(
        self,
        analyst: AnalystToolInput,
        critic: CriticToolInput,
        aggregator: AggregatorToolInput,
        graded_sources: Sequence[GradedSource],
    ) -> AnalysisResult:
        known_urls = {gs.source.url for gs in graded_sources}
        signals: dict[str, SourceSignal] = {}
        for signal in analyst.source_signals:
            # Signals for URLs we never showed the model are ignored.
            if signal.url in known_urls and signal.url not in signals:
                signals[signal.url] = signal

        return AnalysisResult(
            analyst=AgentAnalysis(
                agent_name="Analyst",
                stance=analyst.stance,
                confidence=analyst.confidence,
                reasoning=analyst.reasoning,
                output=analyst.analysis,
            ),
            critic=AgentAnalysis(
                agent_name="Critic",
                confidence=critic.confidence,
                reasoning=critic.review,
                output=critic.review,
            ),
            aggregator=AgentAnalysis(
                agent_name="Aggregator",
                stance=aggregator.stance,
                confidence=aggregator.confidence,
                reasoning=aggregator.reasoning,
                output=aggregator.assessment,
            ),
            overall_confidence=overall_confidence(
                analyst.confidence, critic.confidence, aggregator.confidence
            ),
            source_signals=list(signals.values()),
            intermediate=[
                AnalystPassOutput(
                    conclusion=analyst.analysis,
                    stance=analyst.stance,
                    confidence=analyst.confidence,
                    key_evidence=list(dict.fromkeys(analyst.key_evidence)),
                    sources_reviewed=len(graded_sources),
                ),
                CriticPassOutput(
                    conclusion=critic.review,
                    confidence=critic.confidence,
                    accuracy=critic.accuracy,
                    bias=critic.bias,
                    completeness=critic.completeness,
                ),
                AggregatorPassOutput(
                    conclusion=aggregator.assessment,
                    stance=aggregator.stance,
                    confidence=aggregator.confidence,
                    reasoning=aggregator.reasoning,
                ),
            ],
            model_id=self.model,
        )

    @staticmethod
    def _extract_tool_input(response: object, *, tool_name: str) -> dict[str, object]:
        """Extract tool input from Anthropic response."""
        content = getattr(response, "content", None)
        if not isinstance(content, list):
            raise RuntimeError("Anthropic response content is not a list")

        for block in content:
            if getattr(block, "type", None) != "tool_use" or getattr(block, "name", None) != tool_name:
                continue

            tool_input = getattr(block, "input", None)
            if not isinstance(tool_input, dict):
                raise RuntimeError("Anthropic tool_use block input is not a dict")
            return tool_input

        raise RuntimeError(f"Anthropic response did not include tool_use for {tool_name!r}")


def _format_market(market: Market) -> str:
    lines: list[str] = []
    if market.description:
        lines.append(market.description.strip())
    if market.category:
        lines.append(f"- Category: {market.category}")
    if market.end_date is not None:
        lines.append(f"- Resolves: {market.end_date.isoformat()}")
    if market.yes_price is not None:
        lines.append(f"- Current YES price: {market.yes_price:.2f}")
    if market.resolution_source:
        lines.append(f"- Resolution source: {market.resolution_source}")
    return "\n".join(lines) or "No additional market context."


def _format_sources(graded_sources: Sequence[GradedSource]) -> str:
    if not graded_sources:
        return "No sources provided."

    blocks: list[str] = []
    for i, gs in enumerate(graded_sources, start=1):
        published = (
            gs.source.published_date.date().isoformat()
            if gs.source.published_date is not None
            else "unknown date"
        )
        content = gs.source.content[:_MAX_SOURCE_CHARS]
        blocks.append(
            f"{i}. [Grade {gs.grade.value}] {gs.source.title or gs.source.url}\n"
            f"   URL: {gs.source.url} ({published})\n"
            f"   {content}"
        )
    return "\n\n".join(blocks)
