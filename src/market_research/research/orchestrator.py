"""Research run orchestration.

A run walks a fixed state sequence:

    CACHE_CHECK -> (hit) DONE
                -> (miss) PLANNING -> GATHERING -> GRADING -> ANALYZING
                   -> REASONING -> RESOLVING -> PERSISTING -> DONE

Any failure moves the run to ERROR and surfaces a typed `ResearchError`; nothing is persisted
for a failed run. Only a persistence failure is absorbed: the caller still receives the
computed result.
"""

from __future__ import annotations

import asyncio
import time
from typing import TYPE_CHECKING, Any, TypeVar

import structlog
from pydantic import ValidationError

from market_research.constants import (
    DEFAULT_ANALYZE_TIMEOUT_SECONDS,
    DEFAULT_GATHER_TIMEOUT_SECONDS,
)
from market_research.exceptions import (
    AnalyzerFailureError,
    AnalyzerTimeoutError,
    CatalogFailureError,
    EmptyEvidenceError,
    GathererFailureError,
    GathererTimeoutError,
    MalformedRequestError,
    MarketNotFoundError,
    ResearchError,
    ResearchStage,
)
from market_research.research.bayesian import apply_bayesian_reasoning
from market_research.research.gatherer import dedupe_sources
from market_research.research.grading import grade_source, sort_graded_sources
from market_research.research.strategy import plan_research_strategy
from market_research.research.verdict import resolve_verdict
from market_research.schemas import (
    EventContext,
    MarketResearchResult,
    ResearchRequest,
    utc_now,
)

if TYPE_CHECKING:
    from collections.abc import Callable, Coroutine, Mapping
    from datetime import datetime

    from market_research.research.cache import ResearchCache
    from market_research.research.protocols import (
        EvidenceGatherer,
        MarketCatalog,
        MultiAgentAnalyzer,
    )
    from market_research.schemas import Market, PassOutput

logger = structlog.get_logger()

T = TypeVar("T")


class _DeadlineExceeded(Exception):
    pass


class ResearchOrchestrator:
    """Runs the research pipeline for one (user, market) request at a time.

    Instances hold no per-run state, so one orchestrator can serve concurrent runs.
    """

    def __init__(
        self,
        *,
        catalog: MarketCatalog,
        gatherer: EvidenceGatherer,
        analyzer: MultiAgentAnalyzer,
        cache: ResearchCache,
        gather_timeout_seconds: float = DEFAULT_GATHER_TIMEOUT_SECONDS,
        analyze_timeout_seconds: float = DEFAULT_ANALYZE_TIMEOUT_SECONDS,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        """Initialize orchestrator.

        Args:
            catalog: Market snapshot source
            gatherer: Evidence collaborator
            analyzer: Multi-agent analyzer
            cache: Per-user result cache (also the persistence path)
            gather_timeout_seconds: Deadline for the GATHERING stage
            analyze_timeout_seconds: Deadline for the ANALYZING stage
            clock: Time source (pins recency grading and result timestamps)
        """
        self.catalog = catalog
        self.gatherer = gatherer
        self.analyzer = analyzer
        self.cache = cache
        self.gather_timeout_seconds = gather_timeout_seconds
        self.analyze_timeout_seconds = analyze_timeout_seconds
        self._clock = clock

    async def run(
        self,
        user_id: str,
        request: ResearchRequest | Mapping[str, Any],
    ) -> MarketResearchResult:
        """Execute a research run.

        Args:
            user_id: Caller identity (cache and history are per user)
            request: A ResearchRequest or its raw mapping form

        Returns:
            The fresh or cached MarketResearchResult; `intermediate` is attached only when
            requested and available.

        Raises:
            ResearchError: Typed failure (see `ResearchError.kind`).
        """
        req = _validate_request(request)
        started = time.monotonic()

        try:
            result = await self._run(user_id, req, started)
        except ResearchError as e:
            logger.warning(
                "research_failed",
                user_id=user_id,
                market_id=req.market_id,
                kind=e.kind.value,
                stage=e.stage.value,
                error=e.message,
                elapsed_s=round(time.monotonic() - started, 3),
            )
            raise

        logger.info(
            "research_complete",
            user_id=user_id,
            market_id=req.market_id,
            verdict=result.verdict.value,
            confidence=result.confidence,
            research_id=result.research_id,
            elapsed_s=round(time.monotonic() - started, 3),
        )
        return result

    async def _run(
        self, user_id: str, req: ResearchRequest, started: float
    ) -> MarketResearchResult:
        market_id = req.market_id

        self._enter(ResearchStage.CACHE_CHECK, market_id, started)
        if not req.force_refresh:
            entry = await self.cache.lookup(user_id, market_id)
            if entry is not None:
                logger.info("research_cache_hit", market_id=market_id, entry_id=entry.entry_id)
                return _project(entry.result, entry.intermediate, req.include_intermediate)

        self._enter(ResearchStage.PLANNING, market_id, started)
        as_of = self._clock()
        try:
            market = await self.catalog.get_market(market_id)
        except Exception as e:
            raise CatalogFailureError(str(e) or type(e).__name__) from e
        if market is None:
            raise MarketNotFoundError(market_id)
        event_context = await self._build_event_context(market)
        strategy = plan_research_strategy(market, event_context=event_context, as_of=as_of)

        self._enter(ResearchStage.GATHERING, market_id, started)
        try:
            raw_sources = await _race(
                self.gatherer.gather(market, strategy, event_context),
                self.gather_timeout_seconds,
            )
        except _DeadlineExceeded:
            raise GathererTimeoutError(self.gather_timeout_seconds) from None
        except Exception as e:
            raise GathererFailureError(str(e) or type(e).__name__) from e
        if not raw_sources:
            raise EmptyEvidenceError(market_id)

        self._enter(ResearchStage.GRADING, market_id, started)
        graded_sources = sort_graded_sources(
            grade_source(source, market=market, as_of=as_of)
            for source in dedupe_sources(raw_sources)
        )

        self._enter(ResearchStage.ANALYZING, market_id, started)
        try:
            analysis = await _race(
                self.analyzer.analyze(market, graded_sources),
                self.analyze_timeout_seconds,
            )
        except _DeadlineExceeded:
            raise AnalyzerTimeoutError(self.analyze_timeout_seconds) from None
        except Exception as e:
            raise AnalyzerFailureError(str(e) or type(e).__name__) from e

        self._enter(ResearchStage.REASONING, market_id, started)
        bayesian = apply_bayesian_reasoning(graded_sources, analysis, market)

        self._enter(ResearchStage.RESOLVING, market_id, started)
        verdict = resolve_verdict(bayesian.probabilities)
        intermediate = analysis.intermediate
        result = MarketResearchResult(
            market_id=market.id,
            market_question=market.question,
            verdict=verdict,
            confidence=bayesian.confidence,
            graded_sources=graded_sources,
            analysis_result=analysis.model_copy(update={"intermediate": None}),
            bayesian_result=bayesian,
            research_strategy=strategy,
            timestamp=self._clock(),
        )

        self._enter(ResearchStage.PERSISTING, market_id, started)
        try:
            entry = await self.cache.store(user_id, market_id, result, intermediate)
        except Exception:
            logger.exception("research_persist_failed", user_id=user_id, market_id=market_id)
        else:
            result = entry.result

        self._enter(ResearchStage.DONE, market_id, started)
        return _project(result, intermediate, req.include_intermediate)

    async def _build_event_context(self, market: Market) -> EventContext | None:
        """Sibling markets of the same event, or None (never fails the run)."""
        if not market.event_id:
            return None

        try:
            markets = await self.catalog.get_markets(active=True)
        except Exception as e:
            logger.warning(
                "event_context_unavailable",
                market_id=market.id,
                event_id=market.event_id,
                error=str(e),
            )
            return None

        members = [m for m in markets if m.event_id == market.event_id and m.id != market.id]
        if not members:
            return None

        return EventContext(
            event_id=market.event_id,
            event_title=market.event_title or market.question,
            markets=[market, *members],
            analyzed_market_id=market.id,
        )

    def _enter(self, stage: ResearchStage, market_id: str, started: float) -> None:
        logger.debug(
            "research_stage",
            stage=stage.value,
            market_id=market_id,
            elapsed_s=round(time.monotonic() - started, 3),
        )


def _validate_request(request: ResearchRequest | Mapping[str, Any]) -> ResearchRequest:
    if isinstance(request, ResearchRequest):
        return request
    try:
        return ResearchRequest.model_validate(request)
    except ValidationError as e:
        messages = "; ".join(str(err["msg"]).removeprefix("Value error, ") for err in e.errors())
        raise MalformedRequestError(messages or "Invalid request") from e


async def _race(coro: Coroutine[Any, Any, T], timeout_seconds: float) -> T:
    """Await `coro` as a child task, abandoning it once the deadline passes.

    On timeout the child is cancelled but not awaited; a done-callback retrieves whatever it
    eventually raises so a late failure never surfaces as an unhandled task exception.
    """
    task = asyncio.ensure_future(coro)
    try:
        done, _ = await asyncio.wait({task}, timeout=timeout_seconds)
    except asyncio.CancelledError:
        task.cancel()
        raise

    if task not in done:
        task.cancel()
        task.add_done_callback(_discard_outcome)
        raise _DeadlineExceeded
    return task.result()


def _discard_outcome(task: asyncio.Future[Any]) -> None:
    if not task.cancelled():
        task.exception()


def _project(
    result: MarketResearchResult,
    intermediate: list[PassOutput] | None,
    include_intermediate: bool,
) -> MarketResearchResult:
    if include_intermediate and intermediate is not None:
        return result.model_copy(update={"intermediate": list(intermediate)})
    return result.model_copy(update={"intermediate": None})
