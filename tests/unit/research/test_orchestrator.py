"""
Orchestrator tests - fake collaborators at the protocol seams, real pipeline in between.
"""

from __future__ import annotations

import asyncio
import time
from datetime import timedelta
from typing import TYPE_CHECKING

import pytest

from market_research.agents import MockAgentAnalyzer
from market_research.catalog import CatalogAPIError
from market_research.exceptions import ResearchError, ResearchErrorKind, ResearchStage
from market_research.research import (
    InMemoryResearchStore,
    ResearchCache,
    ResearchOrchestrator,
)
from market_research.research.protocols import (
    EvidenceGatherer,
    MarketCatalog,
    MultiAgentAnalyzer,
)
from market_research.schemas import (
    FinalVerdict,
    Grade,
    RawSource,
    ResearchRequest,
    SourceSignal,
    Stance,
)

if TYPE_CHECKING:
    from collections.abc import Sequence

    from market_research.schemas import (
        AnalysisResult,
        EventContext,
        GradedSource,
        Market,
        ResearchStrategy,
    )

STRONG_YES = (
    "Bitcoin is likely to rally to a record high as ETF momentum builds and analysts "
    "turn bullish. Trading volume has surged this quarter."
)
WEAK_NO = "Some traders doubt the move."


class FakeCatalog:
    def __init__(
        self,
        markets: Sequence[Market],
        *,
        fail_listing: bool = False,
        error: Exception | None = None,
    ) -> None:
        self.markets = {m.id: m for m in markets}
        self.fail_listing = fail_listing
        self.error = error
        self.get_calls = 0

    async def get_market(self, market_id: str) -> Market | None:
        self.get_calls += 1
        if self.error is not None:
            raise self.error
        return self.markets.get(market_id)

    async def get_markets(self, *, active: bool = True) -> list[Market]:
        if self.fail_listing:
            raise RuntimeError("listing unavailable")
        return list(self.markets.values())


class FakeGatherer:
    def __init__(
        self,
        sources: Sequence[RawSource] = (),
        *,
        delay: float = 0.0,
        error: Exception | None = None,
    ) -> None:
        self.sources = list(sources)
        self.delay = delay
        self.error = error
        self.calls = 0
        self.last_strategy: ResearchStrategy | None = None
        self.last_event_context: EventContext | None = None

    async def gather(
        self,
        market: Market,
        strategy: ResearchStrategy,
        event_context: EventContext | None = None,
    ) -> list[RawSource]:
        self.calls += 1
        self.last_strategy = strategy
        self.last_event_context = event_context
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return list(self.sources)


class RecordingAnalyzer:
    """Wraps the mock analyzer; records inputs and can stall or fail."""

    def __init__(
        self,
        *,
        delay: float = 0.0,
        error: Exception | None = None,
        signals: dict[str, SourceSignal] | None = None,
    ) -> None:
        self.inner = MockAgentAnalyzer()
        self.delay = delay
        self.error = error
        self.signals = signals
        self.calls = 0
        self.seen: list[GradedSource] = []

    async def analyze(
        self, market: Market, graded_sources: Sequence[GradedSource]
    ) -> AnalysisResult:
        self.calls += 1
        self.seen = list(graded_sources)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        result = await self.inner.analyze(market, graded_sources)
        if self.signals is not None:
            result = result.model_copy(update={"source_signals": list(self.signals.values())})
        return result


class FailingStore(InMemoryResearchStore):
    async def append(self, entry) -> None:
        raise RuntimeError("disk full")


def _sources() -> list[RawSource]:
    strong = [
        RawSource(
            url=f"https://www.reuters.com/markets/btc-{i}",
            title="Bitcoin rally continues",
            content=STRONG_YES,
            author="Staff",
        )
        for i in range(3)
    ]
    weak = [
        RawSource(url=f"https://someblog.medium.com/post-{i}", title="Eh", content=WEAK_NO)
        for i in range(2)
    ]
    # Weak sources first so the grading order is observable.
    return [*weak, *strong]


@pytest.fixture
def market(make_market):
    return make_market()


@pytest.fixture
def build(market, clock):
    def _build(
        *,
        gatherer: FakeGatherer | None = None,
        analyzer: RecordingAnalyzer | None = None,
        catalog: FakeCatalog | None = None,
        store: InMemoryResearchStore | None = None,
        gather_timeout: float = 5.0,
        analyze_timeout: float = 5.0,
    ) -> ResearchOrchestrator:
        return ResearchOrchestrator(
            catalog=catalog or FakeCatalog([market]),
            gatherer=gatherer or FakeGatherer(_sources()),
            analyzer=analyzer or RecordingAnalyzer(),
            cache=ResearchCache(
                store if store is not None else InMemoryResearchStore(), clock=clock
            ),
            gather_timeout_seconds=gather_timeout,
            analyze_timeout_seconds=analyze_timeout,
            clock=clock,
        )

    return _build


def test_fakes_satisfy_protocols(market) -> None:
    assert isinstance(FakeCatalog([market]), MarketCatalog)
    assert isinstance(FakeGatherer(), EvidenceGatherer)
    assert isinstance(RecordingAnalyzer(), MultiAgentAnalyzer)


@pytest.mark.asyncio
async def test_credible_affirming_evidence_resolves_yes(build, market) -> None:
    store = InMemoryResearchStore()
    orchestrator = build(store=store)

    result = await orchestrator.run("alice", ResearchRequest(market_id=market.id))

    assert result.verdict == FinalVerdict.YES
    assert result.bayesian_result.probabilities.yes > 0.65
    assert result.confidence == result.bayesian_result.confidence
    assert result.market_question == market.question
    assert result.research_id is not None
    assert len(store) == 1


@pytest.mark.asyncio
async def test_sources_reach_analyzer_sorted_a_to_d(build, market) -> None:
    analyzer = RecordingAnalyzer()
    orchestrator = build(analyzer=analyzer)

    result = await orchestrator.run("alice", {"market_id": market.id})

    ranks = [gs.grade.rank for gs in analyzer.seen]
    assert ranks == sorted(ranks)
    assert analyzer.seen[0].grade == Grade.A
    assert [gs.source.url for gs in result.graded_sources] == [
        gs.source.url for gs in analyzer.seen
    ]


@pytest.mark.asyncio
async def test_second_run_within_window_is_served_from_cache(build, market, clock) -> None:
    gatherer = FakeGatherer(_sources())
    analyzer = RecordingAnalyzer()
    orchestrator = build(gatherer=gatherer, analyzer=analyzer)

    first = await orchestrator.run("alice", ResearchRequest(market_id=market.id))
    clock.advance(timedelta(hours=2))
    second = await orchestrator.run("alice", ResearchRequest(market_id=market.id))

    assert second == first
    assert gatherer.calls == 1
    assert analyzer.calls == 1


@pytest.mark.asyncio
async def test_cache_is_per_user(build, market) -> None:
    gatherer = FakeGatherer(_sources())
    orchestrator = build(gatherer=gatherer)

    await orchestrator.run("alice", ResearchRequest(market_id=market.id))
    await orchestrator.run("bob", ResearchRequest(market_id=market.id))

    assert gatherer.calls == 2


@pytest.mark.asyncio
async def test_stale_cache_entry_triggers_fresh_run(build, market, clock) -> None:
    gatherer = FakeGatherer(_sources())
    orchestrator = build(gatherer=gatherer)

    first = await orchestrator.run("alice", ResearchRequest(market_id=market.id))
    clock.advance(timedelta(hours=24))
    second = await orchestrator.run("alice", ResearchRequest(market_id=market.id))

    assert gatherer.calls == 2
    assert second.research_id != first.research_id


@pytest.mark.asyncio
async def test_force_refresh_bypasses_and_replaces_cache(build, market) -> None:
    gatherer = FakeGatherer(_sources())
    orchestrator = build(gatherer=gatherer)

    first = await orchestrator.run("alice", ResearchRequest(market_id=market.id))
    refreshed = await orchestrator.run(
        "alice", ResearchRequest(market_id=market.id, force_refresh=True)
    )
    cached = await orchestrator.run("alice", ResearchRequest(market_id=market.id))

    assert gatherer.calls == 2
    assert refreshed.research_id != first.research_id
    assert cached.research_id == refreshed.research_id


@pytest.mark.asyncio
async def test_intermediate_is_attached_only_when_requested(build, market) -> None:
    orchestrator = build()

    with_passes = await orchestrator.run("alice", ResearchRequest(market_id=market.id))
    without = await orchestrator.run(
        "alice", ResearchRequest(market_id=market.id, include_intermediate=False)
    )

    assert with_passes.intermediate is not None
    assert [p.pass_name for p in with_passes.intermediate] == ["analyst", "critic", "aggregator"]
    assert with_passes.analysis_result.intermediate is None
    assert without.intermediate is None
    assert without.research_id == with_passes.research_id


@pytest.mark.parametrize("market_id", ["", "   "])
@pytest.mark.asyncio
async def test_blank_market_id_is_malformed(build, market_id: str) -> None:
    gatherer = FakeGatherer(_sources())
    orchestrator = build(gatherer=gatherer)

    with pytest.raises(ResearchError) as exc_info:
        await orchestrator.run("alice", {"market_id": market_id})

    err = exc_info.value
    assert err.kind == ResearchErrorKind.MALFORMED_REQUEST
    assert err.message == "Market ID is required"
    assert gatherer.calls == 0


@pytest.mark.asyncio
async def test_unknown_market_fails_without_gathering(build) -> None:
    gatherer = FakeGatherer(_sources())
    store = InMemoryResearchStore()
    orchestrator = build(gatherer=gatherer, store=store)

    with pytest.raises(ResearchError) as exc_info:
        await orchestrator.run("alice", ResearchRequest(market_id="nope"))

    assert exc_info.value.kind == ResearchErrorKind.MARKET_NOT_FOUND
    assert exc_info.value.stage == ResearchStage.PLANNING
    assert gatherer.calls == 0
    assert len(store) == 0


@pytest.mark.parametrize(
    "error",
    [
        CatalogAPIError(500, "Gamma API error: boom"),
        KeyError("id"),
    ],
)
@pytest.mark.asyncio
async def test_catalog_exception_maps_to_catalog_failure(build, market, error) -> None:
    gatherer = FakeGatherer(_sources())
    store = InMemoryResearchStore()
    orchestrator = build(
        catalog=FakeCatalog([market], error=error), gatherer=gatherer, store=store
    )

    with pytest.raises(ResearchError) as exc_info:
        await orchestrator.run("alice", ResearchRequest(market_id=market.id))

    err = exc_info.value
    assert err.kind == ResearchErrorKind.CATALOG_FAILURE
    assert err.stage == ResearchStage.PLANNING
    assert err.message.startswith("Market lookup failed: ")
    assert err.__cause__ is error
    assert gatherer.calls == 0
    assert len(store) == 0


@pytest.mark.asyncio
async def test_slow_gatherer_times_out_and_nothing_is_stored(build, market) -> None:
    analyzer = RecordingAnalyzer()
    store = InMemoryResearchStore()
    orchestrator = build(
        gatherer=FakeGatherer(_sources(), delay=1.0),
        analyzer=analyzer,
        store=store,
        gather_timeout=0.05,
    )

    started = time.monotonic()
    with pytest.raises(ResearchError) as exc_info:
        await orchestrator.run("alice", ResearchRequest(market_id=market.id))
    elapsed = time.monotonic() - started

    err = exc_info.value
    assert err.kind == ResearchErrorKind.GATHERER_TIMEOUT
    # Abandons the stalled gatherer instead of waiting out its 1s delay.
    assert elapsed < 0.05 + 0.5
    assert err.to_dict()["stage"] == "gathering"
    assert analyzer.calls == 0
    assert len(store) == 0


@pytest.mark.asyncio
async def test_empty_evidence_fails_before_analysis(build, market) -> None:
    analyzer = RecordingAnalyzer()
    store = InMemoryResearchStore()
    orchestrator = build(gatherer=FakeGatherer([]), analyzer=analyzer, store=store)

    with pytest.raises(ResearchError) as exc_info:
        await orchestrator.run("alice", ResearchRequest(market_id=market.id))

    assert exc_info.value.kind == ResearchErrorKind.GATHERER_EMPTY_RESULT
    assert analyzer.calls == 0
    assert len(store) == 0


@pytest.mark.asyncio
async def test_gatherer_exception_maps_to_gatherer_failure(build, market) -> None:
    orchestrator = build(gatherer=FakeGatherer(error=RuntimeError("search down")))

    with pytest.raises(ResearchError) as exc_info:
        await orchestrator.run("alice", ResearchRequest(market_id=market.id))

    assert exc_info.value.kind == ResearchErrorKind.GATHERER_FAILURE
    assert "search down" in exc_info.value.message


@pytest.mark.asyncio
async def test_slow_analyzer_times_out(build, market) -> None:
    store = InMemoryResearchStore()
    orchestrator = build(
        analyzer=RecordingAnalyzer(delay=1.0), store=store, analyze_timeout=0.05
    )

    with pytest.raises(ResearchError) as exc_info:
        await orchestrator.run("alice", ResearchRequest(market_id=market.id))

    assert exc_info.value.kind == ResearchErrorKind.ANALYZER_TIMEOUT
    assert exc_info.value.stage == ResearchStage.ANALYZING
    assert len(store) == 0


@pytest.mark.asyncio
async def test_analyzer_exception_maps_to_analyzer_failure(build, market) -> None:
    orchestrator = build(analyzer=RecordingAnalyzer(error=ValueError("bad tool output")))

    with pytest.raises(ResearchError) as exc_info:
        await orchestrator.run("alice", ResearchRequest(market_id=market.id))

    assert exc_info.value.kind == ResearchErrorKind.ANALYZER_FAILURE
    assert exc_info.value.message == "Multi-agent analysis failed: bad tool output"


@pytest.mark.asyncio
async def test_persistence_failure_still_returns_result(build, market) -> None:
    orchestrator = build(store=FailingStore())

    result = await orchestrator.run("alice", ResearchRequest(market_id=market.id))

    assert result.verdict in set(FinalVerdict)
    assert result.research_id is None


@pytest.mark.asyncio
async def test_analyzer_signals_drive_the_posterior(build, market) -> None:
    # Text reads YES, but the analyzer reads every source as a firm NO.
    signals = {
        s.url: SourceSignal(url=s.url, stance=Stance.NO, strength=1.0) for s in _sources()
    }
    orchestrator = build(analyzer=RecordingAnalyzer(signals=signals))

    result = await orchestrator.run("alice", ResearchRequest(market_id=market.id))

    probs = result.bayesian_result.probabilities
    assert probs.no > probs.yes


@pytest.mark.asyncio
async def test_event_siblings_are_passed_to_gatherer(build, make_market) -> None:
    market = make_market(event_id="evt-1", event_title="Bitcoin price 2025")
    sibling = make_market(market_id="mkt-btc-200k", question="Will BTC hit $200k?", event_id="evt-1")
    unrelated = make_market(market_id="other", question="Will it rain?", event_id="evt-2")
    gatherer = FakeGatherer(_sources())
    orchestrator = build(gatherer=gatherer, catalog=FakeCatalog([market, sibling, unrelated]))

    await orchestrator.run("alice", ResearchRequest(market_id=market.id))

    context = gatherer.last_event_context
    assert context is not None
    assert [m.id for m in context.markets] == [market.id, sibling.id]
    assert context.analyzed_market_id == market.id


@pytest.mark.asyncio
async def test_event_listing_failure_does_not_fail_run(build, make_market) -> None:
    market = make_market(event_id="evt-1")
    gatherer = FakeGatherer(_sources())
    orchestrator = build(gatherer=gatherer, catalog=FakeCatalog([market], fail_listing=True))

    result = await orchestrator.run("alice", ResearchRequest(market_id=market.id))

    assert gatherer.last_event_context is None
    assert result.market_id == market.id
