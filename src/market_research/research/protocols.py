"""Narrow contracts for the pipeline's external collaborators.

The orchestrator depends only on these Protocols; concrete adapters live in `catalog`,
`retrieval`, `agents` and `research.cache`.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Sequence

    from market_research.research.cache import CacheEntry
    from market_research.retrieval.models import SearchResponse
    from market_research.schemas import (
        AnalysisResult,
        EventContext,
        GradedSource,
        Market,
        RawSource,
        ResearchStrategy,
    )


@runtime_checkable
class MarketCatalog(Protocol):
    """Read access to market snapshots."""

    async def get_market(self, market_id: str) -> Market | None:
        """Return the market, or None when the id is unknown."""
        ...

    async def get_markets(self, *, active: bool = True) -> list[Market]:
        """List markets (used to assemble event context)."""
        ...


@runtime_checkable
class SearchClient(Protocol):
    """Raw evidence retrieval for a free-text query."""

    async def search(self, query: str, *, num_results: int = 5) -> SearchResponse: ...


@runtime_checkable
class EvidenceGatherer(Protocol):
    """Collects raw evidence for a market following a strategy."""

    async def gather(
        self,
        market: Market,
        strategy: ResearchStrategy,
        event_context: EventContext | None = None,
    ) -> list[RawSource]:
        """Return unranked evidence; an empty list means nothing was found."""
        ...


@runtime_checkable
class MultiAgentAnalyzer(Protocol):
    """Analyst -> Critic -> Aggregator synthesis over graded evidence."""

    async def analyze(
        self, market: Market, graded_sources: Sequence[GradedSource]
    ) -> AnalysisResult:
        """Run the three passes; graded_sources arrive sorted A first.

        Raises:
            Exception: Any failure; the orchestrator maps it to an analyzer failure.
        """
        ...


@runtime_checkable
class ResearchStore(Protocol):
    """Append-only storage of completed research runs."""

    async def append(self, entry: CacheEntry) -> None:
        """Persist a new entry; existing entries are never modified."""
        ...

    async def latest(self, user_id: str, market_id: str) -> CacheEntry | None:
        """Most recent entry for the pair, regardless of age."""
        ...

    async def get(self, user_id: str, entry_id: str) -> CacheEntry | None: ...

    async def history(
        self,
        user_id: str,
        *,
        market_id: str | None = None,
        limit: int = 20,
        offset: int = 0,
    ) -> tuple[list[CacheEntry], int]:
        """Return a newest-first page of entries and the total entry count."""
        ...
