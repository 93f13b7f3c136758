"""Evidence gathering over a search collaborator."""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING
from urllib.parse import urlsplit, urlunsplit

import structlog

from market_research.constants import (
    DEFAULT_GATHER_CONCURRENCY,
    DEFAULT_MAX_SOURCES,
    DEFAULT_RESULTS_PER_QUERY,
)

if TYPE_CHECKING:
    from collections.abc import Iterable

    from market_research.research.protocols import SearchClient
    from market_research.retrieval.models import SearchResponse
    from market_research.schemas import EventContext, Market, RawSource, ResearchStrategy

logger = structlog.get_logger()


class GathererError(Exception):
    """Every search query failed."""


class SearchEvidenceGatherer:
    """
    Fans strategy queries out to a `SearchClient` and merges the hits.

    Individual query failures are logged and skipped; the gather only fails when no query
    succeeds. Results keep query order (the strategy ranks queries by importance).
    """

    def __init__(
        self,
        client: SearchClient,
        *,
        results_per_query: int = DEFAULT_RESULTS_PER_QUERY,
        concurrency: int = DEFAULT_GATHER_CONCURRENCY,
        max_sources: int = DEFAULT_MAX_SOURCES,
    ) -> None:
        if concurrency < 1:
            raise ValueError("concurrency must be >= 1")
        self._client = client
        self._results_per_query = results_per_query
        self._concurrency = concurrency
        self._max_sources = max_sources

    async def gather(
        self,
        market: Market,
        strategy: ResearchStrategy,
        event_context: EventContext | None = None,
    ) -> list[RawSource]:
        semaphore = asyncio.Semaphore(self._concurrency)

        async def run_query(query: str) -> SearchResponse:
            async with semaphore:
                return await self._client.search(query, num_results=self._results_per_query)

        queries = list(strategy.search_queries)
        outcomes = await asyncio.gather(
            *(run_query(q) for q in queries), return_exceptions=True
        )

        responses: list[SearchResponse] = []
        failures = 0
        for query, outcome in zip(queries, outcomes, strict=True):
            if isinstance(outcome, BaseException):
                if not isinstance(outcome, Exception):
                    raise outcome
                failures += 1
                logger.warning(
                    "search_query_failed",
                    market_id=market.id,
                    query=query,
                    error=str(outcome),
                )
                continue
            responses.append(outcome)

        if queries and failures == len(queries):
            raise GathererError(f"All {failures} search queries failed for market {market.id}")

        sources = dedupe_sources(
            hit.to_raw_source() for response in responses for hit in response.results
        )
        logger.info(
            "evidence_gathered",
            market_id=market.id,
            queries=len(queries),
            failed_queries=failures,
            sources=len(sources),
            event_id=event_context.event_id if event_context else None,
        )
        return sources[: self._max_sources]


def normalize_url(url: str) -> str:
    """Canonical form used for duplicate detection (scheme, www, fragment, trailing slash)."""
    parts = urlsplit(url.strip())
    netloc = parts.netloc.lower()
    if netloc.startswith("www."):
        netloc = netloc[4:]
    path = parts.path.rstrip("/")
    return urlunsplit(("", netloc, path, parts.query, ""))


def dedupe_sources(sources: Iterable[RawSource]) -> list[RawSource]:
    """Drop repeated URLs (after normalization), keeping the first occurrence."""
    seen: set[str] = set()
    unique: list[RawSource] = []
    for source in sources:
        key = normalize_url(source.url)
        if key in seen:
            continue
        seen.add(key)
        unique.append(source)
    return unique
