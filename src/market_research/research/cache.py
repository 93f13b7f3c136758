"""Per-user research cache over an append-only store.

A stored run counts as a cache hit for 24 hours. Stale entries are never deleted: they stay
available to `get()` and `history()` and are simply skipped by `lookup()`.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING

import structlog
from pydantic import TypeAdapter

from market_research.constants import CACHE_STALENESS_WINDOW, DEFAULT_HISTORY_LIMIT
from market_research.data.models import MarketResearchRecord
from market_research.data.repositories.research import ResearchRepository
from market_research.schemas import (
    MarketResearchResult,
    PassOutput,
    ResearchHistoryItem,
    ResearchHistoryPage,
    utc_now,
)

if TYPE_CHECKING:
    from collections.abc import Callable

    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

    from market_research.research.protocols import ResearchStore

logger = structlog.get_logger()

_INTERMEDIATE_ADAPTER: TypeAdapter[list[PassOutput]] = TypeAdapter(list[PassOutput])


@dataclass(frozen=True)
class CacheEntry:
    """One stored research run."""

    entry_id: str
    user_id: str
    market_id: str
    result: MarketResearchResult
    intermediate: list[PassOutput] | None
    created_at: datetime

    def to_history_item(self) -> ResearchHistoryItem:
        return ResearchHistoryItem(
            id=self.entry_id,
            market_id=self.market_id,
            market_question=self.result.market_question,
            verdict=self.result.verdict,
            confidence=self.result.confidence,
            created_at=self.created_at,
        )


class ResearchCache:
    """Freshness policy and history access on top of a `ResearchStore`."""

    def __init__(
        self,
        store: ResearchStore,
        *,
        staleness: timedelta = CACHE_STALENESS_WINDOW,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._store = store
        self._staleness = staleness
        self._clock = clock

    async def lookup(self, user_id: str, market_id: str) -> CacheEntry | None:
        """Return the most recent entry for (user, market) if it is still fresh."""
        entry = await self._store.latest(user_id, market_id)
        if entry is None:
            return None
        if self.is_stale(entry):
            logger.debug(
                "research_cache_stale",
                user_id=user_id,
                market_id=market_id,
                entry_id=entry.entry_id,
            )
            return None
        return entry

    def is_stale(self, entry: CacheEntry) -> bool:
        """Entries at or beyond the staleness window are stale."""
        return self._clock() - _as_utc(entry.created_at) >= self._staleness

    async def store(
        self,
        user_id: str,
        market_id: str,
        result: MarketResearchResult,
        intermediate: list[PassOutput] | None,
    ) -> CacheEntry:
        """Append a new entry; returns it with its assigned id.

        The stored result carries its `research_id` and never embeds the intermediate
        projection, which is kept alongside it.
        """
        entry_id = str(uuid.uuid4())
        entry = CacheEntry(
            entry_id=entry_id,
            user_id=user_id,
            market_id=market_id,
            result=result.model_copy(update={"research_id": entry_id, "intermediate": None}),
            intermediate=list(intermediate) if intermediate is not None else None,
            created_at=self._clock(),
        )
        await self._store.append(entry)
        logger.info("research_cached", user_id=user_id, market_id=market_id, entry_id=entry_id)
        return entry

    async def get(self, user_id: str, research_id: str) -> CacheEntry | None:
        """Fetch a stored run by id (stale or not), scoped to the user."""
        return await self._store.get(user_id, research_id)

    async def history(
        self,
        user_id: str,
        *,
        market_id: str | None = None,
        limit: int = DEFAULT_HISTORY_LIMIT,
        offset: int = 0,
    ) -> ResearchHistoryPage:
        """List a user's runs newest first."""
        if limit < 1:
            raise ValueError("limit must be >= 1")
        if offset < 0:
            raise ValueError("offset must be >= 0")

        entries, total = await self._store.history(
            user_id, market_id=market_id, limit=limit, offset=offset
        )
        return ResearchHistoryPage(
            results=[e.to_history_item() for e in entries],
            total=total,
            limit=limit,
            offset=offset,
        )


class InMemoryResearchStore:
    """Process-local store: an ordered log per (user, market) plus a latest pointer."""

    def __init__(self) -> None:
        self._log: dict[tuple[str, str], list[CacheEntry]] = {}
        self._latest: dict[tuple[str, str], CacheEntry] = {}
        self._by_id: dict[str, CacheEntry] = {}
        self._sequence: dict[str, int] = {}

    def __len__(self) -> int:
        return len(self._by_id)

    async def append(self, entry: CacheEntry) -> None:
        key = (entry.user_id, entry.market_id)
        self._log.setdefault(key, []).append(entry)
        self._by_id[entry.entry_id] = entry
        self._sequence[entry.entry_id] = len(self._sequence)

        current = self._latest.get(key)
        if current is None or entry.created_at >= current.created_at:
            self._latest[key] = entry

    async def latest(self, user_id: str, market_id: str) -> CacheEntry | None:
        return self._latest.get((user_id, market_id))

    async def get(self, user_id: str, entry_id: str) -> CacheEntry | None:
        entry = self._by_id.get(entry_id)
        if entry is None or entry.user_id != user_id:
            return None
        return entry

    async def history(
        self,
        user_id: str,
        *,
        market_id: str | None = None,
        limit: int = DEFAULT_HISTORY_LIMIT,
        offset: int = 0,
    ) -> tuple[list[CacheEntry], int]:
        entries = [
            entry
            for (owner, market), log in self._log.items()
            if owner == user_id and (market_id is None or market == market_id)
            for entry in log
        ]
        entries.sort(
            key=lambda e: (e.created_at, self._sequence[e.entry_id]),
            reverse=True,
        )
        return entries[offset : offset + limit], len(entries)


class SqlResearchStore:
    """SQLite-backed store; one short-lived session per operation."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def append(self, entry: CacheEntry) -> None:
        record = MarketResearchRecord(
            id=entry.entry_id,
            user_id=entry.user_id,
            market_id=entry.market_id,
            market_question=entry.result.market_question,
            verdict=entry.result.verdict.value,
            confidence=entry.result.confidence,
            result_json=entry.result.model_dump_json(),
            intermediate_json=(
                _INTERMEDIATE_ADAPTER.dump_json(entry.intermediate).decode()
                if entry.intermediate is not None
                else None
            ),
            created_at=entry.created_at,
        )
        async with self._session_factory() as session:
            repo = ResearchRepository(session)
            try:
                await repo.add(record)
                await repo.commit()
            except Exception:
                await repo.rollback()
                raise

    async def latest(self, user_id: str, market_id: str) -> CacheEntry | None:
        async with self._session_factory() as session:
            record = await ResearchRepository(session).latest_for(user_id, market_id)
            return _record_to_entry(record) if record is not None else None

    async def get(self, user_id: str, entry_id: str) -> CacheEntry | None:
        async with self._session_factory() as session:
            record = await ResearchRepository(session).get_for_user(user_id, entry_id)
            return _record_to_entry(record) if record is not None else None

    async def history(
        self,
        user_id: str,
        *,
        market_id: str | None = None,
        limit: int = DEFAULT_HISTORY_LIMIT,
        offset: int = 0,
    ) -> tuple[list[CacheEntry], int]:
        async with self._session_factory() as session:
            repo = ResearchRepository(session)
            records = await repo.history(user_id, market_id=market_id, limit=limit, offset=offset)
            total = await repo.count(user_id, market_id=market_id)
            return [_record_to_entry(r) for r in records], total


def _record_to_entry(record: MarketResearchRecord) -> CacheEntry:
    intermediate = (
        _INTERMEDIATE_ADAPTER.validate_json(record.intermediate_json)
        if record.intermediate_json
        else None
    )
    return CacheEntry(
        entry_id=record.id,
        user_id=record.user_id,
        market_id=record.market_id,
        result=MarketResearchResult.model_validate_json(record.result_json),
        intermediate=intermediate,
        created_at=_as_utc(record.created_at),
    )


def _as_utc(value: datetime) -> datetime:
    # SQLite returns naive datetimes even for timezone-aware columns.
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value
