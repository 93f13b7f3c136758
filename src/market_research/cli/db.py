"""Shared helpers for CLI database setup."""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from market_research.data import DatabaseManager
from market_research.research.cache import ResearchCache, SqlResearchStore

if TYPE_CHECKING:
    from collections.abc import AsyncIterator
    from pathlib import Path


@asynccontextmanager
async def open_db(db_path: Path) -> AsyncIterator[DatabaseManager]:
    """Open a database manager and ensure tables exist before yielding."""
    async with DatabaseManager(db_path) as db:
        await db.create_tables()
        yield db


@asynccontextmanager
async def open_cache(db_path: Path) -> AsyncIterator[ResearchCache]:
    """Open a SQLite-backed research cache."""
    async with open_db(db_path) as db:
        yield ResearchCache(SqlResearchStore(db.session_factory))
