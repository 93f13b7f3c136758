"""Research run repository."""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import func, select

from market_research.data.models import MarketResearchRecord
from market_research.data.repositories.base import BaseRepository

if TYPE_CHECKING:
    from collections.abc import Sequence


class ResearchRepository(BaseRepository[MarketResearchRecord]):
    """Repository for stored research runs, always scoped to one user."""

    model = MarketResearchRecord

    async def latest_for(self, user_id: str, market_id: str) -> MarketResearchRecord | None:
        """Most recent run for a (user, market) pair, regardless of age."""
        stmt = (
            select(MarketResearchRecord)
            .where(
                MarketResearchRecord.user_id == user_id,
                MarketResearchRecord.market_id == market_id,
            )
            .order_by(MarketResearchRecord.created_at.desc())
            .limit(1)
        )
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_for_user(self, user_id: str, research_id: str) -> MarketResearchRecord | None:
        """Get a run by id, only if it belongs to the user."""
        stmt = select(MarketResearchRecord).where(
            MarketResearchRecord.id == research_id,
            MarketResearchRecord.user_id == user_id,
        )
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def history(
        self,
        user_id: str,
        *,
        market_id: str | None = None,
        limit: int = 20,
        offset: int = 0,
    ) -> Sequence[MarketResearchRecord]:
        """List a user's runs, newest first."""
        stmt = select(MarketResearchRecord).where(MarketResearchRecord.user_id == user_id)
        if market_id is not None:
            stmt = stmt.where(MarketResearchRecord.market_id == market_id)
        stmt = (
            stmt.order_by(MarketResearchRecord.created_at.desc()).limit(limit).offset(offset)
        )
        result = await self._session.execute(stmt)
        return result.scalars().all()

    async def count(self, user_id: str, *, market_id: str | None = None) -> int:
        """Count a user's runs (optionally for one market)."""
        stmt = select(func.count(MarketResearchRecord.id)).where(
            MarketResearchRecord.user_id == user_id
        )
        if market_id is not None:
            stmt = stmt.where(MarketResearchRecord.market_id == market_id)
        result = await self._session.execute(stmt)
        return int(result.scalar_one())
