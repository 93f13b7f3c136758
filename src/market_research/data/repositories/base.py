"""Generic async repository over a single ORM model."""

from __future__ import annotations

from typing import TYPE_CHECKING, Generic, TypeVar

from market_research.data.models import Base

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

T = TypeVar("T", bound=Base)


class BaseRepository(Generic[T]):
    """
    Insert-only operations bound to one session; rows are never updated or deleted.

    Subclasses set `model` to the SQLAlchemy model class they manage.
    """

    model: type[T]

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def add(self, entity: T, *, flush: bool = True) -> T:
        """Stage a new row; flushes by default so constraint errors surface here."""
        self._session.add(entity)
        if flush:
            await self._session.flush()
        return entity

    async def commit(self) -> None:
        await self._session.commit()

    async def rollback(self) -> None:
        await self._session.rollback()
