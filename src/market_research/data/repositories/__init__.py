"""Repository classes for data access."""

from market_research.data.repositories.base import BaseRepository
from market_research.data.repositories.research import ResearchRepository

__all__ = [
    "BaseRepository",
    "ResearchRepository",
]
