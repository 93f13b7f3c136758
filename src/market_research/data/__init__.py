"""Data layer for persistent storage of research runs."""

from market_research.data.database import DatabaseManager
from market_research.data.models import Base, MarketResearchRecord
from market_research.data.repositories import BaseRepository, ResearchRepository

__all__ = [
    "Base",
    "BaseRepository",
    "DatabaseManager",
    "MarketResearchRecord",
    "ResearchRepository",
]
