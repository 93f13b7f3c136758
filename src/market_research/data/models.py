"""SQLAlchemy ORM models for research run storage."""

from __future__ import annotations

from datetime import UTC, datetime

from sqlalchemy import DateTime, Float, Index, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def utc_now() -> datetime:
    """Return current UTC time with timezone info."""
    return datetime.now(UTC)


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


class MarketResearchRecord(Base):
    """One completed research run (append-only; never updated in place)."""

    __tablename__ = "market_research"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    user_id: Mapped[str] = mapped_column(String, nullable=False)
    market_id: Mapped[str] = mapped_column(String, nullable=False)
    market_question: Mapped[str] = mapped_column(Text, nullable=False)
    # FinalVerdict value: YES, NO, UNCERTAIN
    verdict: Mapped[str] = mapped_column(String, nullable=False)
    confidence: Mapped[float] = mapped_column(Float, nullable=False)

    # Full MarketResearchResult (without intermediate) as JSON
    result_json: Mapped[str] = mapped_column(Text, nullable=False)
    # list[PassOutput] as JSON, when the analyzer produced one
    intermediate_json: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now)

    __table_args__ = (
        Index("idx_market_research_user_market_created", "user_id", "market_id", "created_at"),
        Index("idx_market_research_user_created", "user_id", "created_at"),
    )
