"""
Shared test fixtures.

PHILOSOPHY: Use REAL objects wherever possible. Only mock at system boundaries.
- Real Pydantic models (not dicts pretending to be models)
- Real SQLite in-memory for repository and store tests
- respx ONLY for HTTP boundary
"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING, Any

import pytest

from market_research.schemas import (
    AgentAnalysis,
    AggregatorPassOutput,
    AnalysisResult,
    AnalystPassOutput,
    CriticPassOutput,
    Grade,
    GradedSource,
    Market,
    RawSource,
    SourceSignal,
    Stance,
)

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator, Callable

    from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

NOW = datetime(2025, 6, 1, 12, 0, tzinfo=UTC)


# ============================================================================
# Database Fixtures (REAL in-memory SQLite, not mocks)
# ============================================================================
@pytest.fixture
async def db_engine() -> AsyncGenerator[AsyncEngine, None]:
    """Create real async SQLite engine with the schema."""
    from sqlalchemy.ext.asyncio import create_async_engine

    from market_research.data.models import Base

    engine = create_async_engine("sqlite+aiosqlite:///:memory:", echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

    return async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db_session(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


# ============================================================================
# Domain Object Builders (create REAL objects, not dicts)
# ============================================================================
@pytest.fixture
def make_market() -> Callable[..., Market]:
    """Factory for Market snapshots."""

    def _make(
        market_id: str = "mkt-btc-250k",
        question: str = "Will Bitcoin reach $250,000 by December 31, 2025?",
        **overrides: Any,
    ) -> Market:
        base: dict[str, Any] = {
            "id": market_id,
            "question": question,
            "slug": "will-bitcoin-reach-250k-by-2025",
            "category": "Crypto",
            "end_date": datetime(2025, 12, 31, tzinfo=UTC),
        }
        base.update(overrides)
        return Market(**base)

    return _make


@pytest.fixture
def make_source() -> Callable[..., RawSource]:
    """Factory for RawSource evidence items."""

    def _make(
        url: str = "https://www.reuters.com/markets/bitcoin-outlook",
        title: str = "Bitcoin outlook",
        content: str | None = None,
        **overrides: Any,
    ) -> RawSource:
        if content is None:
            content = (
                "Bitcoin traded near record levels this week as institutional demand grew. "
                "Analysts at several banks published new price targets for the year ahead. "
                "Trading volume across major exchanges rose for a third straight session."
            )
        return RawSource(url=url, title=title, content=content, **overrides)

    return _make


@pytest.fixture
def make_graded() -> Callable[..., GradedSource]:
    """Factory for GradedSource with a fixed grade (bypasses the grader)."""

    def _make(
        url: str = "https://www.reuters.com/a",
        grade: Grade = Grade.A,
        title: str = "",
        content: str = "",
        **overrides: Any,
    ) -> GradedSource:
        base: dict[str, Any] = {
            "source": RawSource(url=url, title=title, content=content),
            "grade": grade,
            "credibility_score": 0.9,
            "recency_score": 0.9,
            "bias_score": 1.0,
            "clarity_score": 1.0,
            "explanation": f"Grade {grade.value}: test source",
        }
        base.update(overrides)
        return GradedSource(**base)

    return _make


@pytest.fixture
def make_analysis() -> Callable[..., AnalysisResult]:
    """Factory for AnalysisResult with a given aggregator stance."""

    def _make(
        stance: Stance = Stance.UNCERTAIN,
        confidence: float = 0.5,
        *,
        source_signals: list[SourceSignal] | None = None,
        with_intermediate: bool = True,
    ) -> AnalysisResult:
        intermediate = None
        if with_intermediate:
            intermediate = [
                AnalystPassOutput(conclusion="analyst view", stance=stance, confidence=confidence),
                CriticPassOutput(conclusion="critic view", confidence=confidence),
                AggregatorPassOutput(
                    conclusion="final view", stance=stance, confidence=confidence
                ),
            ]
        return AnalysisResult(
            analyst=AgentAnalysis(
                agent_name="Analyst", stance=stance, confidence=confidence, reasoning="r"
            ),
            critic=AgentAnalysis(agent_name="Critic", confidence=confidence, reasoning="r"),
            aggregator=AgentAnalysis(
                agent_name="Aggregator",
                stance=stance,
                confidence=confidence,
                reasoning="r",
                output="final view",
            ),
            overall_confidence=confidence,
            source_signals=source_signals or [],
            intermediate=intermediate,
        )

    return _make


# ============================================================================
# Time Injection (for testability without mocking)
# ============================================================================
class FixedClock:
    """A clock that returns a settable time."""

    def __init__(self, fixed_time: datetime = NOW) -> None:
        self.time = fixed_time

    def __call__(self) -> datetime:
        return self.time

    def advance(self, delta: timedelta) -> None:
        self.time = self.time + delta


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock()
