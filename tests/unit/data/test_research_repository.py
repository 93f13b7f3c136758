"""
Repository tests - REAL in-memory SQLite, no mocks.
"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest

from market_research.data.models import MarketResearchRecord
from market_research.data.repositories import ResearchRepository

BASE_TIME = datetime(2025, 6, 1, 12, 0, tzinfo=UTC)


def _record(
    record_id: str,
    *,
    user_id: str = "alice",
    market_id: str = "m-1",
    minutes: int = 0,
) -> MarketResearchRecord:
    created = BASE_TIME + timedelta(minutes=minutes)
    return MarketResearchRecord(
        id=record_id,
        user_id=user_id,
        market_id=market_id,
        market_question="Will it happen?",
        verdict="UNCERTAIN",
        confidence=0.4,
        result_json="{}",
        created_at=created,
    )


@pytest.mark.asyncio
async def test_add_and_get_round_trip(db_session) -> None:
    repo = ResearchRepository(db_session)

    await repo.add(_record("r-1"))
    await repo.commit()

    fetched = await repo.get_for_user("alice", "r-1")
    assert fetched is not None
    assert fetched.market_question == "Will it happen?"
    assert fetched.intermediate_json is None


@pytest.mark.asyncio
async def test_latest_for_picks_newest_for_user_and_market(db_session) -> None:
    repo = ResearchRepository(db_session)
    for record in (
        _record("old", minutes=0),
        _record("new", minutes=10),
        _record("other-market", market_id="m-2", minutes=20),
        _record("other-user", user_id="bob", minutes=30),
    ):
        await repo.add(record)
    await repo.commit()

    latest = await repo.latest_for("alice", "m-1")

    assert latest is not None
    assert latest.id == "new"
    assert await repo.latest_for("carol", "m-1") is None


@pytest.mark.asyncio
async def test_get_for_user_enforces_ownership(db_session) -> None:
    repo = ResearchRepository(db_session)
    await repo.add(_record("r-1"))
    await repo.commit()

    assert await repo.get_for_user("alice", "r-1") is not None
    assert await repo.get_for_user("bob", "r-1") is None


@pytest.mark.asyncio
async def test_history_and_count(db_session) -> None:
    repo = ResearchRepository(db_session)
    for i, market_id in enumerate(["m-1", "m-2", "m-1", "m-3"]):
        await repo.add(_record(f"r-{i}", market_id=market_id, minutes=i))
    await repo.add(_record("bob-1", user_id="bob"))
    await repo.commit()

    page = await repo.history("alice", limit=2)
    assert [r.id for r in page] == ["r-3", "r-2"]

    rest = await repo.history("alice", limit=10, offset=2)
    assert [r.id for r in rest] == ["r-1", "r-0"]

    m1 = await repo.history("alice", market_id="m-1")
    assert [r.id for r in m1] == ["r-2", "r-0"]

    assert await repo.count("alice") == 4
    assert await repo.count("alice", market_id="m-1") == 2
    assert await repo.count("bob") == 1
