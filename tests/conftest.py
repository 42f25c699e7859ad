from __future__ import annotations

import os
from datetime import datetime, timedelta, timezone

import pytest
import pytest_asyncio
from sqlalchemy import update

from prognos.config import Settings
from prognos.config.db_url import build_sqlite_url
from prognos.database import DBM, PoolStore
from prognos.database.schema import Pool
from prognos.settlement.coordinator import SettlementCoordinator
from prognos.settlement.locks import PoolLocks


def _in(minutes: int) -> datetime:
    return datetime.now(timezone.utc) + timedelta(minutes=minutes)


@pytest.fixture
def settings() -> Settings:
    return Settings(test_mode=True)


@pytest_asyncio.fixture
async def dbm(tmp_path, settings):
    db = DBM(settings, url=build_sqlite_url(os.path.join(str(tmp_path), "prognos-test.db")))
    await db.create_all()
    try:
        yield db
    finally:
        await db.dispose()


@pytest.fixture
def store(dbm) -> PoolStore:
    return PoolStore(dbm)


@pytest.fixture
def locks() -> PoolLocks:
    return PoolLocks()


@pytest.fixture
def coordinator(store, locks) -> SettlementCoordinator:
    return SettlementCoordinator(store, locks)


@pytest.fixture
def set_deadline(store):
    async def _set(pool_id: str, deadline: datetime) -> None:
        async with store.dbm.session() as session:
            async with session.begin():
                await session.execute(
                    update(Pool)
                    .where(Pool.pool_id == pool_id)
                    .values(deadline=deadline.astimezone(timezone.utc))
                )

    return _set


@pytest.fixture
def seed_pool(store, set_deadline):
    """Create an open pool and add (subject, value, stake) rows to it.

    Rows go in while the deadline is ahead; ``expired=True`` moves the
    deadline into the past afterwards so expired pools can carry predictions.
    """

    async def _seed(predictions=(), *, expired: bool = False, title: str = "Will it rain?"):
        pool = await store.create_pool(title=title, deadline=_in(60))
        for subject, value, stake in predictions:
            if stake:
                assert await store.record_stake(pool.pool_id, subject, value, float(stake))
            else:
                assert await store.upsert_vote(pool.pool_id, subject, value)
        if expired:
            await set_deadline(pool.pool_id, _in(-5))
        return pool

    return _seed


SCENARIO_A = [
    ("alice", "60", 10),
    ("bob", "40", 20),
    ("charlie", "55", 5),
]


@pytest.fixture
def scenario_a():
    return list(SCENARIO_A)
