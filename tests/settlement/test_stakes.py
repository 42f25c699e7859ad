from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest

from prognos.config import StakeSettings
from prognos.ledger import Verification
from prognos.settlement.errors import (
    AlreadyResolved,
    DeadlinePassed,
    InvalidPredictionFormat,
    InvalidStake,
    InvalidSubject,
    LedgerVerificationFailed,
    PoolNotFound,
    TransactionReused,
)
from prognos.settlement.stakes import StakeDesk

TX = "0x" + "ab" * 32
TX2 = "0x" + "ef" * 32


def _verifier(verified: bool = True, error: str | None = None):
    verifier = MagicMock()
    verifier.verify_stake = AsyncMock(return_value=Verification(verified, error))
    return verifier


@pytest.fixture
def desk(store, locks):
    return StakeDesk(store, locks, StakeSettings(), _verifier())


@pytest.mark.asyncio
async def test_stake_creates_prediction_and_grows_pool(desk, store, seed_pool):
    pool = await seed_pool()

    receipt = await desk.submit_stake(pool.pool_id, "alice", "yes", 12.5, TX)

    assert receipt.transaction_verified is True
    assert receipt.stake_amount == 12.5
    prediction = await store.get_prediction(pool.pool_id, "alice")
    assert prediction.stake_amount == 12.5
    assert prediction.prediction_value == "yes"
    assert (await store.get_pool(pool.pool_id)).total_stake == 12.5
    desk.verifier.verify_stake.assert_awaited_once_with(TX, "alice", 12.5, 30)


@pytest.mark.asyncio
async def test_repeat_stake_accumulates_and_replaces_value(desk, store, seed_pool):
    pool = await seed_pool()
    await desk.submit_stake(pool.pool_id, "alice", "40", 10, TX)
    receipt = await desk.submit_stake(pool.pool_id, "alice", "65", 5, TX2)

    assert receipt.stake_amount == 15
    prediction = await store.get_prediction(pool.pool_id, "alice")
    assert prediction.stake_amount == 15
    assert prediction.prediction_value == "65"
    assert (await store.get_pool(pool.pool_id)).total_stake == 15
    assert len(await store.list_predictions(pool.pool_id)) == 1


@pytest.mark.asyncio
async def test_transaction_cannot_fund_two_stakes(desk, store, seed_pool):
    first = await seed_pool()
    second = await seed_pool()
    await desk.submit_stake(first.pool_id, "alice", "60", 10, TX)

    with pytest.raises(TransactionReused, match="already been used"):
        await desk.submit_stake(first.pool_id, "alice", "60", 10, TX)
    with pytest.raises(TransactionReused):
        await desk.submit_stake(second.pool_id, "bob", "40", 10, TX)

    assert (await store.get_pool(first.pool_id)).total_stake == 10
    assert (await store.get_pool(second.pool_id)).total_stake == 0
    desk.verifier.verify_stake.assert_awaited_once()


@pytest.mark.asyncio
async def test_blank_subject_is_rejected(desk, seed_pool):
    pool = await seed_pool()
    with pytest.raises(InvalidSubject):
        await desk.submit_stake(pool.pool_id, "  ", "yes", 5, TX)
    with pytest.raises(InvalidSubject):
        await desk.submit_vote(pool.pool_id, "", "yes")


@pytest.mark.asyncio
@pytest.mark.parametrize("amount", [0, -1, 10001, float("nan"), "5", True])
async def test_rejects_bad_amounts(desk, seed_pool, amount):
    pool = await seed_pool()
    with pytest.raises(InvalidStake):
        await desk.submit_stake(pool.pool_id, "alice", "yes", amount, TX)


@pytest.mark.asyncio
async def test_rejects_bad_value_and_transaction(desk, seed_pool):
    pool = await seed_pool()
    with pytest.raises(InvalidPredictionFormat):
        await desk.submit_stake(pool.pool_id, "alice", "perhaps", 1, TX)
    with pytest.raises(InvalidStake):
        await desk.submit_stake(pool.pool_id, "alice", "yes", 1, None)
    with pytest.raises(InvalidStake):
        await desk.submit_stake(pool.pool_id, "alice", "yes", 1, "0x1234")


@pytest.mark.asyncio
async def test_per_prediction_limit(store, locks, seed_pool):
    desk = StakeDesk(store, locks, StakeSettings(max_prediction_stake=100, require_transaction=False))
    pool = await seed_pool()
    await desk.submit_stake(pool.pool_id, "whale", "yes", 100)

    with pytest.raises(InvalidStake):
        await desk.submit_stake(pool.pool_id, "whale", "yes", 1)
    assert (await store.get_pool(pool.pool_id)).total_stake == 100


@pytest.mark.asyncio
async def test_ledger_rejection_leaves_pool_untouched(store, locks, seed_pool):
    desk = StakeDesk(store, locks, StakeSettings(), _verifier(False, "Transaction is too old"))
    pool = await seed_pool()

    with pytest.raises(LedgerVerificationFailed, match="too old"):
        await desk.submit_stake(pool.pool_id, "alice", "yes", 5, TX)

    assert (await store.get_pool(pool.pool_id)).total_stake == 0
    assert await store.get_prediction(pool.pool_id, "alice") is None


@pytest.mark.asyncio
async def test_closed_pools_refuse_stakes(desk, coordinator, seed_pool):
    with pytest.raises(PoolNotFound):
        await desk.submit_stake("missing", "alice", "yes", 5, TX)

    expired = await seed_pool(expired=True)
    with pytest.raises(DeadlinePassed):
        await desk.submit_stake(expired.pool_id, "alice", "yes", 5, TX)

    resolved = await seed_pool()
    await coordinator.resolve_pool(resolved.pool_id, 50)
    with pytest.raises(AlreadyResolved):
        await desk.submit_stake(resolved.pool_id, "alice", "yes", 5, TX)
    desk.verifier.verify_stake.assert_not_awaited()


@pytest.mark.asyncio
async def test_resolution_between_verify_and_write(store, locks, coordinator, seed_pool):
    pool = await seed_pool()
    verifier = MagicMock()

    async def verify_then_resolve(*args):
        await coordinator.resolve_pool(pool.pool_id, 50)
        return Verification(True)

    verifier.verify_stake = verify_then_resolve
    desk = StakeDesk(store, locks, StakeSettings(), verifier)

    with pytest.raises(AlreadyResolved):
        await desk.submit_stake(pool.pool_id, "late", "yes", 5, TX)
    assert (await store.get_pool(pool.pool_id)).total_stake == 0


class TestVotes:
    @pytest.mark.asyncio
    async def test_vote_then_revote(self, desk, store, seed_pool):
        pool = await seed_pool()
        first = await desk.submit_vote(pool.pool_id, "bob", "no")
        second = await desk.submit_vote(pool.pool_id, "bob", " 35 ")

        assert first.prediction_id == second.prediction_id
        assert second.prediction_value == "35"
        assert second.stake_amount == 0
        assert (await store.get_pool(pool.pool_id)).total_stake == 0

    @pytest.mark.asyncio
    async def test_vote_keeps_existing_stake(self, desk, store, seed_pool):
        pool = await seed_pool()
        await desk.submit_stake(pool.pool_id, "bob", "20", 8, TX)
        prediction = await desk.submit_vote(pool.pool_id, "bob", "80")
        assert prediction.stake_amount == 8
        assert prediction.prediction_value == "80"

    @pytest.mark.asyncio
    async def test_vote_rejections(self, desk, coordinator, seed_pool):
        with pytest.raises(PoolNotFound):
            await desk.submit_vote("missing", "bob", "yes")
        with pytest.raises(InvalidPredictionFormat):
            await desk.submit_vote("missing", "bob", "150")

        expired = await seed_pool(expired=True)
        with pytest.raises(DeadlinePassed):
            await desk.submit_vote(expired.pool_id, "bob", "yes")

        resolved = await seed_pool()
        await coordinator.resolve_pool(resolved.pool_id, 0)
        with pytest.raises(AlreadyResolved):
            await desk.submit_vote(resolved.pool_id, "bob", "yes")
