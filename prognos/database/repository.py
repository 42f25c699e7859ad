"""Pool and prediction store.

Every state transition the settlement engine relies on (stake increment,
resolution, claim) is a conditional UPDATE inside a single transaction, so a
second writer in another process observes zero matched rows instead of
silently overwriting.
"""

from __future__ import annotations

import logging
import uuid
from contextlib import asynccontextmanager
from datetime import datetime
from typing import AsyncIterator, Mapping, Optional

from sqlalchemy import func, insert, select, update
from sqlalchemy import exc as sa_exc
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert

from prognos.settlement.errors import ConcurrencyConflict, StoreUnavailable, TransactionReused

from .dbm import DBM
from .schema import Pool, Prediction, StakeTransaction
from .schema.base import ensure_utc, utcnow


logger = logging.getLogger(__name__)


class _Rollback(Exception):
    """Internal signal: abort the open transaction without surfacing an error."""


@asynccontextmanager
async def _store_errors(op: str) -> AsyncIterator[None]:
    try:
        yield
    except sa_exc.IntegrityError as exc:
        logger.warning({"store": {"op": op, "error": "integrity", "detail": str(exc.orig)}})
        raise ConcurrencyConflict(f"{op}: conflicting concurrent write") from exc
    except (
        sa_exc.OperationalError,
        sa_exc.InterfaceError,
        sa_exc.TimeoutError,
        TimeoutError,
        OSError,
    ) as exc:
        logger.warning({"store": {"op": op, "error": "unavailable", "detail": str(exc)}})
        raise StoreUnavailable(f"{op}: {exc}") from exc


class PoolStore:
    def __init__(self, dbm: DBM):
        self.dbm = dbm

    def _insert(self):
        if self.dbm.engine.dialect.name == "postgresql":
            return pg_insert(Prediction)
        return sqlite_insert(Prediction)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def create_pool(
        self,
        *,
        title: str,
        deadline: datetime,
        description: str = "",
        tag: str = "",
        image: Optional[str] = None,
        pool_id: Optional[str] = None,
    ) -> Pool:
        pool = Pool(
            pool_id=pool_id or str(uuid.uuid4()),
            title=title,
            description=description,
            tag=tag,
            image=image,
            deadline=ensure_utc(deadline),
            total_stake=0.0,
            is_resolved=False,
        )
        async with _store_errors("create_pool"):
            async with self.dbm.session() as session:
                async with session.begin():
                    session.add(pool)
        return pool

    async def get_pool(self, pool_id: str) -> Optional[Pool]:
        async with _store_errors("get_pool"):
            async with self.dbm.session() as session:
                return await session.get(Pool, pool_id)

    async def load_pool(self, pool_id: str) -> Optional[tuple[Pool, list[Prediction]]]:
        """Pool plus all of its predictions, read in one session."""
        async with _store_errors("load_pool"):
            async with self.dbm.session() as session:
                pool = await session.get(Pool, pool_id)
                if pool is None:
                    return None
                rows = await session.execute(
                    select(Prediction)
                    .where(Prediction.pool_id == pool_id)
                    .order_by(Prediction.created_at, Prediction.prediction_id)
                )
                return pool, list(rows.scalars().all())

    async def list_predictions(self, pool_id: str) -> list[Prediction]:
        stmt = (
            select(Prediction)
            .where(Prediction.pool_id == pool_id)
            .order_by(Prediction.created_at, Prediction.prediction_id)
        )
        async with _store_errors("list_predictions"):
            async with self.dbm.session() as session:
                rows = await session.execute(stmt)
                return list(rows.scalars().all())

    async def get_prediction(self, pool_id: str, subject_id: str) -> Optional[Prediction]:
        stmt = select(Prediction).where(
            Prediction.pool_id == pool_id,
            Prediction.subject_id == subject_id,
        )
        async with _store_errors("get_prediction"):
            async with self.dbm.session() as session:
                rows = await session.execute(stmt)
                return rows.scalars().first()

    async def transaction_used(self, transaction_id: str) -> bool:
        stmt = select(StakeTransaction.transaction_id).where(
            StakeTransaction.transaction_id == transaction_id
        )
        async with _store_errors("transaction_used"):
            async with self.dbm.session() as session:
                rows = await session.execute(stmt)
                return rows.first() is not None

    async def list_expired_unresolved(self, now: Optional[datetime] = None) -> list[Pool]:
        cutoff = ensure_utc(now) if now is not None else utcnow()
        stmt = (
            select(Pool)
            .where(Pool.is_resolved.is_(False))
            .where(Pool.deadline < cutoff)
            .order_by(Pool.deadline)
        )
        async with _store_errors("list_expired_unresolved"):
            async with self.dbm.session() as session:
                rows = await session.execute(stmt)
                return list(rows.scalars().all())

    # ------------------------------------------------------------------
    # Conditional writes
    # ------------------------------------------------------------------

    async def upsert_vote(
        self,
        pool_id: str,
        subject_id: str,
        prediction_value: str,
        now: Optional[datetime] = None,
    ) -> bool:
        """Create or re-value a prediction while the pool is open.

        Returns False when the pool is missing, resolved or past its deadline;
        nothing is written in that case.
        """
        now = ensure_utc(now) if now is not None else utcnow()
        gate = (
            update(Pool)
            .where(Pool.pool_id == pool_id)
            .where(Pool.is_resolved.is_(False))
            .where(Pool.deadline > now)
            .values(updated_at=now)
        )
        stmt = self._insert().values(
            prediction_id=str(uuid.uuid4()),
            pool_id=pool_id,
            subject_id=subject_id,
            prediction_value=prediction_value,
            stake_amount=0.0,
            claimed=False,
            created_at=now,
            updated_at=now,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[Prediction.pool_id, Prediction.subject_id],
            set_={"prediction_value": prediction_value, "updated_at": now},
        )
        try:
            async with _store_errors("upsert_vote"):
                async with self.dbm.session() as session:
                    async with session.begin():
                        opened = await session.execute(gate)
                        if opened.rowcount != 1:
                            raise _Rollback()
                        await session.execute(stmt)
        except _Rollback:
            return False
        return True

    async def record_stake(
        self,
        pool_id: str,
        subject_id: str,
        prediction_value: str,
        amount: float,
        now: Optional[datetime] = None,
        *,
        transaction_id: Optional[str] = None,
        transaction_verified: bool = False,
    ) -> bool:
        """Add ``amount`` to the pool total and to the subject's prediction.

        Both writes share one transaction. The pool increment only matches an
        unresolved pool whose deadline is still ahead; otherwise nothing is
        written and False is returned. A ``transaction_id`` is recorded in the
        same transaction and can fund only one stake; reuse raises
        ``TransactionReused``.
        """
        now = ensure_utc(now) if now is not None else utcnow()
        increment = (
            update(Pool)
            .where(Pool.pool_id == pool_id)
            .where(Pool.is_resolved.is_(False))
            .where(Pool.deadline > now)
            .values(total_stake=Pool.total_stake + amount, updated_at=now)
        )
        stmt = self._insert().values(
            prediction_id=str(uuid.uuid4()),
            pool_id=pool_id,
            subject_id=subject_id,
            prediction_value=prediction_value,
            stake_amount=amount,
            claimed=False,
            created_at=now,
            updated_at=now,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[Prediction.pool_id, Prediction.subject_id],
            set_={
                "prediction_value": prediction_value,
                "stake_amount": Prediction.stake_amount + amount,
                "updated_at": now,
            },
        )
        try:
            async with _store_errors("record_stake"):
                async with self.dbm.session() as session:
                    async with session.begin():
                        if transaction_id is not None:
                            used = await session.execute(
                                select(StakeTransaction.transaction_id).where(
                                    StakeTransaction.transaction_id == transaction_id
                                )
                            )
                            if used.first() is not None:
                                raise TransactionReused(transaction_id)
                        result = await session.execute(increment)
                        if result.rowcount != 1:
                            raise _Rollback()
                        await session.execute(stmt)
                        if transaction_id is not None:
                            await session.execute(
                                insert(StakeTransaction).values(
                                    transaction_id=transaction_id,
                                    pool_id=pool_id,
                                    subject_id=subject_id,
                                    amount=amount,
                                    verified=transaction_verified,
                                    created_at=now,
                                )
                            )
        except _Rollback:
            return False
        except ConcurrencyConflict:
            # a concurrent stake claimed the same transaction first
            if transaction_id is not None and await self.transaction_used(transaction_id):
                raise TransactionReused(transaction_id) from None
            raise
        return True

    async def settle(
        self,
        pool_id: str,
        outcome_value: float,
        rewards: Mapping[str, float],
        *,
        expected_total_stake: Optional[float] = None,
    ) -> bool:
        """Write every reward and flip the pool to resolved, all or nothing.

        ``rewards`` maps prediction_id to its reward and must cover every
        prediction of the pool. Returns False when the pool was already
        resolved (the transaction is rolled back). Raises ConcurrencyConflict
        when the pool changed underneath the caller (a stake landed after the
        allocation was computed, or a reward was already present).
        """
        now = utcnow()
        cas = (
            update(Pool)
            .where(Pool.pool_id == pool_id)
            .where(Pool.is_resolved.is_(False))
            .values(outcome_value=outcome_value, is_resolved=True, updated_at=now)
        )
        if expected_total_stake is not None:
            cas = cas.where(Pool.total_stake == expected_total_stake)

        try:
            async with _store_errors("settle"):
                async with self.dbm.session() as session:
                    async with session.begin():
                        written = 0
                        for prediction_id, reward in rewards.items():
                            result = await session.execute(
                                update(Prediction)
                                .where(Prediction.prediction_id == prediction_id)
                                .where(Prediction.pool_id == pool_id)
                                .where(Prediction.claimable_reward.is_(None))
                                .values(claimable_reward=float(reward), updated_at=now)
                            )
                            written += result.rowcount

                        flipped = await session.execute(cas)
                        if flipped.rowcount != 1:
                            resolved = await session.scalar(
                                select(Pool.is_resolved).where(Pool.pool_id == pool_id)
                            )
                            if resolved:
                                raise _Rollback()
                            raise ConcurrencyConflict(
                                f"pool {pool_id} changed while its rewards were being computed"
                            )

                        missing = await session.scalar(
                            select(func.count())
                            .select_from(Prediction)
                            .where(Prediction.pool_id == pool_id)
                            .where(Prediction.claimable_reward.is_(None))
                        )
                        if written != len(rewards) or missing:
                            raise ConcurrencyConflict(
                                f"pool {pool_id} predictions changed while its rewards were being computed"
                            )
        except _Rollback:
            return False
        return True

    async def mark_claimed(self, prediction_id: str) -> bool:
        """Flip ``claimed`` once. False means another claimer got there first."""
        stmt = (
            update(Prediction)
            .where(Prediction.prediction_id == prediction_id)
            .where(Prediction.claimed.is_(False))
            .where(Prediction.claimable_reward > 0)
            .values(claimed=True, updated_at=utcnow())
        )
        async with _store_errors("mark_claimed"):
            async with self.dbm.session() as session:
                async with session.begin():
                    result = await session.execute(stmt)
                    return result.rowcount == 1

    async def backfill_rewards(self, pool_id: str, rewards: Mapping[str, float]) -> int:
        """Fill rewards that are still NULL; stored rewards are left untouched."""
        now = utcnow()
        written = 0
        async with _store_errors("backfill_rewards"):
            async with self.dbm.session() as session:
                async with session.begin():
                    for prediction_id, reward in rewards.items():
                        result = await session.execute(
                            update(Prediction)
                            .where(Prediction.prediction_id == prediction_id)
                            .where(Prediction.pool_id == pool_id)
                            .where(Prediction.claimable_reward.is_(None))
                            .values(claimable_reward=float(reward), updated_at=now)
                        )
                        written += result.rowcount
        return written


__all__ = ["PoolStore"]
