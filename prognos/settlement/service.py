"""Settlement service facade.

Builds the store, the shared pool locks and every settlement component from
``Settings`` and exposes the operations callers (HTTP layer, CLI) use.
"""

from __future__ import annotations

import logging
from typing import Optional, Union

from prognos.config import Settings
from prognos.database.dbm import DBM
from prognos.database.repository import PoolStore
from prognos.database.schema import Prediction
from prognos.ledger import LedgerVerifier, StacksLedgerClient
from prognos.shared.enums import ScoringMode

from .claims import ClaimGate
from .coordinator import SettlementCoordinator
from .locks import PoolLocks
from .oracle import OutcomeOracle
from .scheduler import ResolutionScheduler
from .stakes import StakeDesk
from .types import (
    ClaimCheck,
    ClaimReceipt,
    ResolutionResult,
    RewardSummary,
    SchedulerStatus,
    StakeReceipt,
    SweepReport,
)


logger = logging.getLogger(__name__)


class SettlementService:
    def __init__(
        self,
        settings: Settings,
        dbm: DBM,
        *,
        oracle: Optional[OutcomeOracle] = None,
        ledger_client: Optional[StacksLedgerClient] = None,
    ):
        self.settings = settings
        self.dbm = dbm
        self.store = PoolStore(dbm)
        self.locks = PoolLocks()
        self.ledger_client = ledger_client
        verifier = LedgerVerifier(ledger_client, settings.ledger) if ledger_client is not None else None

        self.coordinator = SettlementCoordinator(
            self.store,
            self.locks,
            default_mode=settings.settlement.default_mode,
        )
        self.claims = ClaimGate(self.store, self.locks)
        self.stakes = StakeDesk(self.store, self.locks, settings.stakes, verifier)
        self.scheduler = ResolutionScheduler(
            self.coordinator,
            self.store,
            oracle,
            interval_seconds=settings.scheduler.interval_seconds,
        )

    @classmethod
    def from_settings(
        cls,
        settings: Optional[Settings] = None,
        *,
        oracle: Optional[OutcomeOracle] = None,
    ) -> "SettlementService":
        settings = settings or Settings()
        ledger_client = StacksLedgerClient(settings=settings.ledger)
        return cls(settings, DBM(settings), oracle=oracle, ledger_client=ledger_client)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        if not self.settings.scheduler.enabled:
            logger.info({"settlement_service": {"event": "scheduler_disabled"}})
            return
        self.scheduler.start()

    async def close(self) -> None:
        await self.scheduler.stop()
        if self.ledger_client is not None:
            await self.ledger_client.close()
        await self.dbm.dispose()

    async def __aenter__(self) -> "SettlementService":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    async def resolve_pool(
        self,
        pool_id: str,
        outcome_value: object,
        mode: Union[ScoringMode, str, None] = None,
    ) -> ResolutionResult:
        return await self.coordinator.resolve_pool(pool_id, outcome_value, mode)

    async def get_reward_summary(
        self,
        pool_id: str,
        mode: Union[ScoringMode, str, None] = None,
    ) -> RewardSummary:
        return await self.coordinator.get_reward_summary(pool_id, mode)

    async def repair_rewards(self, pool_id: str, mode: Union[ScoringMode, str, None] = None) -> int:
        return await self.coordinator.repair_rewards(pool_id, mode)

    async def check_claim(self, pool_id: str, subject_id: str) -> ClaimCheck:
        return await self.claims.check_claim(pool_id, subject_id)

    async def claim(self, pool_id: str, subject_id: str) -> ClaimReceipt:
        return await self.claims.claim(pool_id, subject_id)

    async def submit_vote(self, pool_id: str, subject_id: str, prediction_value: str) -> Prediction:
        return await self.stakes.submit_vote(pool_id, subject_id, prediction_value)

    async def submit_stake(
        self,
        pool_id: str,
        subject_id: str,
        prediction_value: str,
        amount: object,
        transaction_id: Optional[str] = None,
    ) -> StakeReceipt:
        return await self.stakes.submit_stake(pool_id, subject_id, prediction_value, amount, transaction_id)

    def scheduler_status(self) -> SchedulerStatus:
        return self.scheduler.status()

    async def trigger_sweep_now(self) -> SweepReport:
        return await self.scheduler.sweep_now()


__all__ = ["SettlementService"]
