"""Background resolution of pools whose deadline has passed.

The loop sweeps once on start and then every ``interval_seconds``. A sweep
resolves each expired pool on its own; one pool failing never stops the
others, and the pool is picked up again on the next sweep.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from time import monotonic
from typing import Callable, Optional

from prognos.database.repository import PoolStore
from prognos.database.schema.base import utcnow
from prognos.shared.enums import ScoringMode
from prognos.shared.logging import log_event

from .coordinator import SettlementCoordinator
from .errors import AlreadyResolved
from .oracle import OutcomeOracle, RandomExtremeOracle, consensus_outcome
from .types import SchedulerStatus, SweepReport


logger = logging.getLogger(__name__)

DEFAULT_INTERVAL_SECONDS = 60.0


class ResolutionScheduler:
    def __init__(
        self,
        coordinator: SettlementCoordinator,
        store: PoolStore,
        oracle: Optional[OutcomeOracle] = None,
        *,
        interval_seconds: float = DEFAULT_INTERVAL_SECONDS,
        clock: Callable[[], datetime] = utcnow,
    ):
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        self.coordinator = coordinator
        self.store = store
        self.oracle = oracle or RandomExtremeOracle()
        self.interval_seconds = float(interval_seconds)
        self._clock = clock
        self._task: Optional[asyncio.Task] = None
        self._stop_event = asyncio.Event()
        self._sweep_lock = asyncio.Lock()

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Spawn the sweep loop on the running event loop."""
        if self.is_running:
            logger.info({"resolution_scheduler": {"event": "start_skipped", "reason": "already running"}})
            return
        self._stop_event = asyncio.Event()
        self._task = asyncio.get_running_loop().create_task(
            self._run(), name="prognos-resolution-scheduler"
        )
        logger.info(
            {"resolution_scheduler": {"event": "started", "interval_seconds": self.interval_seconds}}
        )

    async def stop(self) -> None:
        """Signal the loop and wait for it. A sweep in progress runs to completion."""
        if not self.is_running:
            logger.info({"resolution_scheduler": {"event": "stop_skipped", "reason": "not running"}})
            return
        self._stop_event.set()
        # a cancelled caller leaves the sweep running
        await asyncio.shield(self._task)
        self._task = None
        logger.info({"resolution_scheduler": {"event": "stopped"}})

    def status(self) -> SchedulerStatus:
        return SchedulerStatus(is_running=self.is_running, interval_seconds=self.interval_seconds)

    async def sweep_now(self) -> SweepReport:
        """Operational trigger; waits for any sweep already running."""
        logger.info({"resolution_scheduler": {"event": "manual_sweep"}})
        return await self.sweep()

    async def sweep(self) -> SweepReport:
        async with self._sweep_lock:
            return await self._sweep_once()

    async def _run(self) -> None:
        while not self._stop_event.is_set():
            try:
                await self.sweep()
            except Exception as exc:
                logger.error(
                    {"resolution_scheduler": {"event": "sweep_error", "error": str(exc)}},
                    exc_info=True,
                )
            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=self.interval_seconds)
            except asyncio.TimeoutError:
                pass

    async def _sweep_once(self) -> SweepReport:
        started = monotonic()
        report = SweepReport()
        try:
            pools = await self.store.list_expired_unresolved(self._clock())
        except Exception as exc:
            logger.error(
                {"resolution_scheduler": {"event": "pool_query_failed", "error": str(exc)}},
                exc_info=True,
            )
            return report

        report.examined = len(pools)
        for pool in pools:
            try:
                outcome = await self._fallback_outcome(pool.pool_id)
                await self.coordinator.resolve_pool(pool.pool_id, outcome, ScoringMode.LINEAR)
                report.resolved += 1
            except AlreadyResolved:
                logger.info({"resolution_scheduler": {"event": "already_resolved", "pool_id": pool.pool_id}})
            except Exception as exc:
                report.failed += 1
                report.errors[pool.pool_id] = f"{type(exc).__name__}: {exc}"
                logger.error(
                    {
                        "resolution_scheduler": {
                            "event": "pool_resolution_failed",
                            "pool_id": pool.pool_id,
                            "error": str(exc),
                        }
                    },
                    exc_info=True,
                )

        if report.examined:
            summary = {
                "examined": report.examined,
                "resolved": report.resolved,
                "failed": report.failed,
                "elapsed_seconds": round(monotonic() - started, 3),
            }
            logger.info({"resolution_sweep": summary})
            log_event({"resolution_sweep": summary})
        else:
            logger.debug({"resolution_sweep": {"examined": 0}})
        return report

    async def _fallback_outcome(self, pool_id: str) -> float:
        predictions = await self.store.list_predictions(pool_id)
        if predictions:
            return consensus_outcome(predictions)
        return await self.oracle.outcome_for(pool_id)


__all__ = ["ResolutionScheduler", "DEFAULT_INTERVAL_SECONDS"]
