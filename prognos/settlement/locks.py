"""Per-pool mutual exclusion within one process.

Cross-process safety comes from the store's conditional updates; these locks
keep a single process from racing itself and make lost races rare.
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator


class PoolLocks:
    def __init__(self) -> None:
        self._locks: dict[str, asyncio.Lock] = {}
        self._holders: dict[str, int] = {}

    @asynccontextmanager
    async def hold(self, pool_id: str) -> AsyncIterator[None]:
        lock = self._locks.get(pool_id)
        if lock is None:
            lock = self._locks[pool_id] = asyncio.Lock()
        self._holders[pool_id] = self._holders.get(pool_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            remaining = self._holders[pool_id] - 1
            if remaining:
                self._holders[pool_id] = remaining
            else:
                # last holder gone
                del self._holders[pool_id]
                del self._locks[pool_id]

    def is_locked(self, pool_id: str) -> bool:
        lock = self._locks.get(pool_id)
        return lock is not None and lock.locked()

    def __len__(self) -> int:
        return len(self._locks)


__all__ = ["PoolLocks"]
