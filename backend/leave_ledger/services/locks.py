"""In-process keyed locks serializing ledger writes per (employee, leave type, cycle year)."""

from __future__ import annotations

import asyncio
import uuid
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import AsyncIterator


@dataclass(frozen=True)
class ScopeKey:
    """Identity of one running-balance chain in the ledger."""

    employee_id: uuid.UUID
    leave_type_id: uuid.UUID
    leave_cycle_year: int


class ScopeLocks:
    """Hands out one asyncio.Lock per scope key, dropping it when nobody holds or waits on it.

    This only orders coroutines inside one process; cross-process ordering is
    the database row lock on the scope head.
    """

    def __init__(self) -> None:
        self._locks: dict[ScopeKey, asyncio.Lock] = {}
        self._users: dict[ScopeKey, int] = {}

    @asynccontextmanager
    async def hold(self, key: ScopeKey) -> AsyncIterator[None]:
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        self._users[key] = self._users.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._users[key] -= 1
            if self._users[key] == 0:
                del self._users[key]
                del self._locks[key]

    def __len__(self) -> int:
        return len(self._locks)


scope_locks = ScopeLocks()
