# This project was developed with assistance from AI tools.
"""In-process per-loan serialization.

Complements the store's transaction-scoped advisory locks: those serialize
across processes, these serialize coroutines sharing one event loop.
"""

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager


class LoanLocks:
    """One asyncio.Lock per (tenant_id, loan_id), re-entrant within a task.

    Re-entry lets an orchestrator stage hold the loan while calling services
    that take the same lock.
    """

    def __init__(self):
        self._locks: dict[tuple[int, int], asyncio.Lock] = {}
        self._owners: dict[tuple[int, int], asyncio.Task] = {}
        # Holders plus waiters per key; the lock is dropped when it reaches zero.
        self._users: dict[tuple[int, int], int] = {}

    def is_locked(self, tenant_id: int, loan_id: int) -> bool:
        lock = self._locks.get((tenant_id, loan_id))
        return lock is not None and lock.locked()

    @asynccontextmanager
    async def hold(self, tenant_id: int, loan_id: int) -> AsyncIterator[None]:
        key = (tenant_id, loan_id)
        task = asyncio.current_task()
        if task is not None and self._owners.get(key) is task:
            yield
            return

        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = asyncio.Lock()
        self._users[key] = self._users.get(key, 0) + 1
        try:
            async with lock:
                self._owners[key] = task
                try:
                    yield
                finally:
                    self._owners.pop(key, None)
        finally:
            self._users[key] -= 1
            if not self._users[key]:
                del self._users[key]
                del self._locks[key]
