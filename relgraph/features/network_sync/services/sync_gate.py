"""
Per-user single-flight gate for sync passes.

Two passes for the same user would interleave meeting delete/insert
pairs, so they are serialized. Passes for different users never wait on
each other. Process-local only.
"""

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from relgraph.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)


class SyncGate:
    def __init__(self):
        self._locks: dict[str, asyncio.Lock] = {}
        self._holders: dict[str, int] = {}

    def is_busy(self, user_id: str) -> bool:
        lock = self._locks.get(user_id)
        return bool(lock and lock.locked())

    @asynccontextmanager
    async def hold(self, user_id: str) -> AsyncIterator[None]:
        lock = self._locks.setdefault(user_id, asyncio.Lock())
        self._holders[user_id] = self._holders.get(user_id, 0) + 1

        if lock.locked():
            logger.info("Sync already running for user, waiting", user_id=user_id)

        try:
            async with lock:
                yield
        finally:
            self._holders[user_id] -= 1
            if self._holders[user_id] == 0:
                del self._holders[user_id]
                del self._locks[user_id]


sync_gate = SyncGate()
