"""
In-process, per-entity mutual exclusion.

Row locks (``SELECT ... FOR UPDATE``) serialize coupling operations on
PostgreSQL. SQLite ignores them, so the services also take an asyncio lock
per touched entity. Keys are acquired in sorted order, which gives every
caller the same global ordering (``chassis`` before ``engine``).
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict, Hashable, Tuple

logger = logging.getLogger(__name__)

EntityKey = Tuple[str, Hashable]


class EntityLocks:
    """Registry of asyncio locks keyed by (entity kind, entity id)."""

    def __init__(self):
        self._locks: Dict[EntityKey, asyncio.Lock] = {}
        self._users: Dict[EntityKey, int] = {}

    def __len__(self) -> int:
        return len(self._locks)

    def is_locked(self, key: EntityKey) -> bool:
        lock = self._locks.get(key)
        return lock is not None and lock.locked()

    @asynccontextmanager
    async def hold(self, *keys: EntityKey) -> AsyncIterator[None]:
        """Acquire every key (sorted, deduplicated) and release them in reverse order."""
        ordered = sorted(set(keys), key=lambda k: (k[0], str(k[1])))
        acquired = []
        try:
            for key in ordered:
                lock = self._checkout(key)
                try:
                    await lock.acquire()
                except BaseException:
                    self._checkin(key)
                    raise
                acquired.append(key)
            yield
        finally:
            for key in reversed(acquired):
                self._locks[key].release()
                self._checkin(key)

    def _checkout(self, key: EntityKey) -> asyncio.Lock:
        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = asyncio.Lock()
        self._users[key] = self._users.get(key, 0) + 1
        return lock

    def _checkin(self, key: EntityKey) -> None:
        remaining = self._users[key] - 1
        if remaining:
            self._users[key] = remaining
        else:
            # Nobody holds or waits on it anymore
            del self._users[key]
            del self._locks[key]


# Process-wide default, shared by every service instance in this process
entity_locks = EntityLocks()
