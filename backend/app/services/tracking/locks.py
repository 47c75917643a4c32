"""
Resource Lock Registry

Keyed mutex that serializes every mutation of one resource's sessions,
page activities and progress. This is the engine's concurrency boundary:
start, page change, heartbeat, end and the reaper's force close all hold
the lock of the resource they touch, while different resources proceed
independently.

Locks are process-local and weakly held, so a resource nobody is using
costs nothing.

Usage:
    from app.services.tracking.locks import resource_locks

    async with resource_locks.hold(resource_id):
        ...
"""

import asyncio
import weakref
from contextlib import asynccontextmanager
from typing import AsyncIterator


class ResourceLockRegistry:
    """Hands out one asyncio.Lock per resource id."""

    def __init__(self):
        self._locks: "weakref.WeakValueDictionary[int, asyncio.Lock]" = (
            weakref.WeakValueDictionary()
        )

    def get(self, resource_id: int) -> asyncio.Lock:
        """
        Get the lock for a resource, creating it on first use.

        No await happens between lookup and insert, so two coroutines on
        the same loop always receive the same lock object.
        """
        lock = self._locks.get(resource_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[resource_id] = lock
        return lock

    @asynccontextmanager
    async def hold(self, resource_id: int) -> AsyncIterator[None]:
        """Hold the resource's lock for the duration of the block."""
        # Strong reference keeps the entry alive while held
        lock = self.get(resource_id)
        async with lock:
            yield

    def is_locked(self, resource_id: int) -> bool:
        lock = self._locks.get(resource_id)
        return lock is not None and lock.locked()

    def __len__(self) -> int:
        return len(self._locks)


# Shared by request handlers and the reaper
resource_locks = ResourceLockRegistry()
