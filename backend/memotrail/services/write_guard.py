from __future__ import annotations

import asyncio
import logging
import weakref
from collections.abc import Awaitable, Callable
from typing import TypeVar

from memotrail.domain.errors import WriteConflictError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class MemoWriteGuard:
    """Serialize read-compute-write cycles per memo and retry lost races.

    The in-process lock keeps writers in this process from forking a memo;
    the store's compare-and-swap catches writers in other processes, which
    surface as ``WriteConflictError`` and are retried a bounded number of times.
    """

    def __init__(self, max_attempts: int = 3) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self._max_attempts = max_attempts
        # Entries vanish once no writer holds a reference to the lock.
        self._locks: weakref.WeakValueDictionary[str, asyncio.Lock] = (
            weakref.WeakValueDictionary()
        )

    def lock_for(self, memo_id: str) -> asyncio.Lock:
        lock = self._locks.get(memo_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[memo_id] = lock
        return lock

    def is_locked(self, memo_id: str) -> bool:
        lock = self._locks.get(memo_id)
        return lock is not None and lock.locked()

    async def run(self, memo_id: str, operation: Callable[[], Awaitable[T]]) -> T:
        """Run ``operation`` under the memo's lock, retrying on write conflicts."""

        lock = self.lock_for(memo_id)
        async with lock:
            attempt = 1
            while True:
                try:
                    return await operation()
                except WriteConflictError:
                    if attempt >= self._max_attempts:
                        logger.warning(
                            "Write to memo %s still conflicting after %d attempts",
                            memo_id,
                            attempt,
                        )
                        raise
                    logger.warning(
                        "Write to memo %s conflicted (attempt %d/%d); retrying",
                        memo_id,
                        attempt,
                        self._max_attempts,
                    )
                    attempt += 1
