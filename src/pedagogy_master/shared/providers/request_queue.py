"""Single-lane request queue for outbound synthesis calls.

Jobs run one at a time in arrival order, and consecutive job starts are
separated by a fixed delay so bursts never reach an upstream API at once.
"""

from __future__ import annotations

import asyncio
import time
from typing import Awaitable, Callable, Optional, TypeVar

import structlog

logger = structlog.get_logger(__name__)

T = TypeVar("T")


class RequestQueue:
    """FIFO serializer with a minimum gap between job starts.

    ``asyncio.Lock`` wakes waiters in FIFO order; it is created lazily so
    it binds to the running event loop on first use.
    """

    def __init__(self, *, start_delay_s: float = 0.15) -> None:
        self._delay = start_delay_s
        self._lock: Optional[asyncio.Lock] = None
        self._last_start: float | None = None
        self._queued = 0
        self._active = 0

    def _get_lock(self) -> asyncio.Lock:
        if self._lock is None:
            self._lock = asyncio.Lock()
        return self._lock

    async def add(self, job: Callable[[], Awaitable[T]]) -> T:
        """Run ``job`` once every earlier job has finished; re-raises its error."""
        self._queued += 1
        try:
            await self._get_lock().acquire()
        finally:
            self._queued -= 1

        try:
            await self._wait_for_slot()
            self._active += 1
            self._last_start = time.monotonic()
            try:
                return await job()
            finally:
                self._active -= 1
        finally:
            self._get_lock().release()

    async def _wait_for_slot(self) -> None:
        if self._last_start is None or self._delay <= 0:
            return
        wait = self._delay - (time.monotonic() - self._last_start)
        if wait > 0:
            logger.debug("request_queue_throttle", wait_ms=round(wait * 1000, 1))
            await asyncio.sleep(wait)

    def __len__(self) -> int:
        return self._queued

    def stats(self) -> dict[str, int]:
        return {"queued": self._queued, "active": self._active, "capacity": 1}
