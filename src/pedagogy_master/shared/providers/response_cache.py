"""In-process response cache: TTL plus a hard entry cap.

Keys are derived from the normalised prompt and the two most recent
history turns, so a follow-up question in a different conversation does
not collide with the same words asked cold.
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from typing import Any, Iterable, Mapping

import structlog

logger = structlog.get_logger(__name__)


@dataclass
class _Entry:
    value: str
    provider: str
    timestamp: float


def make_key(prompt: str, history: Iterable[Mapping[str, Any]] = ()) -> str:
    recent = list(history)[-2:]
    recent_text = "|".join(str(m.get("content", "")) for m in recent)
    return f"{prompt.lower().strip()}::{recent_text}"


class ResponseCache:
    """Thread-safe TTL cache that evicts the oldest entry when full."""

    def __init__(
        self,
        *,
        ttl_seconds: float = 600.0,
        max_entries: int = 200,
        clock=time.monotonic,
    ) -> None:
        self._ttl = ttl_seconds
        self._max = max_entries
        self._clock = clock
        # insertion order == timestamp order, see set()
        self._entries: dict[str, _Entry] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> str | None:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if self._clock() - entry.timestamp > self._ttl:
                del self._entries[key]
                return None
        logger.debug("response_cache_hit", provider=entry.provider)
        return entry.value

    def set(self, key: str, value: str, provider: str = "") -> None:
        with self._lock:
            self._entries.pop(key, None)
            self._entries[key] = _Entry(value=value, provider=provider, timestamp=self._clock())
            while len(self._entries) > self._max:
                oldest = next(iter(self._entries))
                del self._entries[oldest]
                logger.debug("response_cache_evicted", size=len(self._entries))

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

    def stats(self) -> dict[str, int]:
        return {"size": len(self._entries), "capacity": self._max}
