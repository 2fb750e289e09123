"""Rate limiter: fixed-window RPM and RPD budgets per provider.

Each provider gets a minute window and a day window.  A window whose
expiry has passed is reset before it is consulted; a day reset also
resets the minute window.  Daily token usage rides along with the day
window so the task router can steer work away from nearly spent providers.
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass

import structlog

logger = structlog.get_logger(__name__)

MINUTE_SECONDS = 60.0
DAY_SECONDS = 86_400.0


@dataclass
class _WindowState:
    minute_count: int = 0
    day_count: int = 0
    day_tokens: int = 0
    minute_reset: float = 0.0
    day_reset: float = 0.0


@dataclass(frozen=True)
class _Limits:
    rpm: int
    rpd: int


class RateLimiter:
    """Thread-safe fixed-window request counters for every registered provider."""

    def __init__(
        self,
        *,
        warning_threshold: float = 0.90,
        clock=time.monotonic,
    ) -> None:
        self._warning_thr = warning_threshold
        self._clock = clock
        self._limits: dict[str, _Limits] = {}
        self._states: dict[str, _WindowState] = {}
        self._warned: set[str] = set()
        self._lock = threading.Lock()

    def register(self, provider_id: str, *, rpm_limit: int = 0, rpd_limit: int = 0) -> None:
        with self._lock:
            self._limits[provider_id] = _Limits(rpm=rpm_limit, rpd=rpd_limit)

    def allow(self, provider_id: str) -> bool:
        """True while both the minute and the day window have room."""
        limits = self._limits.get(provider_id)
        if limits is None:
            return True
        with self._lock:
            state = self._roll(provider_id)
            if limits.rpm > 0 and state.minute_count >= limits.rpm:
                logger.debug(
                    "rate_limit_rpm_exhausted",
                    provider=provider_id,
                    current=state.minute_count,
                    limit=limits.rpm,
                )
                return False
            if limits.rpd > 0 and state.day_count >= limits.rpd:
                logger.debug(
                    "rate_limit_rpd_exhausted",
                    provider=provider_id,
                    current=state.day_count,
                    limit=limits.rpd,
                )
                return False
            return True

    def record(self, provider_id: str, tokens: int = 0) -> None:
        """Count one request (and its token usage) against both windows."""
        with self._lock:
            state = self._roll(provider_id)
            state.minute_count += 1
            state.day_count += 1
            state.day_tokens += max(tokens, 0)
            self._check_warning(provider_id, state)

    def record_tokens(self, provider_id: str, tokens: int) -> None:
        """Add token usage to today's total without counting a request."""
        with self._lock:
            self._roll(provider_id).day_tokens += max(tokens, 0)

    def remaining(self, provider_id: str) -> tuple[int | None, int | None]:
        """Requests left as ``(minute, day)``; ``None`` means unlimited."""
        limits = self._limits.get(provider_id, _Limits(0, 0))
        with self._lock:
            state = self._roll(provider_id)
            minute = max(0, limits.rpm - state.minute_count) if limits.rpm > 0 else None
            day = max(0, limits.rpd - state.day_count) if limits.rpd > 0 else None
            return minute, day

    def daily_tokens(self, provider_id: str) -> int:
        with self._lock:
            return self._roll(provider_id).day_tokens

    def reset(self, provider_id: str | None = None) -> None:
        """Force-reset counters for one provider, or all (admin override)."""
        with self._lock:
            if provider_id is None:
                self._states.clear()
                self._warned.clear()
            else:
                self._states.pop(provider_id, None)
                self._warned.discard(provider_id)
        logger.info("rate_limiter_reset", provider=provider_id or "*")

    # ── Internals ────────────────────────────────────────────
    def _roll(self, provider_id: str) -> _WindowState:
        """Return the provider's state with expired windows reset. Caller holds lock."""
        now = self._clock()
        state = self._states.get(provider_id)
        if state is None or now >= state.day_reset:
            state = _WindowState(
                minute_reset=now + MINUTE_SECONDS,
                day_reset=now + DAY_SECONDS,
            )
            self._states[provider_id] = state
            self._warned.discard(provider_id)
        elif now >= state.minute_reset:
            state.minute_count = 0
            state.minute_reset = now + MINUTE_SECONDS
            self._warned.discard(provider_id)
        return state

    def _check_warning(self, provider_id: str, state: _WindowState) -> None:
        """Emit an early warning when the minute budget is nearly spent. Caller holds lock."""
        limits = self._limits.get(provider_id)
        if limits is None or limits.rpm <= 0 or provider_id in self._warned:
            return
        usage_pct = state.minute_count / limits.rpm
        if usage_pct >= self._warning_thr:
            self._warned.add(provider_id)
            logger.warning(
                "rate_limit_warning",
                provider=provider_id,
                usage_pct=float(f"{(usage_pct * 100):.1f}"),
                requests_used=state.minute_count,
                rpm_limit=limits.rpm,
            )
