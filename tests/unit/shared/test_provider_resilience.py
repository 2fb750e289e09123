"""Tests for the grid's resilience components.

Covers ProviderHealthTracker, CircuitBreaker (failure blacklist),
RateLimiter, ResponseCache and ProviderRouter.
"""

from __future__ import annotations

import pytest

from conftest import FakeClock, make_config
from pedagogy_master.domain.enums import TaskType
from pedagogy_master.shared.providers.circuit_breaker import CircuitBreaker, CircuitState
from pedagogy_master.shared.providers.health import ProviderHealthTracker
from pedagogy_master.shared.providers.rate_limiter import RateLimiter
from pedagogy_master.shared.providers.response_cache import ResponseCache, make_key
from pedagogy_master.shared.providers.router import (
    ProviderRouter,
    filter_eligible,
    is_mapping_task,
    select_provider,
)
from pedagogy_master.shared.providers.types import ProviderConfig, ProviderStatus


# ═══════════════════════════════════════════════════════════════
#  ProviderHealthTracker
# ═══════════════════════════════════════════════════════════════
class TestProviderHealthTracker:
    def test_starts_healthy(self) -> None:
        tracker = ProviderHealthTracker("gemini")
        assert tracker.status == ProviderStatus.HEALTHY
        h = tracker.health
        assert h.success_rate == 1.0
        assert h.total_requests == 0

    def test_records_success(self) -> None:
        tracker = ProviderHealthTracker("gemini")
        tracker.record_success(100.0)
        tracker.record_success(200.0)
        h = tracker.health
        assert h.total_requests == 2
        assert h.total_successes == 2
        assert h.consecutive_failures == 0
        assert h.latency_p50_ms > 0

    def test_failures_degrade_then_mark_unhealthy(self) -> None:
        tracker = ProviderHealthTracker("groq")
        tracker.record_success(50.0)
        tracker.record_success(50.0)
        tracker.record_failure("HTTP 500")
        assert tracker.status == ProviderStatus.DEGRADED

        tracker.record_failure("HTTP 500")
        tracker.record_failure("HTTP 500")
        assert tracker.status == ProviderStatus.UNHEALTHY
        assert tracker.health.last_error == "HTTP 500"
        assert tracker.consecutive_failures == 3

    def test_samples_leave_the_window(self, clock: FakeClock) -> None:
        tracker = ProviderHealthTracker("groq", window_seconds=60, clock=clock)
        tracker.record_failure("boom")
        assert tracker.status == ProviderStatus.UNHEALTHY

        clock.advance(61)
        assert tracker.status == ProviderStatus.HEALTHY
        # lifetime counters survive the window
        assert tracker.health.total_failures == 1

    def test_reset_clears_window(self) -> None:
        tracker = ProviderHealthTracker("groq")
        tracker.record_failure("boom")
        tracker.reset()
        assert tracker.status == ProviderStatus.HEALTHY
        assert tracker.consecutive_failures == 0


# ═══════════════════════════════════════════════════════════════
#  CircuitBreaker (failure blacklist)
# ═══════════════════════════════════════════════════════════════
class TestCircuitBreaker:
    def test_starts_closed(self) -> None:
        cb = CircuitBreaker("gemini")
        assert cb.state == CircuitState.CLOSED
        assert cb.can_execute()
        assert cb.seconds_until_retry == 0.0

    def test_single_failure_blacklists_by_default(self, clock: FakeClock) -> None:
        cb = CircuitBreaker("gemini", cooldown_seconds=30, clock=clock)
        cb.record_failure()
        assert cb.state == CircuitState.OPEN
        assert not cb.can_execute()
        assert cb.seconds_until_retry == 30.0

    def test_blacklist_expires_after_cooldown(self, clock: FakeClock) -> None:
        cb = CircuitBreaker("gemini", cooldown_seconds=30, clock=clock)
        cb.record_failure()

        clock.advance(29)
        assert not cb.can_execute()

        clock.advance(1)
        assert cb.can_execute()
        assert cb.state == CircuitState.HALF_OPEN

    def test_failed_probe_reopens(self, clock: FakeClock) -> None:
        cb = CircuitBreaker("gemini", cooldown_seconds=30, clock=clock)
        cb.record_failure()
        clock.advance(30)
        assert cb.state == CircuitState.HALF_OPEN

        cb.record_failure()
        assert cb.state == CircuitState.OPEN
        assert cb.seconds_until_retry == 30.0

    def test_successful_probe_closes(self, clock: FakeClock) -> None:
        cb = CircuitBreaker("gemini", cooldown_seconds=30, clock=clock)
        cb.record_failure()
        clock.advance(30)
        cb.record_success()
        assert cb.state == CircuitState.CLOSED

    def test_threshold_above_one(self) -> None:
        cb = CircuitBreaker("groq", failure_threshold=3)
        cb.record_failure()
        cb.record_failure()
        assert cb.state == CircuitState.CLOSED
        cb.record_failure()
        assert cb.state == CircuitState.OPEN

    def test_success_resets_consecutive_count(self) -> None:
        cb = CircuitBreaker("groq", failure_threshold=2)
        cb.record_failure()
        cb.record_success()
        cb.record_failure()
        assert cb.state == CircuitState.CLOSED

    def test_force_reset(self) -> None:
        cb = CircuitBreaker("groq")
        cb.record_failure()
        cb.reset()
        assert cb.state == CircuitState.CLOSED
        assert cb.can_execute()


# ═══════════════════════════════════════════════════════════════
#  RateLimiter
# ═══════════════════════════════════════════════════════════════
class TestRateLimiter:
    def test_unregistered_provider_is_always_allowed(self) -> None:
        limiter = RateLimiter()
        assert limiter.allow("unknown")
        assert limiter.remaining("unknown") == (None, None)

    def test_zero_limits_mean_unlimited(self) -> None:
        limiter = RateLimiter()
        limiter.register("deepseek", rpm_limit=0, rpd_limit=0)
        for _ in range(500):
            limiter.record("deepseek")
        assert limiter.allow("deepseek")

    def test_minute_window_blocks_then_rolls(self, clock: FakeClock) -> None:
        limiter = RateLimiter(clock=clock)
        limiter.register("groq", rpm_limit=2, rpd_limit=100)
        limiter.record("groq")
        limiter.record("groq")
        assert not limiter.allow("groq")
        assert limiter.remaining("groq") == (0, 98)

        clock.advance(60)
        assert limiter.allow("groq")
        assert limiter.remaining("groq") == (2, 98)

    def test_day_window_blocks_until_reset(self, clock: FakeClock) -> None:
        limiter = RateLimiter(clock=clock)
        limiter.register("gemini", rpm_limit=2, rpd_limit=3)
        limiter.record("gemini")
        limiter.record("gemini")
        clock.advance(61)
        limiter.record("gemini")
        assert not limiter.allow("gemini")

        clock.advance(86_400)
        assert limiter.allow("gemini")
        assert limiter.remaining("gemini") == (2, 3)

    def test_day_reset_also_resets_minute_and_tokens(self, clock: FakeClock) -> None:
        limiter = RateLimiter(clock=clock)
        limiter.register("gemini", rpm_limit=1, rpd_limit=10)
        limiter.record("gemini", tokens=500)
        assert limiter.daily_tokens("gemini") == 500

        clock.advance(86_400)
        assert limiter.allow("gemini")
        assert limiter.daily_tokens("gemini") == 0

    def test_record_tokens_does_not_count_a_request(self) -> None:
        limiter = RateLimiter()
        limiter.register("cerebras", rpm_limit=1)
        limiter.record_tokens("cerebras", 1_000)
        assert limiter.allow("cerebras")
        assert limiter.daily_tokens("cerebras") == 1_000

    def test_reset_single_provider(self) -> None:
        limiter = RateLimiter()
        limiter.register("groq", rpm_limit=1)
        limiter.register("gemini", rpm_limit=1)
        limiter.record("groq")
        limiter.record("gemini")

        limiter.reset("groq")
        assert limiter.allow("groq")
        assert not limiter.allow("gemini")

        limiter.reset()
        assert limiter.allow("gemini")


# ═══════════════════════════════════════════════════════════════
#  ResponseCache
# ═══════════════════════════════════════════════════════════════
class TestResponseCache:
    def test_key_uses_normalised_prompt_and_last_two_turns(self) -> None:
        history = [{"content": "a"}, {"content": "b"}, {"content": "c"}]
        assert make_key("  What Is SLO B-11-B-27? ", history) == "what is slo b-11-b-27?::b|c"
        assert make_key("hello") == "hello::"

    def test_different_history_gives_different_key(self) -> None:
        assert make_key("q", [{"content": "x"}]) != make_key("q", [{"content": "y"}])

    def test_hit_within_ttl(self, clock: FakeClock) -> None:
        cache = ResponseCache(ttl_seconds=600, clock=clock)
        cache.set("k", "v", "gemini")
        clock.advance(600)
        assert cache.get("k") == "v"

    def test_expired_entry_is_dropped(self, clock: FakeClock) -> None:
        cache = ResponseCache(ttl_seconds=600, clock=clock)
        cache.set("k", "v")
        clock.advance(600.1)
        assert cache.get("k") is None
        assert len(cache) == 0

    def test_evicts_oldest_when_full(self, clock: FakeClock) -> None:
        cache = ResponseCache(max_entries=3, clock=clock)
        for key in ("a", "b", "c", "d"):
            cache.set(key, key.upper())
            clock.advance(1)
        assert cache.get("a") is None
        assert cache.get("d") == "D"
        assert cache.stats() == {"size": 3, "capacity": 3}

    def test_overwrite_refreshes_age(self, clock: FakeClock) -> None:
        cache = ResponseCache(max_entries=3, clock=clock)
        for key in ("a", "b", "c"):
            cache.set(key, key)
            clock.advance(1)
        cache.set("a", "a2")
        cache.set("d", "d")
        assert cache.get("a") == "a2"
        assert cache.get("b") is None

    def test_clear(self) -> None:
        cache = ResponseCache()
        cache.set("k", "v")
        cache.clear()
        assert len(cache) == 0


# ═══════════════════════════════════════════════════════════════
#  ProviderRouter
# ═══════════════════════════════════════════════════════════════
@pytest.fixture
def registry() -> list[ProviderConfig]:
    return [
        make_config("cerebras", 1),
        make_config("groq", 2),
        make_config("openai", 3),
        make_config("gemini", 3),
        make_config("hyperbolic", 4, api_keys=()),
    ]


class TestProviderRouter:
    def test_selects_lowest_priority(self, registry: list[ProviderConfig]) -> None:
        selected = select_provider(registry, None)
        assert selected is not None
        assert selected.provider_id == "cerebras"

    def test_ties_keep_registry_order(self, registry: list[ProviderConfig]) -> None:
        chain = filter_eligible(registry, None, exclude={"cerebras", "groq"})
        assert [c.provider_id for c in chain] == ["openai", "gemini"]

    def test_skips_disabled_provider(self, registry: list[ProviderConfig]) -> None:
        chain = filter_eligible(registry, None)
        assert "hyperbolic" not in [c.provider_id for c in chain]

    def test_skips_blacklisted_provider(self, registry: list[ProviderConfig]) -> None:
        cb = CircuitBreaker("cerebras")
        cb.record_failure()
        selected = select_provider(registry, None, circuit_breakers={"cerebras": cb})
        assert selected is not None
        assert selected.provider_id == "groq"

    def test_skips_rate_limited_provider(self, registry: list[ProviderConfig]) -> None:
        limiter = RateLimiter()
        limiter.register("cerebras", rpm_limit=1)
        limiter.record("cerebras")
        selected = select_provider(registry, limiter)
        assert selected is not None
        assert selected.provider_id == "groq"

    def test_none_when_everything_excluded(self, registry: list[ProviderConfig]) -> None:
        router = ProviderRouter(registry)
        everyone = {c.provider_id for c in registry}
        assert router.select_provider(exclude=everyone) is None

    def test_preferred_provider_moves_to_front(self, registry: list[ProviderConfig]) -> None:
        router = ProviderRouter(registry)
        chain = router.get_fallback_chain(preferred="gemini")
        assert [c.provider_id for c in chain] == ["gemini", "cerebras", "groq", "openai"]

    def test_ineligible_preferred_provider_is_ignored(
        self, registry: list[ProviderConfig]
    ) -> None:
        router = ProviderRouter(registry)
        chain = router.get_fallback_chain(preferred="hyperbolic")
        assert chain[0].provider_id == "cerebras"

    def test_mapping_task_goes_reasoning_first(self, registry: list[ProviderConfig]) -> None:
        router = ProviderRouter(registry)
        chain = router.get_fallback_chain(prompt="Extract every SLO into PEDAGOGICAL MARKDOWN")
        assert [c.provider_id for c in chain] == ["gemini", "openai", "groq", "cerebras"]

    def test_is_mapping_task(self) -> None:
        assert is_mapping_task("Map each SLO to a unit")
        assert not is_mapping_task("write a poem about slopes")

    def test_get_provider(self, registry: list[ProviderConfig]) -> None:
        router = ProviderRouter(registry)
        assert router.get("groq") is registry[1]
        assert router.get("nope") is None


class TestTaskRouting:
    def test_primary_under_budget(self) -> None:
        router = ProviderRouter([], rate_limiter=RateLimiter())
        assert router.select_for_task(TaskType.PDF_PARSE) == "gemini"
        assert router.select_for_task("web_search") == "groq"

    def test_falls_back_when_primary_near_budget(self) -> None:
        limiter = RateLimiter()
        limiter.record_tokens("gemini", 45_000)
        router = ProviderRouter([], rate_limiter=limiter)
        assert router.select_for_task(TaskType.PDF_PARSE) == "deepseek"

    def test_primary_returned_when_all_spent(self) -> None:
        limiter = RateLimiter()
        limiter.record_tokens("cerebras", 200_000)
        limiter.record_tokens("gemini", 50_000)
        router = ProviderRouter([], rate_limiter=limiter)
        assert router.select_for_task(TaskType.EMBEDDING) == "cerebras"

    def test_unknown_task_rejected(self) -> None:
        router = ProviderRouter([])
        with pytest.raises(ValueError):
            router.select_for_task("telepathy")
