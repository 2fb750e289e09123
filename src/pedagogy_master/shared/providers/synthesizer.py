"""Synthesizer: the single entry-point for LLM text generation.

Composes the provider router, rate limiter, failure blacklist, health
tracker and request queue into one failover loop.  Callers hand in a
prompt and get back text plus the provider that produced it; provider
choice, key rotation, truncation, timeouts and failover are handled here.
"""

from __future__ import annotations

import asyncio
import math
import threading
import time
from typing import Any, Mapping, Sequence

import structlog

from pedagogy_master.domain.enums import TaskType
from pedagogy_master.domain.exceptions import AllProvidersExhaustedError
from pedagogy_master.shared.observability.metrics import (
    GRID_EXHAUSTED,
    PROVIDER_CALLS,
    PROVIDER_FAILOVERS,
    PROVIDER_LATENCY,
    QUEUE_DEPTH,
)
from pedagogy_master.shared.providers.circuit_breaker import CircuitBreaker
from pedagogy_master.shared.providers.health import ProviderHealthTracker
from pedagogy_master.shared.providers.rate_limiter import RateLimiter
from pedagogy_master.shared.providers.request_queue import RequestQueue
from pedagogy_master.shared.providers.response_cache import ResponseCache
from pedagogy_master.shared.providers.router import ProviderRouter
from pedagogy_master.shared.providers.types import (
    ProviderClient,
    ProviderConfig,
    ProviderHealth,
    SynthesisResult,
)

logger = structlog.get_logger(__name__)

DEFAULT_SYSTEM_INSTRUCTION = "You are the Pedagogy Master AI."
EXTRACTION_SYSTEM_INSTRUCTION = "You are a data extraction node. Return only structured data."
PARTIAL_CHUNK_TAG = "[PARTIAL_CHUNK"
REDUCE_PROVIDER = "gemini"


def estimate_tokens(*texts: str) -> int:
    """Rough token count (4 characters per token)."""
    return math.ceil(sum(len(t) for t in texts) / 4)


class Synthesizer:
    """Priority failover across every enabled provider.

    Usage::

        synthesizer = Synthesizer(providers, clients)
        result = await synthesizer.synthesize(prompt, history, system_instruction)
        result.text, result.provider_used

    ``clients`` maps a provider id to the client that speaks its wire
    format; a provider without a client is never attempted.
    """

    def __init__(
        self,
        providers: Sequence[ProviderConfig],
        clients: Mapping[str, ProviderClient],
        *,
        rate_limiter: RateLimiter | None = None,
        queue: RequestQueue | None = None,
        cache: ResponseCache | None = None,
        swarm_threshold_chars: int = 150_000,
        swarm_chunk_chars: int = 80_000,
    ) -> None:
        self._providers = [p for p in providers if p.provider_id in clients]
        self._clients = dict(clients)
        self._rate = rate_limiter if rate_limiter is not None else RateLimiter()
        self._queue = queue if queue is not None else RequestQueue()
        self._cache = cache
        self._swarm_threshold = swarm_threshold_chars
        self._swarm_chunk = swarm_chunk_chars

        self._health_trackers: dict[str, ProviderHealthTracker] = {}
        self._circuit_breakers: dict[str, CircuitBreaker] = {}
        self._key_indices: dict[str, int] = {}
        self._key_lock = threading.Lock()

        for cfg in self._providers:
            pid = cfg.provider_id
            self._health_trackers[pid] = ProviderHealthTracker(pid)
            self._circuit_breakers[pid] = CircuitBreaker(
                pid,
                failure_threshold=cfg.failure_threshold,
                cooldown_seconds=cfg.failure_cooldown_s,
            )
            self._rate.register(pid, rpm_limit=cfg.rpm_limit, rpd_limit=cfg.rpd_limit)
            self._key_indices[pid] = 0

        self._router = ProviderRouter(
            self._providers,
            rate_limiter=self._rate,
            circuit_breakers=self._circuit_breakers,
        )

    @property
    def router(self) -> ProviderRouter:
        return self._router

    @property
    def rate_limiter(self) -> RateLimiter:
        return self._rate

    @property
    def queue(self) -> RequestQueue:
        return self._queue

    # ── Main entry-point ─────────────────────────────────────
    async def synthesize(
        self,
        prompt: str,
        history: Sequence[Mapping[str, Any]] = (),
        system_instruction: str = DEFAULT_SYSTEM_INSTRUCTION,
        preferred_provider: str | None = None,
        *,
        grounded: bool = False,
    ) -> SynthesisResult:
        """Generate text with automatic failover across providers.

        Raises:
            AllProvidersExhaustedError: every eligible provider failed, or
                none was eligible to begin with.
        """
        if len(prompt) > self._swarm_threshold and not prompt.startswith(PARTIAL_CHUNK_TAG):
            return await self._swarm(prompt, history, system_instruction, grounded)

        return await self._enqueue(
            prompt, history, system_instruction, preferred_provider, grounded
        )

    async def _enqueue(
        self,
        prompt: str,
        history: Sequence[Mapping[str, Any]],
        system_instruction: str,
        preferred_provider: str | None,
        grounded: bool,
    ) -> SynthesisResult:
        QUEUE_DEPTH.inc()
        try:
            return await self._queue.add(
                lambda: self._run_chain(
                    prompt, list(history), system_instruction, preferred_provider, grounded
                )
            )
        finally:
            QUEUE_DEPTH.dec()

    async def _run_chain(
        self,
        prompt: str,
        history: list[Mapping[str, Any]],
        system_instruction: str,
        preferred_provider: str | None,
        grounded: bool,
    ) -> SynthesisResult:
        errors: dict[str, str] = {}
        chain = self._router.get_fallback_chain(prompt=prompt, preferred=preferred_provider)
        first_choice = chain[0].provider_id if chain else None

        for cfg in chain:
            pid = cfg.provider_id
            if not self._rate.allow(pid):
                errors[pid] = "rate_limited"
                PROVIDER_CALLS.labels(provider=pid, outcome="rate_limited").inc()
                continue

            text = await self._try_provider(
                cfg, prompt, history, system_instruction, grounded, errors
            )
            if text is not None:
                if pid != first_choice:
                    PROVIDER_FAILOVERS.labels(provider=pid).inc()
                    logger.info(
                        "provider_failover_success",
                        provider=pid,
                        failed_providers=list(errors),
                    )
                return SynthesisResult(text=text, provider_used=pid)

        GRID_EXHAUSTED.inc()
        logger.error("grid_exhausted", errors=errors, chain=[c.provider_id for c in chain])
        raise AllProvidersExhaustedError(errors)

    # ── Provider-level attempt ───────────────────────────────
    async def _try_provider(
        self,
        cfg: ProviderConfig,
        prompt: str,
        history: list[Mapping[str, Any]],
        system_instruction: str,
        grounded: bool,
        errors: dict[str, str],
    ) -> str | None:
        pid = cfg.provider_id
        tracker = self._health_trackers[pid]
        cb = self._circuit_breakers[pid]
        client = self._clients[pid]

        effective_prompt = prompt
        if len(prompt) > cfg.context_char_limit:
            logger.warning(
                "prompt_truncated",
                provider=pid,
                original_chars=len(prompt),
                limit=cfg.context_char_limit,
            )
            effective_prompt = prompt[: cfg.context_char_limit]

        api_key = self._next_key(cfg)
        log = logger.bind(provider=pid, key_idx=self._key_indices.get(pid, 0))
        # upstream counts the request whether or not it succeeds
        self._rate.record(pid)

        start = time.monotonic()
        try:
            text = await asyncio.wait_for(
                client.generate(
                    cfg,
                    api_key,
                    effective_prompt,
                    history,
                    system_instruction,
                    grounded=grounded,
                ),
                timeout=cfg.timeout_s,
            )
        except asyncio.TimeoutError:
            latency_ms = (time.monotonic() - start) * 1000
            error_msg = f"Timeout after {cfg.timeout_s}s"
            tracker.record_failure(error_msg, latency_ms)
            cb.record_failure()
            errors[pid] = error_msg
            PROVIDER_CALLS.labels(provider=pid, outcome="timeout").inc()
            log.warning("provider_timeout", timeout_s=cfg.timeout_s)
            return None
        except Exception as exc:
            latency_ms = (time.monotonic() - start) * 1000
            error_msg = f"{type(exc).__name__}: {exc}"
            tracker.record_failure(error_msg, latency_ms)
            cb.record_failure()
            errors[pid] = error_msg
            PROVIDER_CALLS.labels(provider=pid, outcome="error").inc()
            log.warning(
                "provider_request_failed",
                error=error_msg,
                latency_ms=float(f"{latency_ms:.1f}"),
            )
            return None

        latency_ms = (time.monotonic() - start) * 1000
        tracker.record_success(latency_ms)
        cb.record_success()
        self._rate.record_tokens(pid, estimate_tokens(effective_prompt, text))
        PROVIDER_CALLS.labels(provider=pid, outcome="success").inc()
        PROVIDER_LATENCY.labels(provider=pid).observe(latency_ms / 1000)
        log.info("provider_request_success", latency_ms=float(f"{latency_ms:.1f}"))
        return text

    # ── Map-reduce for oversized prompts ─────────────────────
    async def _swarm(
        self,
        prompt: str,
        history: Sequence[Mapping[str, Any]],
        system_instruction: str,
        grounded: bool,
    ) -> SynthesisResult:
        chunks = [
            prompt[i : i + self._swarm_chunk] for i in range(0, len(prompt), self._swarm_chunk)
        ]
        map_provider = self._router.select_for_task(TaskType.PDF_PARSE)
        logger.info(
            "swarm_map_started",
            chunks=len(chunks),
            prompt_chars=len(prompt),
            provider=map_provider,
        )

        partials = await asyncio.gather(
            *(
                self._enqueue(
                    f"{PARTIAL_CHUNK_TAG} {idx}/{len(chunks)}] Analyze this segment of the "
                    "curriculum document.\nEXTRACT: All SLO codes and their verbatim text.\n"
                    f"TEXT: {chunk}",
                    [],
                    EXTRACTION_SYSTEM_INSTRUCTION,
                    map_provider,
                    grounded,
                )
                for idx, chunk in enumerate(chunks, start=1)
            )
        )

        logger.info("swarm_reduce_started", partials=len(partials))
        aggregate = "\n---\n".join(p.text for p in partials)
        master_prompt = (
            "The following is a collection of extracted curriculum segments from one "
            "large document.\n\n"
            "TASK: Merge these into one authoritative, hierarchical JSON curriculum map.\n"
            "SCHEMA: Must include metadata, slos, and slo_map.\n\n"
            f"PARTIAL EXTRACTS:\n{aggregate}"
        )
        return await self._enqueue(
            master_prompt, history, system_instruction, REDUCE_PROVIDER, grounded
        )

    # ── Key rotation ─────────────────────────────────────────
    def _next_key(self, cfg: ProviderConfig) -> str:
        keys = [k for k in cfg.api_keys if k.strip()]
        if not keys:
            return ""
        with self._key_lock:
            idx = self._key_indices.get(cfg.provider_id, 0)
            key = keys[idx % len(keys)]
            self._key_indices[cfg.provider_id] = (idx + 1) % len(keys)
            return key

    # ── Status & admin ───────────────────────────────────────
    def get_health(self, provider_id: str) -> ProviderHealth | None:
        tracker = self._health_trackers.get(provider_id)
        cfg = self._router.get(provider_id)
        if tracker is None or cfg is None:
            return None
        health = tracker.health
        if cb := self._circuit_breakers.get(provider_id):
            health.circuit_state = cb.state.value
        health.enabled = cfg.enabled
        health.remaining_rpm, health.remaining_rpd = self._rate.remaining(provider_id)
        health.daily_tokens = self._rate.daily_tokens(provider_id)
        health.current_key_index = self._key_indices.get(provider_id, 0)
        return health

    def provider_status(self) -> list[ProviderHealth]:
        results: list[ProviderHealth] = []
        for cfg in self._providers:
            health = self.get_health(cfg.provider_id)
            if health is not None:
                results.append(health)
        return results

    def reset_provider(self, provider_id: str) -> None:
        """Admin reset: clears the blacklist and rate counters for one provider."""
        if cb := self._circuit_breakers.get(provider_id):
            cb.reset()
        if tracker := self._health_trackers.get(provider_id):
            tracker.reset()
        self._rate.reset(provider_id)
        logger.info("provider_admin_reset", provider=provider_id)

    def reset(self) -> None:
        """Realign the whole grid: blacklists, rate counters and the response cache."""
        for cb in self._circuit_breakers.values():
            cb.reset()
        for tracker in self._health_trackers.values():
            tracker.reset()
        self._rate.reset()
        if self._cache is not None:
            self._cache.clear()
        logger.info("provider_grid_reset", providers=len(self._providers))
