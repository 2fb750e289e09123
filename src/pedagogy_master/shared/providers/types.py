"""Core types for the multi-provider synthesis grid."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Any, Mapping, Protocol, Sequence


class ProviderStatus(str, enum.Enum):
    """Health status of an LLM provider."""

    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNHEALTHY = "unhealthy"
    CIRCUIT_OPEN = "circuit_open"


@dataclass(frozen=True)
class ProviderConfig:
    """Static descriptor for a single LLM provider.

    Attributes:
        provider_id:  Unique identifier (e.g. "gemini", "groq").
        endpoint:     Base URL of the provider's HTTP API.
        model:        Model id sent with every request.
        api_keys:     Pool of API keys to rotate through.
        priority:     Lower = tried earlier in the failover chain.
        rpm_limit:    Max requests per minute (0 = unlimited).
        rpd_limit:    Max requests per day (0 = unlimited).
        context_char_limit: Prompts longer than this are truncated.
        timeout_s:    Per-request timeout in seconds.
        failure_cooldown_s: Seconds a failed provider stays blacklisted.
        failure_threshold:  Consecutive failures before blacklisting.
        metadata:     Arbitrary extra config (extra headers, system override, ...).
    """

    provider_id: str
    endpoint: str = ""
    model: str = ""
    api_keys: tuple[str, ...] = ()
    priority: int = 10
    rpm_limit: int = 60
    rpd_limit: int = 0
    context_char_limit: int = 32_000
    timeout_s: float = 115.0
    failure_cooldown_s: float = 30.0
    failure_threshold: int = 1
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def enabled(self) -> bool:
        return any(k.strip() for k in self.api_keys)


@dataclass
class ProviderHealth:
    """Read-only snapshot of a provider's current health."""

    provider_id: str
    status: ProviderStatus = ProviderStatus.HEALTHY
    total_requests: int = 0
    total_successes: int = 0
    total_failures: int = 0
    consecutive_failures: int = 0
    success_rate: float = 1.0
    latency_p50_ms: float = 0.0
    latency_p95_ms: float = 0.0
    latency_p99_ms: float = 0.0
    last_error: str | None = None
    last_error_time: float | None = None
    circuit_state: str = "closed"
    enabled: bool = True
    remaining_rpm: int | None = None
    remaining_rpd: int | None = None
    daily_tokens: int = 0
    current_key_index: int = 0


class ProviderClient(Protocol):
    """Speaks one provider family's wire format."""

    async def generate(
        self,
        cfg: ProviderConfig,
        api_key: str,
        prompt: str,
        history: Sequence[Mapping[str, Any]],
        system_instruction: str,
        *,
        grounded: bool = False,
    ) -> str: ...


@dataclass(frozen=True)
class SynthesisResult:
    """Text produced by the grid plus the provider that produced it."""

    text: str
    provider_used: str
