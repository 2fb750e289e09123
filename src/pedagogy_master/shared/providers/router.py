"""Provider selection: picks the next eligible provider from the registry.

Filters out disabled, rate-limited, blacklisted and excluded providers,
then orders the survivors by static priority.  Mapping tasks (curriculum
extraction prompts) are steered towards the reasoning-heavy providers first.
"""

from __future__ import annotations

from typing import Mapping, Protocol, Sequence

import structlog

from pedagogy_master.domain.enums import TaskType
from pedagogy_master.shared.providers.circuit_breaker import CircuitBreaker
from pedagogy_master.shared.providers.types import ProviderConfig

logger = structlog.get_logger(__name__)

REASONING_ORDER: tuple[str, ...] = ("gemini", "openai", "deepseek", "groq")
MAPPING_TASK_MARKERS: tuple[str, ...] = ("PEDAGOGICAL MARKDOWN", "SLO")

# primary, fallbacks
TASK_ROUTING: dict[TaskType, tuple[str, tuple[str, ...]]] = {
    TaskType.PDF_PARSE: ("gemini", ("deepseek", "groq")),
    TaskType.CODE_GEN: ("deepseek", ("gemini", "cerebras")),
    TaskType.RAG_QUERY: ("cerebras", ("gemini", "deepseek")),
    TaskType.SUMMARIZE: ("sambanova", ("gemini", "cerebras")),
    TaskType.WEB_SEARCH: ("groq", ("gemini",)),
    TaskType.EMBEDDING: ("cerebras", ("gemini",)),
}

# Free-tier daily token estimates
DAILY_TOKEN_BUDGETS: dict[str, int] = {
    "gemini": 50_000,
    "groq": 100_000,
    "cerebras": 200_000,
    "deepseek": 50_000,
    "sambanova": 150_000,
}
BUDGET_HEADROOM = 0.9


class RateState(Protocol):
    def allow(self, provider_id: str) -> bool: ...

    def daily_tokens(self, provider_id: str) -> int: ...


def is_mapping_task(prompt: str) -> bool:
    return any(marker in prompt for marker in MAPPING_TASK_MARKERS)


def select_provider(
    candidates: Sequence[ProviderConfig],
    rate_state: RateState | None,
    *,
    exclude: set[str] | None = None,
    circuit_breakers: Mapping[str, CircuitBreaker] | None = None,
) -> ProviderConfig | None:
    """Return the highest-priority eligible provider, or ``None``.

    Ties on priority keep registry order.
    """
    eligible = filter_eligible(
        candidates, rate_state, exclude=exclude, circuit_breakers=circuit_breakers
    )
    return eligible[0] if eligible else None


def filter_eligible(
    candidates: Sequence[ProviderConfig],
    rate_state: RateState | None,
    *,
    exclude: set[str] | None = None,
    circuit_breakers: Mapping[str, CircuitBreaker] | None = None,
) -> list[ProviderConfig]:
    exclude = exclude or set()
    circuit_breakers = circuit_breakers or {}
    eligible: list[ProviderConfig] = []

    for provider in candidates:
        pid = provider.provider_id
        if pid in exclude or not provider.enabled:
            continue

        cb = circuit_breakers.get(pid)
        if cb and not cb.can_execute():
            logger.debug("provider_blacklisted_skip", provider=pid)
            continue

        if rate_state is not None and not rate_state.allow(pid):
            logger.debug("provider_rate_limited_skip", provider=pid)
            continue

        eligible.append(provider)

    # sorted() is stable, so equal priorities keep registry order
    return sorted(eligible, key=lambda p: p.priority)


class ProviderRouter:
    """Builds the ordered failover chain for a synthesis request."""

    def __init__(
        self,
        providers: Sequence[ProviderConfig],
        *,
        rate_limiter: RateState | None = None,
        circuit_breakers: Mapping[str, CircuitBreaker] | None = None,
    ) -> None:
        self._providers = list(providers)
        self._rate = rate_limiter
        self._circuits = circuit_breakers or {}

    @property
    def providers(self) -> list[ProviderConfig]:
        return list(self._providers)

    def get(self, provider_id: str) -> ProviderConfig | None:
        return next((p for p in self._providers if p.provider_id == provider_id), None)

    def select_provider(self, *, exclude: set[str] | None = None) -> ProviderConfig | None:
        selected = select_provider(
            self._providers, self._rate, exclude=exclude, circuit_breakers=self._circuits
        )
        if selected is None:
            logger.warning(
                "no_available_providers",
                excluded=sorted(exclude or ()),
                total_configured=len(self._providers),
            )
        return selected

    def get_fallback_chain(
        self,
        *,
        prompt: str = "",
        preferred: str | None = None,
        exclude: set[str] | None = None,
    ) -> list[ProviderConfig]:
        """All eligible providers in the order they should be attempted."""
        chain = filter_eligible(
            self._providers, self._rate, exclude=exclude, circuit_breakers=self._circuits
        )

        if prompt and is_mapping_task(prompt):
            chain = _reasoning_first(chain)

        if preferred:
            preferred_cfg = next((c for c in chain if c.provider_id == preferred), None)
            if preferred_cfg:
                chain.remove(preferred_cfg)
                chain.insert(0, preferred_cfg)

        return chain

    def select_for_task(self, task_type: TaskType | str) -> str:
        """Pick a provider for a workload class based on today's token spend.

        The primary is used while it is under 90 % of its daily budget,
        then the first fallback under budget; if every candidate is spent
        the primary is returned anyway.
        """
        primary, fallbacks = TASK_ROUTING[TaskType(task_type)]
        for provider_id in (primary, *fallbacks):
            if self._under_budget(provider_id):
                if provider_id != primary:
                    logger.info(
                        "task_routed_to_fallback",
                        task=TaskType(task_type).value,
                        primary=primary,
                        provider=provider_id,
                    )
                return provider_id
        return primary

    def _under_budget(self, provider_id: str) -> bool:
        budget = DAILY_TOKEN_BUDGETS.get(provider_id, 0)
        if budget <= 0 or self._rate is None:
            return True
        return self._rate.daily_tokens(provider_id) < budget * BUDGET_HEADROOM


def _reasoning_first(chain: list[ProviderConfig]) -> list[ProviderConfig]:
    ranked = [p for name in REASONING_ORDER for p in chain if p.provider_id == name]
    return ranked + [p for p in chain if p.provider_id not in REASONING_ORDER]
