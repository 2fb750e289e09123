"""LLM provider registry and clients.

``build_provider_configs`` turns settings into the eight provider
descriptors; ``build_clients`` maps every provider id to the client that
speaks its wire format.  The synthesizer does the rest.
"""

from __future__ import annotations

from typing import Any

import httpx

from pedagogy_master.adapters.outbound.llm.clients import (
    GeminiClient,
    OpenAICompatibleClient,
    build_chat_messages,
    build_gemini_contents,
)
from pedagogy_master.adapters.outbound.llm.grid import SynthesisGridAdapter
from pedagogy_master.config import KNOWN_PROVIDERS, Settings
from pedagogy_master.shared.providers.types import ProviderClient, ProviderConfig

# Context windows are in characters, not tokens
PROVIDER_PROFILES: dict[str, dict[str, Any]] = {
    "gemini": {"context_char_limit": 1_000_000, "history_turns": 6},
    "openai": {"context_char_limit": 128_000, "history_turns": 10},
    "deepseek": {"context_char_limit": 128_000, "history_turns": 6},
    "groq": {
        "context_char_limit": 32_000,
        "history_turns": 2,
        "grounded_system": (
            "STRICT GROUNDING: Use ONLY context provided in the user prompt. "
            "Hallucination is strictly forbidden. Disregard pre-training for specific codes."
        ),
    },
    "cerebras": {
        "context_char_limit": 32_000,
        "history_turns": 2,
        "grounded_system": (
            "STRICT_ASSET_MODE: Use only provided curriculum documents. No bold headings."
        ),
    },
    "sambanova": {
        "context_char_limit": 40_000,
        "history_turns": 2,
        "grounded_system": (
            "STRICT_LONG_CONTEXT_ANALYZER: Prioritize provided documents. "
            "Use ONLY provided text. No bold headings."
        ),
    },
    "openrouter": {
        "context_char_limit": 128_000,
        "history_turns": 2,
        "grounded_system": (
            "STRICT_GROUNDING: Act as a curriculum document database. Use ONLY the "
            "provided vault content. No guessing. No training knowledge."
        ),
        "extra_headers": {"X-Title": "Pedagogy Master (Grounded Mode)"},
    },
    "hyperbolic": {
        "context_char_limit": 32_000,
        "history_turns": 2,
        "grounded_system": (
            "STRICT_GROUNDING: Use only provided assets. No general knowledge. No bold headings."
        ),
    },
}


def parse_keys(multi: str, single: str) -> tuple[str, ...]:
    """Merge a comma-separated key pool with a single key, dropping blanks."""
    keys: list[str] = []
    if multi:
        keys.extend(k.strip() for k in multi.split(",") if k.strip())
    if single.strip() and single.strip() not in keys:
        keys.append(single.strip())
    return tuple(keys)


def build_provider_configs(settings: Settings) -> list[ProviderConfig]:
    """Build the provider registry from settings values.

    Providers missing from the priority list still appear, ranked after
    every listed provider in registry order.
    """
    priority_map = {name: idx + 1 for idx, name in enumerate(settings.priority_order)}
    fallback_priority = len(priority_map) + 1

    configs: list[ProviderConfig] = []
    for pid in KNOWN_PROVIDERS:
        profile = dict(PROVIDER_PROFILES[pid])
        context_char_limit = profile.pop("context_char_limit")
        profile["max_tokens"] = settings.llm_max_tokens
        configs.append(
            ProviderConfig(
                provider_id=pid,
                endpoint=settings.provider_value(pid, "endpoint").rstrip("/"),
                model=settings.provider_value(pid, "model"),
                api_keys=parse_keys(
                    settings.provider_value(pid, "api_keys"),
                    settings.provider_value(pid, "api_key"),
                ),
                priority=priority_map.get(pid, fallback_priority),
                rpm_limit=settings.provider_value(pid, "rpm"),
                rpd_limit=settings.provider_value(pid, "rpd"),
                context_char_limit=context_char_limit,
                timeout_s=settings.provider_timeout_seconds,
                failure_cooldown_s=settings.provider_failure_cooldown_seconds,
                failure_threshold=settings.provider_failure_threshold,
                metadata=profile,
            )
        )
    return configs


def build_clients(http: httpx.AsyncClient | None = None) -> dict[str, ProviderClient]:
    """One client per provider; the OpenAI-style vendors share a single instance."""
    gemini = GeminiClient(http)
    compatible = OpenAICompatibleClient(http)
    return {pid: gemini if pid == "gemini" else compatible for pid in KNOWN_PROVIDERS}


__all__ = [
    "GeminiClient",
    "OpenAICompatibleClient",
    "PROVIDER_PROFILES",
    "SynthesisGridAdapter",
    "build_chat_messages",
    "build_clients",
    "build_gemini_contents",
    "build_provider_configs",
    "parse_keys",
]
