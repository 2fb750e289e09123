"""Pedagogy Master AI layer: application configuration."""

from __future__ import annotations

import enum
from typing import Any

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

KNOWN_PROVIDERS = (
    "gemini",
    "openai",
    "deepseek",
    "groq",
    "cerebras",
    "sambanova",
    "openrouter",
    "hyperbolic",
)


class Environment(str, enum.Enum):
    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"


class Settings(BaseSettings):
    """Centralised, validated configuration loaded from environment / .env file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ── Application ──────────────────────────────────────────
    app_name: str = "pedagogy-master-ai"
    app_env: Environment = Environment.DEVELOPMENT
    app_debug: bool = False
    app_host: str = "0.0.0.0"
    app_port: int = 8000
    log_level: str = "INFO"

    # ── Security ─────────────────────────────────────────────
    admin_api_key: str = ""
    cors_origins: list[str] = Field(default_factory=lambda: ["http://localhost:3000"])

    # ── Redis (artifact cache) ───────────────────────────────
    redis_url: str = ""
    redis_max_connections: int = 50
    artifact_cache_ttl_seconds: int = 86_400

    # ── Retrieval (Supabase / PostgREST) ─────────────────────
    supabase_url: str = ""
    supabase_service_role_key: str = ""
    retrieval_match_count: int = 10
    embedding_model: str = "text-embedding-004"
    embedding_dimensions: int = 768

    # ── LLM provider credentials ─────────────────────────────
    # Single key plus an optional comma-separated pool for rotation
    gemini_api_key: str = ""
    gemini_api_keys: str = ""
    openai_api_key: str = ""
    openai_api_keys: str = ""
    deepseek_api_key: str = ""
    deepseek_api_keys: str = ""
    groq_api_key: str = ""
    groq_api_keys: str = ""
    cerebras_api_key: str = ""
    cerebras_api_keys: str = ""
    sambanova_api_key: str = ""
    sambanova_api_keys: str = ""
    openrouter_api_key: str = ""
    openrouter_api_keys: str = ""
    hyperbolic_api_key: str = ""
    hyperbolic_api_keys: str = ""

    # ── LLM provider endpoints / models ──────────────────────
    gemini_endpoint: str = "https://generativelanguage.googleapis.com/v1beta"
    gemini_model: str = "gemini-2.0-flash"
    openai_endpoint: str = "https://api.openai.com/v1"
    openai_model: str = "gpt-4o"
    deepseek_endpoint: str = "https://api.deepseek.com/v1"
    deepseek_model: str = "deepseek-chat"
    groq_endpoint: str = "https://api.groq.com/openai/v1"
    groq_model: str = "llama-3.3-70b-versatile"
    cerebras_endpoint: str = "https://api.cerebras.ai/v1"
    cerebras_model: str = "llama3.1-8b"
    sambanova_endpoint: str = "https://api.sambanova.ai/v1"
    sambanova_model: str = "Meta-Llama-3.1-8B-Instruct"
    openrouter_endpoint: str = "https://openrouter.ai/api/v1"
    openrouter_model: str = "meta-llama/llama-3.3-70b-instruct"
    hyperbolic_endpoint: str = "https://api.hyperbolic.xyz/v1"
    hyperbolic_model: str = "meta-llama/Meta-Llama-3.1-8B-Instruct"

    # ── Per-provider rate limits (0 = unlimited) ─────────────
    gemini_rpm: int = 50
    gemini_rpd: int = 5000
    openai_rpm: int = 100
    openai_rpd: int = 10000
    deepseek_rpm: int = 60
    deepseek_rpd: int = 999999
    groq_rpm: int = 30
    groq_rpd: int = 14000
    cerebras_rpm: int = 120
    cerebras_rpd: int = 15000
    sambanova_rpm: int = 100
    sambanova_rpd: int = 10000
    openrouter_rpm: int = 60
    openrouter_rpd: int = 10000
    hyperbolic_rpm: int = 60
    hyperbolic_rpd: int = 10000

    # ── Synthesis grid ───────────────────────────────────────
    llm_provider_priority: str = ",".join(KNOWN_PROVIDERS)
    provider_timeout_seconds: float = 115.0
    provider_failure_cooldown_seconds: float = 30.0
    provider_failure_threshold: int = 1
    response_cache_ttl_seconds: float = 600.0
    response_cache_max_entries: int = 200
    request_queue_delay_ms: int = 150
    swarm_threshold_chars: int = 150_000
    swarm_chunk_chars: int = 80_000
    llm_max_tokens: int = 4096

    # ── Observability ────────────────────────────────────────
    prometheus_enabled: bool = True

    # ── Derived helpers ──────────────────────────────────────
    @property
    def is_production(self) -> bool:
        return self.app_env == Environment.PRODUCTION

    @property
    def priority_order(self) -> list[str]:
        return [p.strip().lower() for p in self.llm_provider_priority.split(",") if p.strip()]

    def provider_value(self, provider_id: str, field_name: str) -> Any:
        """``provider_value("groq", "rpm")`` → ``settings.groq_rpm``."""
        return getattr(self, f"{provider_id}_{field_name}")

    @field_validator("log_level")
    @classmethod
    def _upper_log_level(cls, v: str) -> str:
        return v.upper()

    @field_validator("llm_provider_priority")
    @classmethod
    def _validate_priority(cls, v: str) -> str:
        unknown = [
            p.strip()
            for p in v.split(",")
            if p.strip() and p.strip().lower() not in KNOWN_PROVIDERS
        ]
        if unknown:
            raise ValueError(f"unknown providers in llm_provider_priority: {', '.join(unknown)}")
        return v

    @model_validator(mode="after")
    def _guard_production_secrets(self) -> Settings:
        """Production must not expose the admin reset without a key."""
        if self.app_env == Environment.PRODUCTION and not self.admin_api_key:
            raise ValueError("admin_api_key must be set in production")
        return self


def get_settings(**overrides: Any) -> Settings:
    """Factory that allows test-time overrides."""
    return Settings(**overrides)
