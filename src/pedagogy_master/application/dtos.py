"""Data Transfer Objects: Pydantic models for API boundaries.

DTOs handle serialisation, validation, and documentation.  They live in the
application layer because they are *not* domain objects; they adapt between
the external world and the domain.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


# ═══════════════════════════════════════════════════════════════
#  Common
# ═══════════════════════════════════════════════════════════════
class ErrorResponse(BaseModel):
    code: str
    message: str
    details: dict[str, Any] | None = None


class HealthResponse(BaseModel):
    status: str = "ok"
    version: str = "0.1.0"
    environment: str = "development"
    services: dict[str, str] = Field(default_factory=dict)


class ChatMessage(BaseModel):
    role: str = Field(..., pattern="^(user|assistant|model|system)$")
    content: str


# ═══════════════════════════════════════════════════════════════
#  AI pipeline
# ═══════════════════════════════════════════════════════════════
class QueryRequest(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    query: str = Field(..., min_length=1, max_length=20_000)
    history: list[ChatMessage] = Field(default_factory=list)
    document_ids: list[str] = Field(default_factory=list)
    priority_document_id: str | None = None
    adaptive_context: str | None = None
    tool_type: str | None = Field(
        None, pattern="^(master_plan|neural_quiz|fidelity_rubric|audit_tagger)$"
    )
    custom_system: str | None = None


class QueryResponse(BaseModel):
    text: str
    provider: str
    metadata: dict[str, Any] = Field(default_factory=dict)


class SynthesizeRequest(BaseModel):
    prompt: str = Field(..., min_length=1)
    history: list[ChatMessage] = Field(default_factory=list)
    system_instruction: str | None = None
    preferred_provider: str | None = None
    grounded: bool = False


class SynthesizeResponse(BaseModel):
    text: str
    provider_used: str


class AnalyzeRequest(BaseModel):
    query: str = Field(..., min_length=1, max_length=20_000)


class ArtifactRequest(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    slo_code: str = Field(..., min_length=1, max_length=64, examples=["B-11-B-27"])
    content_type: str = Field(
        "lesson_plan", pattern="^(lesson_plan|teaching_strategies|assessment)$"
    )


class ArtifactResponse(BaseModel):
    slo_code: str
    content_type: str
    content: str
    provider: str
    cached: bool = False


# ═══════════════════════════════════════════════════════════════
#  Provider grid
# ═══════════════════════════════════════════════════════════════
class ProviderHealthResponse(BaseModel):
    provider_id: str
    status: str
    enabled: bool = True
    circuit_state: str = "closed"
    total_requests: int = 0
    total_successes: int = 0
    total_failures: int = 0
    consecutive_failures: int = 0
    success_rate: float = 1.0
    latency_p50_ms: float = 0.0
    latency_p95_ms: float = 0.0
    latency_p99_ms: float = 0.0
    last_error: str | None = None
    remaining_rpm: int | None = None
    remaining_rpd: int | None = None
    daily_tokens: int = 0
    current_key_index: int = 0


class ProviderStatusResponse(BaseModel):
    providers: list[ProviderHealthResponse]
    cache: dict[str, int] = Field(default_factory=dict)
