"""Domain entities for the pedagogy AI layer."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


# ═══════════════════════════════════════════════════════════════
#  Retrieval
# ═══════════════════════════════════════════════════════════════
@dataclass(frozen=True, slots=True)
class RetrievedChunk:
    """One curriculum passage returned by the vector store."""

    chunk_id: str
    text: str
    document_id: str | None = None
    similarity: float = 0.0
    slo_codes: tuple[str, ...] = ()
    metadata: dict[str, Any] = field(default_factory=dict)


# ═══════════════════════════════════════════════════════════════
#  Conversation
# ═══════════════════════════════════════════════════════════════
@dataclass(frozen=True, slots=True)
class ChatTurn:
    role: str
    content: str

    def as_message(self) -> dict[str, str]:
        return {"role": self.role, "content": self.content}


# ═══════════════════════════════════════════════════════════════
#  Generated output
# ═══════════════════════════════════════════════════════════════
@dataclass(slots=True)
class GeneratedResponse:
    """Text produced by the pipeline plus routing metadata.

    ``provider`` is ``"cache"`` when the answer was served from the
    response cache without touching any LLM.
    """

    text: str
    provider: str
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass(slots=True)
class Artifact:
    """A reusable SLO-keyed artifact (lesson plan, strategies, assessment)."""

    slo_code: str
    content_type: str
    content: str
    provider: str
    cached: bool = False
