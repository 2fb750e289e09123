"""Outbound ports: interfaces that infrastructure adapters must implement.

These are the *driven* ports in hexagonal architecture.  The application
layer depends only on these abstractions, never on concrete HTTP clients
or Redis drivers.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Mapping, Sequence

from pedagogy_master.domain.entities import RetrievedChunk
from pedagogy_master.shared.providers.types import ProviderHealth, SynthesisResult


# ═══════════════════════════════════════════════════════════════
#  Cache port
# ═══════════════════════════════════════════════════════════════
class CachePort(ABC):
    """Key-value cache with TTL (backed by Redis)."""

    @abstractmethod
    async def get(self, key: str) -> str | None: ...

    @abstractmethod
    async def set(
        self, key: str, value: str, *, ttl_seconds: int | None = None
    ) -> None: ...

    @abstractmethod
    async def delete(self, key: str) -> None: ...

    @abstractmethod
    async def close(self) -> None: ...

    @abstractmethod
    async def health_check(self) -> bool: ...


# ═══════════════════════════════════════════════════════════════
#  Retrieval port
# ═══════════════════════════════════════════════════════════════
class RetrieverPort(ABC):
    """Pass-through to the hosted vector store."""

    @abstractmethod
    async def retrieve(
        self,
        query: str,
        *,
        document_ids: Sequence[str] = (),
        match_count: int = 10,
        priority_document_id: str | None = None,
    ) -> list[RetrievedChunk]:
        """Hybrid (vector + full text) search; returns ``[]`` on failure."""
        ...

    @abstractmethod
    async def find_by_slo(
        self, slo_code: str, *, document_id: str | None = None
    ) -> RetrievedChunk | None:
        """Exact-match lookup of the chunk tagged with an SLO code."""
        ...

    async def close(self) -> None:
        return None


# ═══════════════════════════════════════════════════════════════
#  LLM port
# ═══════════════════════════════════════════════════════════════
class LLMPort(ABC):
    """Abstraction over the multi-provider synthesis grid."""

    @abstractmethod
    async def synthesize(
        self,
        prompt: str,
        history: Sequence[Mapping[str, Any]] = (),
        system_instruction: str = "",
        preferred_provider: str | None = None,
        *,
        grounded: bool = False,
    ) -> SynthesisResult: ...

    @abstractmethod
    def provider_status(self) -> list[ProviderHealth]: ...

    @abstractmethod
    def reset(self) -> None: ...

    @abstractmethod
    def reset_provider(self, provider_id: str) -> None: ...
