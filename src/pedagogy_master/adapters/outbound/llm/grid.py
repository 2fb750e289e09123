"""LLM port adapter backed by the synthesis grid."""

from __future__ import annotations

from typing import Any, Mapping, Sequence

import httpx

from pedagogy_master.ports.outbound import LLMPort
from pedagogy_master.shared.providers.synthesizer import (
    DEFAULT_SYSTEM_INSTRUCTION,
    Synthesizer,
)
from pedagogy_master.shared.providers.types import ProviderHealth, SynthesisResult


class SynthesisGridAdapter(LLMPort):
    """LLM adapter with autonomous failover, rotation, and health tracking.

    The caller may name a *preferred* provider, but the synthesizer
    transparently fails over to the rest of the grid.
    """

    def __init__(self, synthesizer: Synthesizer, http: httpx.AsyncClient | None = None) -> None:
        self._synthesizer = synthesizer
        self._http = http

    @property
    def synthesizer(self) -> Synthesizer:
        """Expose the synthesizer for status inspection / admin reset."""
        return self._synthesizer

    async def synthesize(
        self,
        prompt: str,
        history: Sequence[Mapping[str, Any]] = (),
        system_instruction: str = "",
        preferred_provider: str | None = None,
        *,
        grounded: bool = False,
    ) -> SynthesisResult:
        return await self._synthesizer.synthesize(
            prompt,
            history,
            system_instruction or DEFAULT_SYSTEM_INSTRUCTION,
            preferred_provider,
            grounded=grounded,
        )

    def provider_status(self) -> list[ProviderHealth]:
        return self._synthesizer.provider_status()

    def reset(self) -> None:
        self._synthesizer.reset()

    def reset_provider(self, provider_id: str) -> None:
        self._synthesizer.reset_provider(provider_id)

    async def close(self) -> None:
        if self._http is not None:
            await self._http.aclose()
