"""Shared test fixtures."""

from __future__ import annotations

from typing import Any, Mapping, Sequence

import pytest

from pedagogy_master.domain.entities import RetrievedChunk
from pedagogy_master.domain.exceptions import ProviderCallError
from pedagogy_master.ports.outbound import LLMPort, RetrieverPort
from pedagogy_master.shared.providers.types import ProviderConfig, ProviderHealth, SynthesisResult


class FakeClock:
    """Manually advanced stand-in for ``time.monotonic``."""

    def __init__(self, start: float = 1_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class ScriptedClient:
    """ProviderClient double: replays canned answers or errors per provider."""

    def __init__(self, script: Mapping[str, Any] | None = None) -> None:
        self.script: dict[str, Any] = dict(script or {})
        self.calls: list[dict[str, Any]] = []

    async def generate(
        self,
        cfg: ProviderConfig,
        api_key: str,
        prompt: str,
        history: Sequence[Mapping[str, Any]],
        system_instruction: str,
        *,
        grounded: bool = False,
    ) -> str:
        self.calls.append(
            {
                "provider": cfg.provider_id,
                "api_key": api_key,
                "prompt": prompt,
                "history": list(history),
                "system_instruction": system_instruction,
                "grounded": grounded,
            }
        )
        outcome = self.script.get(cfg.provider_id, f"answer from {cfg.provider_id}")
        if isinstance(outcome, BaseException):
            raise outcome
        if callable(outcome):
            return await outcome(prompt)
        return outcome


class FakeLLM(LLMPort):
    """LLMPort double that records every synthesis request."""

    def __init__(self, provider: str = "gemini", error: Exception | None = None) -> None:
        self.provider = provider
        self.error = error
        self.calls: list[dict[str, Any]] = []
        self.reset_calls: list[str | None] = []

    async def synthesize(
        self,
        prompt: str,
        history: Sequence[Mapping[str, Any]] = (),
        system_instruction: str = "",
        preferred_provider: str | None = None,
        *,
        grounded: bool = False,
    ) -> SynthesisResult:
        self.calls.append(
            {
                "prompt": prompt,
                "history": list(history),
                "system_instruction": system_instruction,
                "preferred_provider": preferred_provider,
                "grounded": grounded,
            }
        )
        if self.error is not None:
            raise self.error
        return SynthesisResult(text=f"answer from {self.provider}", provider_used=self.provider)

    def provider_status(self) -> list[ProviderHealth]:
        return [ProviderHealth(provider_id="gemini"), ProviderHealth(provider_id="groq")]

    def reset(self) -> None:
        self.reset_calls.append(None)

    def reset_provider(self, provider_id: str) -> None:
        self.reset_calls.append(provider_id)


class FakeRetriever(RetrieverPort):
    def __init__(
        self,
        chunks: Sequence[RetrievedChunk] = (),
        exact: RetrievedChunk | None = None,
    ) -> None:
        self.chunks = list(chunks)
        self.exact = exact
        self.retrieve_calls: list[dict[str, Any]] = []
        self.slo_calls: list[tuple[str, str | None]] = []

    async def retrieve(
        self,
        query: str,
        *,
        document_ids: Sequence[str] = (),
        match_count: int = 10,
        priority_document_id: str | None = None,
    ) -> list[RetrievedChunk]:
        self.retrieve_calls.append(
            {
                "query": query,
                "document_ids": list(document_ids),
                "match_count": match_count,
                "priority_document_id": priority_document_id,
            }
        )
        return list(self.chunks)

    async def find_by_slo(
        self, slo_code: str, *, document_id: str | None = None
    ) -> RetrievedChunk | None:
        self.slo_calls.append((slo_code, document_id))
        return self.exact


def make_config(provider_id: str, priority: int, **overrides: Any) -> ProviderConfig:
    values: dict[str, Any] = {
        "provider_id": provider_id,
        "endpoint": f"https://{provider_id}.example/v1",
        "model": f"{provider_id}-model",
        "api_keys": (f"{provider_id}-key",),
        "priority": priority,
        "rpm_limit": 0,
        "rpd_limit": 0,
        "context_char_limit": 100_000,
        "timeout_s": 5.0,
    }
    values.update(overrides)
    return ProviderConfig(**values)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def provider_configs() -> list[ProviderConfig]:
    return [
        make_config("gemini", 1, api_keys=("g-key-1", "g-key-2")),
        make_config("groq", 2),
        make_config("cerebras", 3),
    ]


@pytest.fixture
def scripted_client() -> ScriptedClient:
    return ScriptedClient()


@pytest.fixture
def failing_error() -> ProviderCallError:
    return ProviderCallError("any", "HTTP 500 upstream exploded", status_code=500)


@pytest.fixture
def sample_chunk() -> RetrievedChunk:
    return RetrievedChunk(
        chunk_id="chunk-001",
        text="SLO B-11-B-27: Describe the structure of the cell membrane.",
        document_id="doc-001",
        similarity=0.91,
        slo_codes=("B-11-B-27",),
    )
