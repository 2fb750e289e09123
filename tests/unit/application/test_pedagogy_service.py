"""Unit tests for the pedagogy orchestration service."""

from __future__ import annotations

import pytest

from conftest import FakeLLM, FakeRetriever
from pedagogy_master.adapters.outbound.cache import MemoryCacheAdapter
from pedagogy_master.application.services import PedagogyService
from pedagogy_master.domain.entities import RetrievedChunk
from pedagogy_master.domain.enums import ToolType
from pedagogy_master.domain.exceptions import ValidationError
from pedagogy_master.shared.providers.response_cache import ResponseCache, make_key


def make_service(
    llm: FakeLLM | None = None,
    retriever: FakeRetriever | None = None,
    responses: ResponseCache | None = None,
    artifacts: MemoryCacheAdapter | None = None,
) -> PedagogyService:
    return PedagogyService(
        llm if llm is not None else FakeLLM(),
        retriever if retriever is not None else FakeRetriever(),
        responses if responses is not None else ResponseCache(),
        artifacts if artifacts is not None else MemoryCacheAdapter(),
        match_count=7,
        artifact_ttl_seconds=3_600,
    )


# ═══════════════════════════════════════════════════════════════
#  Query pipeline
# ═══════════════════════════════════════════════════════════════
class TestGenerateResponse:
    @pytest.mark.asyncio
    async def test_empty_query_rejected(self) -> None:
        with pytest.raises(ValidationError):
            await make_service().generate_response("   ")

    @pytest.mark.asyncio
    async def test_cache_hit_skips_the_grid(self) -> None:
        llm = FakeLLM()
        responses = ResponseCache()
        responses.set(make_key("Tell me about cells", []), "cached answer", "groq")

        result = await make_service(llm, responses=responses).generate_response(
            "Tell me about cells"
        )

        assert result.text == "cached answer"
        assert result.provider == "cache"
        assert result.metadata == {"cached": True}
        assert llm.calls == []

    @pytest.mark.asyncio
    async def test_general_query_is_answered_and_cached(self) -> None:
        llm = FakeLLM(provider="groq")
        responses = ResponseCache()
        service = make_service(llm, responses=responses)

        result = await service.generate_response("Tell me about the history of schools")

        assert result.text == "answer from groq"
        assert result.provider == "groq"
        assert result.metadata["cached"] is False
        assert result.metadata["grounded"] is False
        assert result.metadata["intent"] == "general"
        assert llm.calls[0]["preferred_provider"] == "gemini"
        assert llm.calls[0]["grounded"] is False
        assert len(responses) == 1

    @pytest.mark.asyncio
    async def test_lookup_prefers_fast_provider(self) -> None:
        llm = FakeLLM()
        await make_service(llm).generate_response("What is SLO B-11-B-27?")
        assert llm.calls[0]["preferred_provider"] == "groq"

    @pytest.mark.asyncio
    async def test_history_trimmed_to_recent_turns(self) -> None:
        llm = FakeLLM()
        history = [{"role": "user", "content": str(i)} for i in range(6)]
        await make_service(llm).generate_response("Tell me about cells", history)
        assert [t["content"] for t in llm.calls[0]["history"]] == ["2", "3", "4", "5"]

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "query",
        ["Design a full lesson on gravity", "CREATE a short summary of osmosis"],
    )
    async def test_expensive_or_creative_answers_not_cached(self, query: str) -> None:
        responses = ResponseCache()
        await make_service(responses=responses).generate_response(query)
        assert len(responses) == 0

    @pytest.mark.asyncio
    async def test_explicit_tool_overrides_router(self) -> None:
        llm = FakeLLM()
        result = await make_service(llm).generate_response(
            "Tell me about cells", tool_type=ToolType.AUDIT_TAGGER
        )
        assert result.metadata["tool"] == "audit_tagger"
        assert "STANDARDS AUDITOR" in llm.calls[0]["system_instruction"]


class TestRetrievalStage:
    @pytest.mark.asyncio
    async def test_no_documents_means_no_retrieval(self) -> None:
        retriever = FakeRetriever()
        await make_service(retriever=retriever).generate_response("Explain SLO B-11-B-27")
        assert retriever.slo_calls == []
        assert retriever.retrieve_calls == []

    @pytest.mark.asyncio
    async def test_slo_exact_match_beats_hybrid_search(
        self, sample_chunk: RetrievedChunk
    ) -> None:
        llm = FakeLLM()
        retriever = FakeRetriever(exact=sample_chunk)

        result = await make_service(llm, retriever).generate_response(
            "Explain SLO B-11-B-27", document_ids=["doc-001", "doc-002"]
        )

        assert retriever.slo_calls == [("B-11-B-27", "doc-001")]
        assert retriever.retrieve_calls == []
        assert result.metadata["grounded"] is True
        assert result.metadata["chunk_ids"] == ["chunk-001"]
        assert sample_chunk.text in llm.calls[0]["prompt"]
        assert llm.calls[0]["grounded"] is True

    @pytest.mark.asyncio
    async def test_hybrid_search_fallback(self, sample_chunk: RetrievedChunk) -> None:
        retriever = FakeRetriever(chunks=[sample_chunk])

        result = await make_service(retriever=retriever).generate_response(
            "Explain osmosis", document_ids=["doc-001"], priority_document_id="doc-009"
        )

        assert retriever.slo_calls == []
        assert retriever.retrieve_calls == [
            {
                "query": "Explain osmosis",
                "document_ids": ["doc-001"],
                "match_count": 7,
                "priority_document_id": "doc-009",
            }
        ]
        assert result.metadata["chunk_count"] == 1

    @pytest.mark.asyncio
    async def test_empty_vault_is_ungrounded(self) -> None:
        llm = FakeLLM()
        await make_service(llm).generate_response("Explain osmosis", document_ids=["doc-001"])
        assert llm.calls[0]["grounded"] is False


# ═══════════════════════════════════════════════════════════════
#  Direct synthesis and analysis
# ═══════════════════════════════════════════════════════════════
class TestSynthesizeAndAnalyze:
    @pytest.mark.asyncio
    async def test_unknown_preferred_provider_rejected(self) -> None:
        with pytest.raises(ValidationError, match="unknown provider"):
            await make_service().synthesize("hi", preferred_provider="skynet")

    @pytest.mark.asyncio
    async def test_default_system_instruction(self) -> None:
        llm = FakeLLM()
        result = await make_service(llm).synthesize("hi", preferred_provider="groq")
        assert result.provider_used == "gemini"
        assert llm.calls[0]["system_instruction"]
        assert llm.calls[0]["preferred_provider"] == "groq"

    def test_analyze_reports_every_classifier(self) -> None:
        report = make_service().analyze("Make a quiz on cells for grade 9")
        assert report["analysis"]["query_type"] == "assessment"
        assert report["intent"]["suggested_provider"] == "gemini"
        assert report["tool"]["tool"] == "neural_quiz"
        assert report["parsed"]["grades"] == ["9"]


# ═══════════════════════════════════════════════════════════════
#  SLO artifacts
# ═══════════════════════════════════════════════════════════════
class TestArtifacts:
    @pytest.mark.asyncio
    async def test_miss_generates_and_stores(self) -> None:
        llm = FakeLLM()
        artifacts = MemoryCacheAdapter()
        service = make_service(llm, artifacts=artifacts)

        artifact = await service.get_cached_or_generate("b11b27", "lesson_plan")

        assert artifact.slo_code == "B-11-B-27"
        assert artifact.cached is False
        assert artifact.provider == "gemini"
        assert llm.calls[0]["preferred_provider"] == "gemini"
        assert "(SLO) B-11-B-27" in llm.calls[0]["prompt"]
        assert await artifacts.get("artifact:lesson_plan:B-11-B-27") == "answer from gemini"

    @pytest.mark.asyncio
    async def test_hit_is_served_from_cache(self) -> None:
        llm = FakeLLM()
        artifacts = MemoryCacheAdapter()
        await artifacts.set("artifact:assessment:B-11-B-27", "stored quiz")

        artifact = await make_service(llm, artifacts=artifacts).get_cached_or_generate(
            "B-11-B-27", "assessment"
        )

        assert artifact.cached is True
        assert artifact.content == "stored quiz"
        assert artifact.provider == "cache"
        assert llm.calls == []

    @pytest.mark.asyncio
    async def test_unsupported_content_type(self) -> None:
        with pytest.raises(ValidationError, match="unsupported content type"):
            await make_service().get_cached_or_generate("B-11-B-27", "poster")

    @pytest.mark.asyncio
    async def test_empty_slo(self) -> None:
        with pytest.raises(ValidationError):
            await make_service().get_cached_or_generate("", "lesson_plan")


# ═══════════════════════════════════════════════════════════════
#  Grid admin
# ═══════════════════════════════════════════════════════════════
class TestGridAdmin:
    def test_provider_status_shape(self) -> None:
        status = make_service().provider_status()
        assert [p["provider_id"] for p in status["providers"]] == ["gemini", "groq"]
        assert status["cache"] == {"size": 0, "capacity": 200}

    def test_reset_provider(self) -> None:
        llm = FakeLLM()
        make_service(llm).reset_provider("groq")
        assert llm.reset_calls == ["groq"]

    def test_reset_unknown_provider(self) -> None:
        with pytest.raises(ValidationError, match="unknown provider"):
            make_service().reset_provider("skynet")

    def test_reset_grid_clears_cache(self) -> None:
        llm = FakeLLM()
        responses = ResponseCache()
        responses.set("k", "v")
        make_service(llm, responses=responses).reset_grid()
        assert llm.reset_calls == [None]
        assert len(responses) == 0
