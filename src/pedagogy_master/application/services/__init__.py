"""Pedagogy orchestration service.

Runs the query pipeline end to end:

    cache lookup → SLO exact match / hybrid retrieval → intent & tool
    classification → prompt assembly → grid synthesis → cache store

Provider selection is a *soft preference*: the intent classifier names
the provider best suited to the query, and the synthesis grid fails over
to the rest of the registry when that provider is unavailable.
"""

from __future__ import annotations

import time
from dataclasses import asdict
from typing import Any, Mapping, Sequence

import structlog

from pedagogy_master.domain.curriculum import extract_slo_codes, normalize_slo
from pedagogy_master.domain.entities import Artifact, GeneratedResponse, RetrievedChunk
from pedagogy_master.domain.enums import ArtifactType, ProviderName, ToolType
from pedagogy_master.domain.exceptions import ValidationError
from pedagogy_master.domain.services.prompt_builder import (
    DEFAULT_MASTER_PROMPT,
    build_artifact_prompt,
    build_grounded_prompt,
    build_system_instruction,
)
from pedagogy_master.domain.services.query_analyzer import (
    analyze_user_query,
    classify_intent,
    parse_user_query,
)
from pedagogy_master.domain.services.tool_router import detect_tool_intent, get_tool_display_name
from pedagogy_master.ports.outbound import CachePort, LLMPort, RetrieverPort
from pedagogy_master.shared.observability.metrics import CACHE_LOOKUPS
from pedagogy_master.shared.providers.response_cache import ResponseCache, make_key
from pedagogy_master.shared.providers.types import SynthesisResult

logger = structlog.get_logger(__name__)

HISTORY_TURNS = 4
MAX_CACHEABLE_COMPLEXITY = 3
CACHE_PROVIDER = "cache"


class PedagogyService:
    """Answers curriculum questions through the multi-provider grid."""

    def __init__(
        self,
        llm: LLMPort,
        retriever: RetrieverPort,
        response_cache: ResponseCache,
        artifact_cache: CachePort,
        *,
        match_count: int = 10,
        artifact_ttl_seconds: int = 86_400,
    ) -> None:
        self._llm = llm
        self._retriever = retriever
        self._responses = response_cache
        self._artifacts = artifact_cache
        self._match_count = match_count
        self._artifact_ttl = artifact_ttl_seconds

    # ── Query pipeline ───────────────────────────────────────
    async def generate_response(
        self,
        query: str,
        history: Sequence[Mapping[str, Any]] = (),
        *,
        document_ids: Sequence[str] = (),
        priority_document_id: str | None = None,
        adaptive_context: str | None = None,
        tool_type: ToolType | None = None,
        custom_system: str | None = None,
        doc_metadata: Mapping[str, Any] | None = None,
    ) -> GeneratedResponse:
        if not query.strip():
            raise ValidationError("query must not be empty")

        start = time.monotonic()
        log = logger.bind(query_chars=len(query), documents=len(document_ids))

        cache_key = make_key(query, history)
        cached = self._responses.get(cache_key)
        if cached is not None:
            CACHE_LOOKUPS.labels(cache="response", result="hit").inc()
            log.info("response_cache_hit")
            return GeneratedResponse(text=cached, provider=CACHE_PROVIDER, metadata={"cached": True})
        CACHE_LOOKUPS.labels(cache="response", result="miss").inc()

        chunks = await self._retrieve(query, document_ids, priority_document_id)
        grounded = bool(chunks)

        analysis = analyze_user_query(query)
        intent = classify_intent(query, analysis)
        route = detect_tool_intent(query)
        tool = tool_type or route.tool

        system_instruction = build_system_instruction(
            tool, analysis, custom_system=custom_system, doc_metadata=doc_metadata
        )
        prompt = build_grounded_prompt(
            query,
            intent,
            [c.text for c in chunks],
            adaptive_context=adaptive_context,
        )

        result = await self._llm.synthesize(
            prompt,
            list(history)[-HISTORY_TURNS:],
            system_instruction,
            intent.suggested_provider.value,
            grounded=grounded,
        )

        if intent.complexity < MAX_CACHEABLE_COMPLEXITY and "create" not in query.lower():
            self._responses.set(cache_key, result.text, result.provider_used)

        latency_ms = round((time.monotonic() - start) * 1000, 1)
        log.info(
            "response_generated",
            provider=result.provider_used,
            intent=intent.intent.value,
            tool=tool.value,
            grounded=grounded,
            latency_ms=latency_ms,
        )
        return GeneratedResponse(
            text=result.text,
            provider=result.provider_used,
            metadata={
                "cached": False,
                "grounded": grounded,
                "intent": intent.intent.value,
                "complexity": intent.complexity,
                "query_type": analysis.query_type.value,
                "tool": tool.value,
                "tool_name": get_tool_display_name(tool),
                "tool_confidence": route.confidence,
                "latency_ms": latency_ms,
                "chunk_count": len(chunks),
                "chunk_ids": [c.chunk_id for c in chunks],
            },
        )

    async def _retrieve(
        self,
        query: str,
        document_ids: Sequence[str],
        priority_document_id: str | None,
    ) -> list[RetrievedChunk]:
        """Exact SLO match first, hybrid semantic search as the fallback."""
        if not document_ids and not priority_document_id:
            return []

        target_doc = priority_document_id or document_ids[0]
        codes = extract_slo_codes(query)
        if codes:
            exact = await self._retriever.find_by_slo(codes[0], document_id=target_doc)
            if exact is not None:
                logger.info("slo_exact_match", slo=codes[0], chunk=exact.chunk_id)
                return [exact]

        scope = list(document_ids) or [target_doc]
        return await self._retriever.retrieve(
            query,
            document_ids=scope,
            match_count=self._match_count,
            priority_document_id=target_doc,
        )

    # ── Direct synthesis / analysis ──────────────────────────
    async def synthesize(
        self,
        prompt: str,
        history: Sequence[Mapping[str, Any]] = (),
        *,
        system_instruction: str | None = None,
        preferred_provider: str | None = None,
        grounded: bool = False,
    ) -> SynthesisResult:
        if not prompt.strip():
            raise ValidationError("prompt must not be empty")
        if preferred_provider:
            try:
                ProviderName(preferred_provider)
            except ValueError as exc:
                raise ValidationError(f"unknown provider: {preferred_provider}") from exc
        return await self._llm.synthesize(
            prompt,
            history,
            system_instruction or DEFAULT_MASTER_PROMPT,
            preferred_provider,
            grounded=grounded,
        )

    def analyze(self, query: str) -> dict[str, Any]:
        """Everything the classifiers conclude about a query, without calling an LLM."""
        analysis = analyze_user_query(query)
        intent = classify_intent(query, analysis)
        route = detect_tool_intent(query)
        parsed = parse_user_query(query)
        return {
            "analysis": {
                "query_type": analysis.query_type.value,
                "complexity_level": analysis.complexity_level.value,
                "expected_response_length": analysis.expected_response_length.value,
                "user_intent": analysis.user_intent,
                "extracted_slo": analysis.extracted_slo,
                "keywords": analysis.keywords,
            },
            "intent": {
                "intent": intent.intent.value,
                "complexity": intent.complexity,
                "suggested_provider": intent.suggested_provider.value,
                "is_stem": intent.is_stem,
                "requires_grounding": intent.requires_grounding,
            },
            "tool": {
                "tool": route.tool.value,
                "name": get_tool_display_name(route.tool),
                "confidence": route.confidence,
                "reasoning": route.reasoning,
                "scores": route.scores,
            },
            "parsed": asdict(parsed),
        }

    # ── SLO artifacts ────────────────────────────────────────
    async def get_cached_or_generate(self, slo_code: str, content_type: str) -> Artifact:
        """Serve a reusable SLO artifact, generating and persisting it on a miss."""
        try:
            artifact_type = ArtifactType(content_type)
        except ValueError as exc:
            raise ValidationError(f"unsupported content type: {content_type}") from exc

        normalized = normalize_slo(slo_code)
        if not normalized:
            raise ValidationError("slo_code must not be empty")

        key = f"artifact:{artifact_type.value}:{normalized}"
        cached = await self._artifacts.get(key)
        if cached:
            CACHE_LOOKUPS.labels(cache="artifact", result="hit").inc()
            return Artifact(
                slo_code=normalized,
                content_type=artifact_type.value,
                content=cached,
                provider=CACHE_PROVIDER,
                cached=True,
            )
        CACHE_LOOKUPS.labels(cache="artifact", result="miss").inc()

        result = await self._llm.synthesize(
            build_artifact_prompt(artifact_type.value, normalized),
            [],
            DEFAULT_MASTER_PROMPT,
            ProviderName.GEMINI.value,
        )
        await self._artifacts.set(key, result.text, ttl_seconds=self._artifact_ttl)
        logger.info(
            "artifact_generated",
            slo=normalized,
            content_type=artifact_type.value,
            provider=result.provider_used,
        )
        return Artifact(
            slo_code=normalized,
            content_type=artifact_type.value,
            content=result.text,
            provider=result.provider_used,
        )

    # ── Grid admin ───────────────────────────────────────────
    def provider_status(self) -> dict[str, Any]:
        return {
            "providers": [
                {**asdict(h), "status": h.status.value} for h in self._llm.provider_status()
            ],
            "cache": self._responses.stats(),
        }

    def reset_provider(self, provider_id: str) -> None:
        try:
            ProviderName(provider_id)
        except ValueError as exc:
            raise ValidationError(f"unknown provider: {provider_id}") from exc
        self._llm.reset_provider(provider_id)

    def reset_grid(self) -> None:
        self._llm.reset()
        self._responses.clear()
        logger.info("grid_realigned")
