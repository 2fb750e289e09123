"""Health, AI pipeline and provider grid: REST routers."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from starlette.responses import JSONResponse, Response

from pedagogy_master.application.dtos import (
    AnalyzeRequest,
    ArtifactRequest,
    ArtifactResponse,
    HealthResponse,
    ProviderStatusResponse,
    QueryRequest,
    QueryResponse,
    SynthesizeRequest,
    SynthesizeResponse,
)
from pedagogy_master.application.services import PedagogyService
from pedagogy_master.dependencies import (
    get_cache,
    get_cached_settings,
    get_pedagogy_service,
    require_admin,
)
from pedagogy_master.domain.enums import ToolType


# ═══════════════════════════════════════════════════════════════
#  Health
# ═══════════════════════════════════════════════════════════════
health_router = APIRouter(tags=["Health"])


@health_router.get("/health", response_model=HealthResponse)
async def health_check() -> JSONResponse:
    settings = get_cached_settings()

    # ── Check cache ──────────────────────────────────────────
    cache_status = "connected"
    try:
        if not await get_cache().health_check():
            cache_status = "disconnected"
    except Exception as e:
        cache_status = f"error: {type(e).__name__}"

    backend = "redis" if settings.redis_url else "memory"
    response = HealthResponse(
        status="ok" if cache_status == "connected" else "degraded",
        version="0.1.0",
        environment=settings.app_env.value,
        services={"cache": cache_status, "cache_backend": backend},
    )
    return JSONResponse(
        status_code=200 if cache_status == "connected" else 503,
        content=response.model_dump(),
    )


@health_router.get("/metrics")
async def prometheus_metrics() -> Response:
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)


# ═══════════════════════════════════════════════════════════════
#  AI pipeline
# ═══════════════════════════════════════════════════════════════
ai_router = APIRouter(prefix="/ai", tags=["AI Pipeline"])


@ai_router.post("/query", response_model=QueryResponse)
async def answer_query(
    body: QueryRequest,
    service: PedagogyService = Depends(get_pedagogy_service),
) -> QueryResponse:
    """Grounded answer to a curriculum question."""
    result = await service.generate_response(
        body.query,
        [m.model_dump() for m in body.history],
        document_ids=body.document_ids,
        priority_document_id=body.priority_document_id,
        adaptive_context=body.adaptive_context,
        tool_type=ToolType(body.tool_type) if body.tool_type else None,
        custom_system=body.custom_system,
    )
    return QueryResponse(text=result.text, provider=result.provider, metadata=result.metadata)


@ai_router.post("/synthesize", response_model=SynthesizeResponse)
async def synthesize(
    body: SynthesizeRequest,
    service: PedagogyService = Depends(get_pedagogy_service),
) -> SynthesizeResponse:
    """Raw grid call: no retrieval, no prompt assembly."""
    result = await service.synthesize(
        body.prompt,
        [m.model_dump() for m in body.history],
        system_instruction=body.system_instruction,
        preferred_provider=body.preferred_provider,
        grounded=body.grounded,
    )
    return SynthesizeResponse(text=result.text, provider_used=result.provider_used)


@ai_router.post("/analyze")
async def analyze_query(
    body: AnalyzeRequest,
    service: PedagogyService = Depends(get_pedagogy_service),
) -> dict:
    return service.analyze(body.query)


@ai_router.post("/artifacts", response_model=ArtifactResponse)
async def get_artifact(
    body: ArtifactRequest,
    service: PedagogyService = Depends(get_pedagogy_service),
) -> ArtifactResponse:
    artifact = await service.get_cached_or_generate(body.slo_code, body.content_type)
    return ArtifactResponse(
        slo_code=artifact.slo_code,
        content_type=artifact.content_type,
        content=artifact.content,
        provider=artifact.provider,
        cached=artifact.cached,
    )


# ═══════════════════════════════════════════════════════════════
#  Provider grid (Admin)
# ═══════════════════════════════════════════════════════════════
providers_router = APIRouter(prefix="/providers", tags=["Provider Grid"])


@providers_router.get("/status", response_model=ProviderStatusResponse)
async def provider_status(
    service: PedagogyService = Depends(get_pedagogy_service),
) -> ProviderStatusResponse:
    """Health, blacklist and quota snapshot for every registered provider."""
    return ProviderStatusResponse(**service.provider_status())


@providers_router.post("/reset")
async def reset_grid(
    service: PedagogyService = Depends(get_pedagogy_service),
    _admin: None = Depends(require_admin),
) -> dict:
    """Admin: clear every blacklist, quota counter and cached response."""
    service.reset_grid()
    return {"status": "realigned"}


@providers_router.post("/{provider_id}/reset")
async def reset_provider(
    provider_id: str,
    service: PedagogyService = Depends(get_pedagogy_service),
    _admin: None = Depends(require_admin),
) -> dict:
    """Admin: lift the blacklist and reset counters for one provider."""
    service.reset_provider(provider_id)
    return {"status": "reset", "provider_id": provider_id}
