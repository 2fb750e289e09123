"""Dependency injection container: wires adapters to ports.

FastAPI's ``Depends()`` system uses these factories to inject the
correct adapter implementations into route handlers.
"""

from __future__ import annotations

import hmac
from functools import lru_cache

import httpx
import structlog
from fastapi import Header

from pedagogy_master.adapters.outbound.cache import create_cache
from pedagogy_master.adapters.outbound.llm import (
    SynthesisGridAdapter,
    build_clients,
    build_provider_configs,
    parse_keys,
)
from pedagogy_master.adapters.outbound.retrieval import NullRetriever, SupabaseRetrieverAdapter
from pedagogy_master.application.services import PedagogyService
from pedagogy_master.config import Settings, get_settings
from pedagogy_master.domain.exceptions import AuthorisationError
from pedagogy_master.ports.outbound import CachePort, LLMPort, RetrieverPort
from pedagogy_master.shared.providers import (
    RateLimiter,
    RequestQueue,
    ResponseCache,
    Synthesizer,
)

logger = structlog.get_logger(__name__)


# ── Settings ─────────────────────────────────────────────────
@lru_cache(maxsize=1)
def get_cached_settings() -> Settings:
    return get_settings()


# ── Singletons ───────────────────────────────────────────────
_cache: CachePort | None = None
_response_cache: ResponseCache | None = None
_llm: SynthesisGridAdapter | None = None
_retriever: RetrieverPort | None = None


def get_cache(settings: Settings | None = None) -> CachePort:
    """Artifact cache: Redis when ``REDIS_URL`` is set, in-process otherwise."""
    global _cache
    if _cache is None:
        s = settings or get_cached_settings()
        _cache = create_cache(s.redis_url, s.redis_max_connections)
    return _cache


def get_response_cache(settings: Settings | None = None) -> ResponseCache:
    global _response_cache
    if _response_cache is None:
        s = settings or get_cached_settings()
        _response_cache = ResponseCache(
            ttl_seconds=s.response_cache_ttl_seconds,
            max_entries=s.response_cache_max_entries,
        )
    return _response_cache


def get_llm(settings: Settings | None = None) -> SynthesisGridAdapter:
    """Create or return the singleton synthesis grid.

    Builds ProviderConfig objects from settings, then constructs the
    synthesizer with rate limiting, the request queue and the response
    cache.  All provider clients share one HTTP connection pool.
    """
    global _llm
    if _llm is None:
        s = settings or get_cached_settings()
        http = httpx.AsyncClient(timeout=s.provider_timeout_seconds)

        synthesizer = Synthesizer(
            build_provider_configs(s),
            build_clients(http),
            rate_limiter=RateLimiter(),
            queue=RequestQueue(start_delay_s=s.request_queue_delay_ms / 1000),
            cache=get_response_cache(s),
            swarm_threshold_chars=s.swarm_threshold_chars,
            swarm_chunk_chars=s.swarm_chunk_chars,
        )
        _llm = SynthesisGridAdapter(synthesizer, http)
        logger.info(
            "synthesis_grid_ready",
            providers=[c.provider_id for c in synthesizer.router.providers],
        )
    return _llm


def get_retriever(settings: Settings | None = None) -> RetrieverPort:
    global _retriever
    if _retriever is None:
        s = settings or get_cached_settings()
        embedding_keys = parse_keys(s.gemini_api_keys, s.gemini_api_key)
        if not (s.supabase_url and s.supabase_service_role_key):
            logger.warning("retrieval_disabled", reason="supabase not configured")
            _retriever = NullRetriever()
        elif not embedding_keys:
            logger.warning("retrieval_disabled", reason="no gemini key for query embeddings")
            _retriever = NullRetriever()
        else:
            _retriever = SupabaseRetrieverAdapter(
                s.supabase_url,
                s.supabase_service_role_key,
                embedding_api_key=embedding_keys[0],
                embedding_endpoint=s.gemini_endpoint,
                embedding_model=s.embedding_model,
                embedding_dimensions=s.embedding_dimensions,
            )
    return _retriever


async def close_singletons() -> None:
    """Release every external connection and forget the singletons."""
    global _cache, _response_cache, _llm, _retriever
    for resource in (_cache, _llm, _retriever):
        if resource is not None:
            await resource.close()
    _cache = _response_cache = _llm = _retriever = None


# ── Service factory ──────────────────────────────────────────
def get_pedagogy_service() -> PedagogyService:
    settings = get_cached_settings()
    llm: LLMPort = get_llm(settings)
    return PedagogyService(
        llm=llm,
        retriever=get_retriever(settings),
        response_cache=get_response_cache(settings),
        artifact_cache=get_cache(settings),
        match_count=settings.retrieval_match_count,
        artifact_ttl_seconds=settings.artifact_cache_ttl_seconds,
    )


# ── Admin guard ──────────────────────────────────────────────
async def require_admin(
    x_admin_key: str | None = Header(None, alias="X-Admin-Key"),
) -> None:
    """Grid reset endpoints need the shared admin key.

    With no key configured (development) the guard is open.
    """
    expected = get_cached_settings().admin_api_key
    if not expected:
        return
    if not x_admin_key or not hmac.compare_digest(x_admin_key, expected):
        raise AuthorisationError("Admin key required")
