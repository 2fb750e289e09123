"""Retrieval adapters: pass-through to the hosted vector store.

``SupabaseRetrieverAdapter`` embeds the query with Gemini
``text-embedding-004`` and hands the vector to the PostgREST RPC
``hybrid_search_chunks_v2``, boosting chunks tagged with any SLO code
found in the query.  Retrieval never fails a request: errors are logged
and produce an empty vault.
"""

from __future__ import annotations

import logging
import re
from typing import Any, Sequence

import httpx
import structlog
from tenacity import (
    before_sleep_log,
    retry,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from pedagogy_master.adapters.outbound.llm.clients import GEMINI_KEY_HEADER
from pedagogy_master.domain.curriculum import extract_slo_codes, normalize_slo, parse_slo_code
from pedagogy_master.domain.entities import RetrievedChunk
from pedagogy_master.ports.outbound import RetrieverPort
from pedagogy_master.shared.observability.metrics import RETRIEVAL_CHUNKS

logger = structlog.get_logger(__name__)

HYBRID_SEARCH_RPC = "hybrid_search_chunks_v2"
CHUNKS_TABLE = "document_chunks"

_CONTROL_CHARS_RE = re.compile(r"[\x00-\x1f\x7f-\x9f]")
_WHITESPACE_RE = re.compile(r"\s+")


def _is_transient(exc: BaseException) -> bool:
    if isinstance(exc, (httpx.NetworkError, httpx.TimeoutException)):
        return True
    if isinstance(exc, httpx.HTTPStatusError):
        return exc.response.status_code == 429 or exc.response.status_code >= 500
    return False


# Shared retry policy for vector-store interactions
_retrieval_retry = retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=0.5, min=0.5, max=4),
    retry=retry_if_exception(_is_transient),
    before_sleep=before_sleep_log(logger, logging.WARNING),
    reraise=True,
)


def sanitize_text(text: str) -> str:
    clean = _CONTROL_CHARS_RE.sub(" ", text or "")
    return _WHITESPACE_RE.sub(" ", clean).strip() or " "


class NullRetriever(RetrieverPort):
    """Used when no vector store is configured; every vault is empty."""

    async def retrieve(
        self,
        query: str,
        *,
        document_ids: Sequence[str] = (),
        match_count: int = 10,
        priority_document_id: str | None = None,
    ) -> list[RetrievedChunk]:
        return []

    async def find_by_slo(
        self, slo_code: str, *, document_id: str | None = None
    ) -> RetrievedChunk | None:
        return None


class SupabaseRetrieverAdapter(RetrieverPort):
    """Hybrid vector + keyword retrieval over Supabase PostgREST.

    Requires:
        - ``supabase_url`` (SUPABASE_URL)
        - ``supabase_service_role_key`` (SUPABASE_SERVICE_ROLE_KEY)
        - a Gemini key for query embeddings (GEMINI_API_KEY)
    """

    def __init__(
        self,
        supabase_url: str,
        supabase_key: str,
        *,
        embedding_api_key: str,
        embedding_endpoint: str = "https://generativelanguage.googleapis.com/v1beta",
        embedding_model: str = "text-embedding-004",
        embedding_dimensions: int = 768,
        http: httpx.AsyncClient | None = None,
        timeout: float = 30.0,
    ) -> None:
        self._rest_url = f"{supabase_url.rstrip('/')}/rest/v1"
        self._headers = {
            "apikey": supabase_key,
            "Authorization": f"Bearer {supabase_key}",
            "Content-Type": "application/json",
        }
        self._embedding_key = embedding_api_key
        self._embedding_url = (
            f"{embedding_endpoint.rstrip('/')}/models/{embedding_model}:embedContent"
        )
        self._embedding_model = embedding_model
        self._dimensions = embedding_dimensions
        self._owns_http = http is None
        self._http = http or httpx.AsyncClient(timeout=timeout)
        logger.info("supabase_retriever_initialized", rest_url=self._rest_url)

    # ── RetrieverPort implementation ──────────────────────────
    async def retrieve(
        self,
        query: str,
        *,
        document_ids: Sequence[str] = (),
        match_count: int = 10,
        priority_document_id: str | None = None,
    ) -> list[RetrievedChunk]:
        boost_tags = extract_slo_codes(query)
        log = logger.bind(documents=list(document_ids), boost_tags=boost_tags)

        try:
            embedding = await self._embed(query)
            if not any(embedding):
                log.error("retrieval_embedding_empty")
                return []

            rows = await self._rpc(
                HYBRID_SEARCH_RPC,
                {
                    "query_embedding": embedding,
                    "match_count": match_count,
                    "filter_document_ids": list(document_ids),
                    "priority_document_id": priority_document_id
                    or (document_ids[0] if document_ids else None),
                    "boost_tags": boost_tags,
                },
            )
        except (httpx.HTTPError, ValueError) as exc:
            log.error("retrieval_failed", error=str(exc))
            return []

        chunks = [_to_chunk(row) for row in rows or []]
        RETRIEVAL_CHUNKS.observe(len(chunks))
        if not chunks:
            log.warning("retrieval_no_matches")
        else:
            log.info("retrieval_matches", count=len(chunks))
        return chunks

    async def find_by_slo(
        self, slo_code: str, *, document_id: str | None = None
    ) -> RetrievedChunk | None:
        parsed = parse_slo_code(slo_code)
        search_key = parsed.searchable if parsed else normalize_slo(slo_code)

        params: dict[str, Any] = {
            "select": "id,chunk_text,slo_codes,document_id",
            "slo_codes": f"cs.{{{search_key}}}",
            "limit": 1,
        }
        if document_id:
            params["document_id"] = f"eq.{document_id}"

        try:
            rows = await self._select(CHUNKS_TABLE, params)
        except (httpx.HTTPError, ValueError) as exc:
            logger.error("slo_lookup_failed", slo=search_key, error=str(exc))
            return None

        if not rows:
            return None
        row = rows[0]
        return RetrievedChunk(
            chunk_id=str(row.get("id", "")),
            text=f"### UNIVERSAL_NODE: {search_key}\n{row.get('chunk_text', '')}",
            document_id=row.get("document_id"),
            similarity=1.0,
            slo_codes=tuple(row.get("slo_codes") or ()),
        )

    async def close(self) -> None:
        if self._owns_http:
            await self._http.aclose()

    # ── HTTP calls ────────────────────────────────────────────
    @_retrieval_retry
    async def _embed(self, text: str) -> list[float]:
        resp = await self._http.post(
            self._embedding_url,
            headers={GEMINI_KEY_HEADER: self._embedding_key},
            json={
                "model": f"models/{self._embedding_model}",
                "content": {"parts": [{"text": sanitize_text(text)}]},
            },
        )
        resp.raise_for_status()
        values = resp.json().get("embedding", {}).get("values") or []
        return _fit_dimensions(values, self._dimensions)

    @_retrieval_retry
    async def _rpc(self, function: str, payload: dict[str, Any]) -> list[dict[str, Any]]:
        resp = await self._http.post(
            f"{self._rest_url}/rpc/{function}", headers=self._headers, json=payload
        )
        resp.raise_for_status()
        return resp.json()

    @_retrieval_retry
    async def _select(self, table: str, params: dict[str, Any]) -> list[dict[str, Any]]:
        resp = await self._http.get(
            f"{self._rest_url}/{table}", headers=self._headers, params=params
        )
        resp.raise_for_status()
        return resp.json()


def _fit_dimensions(values: list[float], dimensions: int) -> list[float]:
    """Pad with zeros or truncate so the vector matches the index width."""
    if len(values) >= dimensions:
        return list(values[:dimensions])
    return list(values) + [0.0] * (dimensions - len(values))


def _to_chunk(row: dict[str, Any]) -> RetrievedChunk:
    return RetrievedChunk(
        chunk_id=str(row.get("chunk_id", "")),
        text=row.get("chunk_text", ""),
        document_id=row.get("document_id"),
        similarity=float(row.get("combined_score") or 0.0),
        slo_codes=tuple(row.get("slo_codes") or ()),
        metadata={
            k: row[k] for k in ("section_title", "page_number") if row.get(k) is not None
        },
    )


__all__ = ["NullRetriever", "SupabaseRetrieverAdapter", "sanitize_text"]
