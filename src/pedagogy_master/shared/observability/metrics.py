"""Prometheus metrics for the pedagogy AI service."""

from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram


# ── HTTP metrics ─────────────────────────────────────────────
HTTP_REQUESTS_TOTAL = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "endpoint", "status_code"],
)

HTTP_REQUEST_DURATION = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "endpoint"],
    buckets=(0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
)

# ── Provider grid metrics ────────────────────────────────────
PROVIDER_CALLS = Counter(
    "llm_provider_calls_total",
    "Outbound LLM provider calls",
    ["provider", "outcome"],  # success / error / timeout / rate_limited
)

PROVIDER_LATENCY = Histogram(
    "llm_provider_latency_seconds",
    "LLM provider response latency",
    ["provider"],
    buckets=(0.5, 1.0, 2.0, 5.0, 10.0, 30.0, 60.0, 120.0),
)

PROVIDER_FAILOVERS = Counter(
    "llm_provider_failovers_total",
    "Syntheses answered by a provider other than the first choice",
    ["provider"],
)

GRID_EXHAUSTED = Counter(
    "llm_grid_exhausted_total",
    "Syntheses that failed on every provider",
)

QUEUE_DEPTH = Gauge(
    "llm_request_queue_depth",
    "Synthesis jobs waiting for the single lane",
)

# ── Cache / retrieval metrics ────────────────────────────────
CACHE_LOOKUPS = Counter(
    "response_cache_lookups_total",
    "Response and artifact cache lookups",
    ["cache", "result"],  # hit / miss
)

RETRIEVAL_CHUNKS = Histogram(
    "retrieval_chunks_returned",
    "Chunks returned per retrieval",
    buckets=(0, 1, 2, 5, 10, 20),
)
