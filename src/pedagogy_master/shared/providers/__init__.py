"""Multi-provider synthesis grid.

Rate limiting, failure blacklisting, response caching, request
serialisation and priority failover across the configured LLM providers.
"""

from pedagogy_master.shared.providers.types import (
    ProviderClient,
    ProviderConfig,
    ProviderHealth,
    ProviderStatus,
    SynthesisResult,
)
from pedagogy_master.shared.providers.health import ProviderHealthTracker
from pedagogy_master.shared.providers.circuit_breaker import CircuitBreaker, CircuitState
from pedagogy_master.shared.providers.rate_limiter import RateLimiter
from pedagogy_master.shared.providers.response_cache import ResponseCache, make_key
from pedagogy_master.shared.providers.request_queue import RequestQueue
from pedagogy_master.shared.providers.router import ProviderRouter, select_provider
from pedagogy_master.shared.providers.synthesizer import Synthesizer

__all__ = [
    "CircuitBreaker",
    "CircuitState",
    "ProviderClient",
    "ProviderConfig",
    "ProviderHealth",
    "ProviderHealthTracker",
    "ProviderRouter",
    "ProviderStatus",
    "RateLimiter",
    "RequestQueue",
    "ResponseCache",
    "Synthesizer",
    "SynthesisResult",
    "make_key",
    "select_provider",
]
