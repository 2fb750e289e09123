"""Domain-specific exception hierarchy.

All exceptions inherit from ``DomainError`` so callers can catch the entire
family in one clause while still discriminating on subclass.
"""

from __future__ import annotations


class DomainError(Exception):
    """Base class for all domain-layer errors."""

    def __init__(self, message: str, *, code: str = "DOMAIN_ERROR") -> None:
        self.message = message
        self.code = code
        super().__init__(message)


# ── Validation ───────────────────────────────────────────────
class ValidationError(DomainError):
    """Input failed domain validation rules."""

    def __init__(self, message: str) -> None:
        super().__init__(message, code="VALIDATION_ERROR")


# ── LLM providers ────────────────────────────────────────────
class LLMError(DomainError):
    def __init__(self, provider: str, message: str, *, code: str = "LLM_ERROR") -> None:
        self.provider = provider
        super().__init__(f"[{provider}] {message}", code=code)


class ProviderCallError(LLMError):
    """A provider answered with a non-success status or an unusable body."""

    def __init__(self, provider: str, message: str, *, status_code: int | None = None) -> None:
        self.status_code = status_code
        super().__init__(provider, message, code="PROVIDER_CALL_FAILED")


class AllProvidersExhaustedError(DomainError):
    """Raised when no provider is available after exhausting the fallback chain."""

    def __init__(self, errors: dict[str, str]) -> None:
        self.errors = errors
        if errors:
            providers = ", ".join(errors.keys())
            message = f"All providers exhausted: {providers}"
        else:
            message = "All providers exhausted: no provider was eligible"
        super().__init__(message, code="GRID_EXHAUSTED")


# ── Auth ─────────────────────────────────────────────────────
class AuthorisationError(DomainError):
    def __init__(self, message: str = "Admin access required") -> None:
        super().__init__(message, code="AUTHORISATION_ERROR")
