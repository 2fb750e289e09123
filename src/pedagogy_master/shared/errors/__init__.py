"""Global exception handlers: map domain errors to HTTP responses."""

from __future__ import annotations

from fastapi import FastAPI, Request
from fastapi.responses import ORJSONResponse
import structlog

from pedagogy_master.domain.exceptions import (
    AllProvidersExhaustedError,
    AuthorisationError,
    DomainError,
    LLMError,
    ValidationError,
)

logger = structlog.get_logger(__name__)


def register_exception_handlers(app: FastAPI) -> None:
    """Register all domain→HTTP exception mappings."""

    @app.exception_handler(ValidationError)
    async def handle_validation(request: Request, exc: ValidationError) -> ORJSONResponse:
        return ORJSONResponse(
            status_code=422,
            content={"code": exc.code, "message": exc.message},
        )

    @app.exception_handler(AuthorisationError)
    async def handle_authz(request: Request, exc: AuthorisationError) -> ORJSONResponse:
        return ORJSONResponse(
            status_code=403,
            content={"code": exc.code, "message": exc.message},
        )

    @app.exception_handler(AllProvidersExhaustedError)
    async def handle_exhausted(
        request: Request, exc: AllProvidersExhaustedError
    ) -> ORJSONResponse:
        logger.error("grid_exhausted_http", errors=exc.errors)
        return ORJSONResponse(
            status_code=503,
            content={
                "code": exc.code,
                "message": exc.message,
                "details": {"errors": exc.errors},
            },
            headers={"Retry-After": "30"},
        )

    @app.exception_handler(LLMError)
    async def handle_llm(request: Request, exc: LLMError) -> ORJSONResponse:
        logger.error("llm_error_http", message=exc.message)
        return ORJSONResponse(
            status_code=502,
            content={"code": exc.code, "message": exc.message},
        )

    @app.exception_handler(DomainError)
    async def handle_domain(request: Request, exc: DomainError) -> ORJSONResponse:
        return ORJSONResponse(
            status_code=400,
            content={"code": exc.code, "message": exc.message},
        )

    @app.exception_handler(Exception)
    async def handle_unexpected(request: Request, exc: Exception) -> ORJSONResponse:
        logger.exception("unhandled_exception", error=str(exc))
        return ORJSONResponse(
            status_code=500,
            content={
                "code": "INTERNAL_ERROR",
                "message": "An unexpected error occurred",
            },
        )
