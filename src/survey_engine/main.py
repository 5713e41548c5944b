"""
FastAPI application entry point.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from survey_engine import __version__
from survey_engine.api_keys.router import router as api_keys_router
from survey_engine.config import get_settings
from survey_engine.responses.router import router as responses_router
from survey_engine.shared.database import get_database_manager
from survey_engine.shared.exceptions import (
    ApiKeyIssuanceError,
    AppException,
    AuthenticationError,
    EventNotSendableError,
    NotFoundError,
    ValidationError,
)
from survey_engine.shared.logging import get_logger, setup_logging
from survey_engine.webhooks.router import router as webhooks_router

import survey_engine.api_keys.models  # noqa: F401
import survey_engine.automation.models  # noqa: F401
import survey_engine.contacts.models  # noqa: F401
import survey_engine.events.models  # noqa: F401
import survey_engine.responses.models  # noqa: F401

logger = get_logger(__name__)


def _error_body(exc: AppException) -> dict:
    return {
        "detail": {
            "code": exc.code,
            "message": exc.message,
            "details": exc.details,
        }
    }


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager."""
    setup_logging()
    settings = get_settings()

    logger.info("Application starting", extra={"env": settings.app_env})
    if settings.auto_create_schema:
        await get_database_manager().create_schema()
        logger.info("Database schema ensured")

    yield

    logger.info("Shutting down application")
    await get_database_manager().close()
    logger.info("Application shutdown complete")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="Survey Engine API",
        description="NPS survey distribution, thank-you routing and follow-up automation",
        version=__version__,
        lifespan=lifespan,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
    )

    # Map domain exceptions to HTTP responses
    @app.exception_handler(NotFoundError)
    async def _not_found(_: Request, exc: NotFoundError) -> JSONResponse:
        return JSONResponse(status_code=status.HTTP_404_NOT_FOUND, content=_error_body(exc))

    @app.exception_handler(ValidationError)
    async def _validation(_: Request, exc: ValidationError) -> JSONResponse:
        return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content=_error_body(exc))

    @app.exception_handler(AuthenticationError)
    async def _unauthorized(_: Request, exc: AuthenticationError) -> JSONResponse:
        return JSONResponse(
            status_code=status.HTTP_401_UNAUTHORIZED,
            content=_error_body(exc),
            headers={"WWW-Authenticate": "Bearer"},
        )

    @app.exception_handler(EventNotSendableError)
    async def _conflict(_: Request, exc: EventNotSendableError) -> JSONResponse:
        return JSONResponse(status_code=status.HTTP_409_CONFLICT, content=_error_body(exc))

    @app.exception_handler(ApiKeyIssuanceError)
    async def _issuance_failed(_: Request, exc: ApiKeyIssuanceError) -> JSONResponse:
        logger.error("API key issuance failed", extra={"error_code": exc.code})
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=_error_body(exc),
        )

    @app.exception_handler(AppException)
    async def _app_error(_: Request, exc: AppException) -> JSONResponse:
        return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content=_error_body(exc))

    # Request validation (FastAPI/Pydantic) -> consistent 422 payload
    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request,
        exc: RequestValidationError,
    ) -> JSONResponse:
        errors = []
        for error in exc.errors():
            field = ".".join(str(loc) for loc in error["loc"])
            errors.append(
                {
                    "field": field,
                    "message": error["msg"],
                    "type": error["type"],
                }
            )
        return JSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content={
                "detail": {
                    "code": "VALIDATION_ERROR",
                    "message": "Request validation failed",
                    "errors": errors,
                }
            },
        )

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Include routers
    app.include_router(webhooks_router)
    app.include_router(api_keys_router)
    app.include_router(responses_router)

    @app.get("/health")
    async def health_check() -> dict[str, str]:
        return {"status": "healthy"}

    return app


app = create_app()
