"""
Inkbook — FastAPI Application Entry Point
"""

import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from inkbook.api.v1.router import api_v1_router
from inkbook.core.config import get_settings
from inkbook.core.dependencies import get_orchestrator
from inkbook.core.exceptions import (
    BookingLifecycleError,
    BookingNotFound,
    CollaboratorTimeout,
    ConflictDetected,
    PreconditionFailed,
    StateViolation,
)

logger = logging.getLogger("inkbook")

ERROR_STATUS: dict[type[BookingLifecycleError], int] = {
    BookingNotFound: status.HTTP_404_NOT_FOUND,
    StateViolation: status.HTTP_409_CONFLICT,
    ConflictDetected: status.HTTP_409_CONFLICT,
    PreconditionFailed: status.HTTP_422_UNPROCESSABLE_ENTITY,
    CollaboratorTimeout: status.HTTP_503_SERVICE_UNAVAILABLE,
}


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan: startup & shutdown hooks."""
    settings = get_settings()
    logger.info(
        "🚀 %s starting — env=%s storage=%s",
        settings.APP_NAME,
        settings.ENVIRONMENT,
        settings.STORAGE_BACKEND,
    )

    yield

    # Shutdown: cancel deferred transitions, flush side effects
    orchestrator = app.dependency_overrides.get(get_orchestrator, get_orchestrator)()
    await orchestrator.shutdown()
    logger.info("👋 %s shutting down", settings.APP_NAME)


def create_app() -> FastAPI:
    settings = get_settings()
    logging.basicConfig(
        level=settings.LOG_LEVEL,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    app = FastAPI(
        title="Inkbook API",
        description="Booking lifecycle engine for the tattoo marketplace",
        version="0.1.0",
        debug=settings.DEBUG,
        docs_url="/docs" if settings.ENVIRONMENT != "production" else None,
        redoc_url="/redoc" if settings.ENVIRONMENT != "production" else None,
        lifespan=lifespan,
    )

    # -- Logging Middleware --
    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        logger.info("Incoming request: %s %s", request.method, request.url.path)
        response = await call_next(request)
        logger.info("Response status: %s", response.status_code)
        return response

    # -- Lifecycle errors --
    @app.exception_handler(BookingLifecycleError)
    async def lifecycle_error_handler(request: Request, exc: BookingLifecycleError) -> JSONResponse:
        status_code = ERROR_STATUS.get(type(exc), status.HTTP_400_BAD_REQUEST)
        content: dict[str, Any] = {"detail": str(exc), "error": type(exc).__name__}
        if isinstance(exc, ConflictDetected):
            content["outcome"] = exc.outcome.model_dump(mode="json")
        return JSONResponse(status_code=status_code, content=content)

    # -- CORS --
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # -- Routers --
    app.include_router(api_v1_router, prefix="/api/v1")

    # -- Health check --
    @app.get("/health", tags=["system"])
    async def health_check() -> dict[str, Any]:
        """
        System health check.
        Reports the configured storage and notification backends.
        """
        return {
            "status": "healthy",
            "service": "inkbook",
            "environment": settings.ENVIRONMENT,
            "storage": settings.STORAGE_BACKEND,
            "notifications": "webhook" if settings.NOTIFICATION_WEBHOOK_URL else "log",
        }

    return app


app = create_app()
