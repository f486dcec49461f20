"""Coaching back office API.

FastAPI application serving the admin console and the coach and player apps.
The lifespan initialises Firebase, builds the AI bridge when a model key is
configured, and owns the daily subscription expiry task.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import time
import uuid
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import ORJSONResponse
from openai import AsyncOpenAI

from api.llm import ChatBridge
from api.models import ErrorResponse, HealthResponse
from api.routers import (
    calendar as calendar_router,
    chat as chat_router,
    coaches as coaches_router,
    dashboard as dashboard_router,
    players as players_router,
    ratings as ratings_router,
    subscriptions as subscriptions_router,
    tasks as tasks_router,
)
from api.scheduler import run_expiry_scheduler
from libs.common.errors import CoachingError
from libs.common.settings import get_settings
from libs.firebase.client import get_firestore_async_client, initialize_firebase_app

API_VERSION = "1.0.0"

# Configure structured logging
logging.basicConfig(format="%(message)s", level=get_settings().log_level)
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer(),
    ],
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    initialize_firebase_app()

    app.state.chat_bridge = None
    if settings.openai_api_key:
        app.state.chat_bridge = ChatBridge(AsyncOpenAI(api_key=settings.openai_api_key), settings.openai_model)
        logger.info("AI chat bridge configured", model=settings.openai_model)

    sweep_task = None
    if settings.expiry_sweep_enabled:
        sweep_task = asyncio.create_task(
            run_expiry_scheduler(get_firestore_async_client(), settings.expiry_sweep_hour)
        )
        logger.info("Expiry sweep scheduled", hour_utc=settings.expiry_sweep_hour)

    yield

    if sweep_task is not None:
        sweep_task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await sweep_task


def _error_response(request: Request, status_code: int, error: str, message: str, headers=None) -> ORJSONResponse:
    body = ErrorResponse(
        error=error,
        message=message,
        request_id=getattr(request.state, "request_id", None),
    )
    return ORJSONResponse(status_code=status_code, content=body.model_dump(exclude_none=True), headers=headers)


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="Coaching Back Office API",
        description="Players, coaches, subscriptions, ratings and chat for the coaching marketplace",
        version=API_VERSION,
        default_response_class=ORJSONResponse,
        debug=settings.debug,
        lifespan=lifespan,
    )

    # Add CORS middleware - allow all origins for development
    cors_origins = ["*"] if settings.is_development else settings.cors_origins
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins,
        allow_credentials=False if settings.is_development else True,
        allow_methods=["GET", "POST", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["*"],
    )

    # Add request logging middleware
    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        """Log all requests with timing and structured data."""
        start_time = time.time()
        request_id = f"req_{uuid.uuid4().hex[:16]}"

        # Add request ID to context
        request.state.request_id = request_id

        logger.info(
            "Request started",
            request_id=request_id,
            method=request.method,
            path=request.url.path,
            user_agent=request.headers.get("user-agent"),
        )

        try:
            response = await call_next(request)
        except Exception as e:
            process_time = time.time() - start_time
            logger.error(
                "Request failed",
                request_id=request_id,
                error=str(e),
                process_time_ms=round(process_time * 1000, 2),
                exc_info=True,
            )
            raise

        process_time = time.time() - start_time
        logger.info(
            "Request completed",
            request_id=request_id,
            status_code=response.status_code,
            process_time_ms=round(process_time * 1000, 2),
        )

        # Add request ID to response headers
        response.headers["X-Request-ID"] = request_id
        return response

    @app.exception_handler(CoachingError)
    async def coaching_error_handler(request: Request, exc: CoachingError) -> ORJSONResponse:
        log = logger.warning if exc.status_code < 500 else logger.error
        log(
            "Request rejected",
            request_id=getattr(request.state, "request_id", None),
            error_code=exc.error_code,
            message=exc.message,
        )
        headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == status.HTTP_401_UNAUTHORIZED else None
        return _error_response(request, exc.status_code, exc.error_code, exc.message, headers)

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception) -> ORJSONResponse:
        logger.error(
            "Unhandled error",
            request_id=getattr(request.state, "request_id", None),
            error=str(exc),
            error_type=type(exc).__name__,
            exc_info=exc,
        )
        return _error_response(
            request, status.HTTP_500_INTERNAL_SERVER_ERROR, "INTERNAL_ERROR", "An unexpected error occurred"
        )

    # Include API routers
    app.include_router(subscriptions_router.router, prefix="/api", tags=["Subscriptions"])
    app.include_router(ratings_router.router, prefix="/api", tags=["Ratings"])
    app.include_router(chat_router.router, prefix="/api", tags=["Chat"])
    app.include_router(dashboard_router.router, prefix="/api", tags=["Dashboard"])
    app.include_router(calendar_router.router, prefix="/api", tags=["Calendar"])
    app.include_router(players_router.router, prefix="/api", tags=["Players"])
    app.include_router(coaches_router.router, prefix="/api", tags=["Coaches"])
    app.include_router(tasks_router.router, prefix="/api", tags=["Tasks"])

    @app.get("/healthz", response_model=HealthResponse, tags=["Health"])
    async def health_check() -> HealthResponse:
        """Health check endpoint for liveness probes.

        Example:
            ```bash
            curl http://localhost:8000/healthz
            ```
        """
        return HealthResponse(status="healthy", service="api", version=API_VERSION, timestamp=time.time())

    @app.get("/readyz", response_model=HealthResponse, tags=["Health"])
    async def readiness_check(request: Request) -> HealthResponse:
        """Readiness check endpoint for readiness probes.

        Reports whether the AI bridge and the expiry sweep are configured;
        the Firestore connection itself is not probed.

        Example:
            ```bash
            curl http://localhost:8000/readyz
            ```
        """
        settings = get_settings()
        return HealthResponse(
            status="ready",
            service="api",
            version=API_VERSION,
            timestamp=time.time(),
            details={
                "ai_bridge": "configured" if getattr(request.app.state, "chat_bridge", None) else "disabled",
                "expiry_sweep": "scheduled" if settings.expiry_sweep_enabled else "disabled",
            },
        )

    return app


# Create the FastAPI app
app = create_app()


if __name__ == "__main__":
    import uvicorn

    # For local development only
    uvicorn.run(
        "api.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
        log_level="info",
    )
