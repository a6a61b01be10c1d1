"""
FastAPI application factory.
"""

import time
import uuid
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from community_pulse.api.dependencies import set_service
from community_pulse.api.middleware.timeout import TimeoutMiddleware
from community_pulse.api.routes import events, health, sources, stats, ws_updates
from community_pulse.config.settings import get_settings
from community_pulse.errors import NotFoundError
from community_pulse.observability.tracing import (
    annotate,
    current_trace_id,
    get_tracer,
    is_tracing_enabled,
    setup_tracing,
    shutdown_tracing,
    traced,
)
from community_pulse.service import PulseService

logger = structlog.get_logger(__name__)


def create_app(
    service: PulseService | None = None,
    run_scheduler: bool = True,
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        service: Pre-built service (tests inject one with a mock provider).
            Built from settings at startup when omitted.
        run_scheduler: Start the periodic fetch loop with the app.

    Returns:
        Configured FastAPI application
    """
    settings = get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Community pulse API starting up")

        if settings.tracing_enabled and not is_tracing_enabled():
            setup_tracing(
                service_name=settings.otel_service_name,
                otlp_endpoint=settings.otel_exporter_otlp_endpoint,
            )

        active = service or PulseService.build(settings)
        await active.start(run_scheduler=run_scheduler)
        set_service(active)
        app.state.service = active

        try:
            yield
        finally:
            logger.info("Community pulse API shutting down")
            set_service(None)
            await active.stop()
            shutdown_tracing()

    openapi_tags = [
        {"name": "sources", "description": "Cached community snapshots, history and voice"},
        {"name": "stats", "description": "Aggregates across all communities"},
        {"name": "events", "description": "Inbound provider events"},
        {"name": "health", "description": "Service health checks"},
        {"name": "websocket", "description": "Real-time snapshot updates"},
    ]

    app = FastAPI(
        title="Community Pulse API",
        description="""
Live health dashboard backend for a set of chat communities.

Snapshots are refreshed by a background scheduler and served from an
in-process cache. Subscribe to `/ws/updates` for push updates.
        """,
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
        openapi_tags=openapi_tags,
    )

    # CORS origins from CORS_ORIGINS env var, comma-separated
    cors_origins = [o.strip() for o in settings.cors_origins.split(",") if o.strip()]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins,
        allow_credentials=settings.cors_allow_credentials,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
    )

    # Inside the logging middleware, so 504s are still logged with their request id
    if settings.request_timeout_seconds > 0:
        app.add_middleware(
            TimeoutMiddleware,
            timeout_seconds=settings.request_timeout_seconds,
        )

    request_tracer = get_tracer("community_pulse.api")

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        request_id = (
            request.headers.get("X-Request-ID")
            or request.headers.get("X-Correlation-ID")
            or str(uuid.uuid4())
        )
        structlog.contextvars.bind_contextvars(request_id=request_id)
        start_time = time.perf_counter()

        try:
            with traced(
                request_tracer,
                f"{request.method} {request.url.path}",
                {
                    "http.method": request.method,
                    "http.route": request.url.path,
                    "http.request_id": request_id,
                },
            ) as span:
                response = await call_next(request)
                duration_ms = round((time.perf_counter() - start_time) * 1000, 2)
                annotate(span, **{
                    "http.status_code": response.status_code,
                    "http.duration_ms": duration_ms,
                })
                trace_id = current_trace_id()

            response.headers["X-Request-ID"] = request_id
            if trace_id is not None:
                response.headers["X-Trace-ID"] = trace_id

            logger.info(
                "HTTP request",
                method=request.method,
                path=request.url.path,
                status_code=response.status_code,
                duration_ms=duration_ms,
            )
            return response
        finally:
            structlog.contextvars.clear_contextvars()

    # Rate limiting (opt-in via RATE_LIMIT_ENABLED=true)
    if settings.rate_limit_enabled:
        from slowapi import _rate_limit_exceeded_handler
        from slowapi.errors import RateLimitExceeded

        from community_pulse.api.rate_limit import limiter

        app.state.limiter = limiter
        app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

    @app.exception_handler(NotFoundError)
    async def not_found_handler(request: Request, exc: NotFoundError):
        return JSONResponse(
            status_code=404,
            content={"detail": str(exc), "error_type": "not_found"},
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        logger.error(f"Unhandled exception: {exc}", exc_info=True)
        return JSONResponse(
            status_code=500,
            content={"detail": "Internal server error", "error_type": "internal"},
        )

    app.include_router(sources.router, tags=["sources"])
    app.include_router(stats.router, tags=["stats"])
    app.include_router(events.router, tags=["events"])
    app.include_router(health.router, tags=["health"])
    app.include_router(ws_updates.router, tags=["websocket"])

    @app.get("/", include_in_schema=False)
    async def root():
        return {
            "service": "Community Pulse API",
            "version": "0.1.0",
            "docs": "/docs",
        }

    return app
