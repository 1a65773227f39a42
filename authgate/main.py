"""
authgate API - Main application entry point.
"""
import time
from contextlib import asynccontextmanager
from typing import Any, Dict, Optional

import sentry_sdk
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sentry_sdk.integrations.asgi import SentryAsgiMiddleware
from starlette.middleware.sessions import SessionMiddleware
from structlog.contextvars import bind_contextvars, clear_contextvars

from authgate.api.v1.router import api_router
from authgate.core.config import Settings, get_settings
from authgate.core.errors import ErrorCode, ErrorResponse
from authgate.core.exceptions import AuthGateException
from authgate.core.logging import get_logger, log_request_details, setup_logging
from authgate.infrastructure.cache import close_redis_pool
from authgate.providers.oauth2 import providers_from_settings
from authgate.providers.registry import ProviderRegistry, provider_registry
from authgate.services.auth_flow import build_auth_flow

logger = get_logger(__name__)


def create_app(
    settings: Optional[Settings] = None,
    registry: ProviderRegistry = provider_registry,
) -> FastAPI:
    """
    Build the FastAPI application.

    Providers configured in ``OAUTH2_PROVIDERS`` are registered into
    ``registry``; others may be added with ``use_providers`` at any time.

    Args:
        settings: Settings to use, defaults to the environment
        registry: Provider registry the flow resolves names against

    Returns:
        Configured application
    """
    settings = settings or get_settings()
    setup_logging(settings)

    if settings.SENTRY_DSN:
        sentry_sdk.init(
            dsn=settings.SENTRY_DSN,
            environment=settings.SENTRY_ENVIRONMENT or settings.ENVIRONMENT,
            traces_sample_rate=settings.SENTRY_TRACES_SAMPLE_RATE,
        )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(
            "Starting authgate API",
            version=settings.APP_VERSION,
            environment=settings.ENVIRONMENT,
            session_backend=settings.SESSION_BACKEND,
            providers=sorted(registry.get_providers()),
        )

        yield

        logger.info("Shutting down authgate API")
        if settings.SESSION_BACKEND == "redis":
            await close_redis_pool()

    app = FastAPI(
        title=settings.PROJECT_NAME,
        version=settings.APP_VERSION,
        openapi_url=f"{settings.API_V1_PREFIX}/openapi.json" if not settings.is_production else None,
        docs_url=f"{settings.API_V1_PREFIX}/docs" if not settings.is_production else None,
        redoc_url=None,
        lifespan=lifespan,
    )

    registry.use_providers(*providers_from_settings(settings))
    app.state.settings = settings
    app.state.auth_flow = build_auth_flow(settings, registry)

    # Signed cookie holding pending authentication state
    app.add_middleware(
        SessionMiddleware,
        secret_key=settings.SESSION_SECRET_KEY,
        session_cookie=settings.SESSION_COOKIE_NAME,
        max_age=settings.SESSION_TTL_SECONDS,
        same_site="lax",
        https_only=settings.is_production,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.BACKEND_CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        """Log all requests with timing information."""
        start_time = time.time()

        logger.info(
            "Request started",
            **log_request_details(
                request_id=request.headers.get("X-Request-ID", ""),
                method=request.method,
                path=request.url.path,
                client_ip=request.client.host if request.client else None,
            ),
        )

        response = await call_next(request)

        duration_ms = (time.time() - start_time) * 1000
        logger.info(
            "Request completed",
            status_code=response.status_code,
            duration_ms=round(duration_ms, 2),
        )
        return response

    # Registered last so it runs first and the id is bound for the logger above
    @app.middleware("http")
    async def add_request_id(request: Request, call_next):
        """Add unique request ID to each request."""
        request_id = request.headers.get("X-Request-ID", str(time.time_ns()))

        clear_contextvars()
        bind_contextvars(request_id=request_id)

        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        return response

    if settings.SENTRY_DSN:
        app.add_middleware(SentryAsgiMiddleware)

    @app.exception_handler(AuthGateException)
    async def authgate_exception_handler(request: Request, exc: AuthGateException):
        """Render application errors with their status and error code."""
        logger.warning(
            "Request failed",
            path=request.url.path,
            status_code=exc.status_code,
            error_code=exc.code.value,
            error=exc.message,
        )
        # Configuration problems are internal details
        message = None if exc.status_code >= 500 and settings.is_production else exc.message
        return JSONResponse(
            status_code=exc.status_code,
            content=ErrorResponse(exc.code, message, exc.details).to_dict(),
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        """Handle all unhandled exceptions."""
        logger.error(
            "Unhandled exception",
            exc_info=exc,
            path=request.url.path,
            method=request.method,
        )

        message = None if settings.is_production else str(exc)
        return JSONResponse(
            status_code=500,
            content=ErrorResponse(ErrorCode.SYS_INTERNAL_ERROR, message).to_dict(),
        )

    app.include_router(api_router, prefix=settings.API_V1_PREFIX)

    @app.get("/")
    async def root() -> Dict[str, Any]:
        """
        Root endpoint.

        Returns:
            API information
        """
        return {
            "name": settings.APP_NAME,
            "version": settings.APP_VERSION,
            "docs": f"{settings.API_V1_PREFIX}/docs" if not settings.is_production else "Disabled in production",
        }

    return app


app = create_app()
