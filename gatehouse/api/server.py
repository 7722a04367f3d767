"""
FastAPI Server - gatehouse application factory.

Authentication, role-gated access and audit logging over HTTP.
"""

import logging
import time
import uuid
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

from gatehouse.api.errors import register_exception_handlers
from gatehouse.api.routers import auth_router, health_router, logs_router, users_router
from gatehouse.config import Settings, configure_logging, get_settings
from gatehouse.core.container import Dependencies, build_dependencies

logger = logging.getLogger("gatehouse.api")


# =============================================================================
# SECURITY HEADERS MIDDLEWARE
# =============================================================================


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """
    Middleware that adds security headers to all responses.

    Headers added:
    - X-Content-Type-Options: nosniff
    - X-Frame-Options: DENY
    - Referrer-Policy: strict-origin-when-cross-origin
    - X-Request-ID: request correlation ID
    - X-Response-Time: processing time
    - Strict-Transport-Security: production only
    """

    def __init__(self, app, hsts: bool = False):
        super().__init__(app)
        self._hsts = hsts

    async def dispatch(self, request: Request, call_next) -> Response:
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        request.state.request_id = request_id

        start_time = time.time()
        response = await call_next(request)
        duration_ms = int((time.time() - start_time) * 1000)

        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"

        if self._hsts:
            response.headers["Strict-Transport-Security"] = (
                "max-age=31536000; includeSubDomains"
            )

        response.headers["X-Request-ID"] = request_id
        response.headers["X-Response-Time"] = f"{duration_ms}ms"

        return response


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Middleware for logging requests and responses.
    """

    async def dispatch(self, request: Request, call_next) -> Response:
        start_time = time.time()
        response = await call_next(request)
        duration_ms = int((time.time() - start_time) * 1000)

        request_id = getattr(request.state, "request_id", "-")
        logger.info(
            f"[HTTP] {request.method} {request.url.path} "
            f"-> {response.status_code} ({duration_ms}ms) request_id={request_id}"
        )

        return response


# =============================================================================
# APPLICATION
# =============================================================================


def create_app(settings: Settings | None = None, deps: Dependencies | None = None) -> FastAPI:
    """
    Build the application.

    Args:
        settings: defaults to the environment settings
        deps: prebuilt service container (tests); built from settings otherwise

    Raises:
        ConfigurationError: when required settings are missing
    """
    if settings is None:
        settings = deps.settings if deps is not None else get_settings()
    configure_logging(settings.LOG_LEVEL)

    if deps is None:
        deps = build_dependencies(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Manage startup and shutdown events."""
        logger.info(f"[STARTUP] gatehouse starting (env={settings.ENVIRONMENT})")
        settings.log_config()
        await deps.start()
        yield
        await deps.stop()
        logger.info("[SHUTDOWN] gatehouse shutting down")

    app = FastAPI(
        title="gatehouse",
        description="Authentication, role-gated access and audit logging",
        version="0.1.0",
        lifespan=lifespan,
        docs_url="/docs" if not settings.is_production else None,
        redoc_url="/redoc" if not settings.is_production else None,
    )
    app.state.deps = deps

    # Security headers middleware (adds X-Request-ID, X-Response-Time, security headers)
    app.add_middleware(SecurityHeadersMiddleware, hsts=settings.is_production)

    # Request logging middleware
    app.add_middleware(RequestLoggingMiddleware)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization", "X-Request-ID"],
    )

    register_exception_handlers(app)

    app.include_router(health_router)
    app.include_router(auth_router)
    app.include_router(users_router)
    app.include_router(logs_router)

    logger.info("[ROUTERS] All routers registered")
    return app
