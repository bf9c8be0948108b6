"""
FastAPI application entry point for the TevePlay IPTV API.

This module provides the main FastAPI application with:
- Account, profile and catalog routers
- Health, readiness and Prometheus metrics endpoints
- API key gate, request logging, CORS, GZip, security headers and rate limiting
- MongoDB client and upstream HTTP session lifecycle
- Graceful startup and shutdown
"""

import time
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Dict, Optional

import aiohttp
import structlog
import uvicorn
from fastapi import FastAPI, Request, Response, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse
from pymongo import AsyncMongoClient
from pymongo.errors import PyMongoError
from slowapi.errors import RateLimitExceeded
from starlette.exceptions import HTTPException as StarletteHTTPException

from iptv_api.src.config import Settings, get_settings
from iptv_api.src.middleware.api_key import ApiKeyMiddleware
from iptv_api.src.middleware.rate_limit import limiter
from iptv_api.src.middleware.request_logging import RequestLoggingMiddleware
from iptv_api.src.middleware.security_headers import SecurityHeadersMiddleware
from iptv_api.src.repositories.profile_repo import ProfileRepository
from iptv_api.src.repositories.user_repo import UserRepository
from iptv_api.src.routers import accounts, catalog, profiles
from iptv_api.src.services.xtream_client import UpstreamError
from shared.logging import configure_logging
from shared.metrics import CONTENT_TYPE_LATEST, get_metrics
from shared.models import HealthStatus, ServiceInfo
from shared.security import SecretBox

logger = structlog.get_logger(__name__)

UPSTREAM_ERROR_DETAIL = "Error communicating with the IPTV provider"


# ============================================================================
# Lifespan Management
# ============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Application lifespan manager for startup and shutdown events.

    Handles:
    - MongoDB client creation and index setup
    - Shared aiohttp session for upstream providers
    - Graceful shutdown and resource cleanup
    """
    settings: Settings = app.state.settings

    logger.info(
        "application_starting",
        app_name=settings.app_name,
        version=settings.app_version,
        environment=settings.environment
    )

    mongo_client: Optional[AsyncMongoClient] = None
    http_session: Optional[aiohttp.ClientSession] = None

    try:
        logger.info("initializing_database", database=settings.mongodb_database)
        mongo_client = AsyncMongoClient(
            settings.mongodb_url,
            tz_aware=True,
            serverSelectionTimeoutMS=settings.mongodb_server_selection_timeout_ms
        )
        app.state.mongo_client = mongo_client
        app.state.db = mongo_client[settings.mongodb_database]

        await UserRepository(app.state.db).ensure_indexes()
        await ProfileRepository(app.state.db, app.state.secret_box).ensure_indexes()

        http_session = aiohttp.ClientSession(
            timeout=aiohttp.ClientTimeout(total=settings.upstream_timeout),
            headers={"User-Agent": settings.upstream_user_agent}
        )
        app.state.http_session = http_session

        logger.info(
            "application_started",
            app_name=settings.app_name,
            version=settings.app_version,
            environment=settings.environment
        )

        yield

    except Exception as e:
        logger.error("application_startup_failed", error=str(e), exc_info=True)
        raise

    # ========================================================================
    # Shutdown: Cleanup Resources
    # ========================================================================

    finally:
        logger.info("application_shutting_down")

        if http_session is not None:
            await http_session.close()
            logger.info("http_session_closed")

        if mongo_client is not None:
            await mongo_client.close()
            logger.info("database_client_closed")

        logger.info("application_shutdown_complete")


# ============================================================================
# Exception Handlers
# ============================================================================

async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Handle request validation errors."""
    logger.warning(
        "validation_error",
        path=request.url.path,
        errors=[{"loc": error.get("loc"), "type": error.get("type")} for error in exc.errors()]
    )
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": jsonable_errors(exc)}
    )


def jsonable_errors(exc: RequestValidationError) -> list:
    """Validation errors without raw ``ctx`` objects or submitted input."""
    return [
        {key: value for key, value in error.items() if key not in ("ctx", "input")}
        for error in exc.errors()
    ]


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Handle HTTP exceptions."""
    logger.warning(
        "http_exception",
        path=request.url.path,
        status_code=exc.status_code,
        detail=exc.detail
    )
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail},
        headers=getattr(exc, "headers", None)
    )


async def upstream_exception_handler(request: Request, exc: UpstreamError) -> JSONResponse:
    """Upstream provider failures surface as a generic 500."""
    logger.error(
        "upstream_exception",
        path=request.url.path,
        action=exc.action,
        upstream_status=exc.status
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": UPSTREAM_ERROR_DETAIL}
    )


async def rate_limit_exception_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    logger.warning("rate_limit_exceeded", path=request.url.path, limit=str(exc.detail))
    return JSONResponse(
        status_code=status.HTTP_429_TOO_MANY_REQUESTS,
        content={"detail": f"Rate limit exceeded: {exc.detail}"}
    )


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle unexpected exceptions."""
    logger.error(
        "unexpected_exception",
        path=request.url.path,
        error=str(exc),
        exc_info=True
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Internal server error"}
    )


# ============================================================================
# Health, Readiness and Metrics Endpoints
# ============================================================================

async def health_check(request: Request) -> Dict[str, Any]:
    """
    Health check endpoint.

    Returns basic health status without checking dependencies.
    Use for container health checks.
    """
    settings: Settings = request.app.state.settings
    info = ServiceInfo(
        service_name=settings.app_name,
        version=settings.app_version,
        status=HealthStatus.HEALTHY,
        uptime_seconds=round(time.monotonic() - request.app.state.started_at, 3),
    )
    return info.model_dump()


async def readiness_check(request: Request) -> JSONResponse:
    """
    Readiness check endpoint.

    Pings MongoDB; returns 503 when it is unreachable.
    """
    settings: Settings = request.app.state.settings
    checks = {"database": HealthStatus.UNHEALTHY.value}

    mongo_client = getattr(request.app.state, "mongo_client", None)
    if mongo_client is not None:
        try:
            await mongo_client.admin.command("ping")
            checks["database"] = HealthStatus.HEALTHY.value
        except PyMongoError as e:
            logger.error("database_health_check_failed", error=str(e))

    all_healthy = all(value == HealthStatus.HEALTHY.value for value in checks.values())

    return JSONResponse(
        status_code=status.HTTP_200_OK if all_healthy else status.HTTP_503_SERVICE_UNAVAILABLE,
        content={
            "status": "ready" if all_healthy else "not_ready",
            "service": settings.app_name,
            "version": settings.app_version,
            "checks": checks
        }
    )


async def metrics_endpoint(request: Request) -> Response:
    """Prometheus metrics endpoint."""
    return Response(
        content=request.app.state.metrics.render(),
        media_type=CONTENT_TYPE_LATEST
    )


# ============================================================================
# FastAPI Application
# ============================================================================

def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        settings: Settings to use; defaults to the cached environment settings

    Returns:
        Configured application
    """
    settings = settings or get_settings()

    configure_logging(
        log_level=settings.log_level,
        json_logs=settings.log_format == "json",
        app_name=settings.app_name,
        environment=settings.environment,
    )

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description=(
            "Account, profile and catalog API for IPTV providers that expose the "
            "Xtream Codes player API."
        ),
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
        debug=settings.debug,
    )

    metrics = get_metrics()
    app.state.settings = settings
    app.state.metrics = metrics
    app.state.secret_box = SecretBox(settings.profile_secret, settings.profile_secret_salt)
    app.state.started_at = time.monotonic()

    limiter.enabled = settings.rate_limit_enabled
    app.state.limiter = limiter

    # Starlette runs the last added middleware first
    app.add_middleware(
        ApiKeyMiddleware,
        api_key=settings.api_key,
        header_name=settings.api_key_header,
    )

    if settings.security_headers_enabled:
        app.add_middleware(
            SecurityHeadersMiddleware,
            hsts_max_age=settings.security_hsts_max_age if settings.security_require_https else 0,
        )

    app.add_middleware(GZipMiddleware, minimum_size=1000)

    if settings.cors_enabled:
        logger.info("configuring_cors", origins=settings.cors_origins)
        app.add_middleware(
            CORSMiddleware,
            allow_origins=settings.cors_origins,
            allow_credentials=settings.cors_allow_credentials,
            allow_methods=settings.cors_allow_methods,
            allow_headers=settings.cors_allow_headers,
        )

    app.add_middleware(RequestLoggingMiddleware, metrics=metrics)

    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(UpstreamError, upstream_exception_handler)
    app.add_exception_handler(RateLimitExceeded, rate_limit_exception_handler)
    app.add_exception_handler(Exception, general_exception_handler)

    app.add_api_route("/health", health_check, methods=["GET"], tags=["Health"])
    app.add_api_route("/ready", readiness_check, methods=["GET"], tags=["Health"])
    if settings.metrics_enabled:
        app.add_api_route(
            "/metrics",
            metrics_endpoint,
            methods=["GET"],
            tags=["Monitoring"],
            response_class=PlainTextResponse
        )

    app.include_router(accounts.router)
    app.include_router(profiles.router)
    app.include_router(catalog.live_router)
    app.include_router(catalog.vod_router)
    app.include_router(catalog.series_router)
    app.include_router(catalog.search_router)

    return app


app = create_app()


# ============================================================================
# Application Entry Point
# ============================================================================

def run() -> None:
    """Run the application with Uvicorn."""
    settings = get_settings()

    logger.info(
        "starting_uvicorn_server",
        host=settings.host,
        port=settings.port,
        reload=settings.debug
    )

    uvicorn.run(
        "iptv_api.src.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_level=settings.log_level.lower(),
        access_log=True,
    )


if __name__ == "__main__":
    run()
