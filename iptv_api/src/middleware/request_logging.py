"""Request logging, correlation ids and HTTP metrics."""

import time
import uuid
from typing import Callable

import structlog
from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response
from starlette.types import ASGIApp

from shared.logging import bind_context, clear_context
from shared.metrics import APIMetrics

logger = structlog.get_logger(__name__)

CORRELATION_HEADER = "X-Correlation-ID"


def route_template(request: Request) -> str:
    """Matched route path (``/profiles/{profile_id}``) to keep metric labels bounded."""
    route = request.scope.get("route")
    return getattr(route, "path", None) or "unmatched"


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Middleware for request logging and metrics."""

    def __init__(self, app: ASGIApp, metrics: APIMetrics):
        super().__init__(app)
        self.metrics = metrics

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        """Process request and log details."""
        correlation_id = request.headers.get(CORRELATION_HEADER) or str(uuid.uuid4())
        request.state.correlation_id = correlation_id

        method = request.method
        path = request.url.path
        client_ip = request.client.host if request.client else "unknown"

        clear_context()
        bind_context(correlation_id=correlation_id)
        self.metrics.http_requests_in_progress.labels(method=method).inc()
        start_time = time.perf_counter()

        logger.info("request_started", method=method, path=path, client_ip=client_ip)

        try:
            response = await call_next(request)
        except Exception as e:
            duration = time.perf_counter() - start_time
            logger.error(
                "request_failed",
                method=method,
                path=path,
                error=str(e),
                duration=f"{duration:.3f}s",
                exc_info=True
            )
            raise
        finally:
            self.metrics.http_requests_in_progress.labels(method=method).dec()

        duration = time.perf_counter() - start_time
        endpoint = route_template(request)

        self.metrics.http_requests.labels(
            method=method,
            endpoint=endpoint,
            status=response.status_code
        ).inc()
        self.metrics.http_request_duration.labels(method=method, endpoint=endpoint).observe(duration)

        logger.info(
            "request_completed",
            method=method,
            path=path,
            status_code=response.status_code,
            duration=f"{duration:.3f}s"
        )

        response.headers[CORRELATION_HEADER] = correlation_id
        return response
