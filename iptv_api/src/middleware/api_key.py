"""
API key middleware for FastAPI.

Every request outside the exempt paths must carry the shared client key in
the configured header (``X-API-Key`` by default).
"""

import secrets
from typing import Callable, Iterable, Optional

import structlog
from fastapi import Request, status
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import JSONResponse, Response
from starlette.types import ASGIApp

logger = structlog.get_logger(__name__)

DEFAULT_EXEMPT_PATHS = (
    "/health",
    "/ready",
    "/metrics",
    "/docs",
    "/redoc",
    "/openapi.json",
)


class ApiKeyMiddleware(BaseHTTPMiddleware):
    """Reject requests whose API key header does not match the configured key."""

    def __init__(
        self,
        app: ASGIApp,
        api_key: str,
        header_name: str = "X-API-Key",
        exempt_paths: Optional[Iterable[str]] = None
    ):
        """
        Initialize API key middleware.

        Args:
            app: ASGI application
            api_key: Expected key
            header_name: Header carrying the key
            exempt_paths: Path prefixes that skip the check
        """
        super().__init__(app)
        self.api_key = api_key
        self.header_name = header_name
        self.exempt_paths = tuple(exempt_paths or DEFAULT_EXEMPT_PATHS)

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        if self._is_exempt_path(request.url.path):
            return await call_next(request)

        provided = request.headers.get(self.header_name)

        if not provided or not secrets.compare_digest(provided.encode(), self.api_key.encode()):
            logger.warning(
                "api_key_rejected",
                path=request.url.path,
                method=request.method,
                client=request.client.host if request.client else None,
                header_present=provided is not None
            )
            return JSONResponse(
                status_code=status.HTTP_403_FORBIDDEN,
                content={"detail": "Invalid API key"}
            )

        return await call_next(request)

    def _is_exempt_path(self, path: str) -> bool:
        """
        Check if path is exempt from the API key check.

        Args:
            path: Request path

        Returns:
            True if exempt, False otherwise
        """
        return any(path == exempt or path.startswith(exempt + "/") for exempt in self.exempt_paths)
