"""
Client for the Xtream Codes ``player_api.php`` endpoint.

Every call is ``GET {url}/player_api.php`` with the profile credentials and
an ``action`` as query parameters. Transport failures, error statuses and
non-JSON bodies all surface as UpstreamError; there are no retries.
"""

import asyncio
import time
from typing import Any, Dict, List, Optional
from urllib.parse import urlsplit

import aiohttp
import structlog

from iptv_api.src.models.profile import ProviderCredentials
from shared.metrics import APIMetrics

logger = structlog.get_logger(__name__)

PLAYER_API_PATH = "player_api.php"


class UpstreamError(RuntimeError):
    """Raised when the IPTV provider cannot be reached or answers badly."""

    def __init__(self, message: str, action: str, status: Optional[int] = None):
        super().__init__(message)
        self.action = action
        self.status = status


class XtreamClient:
    """Thin async wrapper over one shared aiohttp session."""

    def __init__(self, session: aiohttp.ClientSession, metrics: Optional[APIMetrics] = None):
        self.session = session
        self.metrics = metrics

    @staticmethod
    def build_url(credentials: ProviderCredentials) -> str:
        return f"{credentials.url.rstrip('/')}/{PLAYER_API_PATH}"

    async def call(self, credentials: ProviderCredentials, action: str, **params: Any) -> Any:
        """
        Call one player API action.

        Args:
            credentials: Provider URL and line credentials
            action: Xtream action name, e.g. ``get_live_streams``
            **params: Extra query parameters (``category_id``, ``vod_id``...)

        Returns:
            Decoded JSON body

        Raises:
            UpstreamError: On transport errors, non-2xx statuses or invalid JSON
        """
        url = self.build_url(credentials)
        query: Dict[str, str] = {
            "username": credentials.username,
            "password": credentials.password,
            "action": action,
        }
        query.update({key: str(value) for key, value in params.items() if value is not None})

        host = urlsplit(url).hostname
        start = time.perf_counter()
        try:
            async with self.session.get(url, params=query) as response:
                if response.status >= 400:
                    raise UpstreamError(
                        f"Provider returned HTTP {response.status}",
                        action=action,
                        status=response.status,
                    )
                payload = await response.json(content_type=None)
        except UpstreamError as e:
            self._record(action, "http_error", start)
            logger.error("upstream_request_failed", action=action, host=host, status=e.status)
            raise
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
            self._record(action, "error", start)
            logger.error(
                "upstream_request_failed",
                action=action,
                host=host,
                error=str(e),
                error_type=type(e).__name__
            )
            raise UpstreamError("Error communicating with the IPTV provider", action=action) from e

        self._record(action, "success", start)
        logger.debug("upstream_request_completed", action=action, host=host)
        return payload

    async def call_list(self, credentials: ProviderCredentials, action: str, **params: Any) -> List[Dict[str, Any]]:
        """
        Call an action expected to return a JSON array.

        Providers answer empty results with ``null``, ``{}`` or ``[]``; all of
        those become an empty list. Non-object entries are dropped.
        """
        payload = await self.call(credentials, action, **params)
        if not isinstance(payload, list):
            if payload:
                logger.warning("upstream_unexpected_payload", action=action, payload_type=type(payload).__name__)
            return []
        return [item for item in payload if isinstance(item, dict)]

    def _record(self, action: str, outcome: str, start: float) -> None:
        if self.metrics is None:
            return
        self.metrics.upstream_requests.labels(action=action, outcome=outcome).inc()
        self.metrics.upstream_request_duration.labels(action=action).observe(time.perf_counter() - start)
