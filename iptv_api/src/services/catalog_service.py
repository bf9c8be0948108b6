"""
Catalog browsing over a provider's live, VOD and series lists.

Pagination, the "recently added" ordering and name search are pure
functions; CatalogService wires them to XtreamClient calls.
"""

import asyncio
import math
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional

import structlog

from iptv_api.src.models.catalog import CatalogKind, PageResponse, SearchResponse
from iptv_api.src.models.profile import ProviderCredentials
from iptv_api.src.services.xtream_client import XtreamClient

logger = structlog.get_logger(__name__)

DEFAULT_PAGE_SIZE = 10
DEFAULT_RECENT_LIMIT = 50

Item = Dict[str, Any]


def parse_page(raw: Optional[str]) -> int:
    """Lenient page parsing: anything unusable becomes page 1."""
    if raw is None:
        return 1
    try:
        page = int(str(raw).strip())
    except ValueError:
        return 1
    return page if page >= 1 else 1


def paginate(items: List[Item], page: int, page_size: int = DEFAULT_PAGE_SIZE) -> PageResponse:
    """
    Slice one page out of ``items``.

    Args:
        items: Full list
        page: 1-based page number
        page_size: Items per page

    Returns:
        Page envelope; a page past the end has empty data
    """
    page = max(page, 1)
    total = len(items)
    start = (page - 1) * page_size
    return PageResponse(
        page=page,
        total=total,
        total_pages=math.ceil(total / page_size) if total else 0,
        data=items[start:start + page_size],
    )


def finite_or_none(value: float) -> Optional[float]:
    """NaN and infinities cannot be ordered, so they count as undated."""
    return value if math.isfinite(value) else None


def added_timestamp(value: Any) -> Optional[float]:
    """
    Parse a provider date into a Unix timestamp.

    Accepts epoch seconds as int, float or digit string, and ISO-8601 strings.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        try:
            return finite_or_none(float(value))
        except OverflowError:
            return None
    if not isinstance(value, str) or not value.strip():
        return None

    text = value.strip()
    try:
        return finite_or_none(float(text))
    except ValueError:
        pass

    try:
        parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.timestamp()


def item_added(item: Item, kind: CatalogKind) -> Optional[float]:
    timestamp = added_timestamp(item.get("added"))
    if timestamp is None and kind is CatalogKind.SERIES:
        timestamp = added_timestamp(item.get("last_modified"))
    return timestamp


def most_recent(items: Iterable[Item], kind: CatalogKind, limit: int = DEFAULT_RECENT_LIMIT) -> List[Item]:
    """Newest first by added date, undated items last, truncated to ``limit``."""
    keyed = [(item_added(item, kind), item) for item in items]
    dated = sorted((pair for pair in keyed if pair[0] is not None), key=lambda pair: pair[0], reverse=True)
    undated = [pair for pair in keyed if pair[0] is None]
    return [item for _, item in dated + undated][:limit]


def filter_by_name(items: Iterable[Item], query: str) -> List[Item]:
    """Case-insensitive substring match on ``name``; items without a string name never match."""
    needle = query.casefold()
    return [
        item for item in items
        if isinstance(item.get("name"), str) and needle in item["name"].casefold()
    ]


class CatalogService:
    """Browse one provider's catalog through the upstream client."""

    def __init__(
        self,
        client: XtreamClient,
        page_size: int = DEFAULT_PAGE_SIZE,
        recent_limit: int = DEFAULT_RECENT_LIMIT
    ):
        self.client = client
        self.page_size = page_size
        self.recent_limit = recent_limit

    async def list_items(self, credentials: ProviderCredentials, kind: CatalogKind, page: int) -> PageResponse:
        items = await self.client.call_list(credentials, kind.list_action)
        return paginate(items, page, self.page_size)

    async def recent_items(self, credentials: ProviderCredentials, kind: CatalogKind, page: int) -> PageResponse:
        items = await self.client.call_list(credentials, kind.list_action)
        return paginate(most_recent(items, kind, self.recent_limit), page, self.page_size)

    async def categories(self, credentials: ProviderCredentials, kind: CatalogKind) -> List[Item]:
        return await self.client.call_list(credentials, kind.categories_action)

    async def items_in_category(
        self,
        credentials: ProviderCredentials,
        kind: CatalogKind,
        category_id: str,
        page: int
    ) -> PageResponse:
        items = await self.client.call_list(credentials, kind.list_action, category_id=category_id)
        return paginate(items, page, self.page_size)

    async def item_detail(self, credentials: ProviderCredentials, kind: CatalogKind, item_id: str) -> Optional[Any]:
        """
        Fetch one item.

        Live channels have no detail action, so the stream list is scanned
        by ``stream_id``.

        Returns:
            Raw provider JSON, or None when a live channel is not found
        """
        if kind is CatalogKind.LIVE:
            items = await self.client.call_list(credentials, kind.list_action)
            for item in items:
                if str(item.get("stream_id")) == item_id:
                    return item
            logger.info("live_stream_not_found", stream_id=item_id)
            return None

        if kind is CatalogKind.VOD:
            return await self.client.call(credentials, "get_vod_info", vod_id=item_id)

        return await self.client.call(credentials, "get_series_info", series_id=item_id)

    async def search(self, credentials: ProviderCredentials, query: str) -> SearchResponse:
        """Search all three lists concurrently."""
        live, vods, series = await asyncio.gather(
            self.client.call_list(credentials, CatalogKind.LIVE.list_action),
            self.client.call_list(credentials, CatalogKind.VOD.list_action),
            self.client.call_list(credentials, CatalogKind.SERIES.list_action),
        )
        result = SearchResponse(
            query=query,
            live_streams=filter_by_name(live, query),
            movies=filter_by_name(vods, query),
            series=filter_by_name(series, query),
        )
        logger.info(
            "catalog_searched",
            live_matches=len(result.live_streams),
            movie_matches=len(result.movies),
            series_matches=len(result.series)
        )
        return result
