"""Catalog models: content kinds and the paginated envelopes returned to clients."""

from enum import Enum
from typing import Any, Dict, List

from pydantic import BaseModel, ConfigDict, Field


class CatalogKind(str, Enum):
    """
    Content families exposed by an Xtream provider.

    The value is the URL prefix the family is mounted under.
    """

    LIVE = "live"
    VOD = "vods"
    SERIES = "series"

    @property
    def list_action(self) -> str:
        return _LIST_ACTIONS[self]

    @property
    def categories_action(self) -> str:
        return _CATEGORY_ACTIONS[self]


_LIST_ACTIONS = {
    CatalogKind.LIVE: "get_live_streams",
    CatalogKind.VOD: "get_vod_streams",
    CatalogKind.SERIES: "get_series",
}

_CATEGORY_ACTIONS = {
    CatalogKind.LIVE: "get_live_categories",
    CatalogKind.VOD: "get_vod_categories",
    CatalogKind.SERIES: "get_series_categories",
}


class PageResponse(BaseModel):
    """One page of upstream items."""
    page: int = Field(..., ge=1, description="Current page (1-based)")
    total: int = Field(..., ge=0, description="Total number of items")
    total_pages: int = Field(..., alias="totalPages", ge=0, description="Number of pages")
    data: List[Dict[str, Any]] = Field(default_factory=list)

    model_config = ConfigDict(populate_by_name=True)


class SearchResponse(BaseModel):
    """Search results grouped by content family."""
    query: str
    live_streams: List[Dict[str, Any]] = Field(default_factory=list, alias="liveStreams")
    movies: List[Dict[str, Any]] = Field(default_factory=list)
    series: List[Dict[str, Any]] = Field(default_factory=list)

    model_config = ConfigDict(populate_by_name=True)
