"""
Catalog endpoints for live channels, movies and series.

The three content families share one route layout, so their routers are
built by ``build_catalog_router``. Every route needs a bearer token and the
``profile`` query parameter naming one of the caller's profiles.
"""

from typing import Any, Dict, List, Optional

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query, status

from iptv_api.src.dependencies import get_catalog_service, get_page, get_selected_profile
from iptv_api.src.models.auth import ErrorResponse
from iptv_api.src.models.catalog import CatalogKind, PageResponse, SearchResponse
from iptv_api.src.models.profile import ProfileDB
from iptv_api.src.services.catalog_service import CatalogService

logger = structlog.get_logger(__name__)

COMMON_RESPONSES = {
    400: {"model": ErrorResponse, "description": "Missing profile parameter"},
    401: {"model": ErrorResponse, "description": "Missing token"},
    403: {"model": ErrorResponse, "description": "Invalid token or API key"},
    404: {"model": ErrorResponse, "description": "Profile not found"},
    500: {"model": ErrorResponse, "description": "Upstream provider error"},
}

_TAGS = {
    CatalogKind.LIVE: "Live TV",
    CatalogKind.VOD: "Movies",
    CatalogKind.SERIES: "Series",
}


def build_catalog_router(kind: CatalogKind) -> APIRouter:
    """
    Build the router for one content family.

    Args:
        kind: Content family; its value is the URL prefix

    Returns:
        Router with list, recent, categories, category and detail routes
    """
    router = APIRouter(prefix=f"/{kind.value}", tags=[_TAGS[kind]], responses=COMMON_RESPONSES)

    @router.get("", response_model=PageResponse, name=f"list_{kind.name.lower()}")
    async def list_items(
        page: int = Depends(get_page),
        profile: ProfileDB = Depends(get_selected_profile),
        catalog: CatalogService = Depends(get_catalog_service)
    ) -> PageResponse:
        return await catalog.list_items(profile.credentials(), kind, page)

    @router.get("/recent", response_model=PageResponse, name=f"recent_{kind.name.lower()}")
    async def recent_items(
        page: int = Depends(get_page),
        profile: ProfileDB = Depends(get_selected_profile),
        catalog: CatalogService = Depends(get_catalog_service)
    ) -> PageResponse:
        return await catalog.recent_items(profile.credentials(), kind, page)

    @router.get("/categories", response_model=List[Dict[str, Any]], name=f"{kind.name.lower()}_categories")
    async def categories(
        profile: ProfileDB = Depends(get_selected_profile),
        catalog: CatalogService = Depends(get_catalog_service)
    ) -> List[Dict[str, Any]]:
        return await catalog.categories(profile.credentials(), kind)

    @router.get(
        "/category/{category_id}",
        response_model=PageResponse,
        name=f"{kind.name.lower()}_by_category"
    )
    async def items_in_category(
        category_id: str,
        page: int = Depends(get_page),
        profile: ProfileDB = Depends(get_selected_profile),
        catalog: CatalogService = Depends(get_catalog_service)
    ) -> PageResponse:
        return await catalog.items_in_category(profile.credentials(), kind, category_id, page)

    @router.get("/{item_id}", name=f"{kind.name.lower()}_detail")
    async def item_detail(
        item_id: str,
        profile: ProfileDB = Depends(get_selected_profile),
        catalog: CatalogService = Depends(get_catalog_service)
    ) -> Any:
        detail = await catalog.item_detail(profile.credentials(), kind, item_id)

        # VOD and series info is passed through as-is, including a null body
        if detail is None and kind is CatalogKind.LIVE:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Stream not found")

        return detail

    return router


search_router = APIRouter(tags=["Search"], responses=COMMON_RESPONSES)


@search_router.get("/search", response_model=SearchResponse)
async def search(
    q: Optional[str] = Query(None, description="Case-insensitive name fragment"),
    profile: ProfileDB = Depends(get_selected_profile),
    catalog: CatalogService = Depends(get_catalog_service)
) -> SearchResponse:
    """Search live channels, movies and series by name."""
    query = (q or "").strip()

    if not query:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Search query is required")

    return await catalog.search(profile.credentials(), query)


live_router = build_catalog_router(CatalogKind.LIVE)
vod_router = build_catalog_router(CatalogKind.VOD)
series_router = build_catalog_router(CatalogKind.SERIES)
