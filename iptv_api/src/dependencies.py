"""
FastAPI dependency injection for database, authentication and services.

Provides injectable dependencies for:
- Application settings and shared resources held on ``app.state``
- Repository instances (MongoDB)
- Service instances (auth, accounts, email, upstream catalog)
- Bearer token authentication for access and password reset tokens
- The caller's selected profile and lenient page parsing

Tests replace any of these through ``app.dependency_overrides``.
"""

from typing import Optional

import aiohttp
import structlog
from fastapi import Depends, HTTPException, Query, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pymongo.asynchronous.database import AsyncDatabase

from iptv_api.src.config import Settings
from iptv_api.src.models.auth import CurrentUser, TokenType
from iptv_api.src.models.profile import ProfileDB
from iptv_api.src.repositories.profile_repo import ProfileRepository
from iptv_api.src.repositories.user_repo import UserRepository
from iptv_api.src.services.account_service import AccountService
from iptv_api.src.services.auth_service import AuthService
from iptv_api.src.services.catalog_service import CatalogService, parse_page
from iptv_api.src.services.email_service import EmailService
from iptv_api.src.services.xtream_client import XtreamClient
from shared.logging import bind_context
from shared.metrics import APIMetrics
from shared.security import SecretBox

logger = structlog.get_logger(__name__)

# HTTP Bearer token scheme
security = HTTPBearer(auto_error=False)

INVALID_TOKEN_DETAIL = "Invalid or expired token"


# ============================================================================
# APPLICATION RESOURCES
# ============================================================================


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_app_metrics(request: Request) -> APIMetrics:
    return request.app.state.metrics


def get_database(request: Request) -> AsyncDatabase:
    """
    Get the MongoDB database opened during startup.

    Raises:
        RuntimeError: If the application lifespan has not run
    """
    db = getattr(request.app.state, "db", None)
    if db is None:
        logger.error("database_not_initialized")
        raise RuntimeError("Database not initialized. The application lifespan must run first.")
    return db


def get_http_session(request: Request) -> aiohttp.ClientSession:
    session = getattr(request.app.state, "http_session", None)
    if session is None:
        logger.error("http_session_not_initialized")
        raise RuntimeError("HTTP session not initialized. The application lifespan must run first.")
    return session


def get_secret_box(request: Request) -> SecretBox:
    return request.app.state.secret_box


# ============================================================================
# REPOSITORY DEPENDENCIES
# ============================================================================


def get_user_repository(db: AsyncDatabase = Depends(get_database)) -> UserRepository:
    return UserRepository(db)


def get_profile_repository(
    db: AsyncDatabase = Depends(get_database),
    secret_box: SecretBox = Depends(get_secret_box)
) -> ProfileRepository:
    return ProfileRepository(db, secret_box)


# ============================================================================
# SERVICE DEPENDENCIES
# ============================================================================


def get_auth_service(
    user_repo: UserRepository = Depends(get_user_repository),
    settings: Settings = Depends(get_app_settings)
) -> AuthService:
    return AuthService(user_repo, settings)


def get_email_service(
    settings: Settings = Depends(get_app_settings),
    metrics: APIMetrics = Depends(get_app_metrics)
) -> EmailService:
    return EmailService(settings, metrics)


def get_account_service(
    user_repo: UserRepository = Depends(get_user_repository),
    auth_service: AuthService = Depends(get_auth_service),
    email_service: EmailService = Depends(get_email_service),
    settings: Settings = Depends(get_app_settings)
) -> AccountService:
    """
    Get account service instance.

    Args:
        user_repo: User repository
        auth_service: Authentication service
        email_service: Email sender
        settings: Application settings

    Returns:
        Account service
    """
    return AccountService(user_repo, auth_service, email_service, settings)


def get_xtream_client(
    session: aiohttp.ClientSession = Depends(get_http_session),
    metrics: APIMetrics = Depends(get_app_metrics)
) -> XtreamClient:
    return XtreamClient(session, metrics)


def get_catalog_service(
    client: XtreamClient = Depends(get_xtream_client),
    settings: Settings = Depends(get_app_settings)
) -> CatalogService:
    return CatalogService(
        client,
        page_size=settings.pagination_page_size,
        recent_limit=settings.recent_items_limit
    )


# ============================================================================
# AUTHENTICATION DEPENDENCIES
# ============================================================================


async def get_token_from_header(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security)
) -> str:
    """
    Extract JWT token from Authorization header.

    Args:
        credentials: HTTP bearer credentials

    Returns:
        JWT token string

    Raises:
        HTTPException: 401 if the header is missing or not a bearer token
    """
    if not credentials or not credentials.credentials:
        logger.warning("auth_missing_credentials")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing authentication token",
            headers={"WWW-Authenticate": "Bearer"}
        )

    return credentials.credentials


async def get_current_user(
    token: str = Depends(get_token_from_header),
    auth_service: AuthService = Depends(get_auth_service)
) -> CurrentUser:
    """
    Get current authenticated user from an access token.

    Args:
        token: JWT token
        auth_service: Authentication service

    Returns:
        Current authenticated user

    Raises:
        HTTPException: 403 if the token is invalid, expired, or not an access token

    Example:
        @router.get("/profiles")
        async def list_profiles(user: CurrentUser = Depends(get_current_user)):
            ...
    """
    current_user = await auth_service.get_current_user(token)

    if not current_user:
        logger.warning("auth_invalid_token")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=INVALID_TOKEN_DETAIL
        )

    bind_context(user_id=current_user.id)
    return current_user


async def get_reset_user_id(
    token: str = Depends(get_token_from_header),
    auth_service: AuthService = Depends(get_auth_service)
) -> str:
    """
    Resolve the user a password reset token was issued to.

    Raises:
        HTTPException: 403 if the token is invalid, expired, or not a reset token
    """
    payload = auth_service.decode_token(token, TokenType.RESET)

    if not payload:
        logger.warning("reset_token_rejected")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=INVALID_TOKEN_DETAIL
        )

    return payload.sub


# ============================================================================
# CATALOG DEPENDENCIES
# ============================================================================


async def get_selected_profile(
    profile: Optional[str] = Query(None, description="ID of one of the caller's profiles"),
    current_user: CurrentUser = Depends(get_current_user),
    profile_repo: ProfileRepository = Depends(get_profile_repository)
) -> ProfileDB:
    """
    Load the profile named by the ``profile`` query parameter.

    Raises:
        HTTPException: 400 if the parameter is missing, 404 if the profile is
            unknown or belongs to another user
    """
    if not profile:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Profile parameter is required"
        )

    selected = await profile_repo.get_profile(profile, current_user.id)

    if not selected:
        logger.warning("profile_not_found", profile_id=profile)
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Profile not found"
        )

    return selected


async def get_page(page: Optional[str] = Query(None, description="1-based page number")) -> int:
    """Lenient page number: invalid or < 1 becomes 1."""
    return parse_page(page)


async def get_client_ip(request: Request) -> str:
    """
    Get client IP address from request.

    Checks X-Forwarded-For header first (for proxies),
    then falls back to client host.
    """
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()

    if request.client:
        return request.client.host

    return "unknown"
