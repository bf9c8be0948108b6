"""Profile endpoints: the caller's saved provider accounts."""

from typing import List

import structlog
from fastapi import APIRouter, Depends, HTTPException, status

from iptv_api.src.dependencies import get_current_user, get_profile_repository
from iptv_api.src.models.auth import CurrentUser, ErrorResponse
from iptv_api.src.models.profile import ProfileCreateRequest, ProfileResponse
from iptv_api.src.repositories.profile_repo import ProfileAlreadyExistsError, ProfileRepository

logger = structlog.get_logger(__name__)

router = APIRouter(
    prefix="/profiles",
    tags=["Profiles"],
    responses={
        401: {"model": ErrorResponse, "description": "Missing token"},
        403: {"model": ErrorResponse, "description": "Invalid token or API key"},
    }
)

DUPLICATE_PROFILE_DETAIL = "A profile with this name already exists"


@router.post(
    "",
    response_model=ProfileResponse,
    status_code=status.HTTP_201_CREATED,
    responses={400: {"model": ErrorResponse, "description": "Invalid or duplicate profile"}}
)
async def create_profile(
    body: ProfileCreateRequest,
    current_user: CurrentUser = Depends(get_current_user),
    profile_repo: ProfileRepository = Depends(get_profile_repository)
) -> ProfileResponse:
    """
    Save provider credentials under a name unique to the caller.

    The provider password is encrypted before it is stored.
    """
    if await profile_repo.get_profile_by_name(current_user.id, body.name):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=DUPLICATE_PROFILE_DETAIL)

    try:
        profile = await profile_repo.create_profile(
            user_id=current_user.id,
            name=body.name,
            url=body.url,
            username=body.username,
            password=body.password,
        )
    except ProfileAlreadyExistsError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=DUPLICATE_PROFILE_DETAIL) from e

    return ProfileResponse.from_db(profile)


@router.get("", response_model=List[ProfileResponse])
async def list_profiles(
    current_user: CurrentUser = Depends(get_current_user),
    profile_repo: ProfileRepository = Depends(get_profile_repository)
) -> List[ProfileResponse]:
    profiles = await profile_repo.list_profiles(current_user.id)
    return [ProfileResponse.from_db(profile) for profile in profiles]


@router.get(
    "/{profile_id}",
    response_model=ProfileResponse,
    responses={404: {"model": ErrorResponse, "description": "Profile not found"}}
)
async def get_profile(
    profile_id: str,
    current_user: CurrentUser = Depends(get_current_user),
    profile_repo: ProfileRepository = Depends(get_profile_repository)
) -> ProfileResponse:
    profile = await profile_repo.get_profile(profile_id, current_user.id)

    if not profile:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Profile not found")

    return ProfileResponse.from_db(profile)
