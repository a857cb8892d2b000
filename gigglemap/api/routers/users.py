"""/users routers: accounts, profiles, discovery and engagement counters."""

from __future__ import annotations

from fastapi import APIRouter, Depends, File, Query, UploadFile, status

from gigglemap.api.deps import get_current_user, get_user_service, require_owner
from gigglemap.repositories.interfaces import UserRecord
from gigglemap.schemas.common import ErrorResponse, MessageResponse
from gigglemap.schemas.users import (
    AvatarResponse,
    EngagementResponse,
    LoginRequest,
    LoginResponse,
    NearbyUsersResponse,
    ProfileResponse,
    ProfileUpdateRequest,
    RegisterRequest,
    RegisterResponse,
    StatsUpdateRequest,
    UserPrivateProfile,
    UserProfile,
    UserSearchResponse,
)
from gigglemap.services.users import DEFAULT_NEARBY_RADIUS_M, UserService

router = APIRouter(prefix="/users", tags=["users"])

_AUTH_ERRORS = {
    401: {"model": ErrorResponse, "description": "missing, invalid or expired token"},
    403: {"model": ErrorResponse, "description": "not the profile owner"},
}


@router.post(
    "/register",
    status_code=status.HTTP_201_CREATED,
    response_model=RegisterResponse,
    summary="Create an account",
    responses={409: {"model": ErrorResponse, "description": "username or email taken"}},
)
async def register(payload: RegisterRequest, svc: UserService = Depends(get_user_service)):
    user = await svc.register(
        username=payload.username,
        email=payload.email,
        password=payload.password,
        full_name=payload.full_name,
    )
    return RegisterResponse(message="User registered successfully", user=user)


@router.post(
    "/login",
    response_model=LoginResponse,
    summary="Exchange credentials for a bearer token",
    responses={401: {"model": ErrorResponse, "description": "bad credentials"}},
)
async def login(payload: LoginRequest, svc: UserService = Depends(get_user_service)):
    user, token = await svc.login(
        email_or_username=payload.email_or_username, password=payload.password
    )
    return LoginResponse(message="Login successful", user=user, token=token)


@router.get("/me", response_model=UserPrivateProfile, summary="Own profile", responses=_AUTH_ERRORS)
async def me(
    current: UserRecord = Depends(get_current_user),
    svc: UserService = Depends(get_user_service),
):
    return await svc.get_private_profile(current.id)


@router.get(
    "/search",
    response_model=UserSearchResponse,
    summary="Search users by username or full name",
)
async def search_users(
    q: str | None = Query(None, description="At least 2 characters"),
    limit: int | None = Query(None, description="1..50, default 20"),
    svc: UserService = Depends(get_user_service),
):
    return await svc.search(q, limit)


@router.get(
    "/nearby",
    response_model=NearbyUsersResponse,
    summary="Users within a radius",
    description="Users with a stored location within `radius` meters, nearest first.",
)
async def nearby_users(
    lat: str | None = Query(None, description="Latitude of the center"),
    lng: str | None = Query(None, description="Longitude of the center"),
    radius: float = Query(DEFAULT_NEARBY_RADIUS_M, description="Search radius in meters"),
    limit: int | None = Query(None, description="1..100, default 50"),
    svc: UserService = Depends(get_user_service),
):
    return await svc.nearby(lat=lat, lng=lng, radius_m=radius, limit=limit)


@router.get(
    "/{user_id}",
    response_model=UserProfile,
    summary="Public profile",
    responses={404: {"model": ErrorResponse, "description": "User not found"}},
)
async def get_user(user_id: int, svc: UserService = Depends(get_user_service)):
    return await svc.get_profile(user_id)


@router.put(
    "/{user_id}",
    response_model=ProfileResponse,
    summary="Update own profile",
    responses=_AUTH_ERRORS,
)
async def update_user(
    user_id: int,
    payload: ProfileUpdateRequest,
    _owner: UserRecord = Depends(require_owner),
    svc: UserService = Depends(get_user_service),
):
    user = await svc.update_profile(user_id, payload.model_dump(exclude_unset=True))
    return ProfileResponse(message="Profile updated successfully", user=user)


@router.post(
    "/{user_id}/avatar",
    response_model=AvatarResponse,
    summary="Upload a profile picture",
    responses=_AUTH_ERRORS,
)
async def upload_avatar(
    user_id: int,
    avatar: UploadFile | None = File(None),
    _owner: UserRecord = Depends(require_owner),
    svc: UserService = Depends(get_user_service),
):
    content = await avatar.read() if avatar is not None else b""
    content_type = avatar.content_type if avatar is not None else None
    user = await svc.upload_avatar(user_id, content=content, content_type=content_type)
    return AvatarResponse(
        message="Avatar uploaded successfully", user=user, avatar_url=user.avatar_url
    )


@router.get(
    "/{user_id}/engagement",
    response_model=EngagementResponse,
    summary="Engagement counters",
    responses={404: {"model": ErrorResponse, "description": "User not found"}},
)
async def engagement(user_id: int, svc: UserService = Depends(get_user_service)):
    return await svc.engagement(user_id)


@router.put(
    "/{user_id}/stats",
    response_model=ProfileResponse,
    summary="Adjust an engagement counter",
    responses=_AUTH_ERRORS,
)
async def update_stats(
    user_id: int,
    payload: StatsUpdateRequest,
    _current: UserRecord = Depends(get_current_user),
    svc: UserService = Depends(get_user_service),
):
    user = await svc.update_stats(user_id, payload.stat_type, payload.increment)
    return ProfileResponse(message="Stats updated successfully", user=user)


@router.delete(
    "/{user_id}",
    response_model=MessageResponse,
    summary="Delete own account",
    responses=_AUTH_ERRORS,
)
async def delete_user(
    user_id: int,
    _owner: UserRecord = Depends(require_owner),
    svc: UserService = Depends(get_user_service),
):
    await svc.delete(user_id)
    return MessageResponse(message="User deleted successfully")
