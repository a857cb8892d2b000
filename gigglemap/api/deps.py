"""API dependency helpers and service providers."""

from __future__ import annotations

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from gigglemap.core.config import Settings
from gigglemap.core.exceptions import PermissionDeniedError
from gigglemap.infra.unit_of_work import UnitOfWorkFactory
from gigglemap.repositories.interfaces import UserRecord
from gigglemap.services.avatars import AvatarStorage
from gigglemap.services.health import HealthService
from gigglemap.services.places import PlaceService
from gigglemap.services.security import TokenService
from gigglemap.services.users import UserService

__all__ = [
    "get_app_settings",
    "get_uow_factory",
    "get_token_service",
    "get_avatar_storage",
    "get_place_service",
    "get_user_service",
    "get_health_service",
    "get_current_user",
    "require_owner",
]

# auto_error=False so a missing header reaches get_current_user and gets our 401 body
_bearer = HTTPBearer(auto_error=False)


# --- app.state accessors (populated by create_app) ---


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_uow_factory(request: Request) -> UnitOfWorkFactory:
    return request.app.state.uow_factory


def get_token_service(request: Request) -> TokenService:
    return request.app.state.tokens


def get_avatar_storage(request: Request) -> AvatarStorage:
    return request.app.state.avatar_storage


# --- Service providers for DI ---


def get_place_service(uow_factory: UnitOfWorkFactory = Depends(get_uow_factory)) -> PlaceService:
    return PlaceService(uow_factory)


def get_user_service(
    uow_factory: UnitOfWorkFactory = Depends(get_uow_factory),
    tokens: TokenService = Depends(get_token_service),
    avatars: AvatarStorage = Depends(get_avatar_storage),
    settings: Settings = Depends(get_app_settings),
) -> UserService:
    return UserService(
        uow_factory,
        tokens=tokens,
        avatars=avatars,
        password_rounds=settings.bcrypt_rounds,
    )


def get_health_service(uow_factory: UnitOfWorkFactory = Depends(get_uow_factory)) -> HealthService:
    return HealthService(uow_factory)


# --- auth ---


async def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(_bearer),
    users: UserService = Depends(get_user_service),
) -> UserRecord:
    """Resolve ``Authorization: Bearer <token>`` to the calling user (401 otherwise)."""

    token = credentials.credentials if credentials else None
    return await users.authenticate(token)


async def require_owner(
    user_id: int,
    current: UserRecord = Depends(get_current_user),
) -> UserRecord:
    if current.id != user_id:
        raise PermissionDeniedError("Access denied: You can only access your own profile")
    return current
