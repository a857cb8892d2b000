"""Account, profile and engagement use cases."""

from __future__ import annotations

import asyncio
from collections.abc import Mapping
from typing import Any

import structlog

from gigglemap.core.exceptions import (
    AuthenticationError,
    ConflictError,
    NotFoundError,
    ValidationError,
)
from gigglemap.geo.point import GeoPoint, parse_optional_point
from gigglemap.infra.unit_of_work import UnitOfWork, UnitOfWorkFactory
from gigglemap.repositories.interfaces import PROFILE_FIELDS, STAT_FIELDS, NewUser, UserRecord
from gigglemap.schemas.users import (
    Center,
    EngagementResponse,
    NearbyUser,
    NearbyUsersResponse,
    UserPrivateProfile,
    UserProfile,
    UserSearchResponse,
    UserSummary,
)
from gigglemap.services.avatars import AvatarStorage, validate_avatar
from gigglemap.services.proximity import ProximityQueryEngine, resolve_limit
from gigglemap.services.security import BCRYPT_ROUNDS, TokenService, hash_password, verify_password

logger = structlog.get_logger(__name__)

DEFAULT_NEARBY_RADIUS_M = 10000.0
DEFAULT_NEARBY_LIMIT = 50
MAX_NEARBY_LIMIT = 100
DEFAULT_SEARCH_LIMIT = 20
MAX_SEARCH_LIMIT = 50
MIN_QUERY_LENGTH = 2

_INVALID_CREDENTIALS = "Invalid email/username or password"


async def _require_user(uow: UnitOfWork, user_id: int) -> UserRecord:
    user = await uow.users.get(user_id)
    if user is None:
        raise NotFoundError("User not found")
    return user


class UserService:
    def __init__(
        self,
        uow_factory: UnitOfWorkFactory,
        *,
        tokens: TokenService,
        avatars: AvatarStorage,
        engine: ProximityQueryEngine | None = None,
        password_rounds: int = BCRYPT_ROUNDS,
    ) -> None:
        self._uow_factory = uow_factory
        self._tokens = tokens
        self._avatars = avatars
        self._engine = engine or ProximityQueryEngine()
        self._rounds = password_rounds

    # --- accounts ---

    async def register(
        self, *, username: str, email: str, password: str, full_name: str | None = None
    ) -> UserPrivateProfile:
        if not username or not email or not password:
            raise ValidationError("Username, email, and password are required")
        if len(username) < 3:
            raise ValidationError("Username must be at least 3 characters long")
        if len(password) < 6:
            raise ValidationError("Password must be at least 6 characters long")
        password_hash = await asyncio.to_thread(hash_password, password, rounds=self._rounds)
        async with self._uow_factory() as uow:
            # the store's unique constraints still catch a concurrent duplicate
            if await uow.users.exists(username=username, email=email):
                raise ConflictError("User with this email or username already exists")
            user_id = await uow.users.insert(
                NewUser(
                    username=username,
                    email=email,
                    password_hash=password_hash,
                    full_name=full_name or None,
                )
            )
            user = await _require_user(uow, user_id)
        logger.info("user_registered", user_id=user_id)
        return UserPrivateProfile.from_record(user)

    async def login(
        self, *, email_or_username: str, password: str
    ) -> tuple[UserPrivateProfile, str]:
        async with self._uow_factory() as uow:
            user = await uow.users.find_by_login(email_or_username)
        if user is None or not await asyncio.to_thread(
            verify_password, password, user.password_hash
        ):
            logger.info("user_login_failed")
            raise AuthenticationError(_INVALID_CREDENTIALS)
        token = self._tokens.issue(user_id=user.id, username=user.username)
        logger.info("user_logged_in", user_id=user.id)
        return UserPrivateProfile.from_record(user), token

    async def authenticate(self, token: str | None) -> UserRecord:
        """Resolve a bearer token to a live user."""

        if not token:
            raise AuthenticationError("Access token required")
        payload = self._tokens.decode(token)
        async with self._uow_factory() as uow:
            user = await uow.users.get(int(payload["userId"]))
        if user is None:
            raise AuthenticationError("User not found")
        return user

    async def delete(self, user_id: int) -> None:
        async with self._uow_factory() as uow:
            user = await uow.users.get(user_id)
        if user is not None and user.avatar_url:
            if not await self._avatars.delete(user.avatar_url):
                logger.warning("avatar_delete_failed", user_id=user_id)
        async with self._uow_factory() as uow:
            await uow.users.remove(user_id)
        logger.info("user_deleted", user_id=user_id)

    # --- profile ---

    async def get_profile(self, user_id: int) -> UserProfile:
        async with self._uow_factory() as uow:
            user = await _require_user(uow, user_id)
        return UserProfile.from_record(user)

    async def get_private_profile(self, user_id: int) -> UserPrivateProfile:
        async with self._uow_factory() as uow:
            user = await _require_user(uow, user_id)
        return UserPrivateProfile.from_record(user)

    async def update_profile(self, user_id: int, changes: Mapping[str, Any]) -> UserProfile:
        fields = dict(changes)
        point = None
        if "latitude" in fields or "longitude" in fields:
            lat, lng = fields.pop("latitude", None), fields.pop("longitude", None)
            point = parse_optional_point(lat, lng)
        unknown = set(fields) - set(PROFILE_FIELDS)
        if unknown:
            raise ValidationError(f"Unknown profile fields: {', '.join(sorted(unknown))}")

        async with self._uow_factory() as uow:
            await _require_user(uow, user_id)
            if point is not None:
                await uow.users.update_coordinate(user_id, point)
            if fields:
                await uow.users.update_fields(user_id, fields)
            user = await _require_user(uow, user_id)
        logger.info(
            "user_profile_updated", user_id=user_id, fields=sorted(fields), moved=point is not None
        )
        return UserProfile.from_record(user)

    async def upload_avatar(
        self, user_id: int, *, content: bytes, content_type: str | None
    ) -> UserProfile:
        validate_avatar(content, content_type)
        async with self._uow_factory() as uow:
            current = await _require_user(uow, user_id)

        url = await self._avatars.upload(content, user_id=user_id)
        if current.avatar_url:
            if not await self._avatars.delete(current.avatar_url):
                logger.warning("avatar_delete_failed", user_id=user_id)

        async with self._uow_factory() as uow:
            await uow.users.update_fields(user_id, {"avatar_url": url})
            user = await _require_user(uow, user_id)
        return UserProfile.from_record(user)

    # --- discovery ---

    async def search(self, query: str | None, limit: int | None = None) -> UserSearchResponse:
        q = (query or "").strip()
        if len(q) < MIN_QUERY_LENGTH:
            raise ValidationError("Search query must be at least 2 characters long")
        resolved = resolve_limit(limit, default=DEFAULT_SEARCH_LIMIT, maximum=MAX_SEARCH_LIMIT)
        async with self._uow_factory() as uow:
            users = await uow.users.search(q, limit=int(resolved or DEFAULT_SEARCH_LIMIT))
        items = [UserSummary.from_record(u, avatar_size=100) for u in users]
        return UserSearchResponse(query=q, count=len(items), users=items)

    async def nearby(
        self,
        *,
        lat: Any,
        lng: Any,
        radius_m: float = DEFAULT_NEARBY_RADIUS_M,
        limit: int | None = None,
    ) -> NearbyUsersResponse:
        center = GeoPoint.parse(lat, lng)
        resolved = resolve_limit(limit, default=DEFAULT_NEARBY_LIMIT, maximum=MAX_NEARBY_LIMIT)
        async with self._uow_factory() as uow:
            results = await self._engine.find_nearby(uow.users, center, radius_m, resolved)
        logger.info(
            "users_nearby",
            lat=center.latitude,
            lng=center.longitude,
            radius_m=float(radius_m),
            limit=resolved,
            returned=len(results),
        )
        users = [
            NearbyUser(
                **UserSummary.from_record(r.entity, avatar_size=100).model_dump(),
                distance=round(r.distance_m),
            )
            for r in results
        ]
        return NearbyUsersResponse(
            center=Center(latitude=center.latitude, longitude=center.longitude),
            radius=float(radius_m),
            count=len(users),
            users=users,
        )

    # --- engagement ---

    async def update_stats(
        self, user_id: int, stat_type: str | None, increment: int = 1
    ) -> UserProfile:
        if not stat_type:
            raise ValidationError("Stat type is required")
        field = STAT_FIELDS.get(stat_type)
        if field is None:
            raise ValidationError(f"Invalid stat type: {stat_type}")
        async with self._uow_factory() as uow:
            await uow.users.increment_stat(user_id, field, int(increment))
            user = await _require_user(uow, user_id)
        logger.info("user_stats_updated", user_id=user_id, stat=stat_type, increment=int(increment))
        return UserProfile.from_record(user)

    async def engagement(self, user_id: int) -> EngagementResponse:
        async with self._uow_factory() as uow:
            user = await _require_user(uow, user_id)
        return EngagementResponse(
            id=user.id,
            username=user.username,
            story_count=user.story_count,
            like_count=user.like_count,
            comment_count=user.comment_count,
            created_at=user.created_at,
        )
