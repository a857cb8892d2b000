"""Repository abstractions for the service layer."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Protocol, TypeVar

from gigglemap.geo.point import GeoPoint

NewT = TypeVar("NewT", contravariant=True)
RecordT = TypeVar("RecordT")

# API name -> column/attribute name of the engagement counters
STAT_FIELDS: dict[str, str] = {
    "storyCount": "story_count",
    "likeCount": "like_count",
    "commentCount": "comment_count",
}

# Profile attributes that may be patched through ``update_fields``
PROFILE_FIELDS: tuple[str, ...] = (
    "full_name",
    "bio",
    "website",
    "instagram",
    "twitter",
    "facebook",
    "city",
    "country",
    "avatar_url",
)


@dataclass
class NewPlace:
    name: str
    description: str | None = None


@dataclass
class PlaceRecord:
    id: int
    name: str
    description: str | None
    point: GeoPoint


@dataclass
class NewUser:
    username: str
    email: str
    password_hash: str
    full_name: str | None = None


@dataclass
class UserRecord:
    id: int
    username: str
    email: str
    password_hash: str
    full_name: str | None = None
    avatar_url: str | None = None
    bio: str | None = None
    website: str | None = None
    instagram: str | None = None
    twitter: str | None = None
    facebook: str | None = None
    city: str | None = None
    country: str | None = None
    point: GeoPoint | None = None
    story_count: int = 0
    like_count: int = 0
    comment_count: int = 0
    created_at: datetime | None = None
    updated_at: datetime | None = None


class SpatialStore(Protocol[NewT, RecordT]):
    """Entities tagged with an optional point, searchable by geodesic radius."""

    async def insert(self, entity: NewT, point: GeoPoint | None = None) -> int: ...

    async def update_coordinate(self, entity_id: int, point: GeoPoint) -> None: ...

    async def get(self, entity_id: int) -> RecordT | None: ...

    async def remove(self, entity_id: int) -> None: ...

    async def query_within(
        self, center: GeoPoint, radius_m: float
    ) -> list[tuple[RecordT, float]]: ...


class PlaceRepository(SpatialStore[NewPlace, PlaceRecord], Protocol):
    async def list_all(self) -> list[PlaceRecord]: ...


class UserRepository(SpatialStore[NewUser, UserRecord], Protocol):
    async def find_by_login(self, email_or_username: str) -> UserRecord | None: ...

    async def exists(self, *, username: str, email: str) -> bool: ...

    async def update_fields(self, user_id: int, fields: Mapping[str, Any]) -> None: ...

    async def increment_stat(self, user_id: int, field: str, delta: int) -> None: ...

    async def search(self, query: str, *, limit: int) -> list[UserRecord]: ...
