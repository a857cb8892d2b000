"""
Process-local store with a degree-bucket grid index.

Backs ``STORE_BACKEND=memory`` (local runs, tests). Radius queries prune with a
conservative bounding box over grid cells, then measure the exact geodesic
distance, so results match the PostGIS store without a linear scan.
"""

from __future__ import annotations

import asyncio
import math
from collections.abc import Iterable, Mapping
from dataclasses import replace
from datetime import datetime, timezone
from typing import Any

from gigglemap.core.exceptions import (
    ConflictError,
    MissingCoordinate,
    NotFoundError,
    ValidationError,
)
from gigglemap.geo.distance import bounding_box, geodesic_distance_m
from gigglemap.geo.point import GeoPoint
from gigglemap.repositories.interfaces import (
    PROFILE_FIELDS,
    STAT_FIELDS,
    NewPlace,
    NewUser,
    PlaceRecord,
    PlaceRepository,
    UserRecord,
    UserRepository,
)

CellKey = tuple[int, int]


class SpatialGridIndex:
    def __init__(self, *, cell_size_deg: float = 0.05) -> None:
        if float(cell_size_deg) <= 0:
            raise ValueError("cell_size_deg must be > 0")
        self._cell = float(cell_size_deg)
        self._cells: dict[CellKey, set[int]] = {}
        self._points: dict[int, GeoPoint] = {}

    def __len__(self) -> int:
        return len(self._points)

    def _key(self, lat: float, lng: float) -> CellKey:
        return int(math.floor(lat / self._cell)), int(math.floor(lng / self._cell))

    def put(self, entity_id: int, point: GeoPoint) -> None:
        self.discard(entity_id)
        self._points[entity_id] = point
        self._cells.setdefault(self._key(point.latitude, point.longitude), set()).add(entity_id)

    def discard(self, entity_id: int) -> None:
        old = self._points.pop(entity_id, None)
        if old is None:
            return
        key = self._key(old.latitude, old.longitude)
        bucket = self._cells.get(key)
        if bucket is not None:
            bucket.discard(entity_id)
            if not bucket:
                del self._cells[key]

    def _candidates(self, center: GeoPoint, radius_m: float) -> Iterable[int]:
        box = bounding_box(center, radius_m)
        if box is None:
            return list(self._points)
        min_lat, min_lng, max_lat, max_lng = box
        lo_r, lo_c = self._key(min_lat, min_lng)
        hi_r, hi_c = self._key(max_lat, max_lng)
        # A huge box touches more cells than there are points; scanning is cheaper then.
        if (hi_r - lo_r + 1) * (hi_c - lo_c + 1) > len(self._cells):
            ids: Iterable[int] = list(self._points)
        else:
            ids = [
                entity_id
                for r in range(lo_r, hi_r + 1)
                for c in range(lo_c, hi_c + 1)
                for entity_id in self._cells.get((r, c), ())
            ]
        return [
            entity_id
            for entity_id in ids
            if min_lat <= self._points[entity_id].latitude <= max_lat
            and min_lng <= self._points[entity_id].longitude <= max_lng
        ]

    def within(self, center: GeoPoint, radius_m: float) -> list[tuple[int, float]]:
        if radius_m <= 0:
            return []
        out: list[tuple[int, float]] = []
        for entity_id in self._candidates(center, radius_m):
            d = geodesic_distance_m(center, self._points[entity_id])
            if d <= radius_m:
                out.append((entity_id, d))
        out.sort(key=lambda item: (item[1], item[0]))
        return out


class InMemoryDatabase:
    """Shared tables for every unit of work opened against one process."""

    def __init__(self) -> None:
        self.places: dict[int, PlaceRecord] = {}
        self.users: dict[int, UserRecord] = {}
        self.place_index = SpatialGridIndex()
        self.user_index = SpatialGridIndex()
        self.lock = asyncio.Lock()
        self._sequences: dict[str, int] = {"places": 0, "users": 0}

    def next_id(self, table: str) -> int:
        self._sequences[table] += 1
        return self._sequences[table]


def _now() -> datetime:
    return datetime.now(timezone.utc)


class InMemoryPlaceRepository(PlaceRepository):
    def __init__(self, db: InMemoryDatabase) -> None:
        self._db = db

    async def insert(self, entity: NewPlace, point: GeoPoint | None = None) -> int:
        if point is None:
            raise MissingCoordinate("latitude and longitude are required")
        async with self._db.lock:
            place_id = self._db.next_id("places")
            self._db.places[place_id] = PlaceRecord(
                id=place_id, name=entity.name, description=entity.description, point=point
            )
            self._db.place_index.put(place_id, point)
        return place_id

    async def update_coordinate(self, entity_id: int, point: GeoPoint) -> None:
        async with self._db.lock:
            current = self._db.places.get(entity_id)
            if current is None:
                raise NotFoundError("Place not found")
            self._db.places[entity_id] = replace(current, point=point)
            self._db.place_index.put(entity_id, point)

    async def get(self, entity_id: int) -> PlaceRecord | None:
        record = self._db.places.get(entity_id)
        return replace(record) if record is not None else None

    async def remove(self, entity_id: int) -> None:
        async with self._db.lock:
            self._db.places.pop(entity_id, None)
            self._db.place_index.discard(entity_id)

    async def list_all(self) -> list[PlaceRecord]:
        return [replace(self._db.places[k]) for k in sorted(self._db.places)]

    async def query_within(
        self, center: GeoPoint, radius_m: float
    ) -> list[tuple[PlaceRecord, float]]:
        hits = self._db.place_index.within(center, radius_m)
        return [(replace(self._db.places[pid]), d) for pid, d in hits]


def _search_rank(user: UserRecord, q: str) -> int | None:
    username = user.username.lower()
    full_name = (user.full_name or "").lower()
    if q not in username and q not in full_name:
        return None
    if username == q:
        return 1
    if full_name == q:
        return 2
    if username.startswith(q):
        return 3
    if full_name.startswith(q):
        return 4
    return 5


class InMemoryUserRepository(UserRepository):
    def __init__(self, db: InMemoryDatabase) -> None:
        self._db = db

    def _require(self, user_id: int) -> UserRecord:
        user = self._db.users.get(user_id)
        if user is None:
            raise NotFoundError("User not found")
        return user

    async def insert(self, entity: NewUser, point: GeoPoint | None = None) -> int:
        async with self._db.lock:
            if await self.exists(username=entity.username, email=entity.email):
                raise ConflictError("User with this email or username already exists")
            user_id = self._db.next_id("users")
            now = _now()
            self._db.users[user_id] = UserRecord(
                id=user_id,
                username=entity.username,
                email=entity.email,
                password_hash=entity.password_hash,
                full_name=entity.full_name,
                point=point,
                created_at=now,
                updated_at=now,
            )
            if point is not None:
                self._db.user_index.put(user_id, point)
        return user_id

    async def update_coordinate(self, entity_id: int, point: GeoPoint) -> None:
        async with self._db.lock:
            current = self._require(entity_id)
            self._db.users[entity_id] = replace(current, point=point, updated_at=_now())
            self._db.user_index.put(entity_id, point)

    async def get(self, entity_id: int) -> UserRecord | None:
        record = self._db.users.get(entity_id)
        return replace(record) if record is not None else None

    async def remove(self, entity_id: int) -> None:
        async with self._db.lock:
            self._db.users.pop(entity_id, None)
            self._db.user_index.discard(entity_id)

    async def query_within(
        self, center: GeoPoint, radius_m: float
    ) -> list[tuple[UserRecord, float]]:
        hits = self._db.user_index.within(center, radius_m)
        return [(replace(self._db.users[uid]), d) for uid, d in hits]

    async def find_by_login(self, email_or_username: str) -> UserRecord | None:
        for user_id in sorted(self._db.users):
            user = self._db.users[user_id]
            if email_or_username in (user.email, user.username):
                return replace(user)
        return None

    async def exists(self, *, username: str, email: str) -> bool:
        return any(u.username == username or u.email == email for u in self._db.users.values())

    async def update_fields(self, user_id: int, fields: Mapping[str, Any]) -> None:
        unknown = set(fields) - set(PROFILE_FIELDS)
        if unknown:
            raise ValidationError(f"Unknown profile fields: {', '.join(sorted(unknown))}")
        async with self._db.lock:
            current = self._require(user_id)
            self._db.users[user_id] = replace(current, **dict(fields), updated_at=_now())

    async def increment_stat(self, user_id: int, field: str, delta: int) -> None:
        if field not in STAT_FIELDS.values():
            raise ValidationError(f"Invalid stat type: {field}")
        async with self._db.lock:
            current = self._require(user_id)
            value = max(0, int(getattr(current, field)) + int(delta))
            self._db.users[user_id] = replace(current, **{field: value}, updated_at=_now())

    async def search(self, query: str, *, limit: int) -> list[UserRecord]:
        q = query.lower()
        ranked = []
        for user in self._db.users.values():
            rank = _search_rank(user, q)
            if rank is not None:
                ranked.append((rank, -user.story_count, -user.like_count, user.id, user))
        ranked.sort(key=lambda item: item[:4])
        return [replace(item[4]) for item in ranked[:limit]]
