"""PostGIS-backed user repository."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from sqlalchemy import case, delete, func, insert, or_, select, update
from sqlalchemy.engine import Row
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from gigglemap.core.exceptions import ConflictError, NotFoundError, ValidationError
from gigglemap.geo.point import GeoPoint
from gigglemap.models import User
from gigglemap.repositories.interfaces import (
    PROFILE_FIELDS,
    STAT_FIELDS,
    NewUser,
    UserRecord,
    UserRepository,
)
from gigglemap.repositories.sqlalchemy.places import geography_point

_SCALAR_COLUMNS = (
    User.id,
    User.username,
    User.email,
    User.password_hash,
    User.full_name,
    User.avatar_url,
    User.bio,
    User.website,
    User.instagram,
    User.twitter,
    User.facebook,
    User.city,
    User.country,
    User.story_count,
    User.like_count,
    User.comment_count,
    User.created_at,
    User.updated_at,
)


def _escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _to_record(row: Row) -> UserRecord:
    data = row._mapping
    return UserRecord(
        id=int(data["id"]),
        username=data["username"],
        email=data["email"],
        password_hash=data["password_hash"],
        full_name=data["full_name"],
        avatar_url=data["avatar_url"],
        bio=data["bio"],
        website=data["website"],
        instagram=data["instagram"],
        twitter=data["twitter"],
        facebook=data["facebook"],
        city=data["city"],
        country=data["country"],
        point=GeoPoint.from_wkt(data["wkt"]) if data["wkt"] else None,
        story_count=int(data["story_count"] or 0),
        like_count=int(data["like_count"] or 0),
        comment_count=int(data["comment_count"] or 0),
        created_at=data["created_at"],
        updated_at=data["updated_at"],
    )


class SqlAlchemyUserRepository(UserRepository):
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    def _select(self):  # type: ignore[no-untyped-def]
        return select(*_SCALAR_COLUMNS, func.ST_AsText(User.coordinates).label("wkt"))

    async def insert(self, entity: NewUser, point: GeoPoint | None = None) -> int:
        values: dict[str, Any] = {
            "username": entity.username,
            "email": entity.email,
            "password_hash": entity.password_hash,
            "full_name": entity.full_name,
        }
        if point is not None:
            values["coordinates"] = geography_point(point)
        try:
            user_id = await self._session.scalar(insert(User).values(**values).returning(User.id))
        except IntegrityError as exc:
            raise ConflictError("User with this email or username already exists") from exc
        return int(user_id)

    async def update_coordinate(self, entity_id: int, point: GeoPoint) -> None:
        stmt = (
            update(User)
            .where(User.id == entity_id)
            .values(coordinates=geography_point(point), updated_at=func.now())
            .returning(User.id)
        )
        if await self._session.scalar(stmt) is None:
            raise NotFoundError("User not found")

    async def get(self, entity_id: int) -> UserRecord | None:
        row = (await self._session.execute(self._select().where(User.id == entity_id))).first()
        return _to_record(row) if row is not None else None

    async def remove(self, entity_id: int) -> None:
        await self._session.execute(delete(User).where(User.id == entity_id))

    async def query_within(
        self, center: GeoPoint, radius_m: float
    ) -> list[tuple[UserRecord, float]]:
        if radius_m <= 0:
            return []
        origin = geography_point(center)
        distance = func.ST_Distance(User.coordinates, origin)
        stmt = (
            self._select()
            .add_columns(distance.label("distance"))
            .where(User.coordinates.is_not(None))
            .where(func.ST_DWithin(User.coordinates, origin, float(radius_m)))
            .order_by(distance.asc(), User.id.asc())
        )
        rows = await self._session.execute(stmt)
        return [(_to_record(row), float(row.distance)) for row in rows.all()]

    async def find_by_login(self, email_or_username: str) -> UserRecord | None:
        stmt = (
            self._select()
            .where(or_(User.email == email_or_username, User.username == email_or_username))
            .order_by(User.id.asc())
            .limit(1)
        )
        row = (await self._session.execute(stmt)).first()
        return _to_record(row) if row is not None else None

    async def exists(self, *, username: str, email: str) -> bool:
        stmt = select(User.id).where(or_(User.username == username, User.email == email)).limit(1)
        return await self._session.scalar(stmt) is not None

    async def update_fields(self, user_id: int, fields: Mapping[str, Any]) -> None:
        unknown = set(fields) - set(PROFILE_FIELDS)
        if unknown:
            raise ValidationError(f"Unknown profile fields: {', '.join(sorted(unknown))}")
        stmt = (
            update(User)
            .where(User.id == user_id)
            .values(**dict(fields), updated_at=func.now())
            .returning(User.id)
        )
        if await self._session.scalar(stmt) is None:
            raise NotFoundError("User not found")

    async def increment_stat(self, user_id: int, field: str, delta: int) -> None:
        if field not in STAT_FIELDS.values():
            raise ValidationError(f"Invalid stat type: {field}")
        column = getattr(User, field)
        # Single UPDATE so concurrent increments never read-modify-write
        stmt = (
            update(User)
            .where(User.id == user_id)
            .values({column: func.greatest(0, column + int(delta)), User.updated_at: func.now()})
            .returning(User.id)
        )
        if await self._session.scalar(stmt) is None:
            raise NotFoundError("User not found")

    async def search(self, query: str, *, limit: int) -> list[UserRecord]:
        q = query.lower()
        escaped = _escape_like(q)
        username = func.lower(User.username)
        full_name = func.lower(func.coalesce(User.full_name, ""))
        rank = case(
            (username == q, 1),
            (full_name == q, 2),
            (username.like(f"{escaped}%", escape="\\"), 3),
            (full_name.like(f"{escaped}%", escape="\\"), 4),
            else_=5,
        )
        pattern = f"%{escaped}%"
        stmt = (
            self._select()
            .where(
                or_(
                    username.like(pattern, escape="\\"),
                    full_name.like(pattern, escape="\\"),
                )
            )
            .order_by(rank, User.story_count.desc(), User.like_count.desc(), User.id.asc())
            .limit(limit)
        )
        rows = await self._session.execute(stmt)
        return [_to_record(row) for row in rows.all()]
