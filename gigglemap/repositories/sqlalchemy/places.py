"""PostGIS-backed place repository."""

from __future__ import annotations

from geoalchemy2 import Geography
from sqlalchemy import cast, delete, func, insert, select, update
from sqlalchemy.engine import Row
from sqlalchemy.ext.asyncio import AsyncSession

from gigglemap.core.exceptions import MissingCoordinate, NotFoundError
from gigglemap.geo.point import SRID, GeoPoint
from gigglemap.models import Place
from gigglemap.repositories.interfaces import NewPlace, PlaceRecord, PlaceRepository


def geography_point(point: GeoPoint):  # type: ignore[no-untyped-def]
    """``ST_SetSRID(ST_MakePoint(:lng, :lat), 4326)::geography`` with bound parameters."""

    return cast(
        func.ST_SetSRID(func.ST_MakePoint(point.longitude, point.latitude), SRID),
        Geography(geometry_type="POINT", srid=SRID),
    )


def _to_record(row: Row) -> PlaceRecord:
    return PlaceRecord(
        id=int(row.id),
        name=row.name,
        description=row.description,
        point=GeoPoint.from_wkt(row.wkt),
    )


class SqlAlchemyPlaceRepository(PlaceRepository):
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    def _select(self):  # type: ignore[no-untyped-def]
        return select(
            Place.id,
            Place.name,
            Place.description,
            func.ST_AsText(Place.location).label("wkt"),
        )

    async def insert(self, entity: NewPlace, point: GeoPoint | None = None) -> int:
        if point is None:
            raise MissingCoordinate("latitude and longitude are required")
        stmt = (
            insert(Place)
            .values(
                name=entity.name,
                description=entity.description,
                location=geography_point(point),
            )
            .returning(Place.id)
        )
        return int(await self._session.scalar(stmt))

    async def update_coordinate(self, entity_id: int, point: GeoPoint) -> None:
        stmt = (
            update(Place)
            .where(Place.id == entity_id)
            .values(location=geography_point(point))
            .returning(Place.id)
        )
        if await self._session.scalar(stmt) is None:
            raise NotFoundError("Place not found")

    async def get(self, entity_id: int) -> PlaceRecord | None:
        row = (await self._session.execute(self._select().where(Place.id == entity_id))).first()
        return _to_record(row) if row is not None else None

    async def remove(self, entity_id: int) -> None:
        await self._session.execute(delete(Place).where(Place.id == entity_id))

    async def list_all(self) -> list[PlaceRecord]:
        rows = await self._session.execute(self._select().order_by(Place.id.asc()))
        return [_to_record(row) for row in rows.all()]

    async def query_within(
        self, center: GeoPoint, radius_m: float
    ) -> list[tuple[PlaceRecord, float]]:
        if radius_m <= 0:
            return []
        origin = geography_point(center)
        distance = func.ST_Distance(Place.location, origin)
        stmt = (
            self._select()
            .add_columns(distance.label("distance"))
            .where(func.ST_DWithin(Place.location, origin, float(radius_m)))
            .order_by(distance.asc(), Place.id.asc())
        )
        rows = await self._session.execute(stmt)
        return [(_to_record(row), float(row.distance)) for row in rows.all()]
