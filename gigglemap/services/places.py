"""Place use cases backed by the spatial store."""

from __future__ import annotations

from typing import Any

import structlog

from gigglemap.core.exceptions import MissingCoordinate, NotFoundError, ValidationError
from gigglemap.geo.point import GeoPoint
from gigglemap.infra.unit_of_work import UnitOfWorkFactory
from gigglemap.repositories.interfaces import NewPlace
from gigglemap.schemas.places import DistanceResponse, PlaceNearbyItem, PlaceOut
from gigglemap.services.proximity import ProximityQueryEngine

logger = structlog.get_logger(__name__)

DEFAULT_RADIUS_M = 5000.0

SAMPLE_PLACES: tuple[dict[str, Any], ...] = (
    {"name": "City Square", "description": "A center point", "lat": 30.033333, "lng": 31.233334},
    {
        "name": "Library Park",
        "description": "Quiet place with trees",
        "lat": 30.040000,
        "lng": 31.220000,
    },
    {
        "name": "Food Plaza",
        "description": "Famous for street food",
        "lat": 30.050000,
        "lng": 31.245000,
    },
)


class PlaceService:
    """Places always carry a coordinate and are never edited after creation."""

    def __init__(
        self, uow_factory: UnitOfWorkFactory, engine: ProximityQueryEngine | None = None
    ) -> None:
        self._uow_factory = uow_factory
        self._engine = engine or ProximityQueryEngine()

    async def create(
        self,
        *,
        name: str,
        description: str | None,
        latitude: Any,
        longitude: Any,
    ) -> PlaceOut:
        if latitude is None or longitude is None:
            raise MissingCoordinate("latitude and longitude are required")
        if not name or not name.strip():
            raise ValidationError("name is required")
        point = GeoPoint.parse(latitude, longitude)
        async with self._uow_factory() as uow:
            place_id = await uow.places.insert(
                NewPlace(name=name.strip(), description=description), point
            )
            record = await uow.places.get(place_id)
        if record is None:
            raise NotFoundError("Place not found")
        logger.info("place_created", place_id=place_id, lat=point.latitude, lng=point.longitude)
        return PlaceOut.from_record(record)

    async def list_all(self) -> list[PlaceOut]:
        async with self._uow_factory() as uow:
            records = await uow.places.list_all()
        return [PlaceOut.from_record(r) for r in records]

    async def get(self, place_id: int) -> PlaceOut:
        async with self._uow_factory() as uow:
            record = await uow.places.get(place_id)
        if record is None:
            raise NotFoundError("Place not found")
        return PlaceOut.from_record(record)

    async def find_nearby(
        self, *, lat: Any, lng: Any, radius_m: float = DEFAULT_RADIUS_M
    ) -> list[PlaceNearbyItem]:
        center = GeoPoint.parse(lat, lng)
        async with self._uow_factory() as uow:
            results = await self._engine.find_nearby(uow.places, center, radius_m)
        logger.info(
            "places_nearby",
            lat=center.latitude,
            lng=center.longitude,
            radius_m=float(radius_m),
            returned=len(results),
        )
        return [
            PlaceNearbyItem(**PlaceOut.from_record(r.entity).model_dump(), distance=r.distance_m)
            for r in results
        ]

    def distance(
        self, *, from_lat: Any, from_lng: Any, to_lat: Any, to_lng: Any
    ) -> DistanceResponse:
        a = GeoPoint.parse(from_lat, from_lng)
        b = GeoPoint.parse(to_lat, to_lng)
        return DistanceResponse(distance=self._engine.distance_between(a, b))

    async def seed_sample_places(self) -> list[int]:
        ids: list[int] = []
        async with self._uow_factory() as uow:
            for sample in SAMPLE_PLACES:
                point = GeoPoint.parse(sample["lat"], sample["lng"])
                ids.append(
                    await uow.places.insert(
                        NewPlace(name=sample["name"], description=sample["description"]), point
                    )
                )
        logger.info("places_seeded", count=len(ids))
        return ids
