from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Generic, Protocol, TypeVar

import structlog

from gigglemap.core.exceptions import ValidationError
from gigglemap.geo.distance import geodesic_distance_m
from gigglemap.geo.point import GeoPoint
from gigglemap.repositories.interfaces import SpatialStore

logger = structlog.get_logger(__name__)

T = TypeVar("T")


class _HasId(Protocol):
    id: int


@dataclass(frozen=True)
class ProximityResult(Generic[T]):
    entity: T
    distance_m: float


def resolve_limit(limit: int | None, *, default: int | None, maximum: int | None) -> int | None:
    """Apply an entity type's default and ceiling to a caller-supplied limit.

    ``None`` in, ``default`` out. Values above ``maximum`` are clamped rather than
    rejected; zero or negative limits are a caller error.
    """

    if limit is None:
        return default
    if limit <= 0:
        raise ValidationError("limit must be a positive integer")
    if maximum is not None:
        return min(limit, maximum)
    return limit


class ProximityQueryEngine:
    """Radius search and point-to-point distance over a ``SpatialStore``.

    Stateless: one store query per call, no retries. Ordering is ascending
    distance with the entity id breaking exact ties, so equal distances come
    back in insertion order whatever order the index yields them in.
    """

    async def find_nearby(
        self,
        store: SpatialStore[Any, T],
        center: GeoPoint,
        radius_m: float,
        limit: int | None = None,
    ) -> list[ProximityResult[T]]:
        if not math.isfinite(radius_m):
            raise ValidationError("radius must be a finite number")
        if radius_m <= 0:
            return []
        rows = await store.query_within(center, float(radius_m))
        results = [
            ProximityResult(entity=entity, distance_m=float(distance))
            for entity, distance in rows
            if distance <= radius_m
        ]
        results.sort(key=lambda r: (r.distance_m, _entity_id(r.entity)))
        if limit is not None:
            results = results[:limit]
        logger.debug(
            "proximity_search",
            lat=center.latitude,
            lng=center.longitude,
            radius_m=float(radius_m),
            returned=len(results),
        )
        return results

    def distance_between(self, a: GeoPoint, b: GeoPoint) -> float:
        return geodesic_distance_m(a, b)


def _entity_id(entity: _HasId | Any) -> int:
    return int(getattr(entity, "id", 0))
