"""Geodesic helpers shared by the in-memory store and the proximity engine."""

from __future__ import annotations

import math

from geographiclib.geodesic import Geodesic

from gigglemap.geo.point import GeoPoint

_WGS84 = Geodesic.WGS84
# Shortest degree of latitude on the WGS84 ellipsoid (at the equator), in meters.
_MIN_METERS_PER_DEG_LAT = 110_574.0

BBox = tuple[float, float, float, float]


def geodesic_distance_m(a: GeoPoint, b: GeoPoint) -> float:
    """Ellipsoidal (WGS84) geodesic distance in meters.

    Uses Karney's inverse solution, the same method PostGIS applies to
    ``ST_Distance(geography, geography)``. The pair is ordered before solving so
    that swapping the arguments yields the identical float.
    """

    if a == b:
        return 0.0
    p, q = sorted((a, b), key=lambda pt: (pt.latitude, pt.longitude))
    result = _WGS84.Inverse(p.latitude, p.longitude, q.latitude, q.longitude, Geodesic.DISTANCE)
    return float(result["s12"])


def bounding_box(center: GeoPoint, radius_m: float) -> BBox | None:
    """Conservative ``(min_lat, min_lng, max_lat, max_lng)`` around ``center``.

    Returns ``None`` when the circle reaches a pole or wraps the antimeridian,
    in which case callers fall back to checking every point.
    """

    dlat = radius_m / _MIN_METERS_PER_DEG_LAT
    min_lat = center.latitude - dlat
    max_lat = center.latitude + dlat
    if min_lat <= -90.0 or max_lat >= 90.0:
        return None
    # Longitude degrees shrink with latitude; size them at the widest latitude of the box.
    widest = max(abs(min_lat), abs(max_lat))
    dlng = dlat / max(math.cos(math.radians(widest)), 1e-12)
    min_lng = center.longitude - dlng
    max_lng = center.longitude + dlng
    if min_lng < -180.0 or max_lng > 180.0:
        return None
    return min_lat, min_lng, max_lat, max_lng


__all__ = ["BBox", "bounding_box", "geodesic_distance_m"]
