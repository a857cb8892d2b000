"""Validated WGS84 coordinates and their WKT form."""

from __future__ import annotations

import math
import re
from dataclasses import dataclass
from typing import Any

from gigglemap.core.exceptions import InvalidCoordinate

SRID = 4326

_WKT_POINT = re.compile(
    r"^\s*(?:SRID\s*=\s*(?P<srid>\d+)\s*;\s*)?POINT\s*\(\s*(?P<x>\S+)\s+(?P<y>\S+)\s*\)\s*$",
    re.IGNORECASE,
)


def _coerce(value: Any, name: str, bound: float) -> float:
    if value is None or (isinstance(value, str) and not value.strip()):
        raise InvalidCoordinate(f"{name} is required")
    if isinstance(value, bool):
        raise InvalidCoordinate(f"{name} must be a number")
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise InvalidCoordinate(f"{name} must be a number") from None
    if not math.isfinite(number):
        raise InvalidCoordinate(f"{name} must be a finite number")
    if not -bound <= number <= bound:
        raise InvalidCoordinate(f"{name} must be between {-bound:g} and {bound:g}")
    return number


@dataclass(frozen=True, slots=True)
class GeoPoint:
    latitude: float
    longitude: float

    def __post_init__(self) -> None:
        object.__setattr__(self, "latitude", _coerce(self.latitude, "latitude", 90.0))
        object.__setattr__(self, "longitude", _coerce(self.longitude, "longitude", 180.0))

    @classmethod
    def parse(cls, latitude: Any, longitude: Any) -> GeoPoint:
        """Build a point from numbers or numeric strings, raising ``InvalidCoordinate``."""

        return cls(latitude, longitude)

    @classmethod
    def from_wkt(cls, text: str) -> GeoPoint:
        """Parse ``POINT(lng lat)`` (optionally ``SRID=4326;``-prefixed) as emitted by PostGIS."""

        match = _WKT_POINT.match(text or "")
        if match is None:
            raise InvalidCoordinate(f"not a WKT point: {text!r}")
        srid = match.group("srid")
        if srid is not None and int(srid) != SRID:
            raise InvalidCoordinate(f"unsupported SRID {srid}")
        # WKT is x/y order: longitude first
        return cls(match.group("y"), match.group("x"))

    def to_wkt(self) -> str:
        return f"POINT({self.longitude!r} {self.latitude!r})"

    def to_ewkt(self) -> str:
        return f"SRID={SRID};{self.to_wkt()}"

    def as_dict(self) -> dict[str, float]:
        return {"latitude": self.latitude, "longitude": self.longitude}


def parse_optional_point(latitude: Any, longitude: Any) -> GeoPoint | None:
    """Both halves or neither: a lone latitude or longitude is rejected."""

    if latitude is None and longitude is None:
        return None
    if latitude is None or longitude is None:
        raise InvalidCoordinate("latitude and longitude must be provided together")
    return GeoPoint.parse(latitude, longitude)


__all__ = ["SRID", "GeoPoint", "parse_optional_point"]
