"""Coordinate model and geodesic math."""

from .distance import bounding_box, geodesic_distance_m
from .point import SRID, GeoPoint, parse_optional_point

__all__ = ["SRID", "GeoPoint", "bounding_box", "geodesic_distance_m", "parse_optional_point"]
