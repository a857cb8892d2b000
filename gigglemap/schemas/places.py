from __future__ import annotations

from pydantic import BaseModel, Field

from gigglemap.repositories.interfaces import PlaceRecord


class PlaceCreateRequest(BaseModel):
    name: str = Field(min_length=1, max_length=200, description="Place name")
    description: str | None = Field(default=None, description="Free text description")
    latitude: float | None = Field(default=None, description="Latitude (-90..90)")
    longitude: float | None = Field(default=None, description="Longitude (-180..180)")


class PlaceOut(BaseModel):
    id: int = Field(description="Place ID")
    name: str = Field(description="Name")
    description: str | None = Field(default=None, description="Description")
    location: str = Field(description="WKT point, POINT(lng lat)")
    latitude: float = Field(description="Latitude")
    longitude: float = Field(description="Longitude")

    @classmethod
    def from_record(cls, record: PlaceRecord) -> PlaceOut:
        return cls(
            id=record.id,
            name=record.name,
            description=record.description,
            location=record.point.to_wkt(),
            latitude=record.point.latitude,
            longitude=record.point.longitude,
        )


class PlaceNearbyItem(PlaceOut):
    distance: float = Field(description="Geodesic distance from the search center (meters)")


class PlaceCreatedResponse(BaseModel):
    message: str = Field(description="Outcome")
    place: PlaceOut


class DistanceResponse(BaseModel):
    distance: float = Field(description="Geodesic distance (meters)")

    model_config = {"json_schema_extra": {"examples": [{"distance": 2184.35}]}}
