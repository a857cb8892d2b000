"""/places routers that delegate to PlaceService via DI."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query, status

from gigglemap.api.deps import get_place_service
from gigglemap.schemas.common import ErrorResponse, MessageResponse
from gigglemap.schemas.places import (
    DistanceResponse,
    PlaceCreatedResponse,
    PlaceCreateRequest,
    PlaceNearbyItem,
    PlaceOut,
)
from gigglemap.services.places import DEFAULT_RADIUS_M, PlaceService

router = APIRouter(prefix="/places", tags=["places"])

# Separate router so create_app() can leave it out in prod
seed_router = APIRouter(prefix="/places", tags=["places"])

_BAD_REQUEST = {400: {"model": ErrorResponse, "description": "invalid or missing coordinate"}}


@router.post(
    "",
    status_code=status.HTTP_201_CREATED,
    response_model=PlaceCreatedResponse,
    summary="Create a place",
    responses=_BAD_REQUEST,
)
async def create_place(
    payload: PlaceCreateRequest,
    svc: PlaceService = Depends(get_place_service),
):
    place = await svc.create(
        name=payload.name,
        description=payload.description,
        latitude=payload.latitude,
        longitude=payload.longitude,
    )
    return PlaceCreatedResponse(message="Place created successfully", place=place)


@router.get("", response_model=list[PlaceOut], summary="List all places")
async def list_places(svc: PlaceService = Depends(get_place_service)):
    return await svc.list_all()


@router.get(
    "/nearby/search",
    response_model=list[PlaceNearbyItem],
    summary="Places within a radius",
    description=(
        "Every place whose point lies within `radius` geodesic meters (WGS84) of "
        "`lat`/`lng`, nearest first. `radius <= 0` yields an empty list."
    ),
    responses=_BAD_REQUEST,
)
async def nearby_places(
    lat: str | None = Query(None, description="Latitude of the center"),
    lng: str | None = Query(None, description="Longitude of the center"),
    radius: float = Query(DEFAULT_RADIUS_M, description="Search radius in meters"),
    svc: PlaceService = Depends(get_place_service),
):
    return await svc.find_nearby(lat=lat, lng=lng, radius_m=radius)


@router.get(
    "/route/distance",
    response_model=DistanceResponse,
    summary="Geodesic distance between two points",
    responses=_BAD_REQUEST,
)
async def route_distance(
    from_lat: str | None = Query(None, alias="fromLat"),
    from_lng: str | None = Query(None, alias="fromLng"),
    to_lat: str | None = Query(None, alias="toLat"),
    to_lng: str | None = Query(None, alias="toLng"),
    svc: PlaceService = Depends(get_place_service),
):
    return svc.distance(from_lat=from_lat, from_lng=from_lng, to_lat=to_lat, to_lng=to_lng)


@router.get(
    "/{place_id}",
    response_model=PlaceOut,
    summary="Place detail",
    responses={404: {"model": ErrorResponse, "description": "Place not found"}},
)
async def get_place(place_id: int, svc: PlaceService = Depends(get_place_service)):
    return await svc.get(place_id)


@seed_router.post(
    "/seed",
    status_code=status.HTTP_201_CREATED,
    response_model=MessageResponse,
    summary="Insert the three sample places (non-prod only)",
)
async def seed_places(svc: PlaceService = Depends(get_place_service)):
    await svc.seed_sample_places()
    return MessageResponse(message="Test data seeded successfully")
