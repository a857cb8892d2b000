from __future__ import annotations

import asyncio

import pytest

from gigglemap.core.exceptions import ConflictError, InfrastructureError, NotFoundError
from gigglemap.geo.distance import geodesic_distance_m
from gigglemap.geo.point import GeoPoint
from gigglemap.repositories.interfaces import NewPlace, NewUser
from gigglemap.services.places import SAMPLE_PLACES
from gigglemap.services.proximity import ProximityQueryEngine

CENTER = GeoPoint(30.04, 31.23)


def _user(name: str, **kw) -> NewUser:
    return NewUser(username=name, email=f"{name}@example.com", password_hash="x", **kw)


@pytest.mark.asyncio
async def test_place_distances_match_local_geodesic(uow_factory):
    async with uow_factory() as uow:
        for sample in SAMPLE_PLACES:
            await uow.places.insert(
                NewPlace(name=sample["name"]), GeoPoint(sample["lat"], sample["lng"])
            )

    async with uow_factory() as uow:
        results = await ProximityQueryEngine().find_nearby(uow.places, CENTER, 5000)

    assert [r.entity.name for r in results] == ["City Square", "Library Park", "Food Plaza"]
    for r in results:
        assert r.distance_m == pytest.approx(geodesic_distance_m(CENTER, r.entity.point), abs=0.01)


@pytest.mark.asyncio
async def test_place_round_trip_and_missing_ids(uow_factory):
    point = GeoPoint(-33.868819927, 151.209295543)
    async with uow_factory() as uow:
        pid = await uow.places.insert(NewPlace(name="Sydney", description="harbour"), point)
    async with uow_factory() as uow:
        record = await uow.places.get(pid)
        assert await uow.places.get(pid + 1000) is None
    assert abs(record.point.latitude - point.latitude) <= 1e-9
    assert abs(record.point.longitude - point.longitude) <= 1e-9

    with pytest.raises(NotFoundError):
        async with uow_factory() as uow:
            await uow.places.update_coordinate(pid + 1000, point)

    async with uow_factory() as uow:
        await uow.places.remove(pid)
        await uow.places.remove(pid)
        assert await uow.places.query_within(point, 1000) == []


@pytest.mark.asyncio
async def test_users_without_location_are_not_returned(uow_factory):
    async with uow_factory() as uow:
        located = await uow.users.insert(_user("located"), CENTER)
        await uow.users.insert(_user("nowhere"))
    async with uow_factory() as uow:
        rows = await uow.users.query_within(CENTER, 1000)
    assert [u.id for u, _ in rows] == [located]


@pytest.mark.asyncio
async def test_duplicate_username_is_conflict(uow_factory):
    async with uow_factory() as uow:
        await uow.users.insert(_user("bob"))
    with pytest.raises((ConflictError, InfrastructureError)):
        async with uow_factory() as uow:
            await uow.users.insert(
                NewUser(username="bob", email="other@example.com", password_hash="x")
            )


@pytest.mark.asyncio
async def test_concurrent_increments_clamp_at_zero(uow_factory):
    async with uow_factory() as uow:
        uid = await uow.users.insert(_user("carol"))

    async def bump(delta: int) -> None:
        async with uow_factory() as uow:
            await uow.users.increment_stat(uid, "like_count", delta)

    await asyncio.gather(*(bump(1) for _ in range(10)))
    await bump(-100)
    async with uow_factory() as uow:
        assert (await uow.users.get(uid)).like_count == 0
    await asyncio.gather(*(bump(1) for _ in range(5)))
    async with uow_factory() as uow:
        assert (await uow.users.get(uid)).like_count == 5


@pytest.mark.asyncio
async def test_search_ranking(uow_factory):
    async with uow_factory() as uow:
        other = await uow.users.insert(_user("xannax", full_name="Someone"))
        prefix = await uow.users.insert(_user("annabel"))
        exact = await uow.users.insert(_user("anna"))
        name_exact = await uow.users.insert(_user("zed", full_name="Anna"))
        await uow.users.insert(_user("plain_100%"))
    async with uow_factory() as uow:
        found = await uow.users.search("ANNA", limit=10)
        pct = await uow.users.search("%", limit=10)
    assert [u.id for u in found] == [exact, name_exact, prefix, other]
    assert [u.username for u in pct] == ["plain_100%"]


@pytest.mark.asyncio
async def test_api_against_postgis(pg_client):
    assert (await pg_client.get("/readyz")).json() == {"ok": True}
    assert (await pg_client.post("/places/seed")).status_code == 201
    res = await pg_client.get("/places/nearby/search", params={"lat": 30.04, "lng": 31.23})
    assert [p["name"] for p in res.json()] == ["City Square", "Library Park", "Food Plaza"]
