from __future__ import annotations

import asyncio

import pytest

from gigglemap.core.exceptions import ConflictError, MissingCoordinate, NotFoundError
from gigglemap.geo.distance import geodesic_distance_m
from gigglemap.geo.point import GeoPoint
from gigglemap.repositories.interfaces import NewPlace, NewUser
from gigglemap.repositories.memory import (
    InMemoryDatabase,
    InMemoryPlaceRepository,
    InMemoryUserRepository,
    SpatialGridIndex,
)

CENTER = GeoPoint(30.04, 31.23)


def _user(name: str, **kw) -> NewUser:
    return NewUser(username=name, email=f"{name}@example.com", password_hash="x", **kw)


def test_grid_index_matches_brute_force():
    index = SpatialGridIndex(cell_size_deg=0.01)
    points = {
        i: GeoPoint(30.0 + (i % 17) * 0.003, 31.2 + (i // 17) * 0.004) for i in range(1, 200)
    }
    for pid, p in points.items():
        index.put(pid, p)

    hits = index.within(CENTER, 1500)
    expected = sorted(
        (pid, geodesic_distance_m(CENTER, p))
        for pid, p in points.items()
        if geodesic_distance_m(CENTER, p) <= 1500
    )
    assert sorted(pid for pid, _ in hits) == [pid for pid, _ in expected]
    distances = [d for _, d in hits]
    assert distances == sorted(distances)


def test_grid_index_moves_and_discards():
    index = SpatialGridIndex()
    index.put(1, CENTER)
    index.put(1, GeoPoint(-10, -10))
    assert index.within(CENTER, 1000) == []
    assert [pid for pid, _ in index.within(GeoPoint(-10, -10), 1)] == [1]
    index.discard(1)
    index.discard(1)
    assert len(index) == 0


def test_grid_index_rejects_bad_cell_size():
    with pytest.raises(ValueError):
        SpatialGridIndex(cell_size_deg=0)


def test_grid_index_near_antimeridian_falls_back_to_scan():
    index = SpatialGridIndex()
    index.put(1, GeoPoint(0, -179.995))
    hits = index.within(GeoPoint(0, 179.995), 5000)
    assert [pid for pid, _ in hits] == [1]


@pytest.mark.asyncio
async def test_place_crud_and_radius_query():
    repo = InMemoryPlaceRepository(InMemoryDatabase())
    near = await repo.insert(NewPlace(name="near"), GeoPoint(30.041, 31.231))
    far = await repo.insert(NewPlace(name="far"), GeoPoint(31.0, 32.0))

    rows = await repo.query_within(CENTER, 5000)
    assert [r.id for r, _ in rows] == [near]

    await repo.update_coordinate(far, GeoPoint(30.0405, 31.2305))
    rows = await repo.query_within(CENTER, 5000)
    assert [r.id for r, _ in rows] == [far, near]

    await repo.remove(near)
    await repo.remove(near)
    assert await repo.get(near) is None
    assert [p.id for p in await repo.list_all()] == [far]
    assert await repo.query_within(CENTER, 0) == []


@pytest.mark.asyncio
async def test_place_requires_point_and_existing_id():
    repo = InMemoryPlaceRepository(InMemoryDatabase())
    with pytest.raises(MissingCoordinate):
        await repo.insert(NewPlace(name="x"))
    with pytest.raises(NotFoundError):
        await repo.update_coordinate(42, CENTER)


@pytest.mark.asyncio
async def test_get_returns_a_copy():
    repo = InMemoryPlaceRepository(InMemoryDatabase())
    pid = await repo.insert(NewPlace(name="a"), CENTER)
    record = await repo.get(pid)
    record.name = "mutated"
    assert (await repo.get(pid)).name == "a"


@pytest.mark.asyncio
async def test_users_without_point_never_match_radius_queries():
    repo = InMemoryUserRepository(InMemoryDatabase())
    located = await repo.insert(_user("located"), CENTER)
    await repo.insert(_user("nowhere"))
    rows = await repo.query_within(CENTER, 20_000_000)
    assert [u.id for u, _ in rows] == [located]


@pytest.mark.asyncio
async def test_user_duplicates_conflict():
    repo = InMemoryUserRepository(InMemoryDatabase())
    await repo.insert(_user("bob"))
    with pytest.raises(ConflictError):
        await repo.insert(NewUser(username="bob", email="other@example.com", password_hash="x"))
    with pytest.raises(ConflictError):
        await repo.insert(NewUser(username="bobby", email="bob@example.com", password_hash="x"))


@pytest.mark.asyncio
async def test_increment_stat_never_goes_negative():
    repo = InMemoryUserRepository(InMemoryDatabase())
    uid = await repo.insert(_user("carol"))
    await repo.increment_stat(uid, "like_count", 3)
    await repo.increment_stat(uid, "like_count", -10)
    assert (await repo.get(uid)).like_count == 0
    with pytest.raises(NotFoundError):
        await repo.increment_stat(999, "like_count", 1)


@pytest.mark.asyncio
async def test_concurrent_increments_are_not_lost():
    repo = InMemoryUserRepository(InMemoryDatabase())
    uid = await repo.insert(_user("dave"))
    await asyncio.gather(*(repo.increment_stat(uid, "story_count", 1) for _ in range(50)))
    assert (await repo.get(uid)).story_count == 50


@pytest.mark.asyncio
async def test_search_ranking():
    repo = InMemoryUserRepository(InMemoryDatabase())
    other = await repo.insert(_user("xannax", full_name="Someone"))
    prefix = await repo.insert(_user("annabel"))
    exact = await repo.insert(_user("anna"))
    name_exact = await repo.insert(_user("zed", full_name="Anna"))
    await repo.insert(_user("unrelated"))

    found = await repo.search("ANNA", limit=10)
    assert [u.id for u in found] == [exact, name_exact, prefix, other]
    assert len(await repo.search("anna", limit=2)) == 2


@pytest.mark.asyncio
async def test_search_breaks_rank_ties_by_stories_then_likes():
    db = InMemoryDatabase()
    repo = InMemoryUserRepository(db)
    a = await repo.insert(_user("sam_a"))
    b = await repo.insert(_user("sam_b"))
    c = await repo.insert(_user("sam_c"))
    await repo.increment_stat(c, "story_count", 2)
    await repo.increment_stat(b, "like_count", 1)
    found = await repo.search("sam", limit=10)
    assert [u.id for u in found] == [c, b, a]
