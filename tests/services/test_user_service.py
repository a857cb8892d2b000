from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from gigglemap.core.exceptions import (
    AuthenticationError,
    ConflictError,
    InvalidCoordinate,
    NotFoundError,
    ValidationError,
)
from gigglemap.infra.unit_of_work import InMemoryUnitOfWork
from gigglemap.repositories.memory import InMemoryDatabase
from gigglemap.services.security import TokenService
from gigglemap.services.users import UserService

SECRET = "unit-test-secret-key-of-32-bytes!!"


class RecordingAvatars:
    def __init__(self, delete_ok: bool = True):
        self.delete_ok = delete_ok
        self.uploaded: list[int] = []
        self.deleted: list[str] = []

    async def upload(self, content: bytes, *, user_id: int) -> str:
        self.uploaded.append(user_id)
        n = len(self.uploaded)
        return f"https://res.cloudinary.com/demo/image/upload/v1/a/u{user_id}_{n}.png"

    async def delete(self, url: str) -> bool:
        self.deleted.append(url)
        return self.delete_ok


@pytest.fixture
def db():
    return InMemoryDatabase()


@pytest.fixture
def avatars():
    return RecordingAvatars()


@pytest.fixture
def tokens():
    return TokenService(secret=SECRET)


@pytest.fixture
def service(db, avatars, tokens):
    return UserService(
        lambda: InMemoryUnitOfWork(db), tokens=tokens, avatars=avatars, password_rounds=4
    )


async def _register(service, name="alice", **kw):
    return await service.register(
        username=name, email=f"{name}@example.com", password="secret123", **kw
    )


@pytest.mark.asyncio
async def test_register_hides_hash_and_login_issues_token(service, tokens):
    user = await _register(service, full_name="Alice A")
    assert user.email == "alice@example.com"
    assert "password_hash" not in user.model_dump()

    profile, token = await service.login(
        email_or_username="alice@example.com", password="secret123"
    )
    assert profile.id == user.id
    payload = tokens.decode(token)
    assert payload["userId"] == user.id
    assert payload["username"] == "alice"

    current = await service.authenticate(token)
    assert current.id == user.id


@pytest.mark.asyncio
async def test_register_rejects_duplicates_and_short_password(service):
    await _register(service)
    with pytest.raises(ConflictError):
        await service.register(username="alice", email="new@example.com", password="secret123")
    with pytest.raises(ValidationError):
        await service.register(username="bob", email="bob@example.com", password="123")
    with pytest.raises(ValidationError):
        await service.register(username="bo", email="bo@example.com", password="secret123")


@pytest.mark.asyncio
async def test_login_failures_share_one_message(service):
    await _register(service)
    for login, password in (("alice", "wrong-pass"), ("nobody", "secret123")):
        with pytest.raises(AuthenticationError) as exc:
            await service.login(email_or_username=login, password=password)
        assert str(exc.value) == "Invalid email/username or password"


@pytest.mark.asyncio
async def test_authenticate_errors(service, tokens):
    with pytest.raises(AuthenticationError, match="Access token required"):
        await service.authenticate(None)
    with pytest.raises(AuthenticationError, match="Invalid token"):
        await service.authenticate("not-a-jwt")
    expired = tokens.issue(
        user_id=1, username="x", now=datetime.now(timezone.utc) - timedelta(days=30)
    )
    with pytest.raises(AuthenticationError, match="Token expired"):
        await service.authenticate(expired)
    orphan = tokens.issue(user_id=999, username="ghost")
    with pytest.raises(AuthenticationError, match="User not found"):
        await service.authenticate(orphan)


@pytest.mark.asyncio
async def test_update_profile_sets_point_and_fields(service):
    user = await _register(service)
    profile = await service.update_profile(
        user.id, {"bio": "hi", "city": "Cairo", "latitude": 30.04, "longitude": 31.23}
    )
    assert profile.bio == "hi"
    assert profile.city == "Cairo"
    assert profile.coordinates == "POINT(31.23 30.04)"


@pytest.mark.asyncio
async def test_update_profile_partial_pair_is_rejected(service):
    user = await _register(service)
    with pytest.raises(InvalidCoordinate):
        await service.update_profile(user.id, {"latitude": 30.0})
    with pytest.raises(NotFoundError):
        await service.update_profile(999, {"bio": "x"})


@pytest.mark.asyncio
async def test_nearby_rounds_distance_and_skips_unlocated(service):
    a = await _register(service, "near")
    b = await _register(service, "far")
    await _register(service, "nowhere")
    await service.update_profile(a.id, {"latitude": 30.041, "longitude": 31.23})
    await service.update_profile(b.id, {"latitude": 30.2, "longitude": 31.23})

    res = await service.nearby(lat=30.04, lng=31.23)
    assert res.count == 1
    assert res.radius == 10000.0
    assert [u.username for u in res.users] == ["near"]
    assert isinstance(res.users[0].distance, int)
    assert 100 < res.users[0].distance < 120


@pytest.mark.asyncio
async def test_nearby_limit_is_clamped_and_validated(service):
    for i in range(3):
        u = await _register(service, f"user{i}")
        await service.update_profile(u.id, {"latitude": 30.04, "longitude": 31.23 + i * 0.001})
    res = await service.nearby(lat=30.04, lng=31.23, limit=2)
    assert res.count == 2
    res = await service.nearby(lat=30.04, lng=31.23, limit=1000)
    assert res.count == 3
    with pytest.raises(ValidationError):
        await service.nearby(lat=30.04, lng=31.23, limit=0)
    assert (await service.nearby(lat=30.04, lng=31.23, radius_m=0)).count == 0


@pytest.mark.asyncio
async def test_search_requires_two_characters(service):
    await _register(service, "alice")
    with pytest.raises(ValidationError):
        await service.search(" a ")
    res = await service.search("  ali ")
    assert res.query == "ali"
    assert [u.username for u in res.users] == ["alice"]


@pytest.mark.asyncio
async def test_update_stats(service):
    user = await _register(service)
    profile = await service.update_stats(user.id, "likeCount", 5)
    assert profile.like_count == 5
    profile = await service.update_stats(user.id, "likeCount", -9)
    assert profile.like_count == 0
    with pytest.raises(ValidationError):
        await service.update_stats(user.id, "viewCount", 1)
    with pytest.raises(ValidationError):
        await service.update_stats(user.id, None, 1)
    with pytest.raises(NotFoundError):
        await service.update_stats(999, "likeCount", 1)
    engagement = await service.engagement(user.id)
    assert engagement.like_count == 0


@pytest.mark.asyncio
async def test_upload_avatar_replaces_previous(service, avatars):
    user = await _register(service)
    first = await service.upload_avatar(user.id, content=b"img", content_type="image/png")
    second = await service.upload_avatar(user.id, content=b"img2", content_type="image/jpeg")
    assert first.avatar_url != second.avatar_url
    assert "w_200,h_200,c_fill,g_face,q_auto,f_auto" in second.avatar_url
    assert len(avatars.deleted) == 1
    with pytest.raises(ValidationError):
        await service.upload_avatar(user.id, content=b"text", content_type="text/plain")
    with pytest.raises(ValidationError):
        await service.upload_avatar(user.id, content=b"", content_type="image/png")


@pytest.mark.asyncio
async def test_delete_removes_user_from_nearby(service, avatars):
    user = await _register(service)
    await service.update_profile(user.id, {"latitude": 30.04, "longitude": 31.23})
    await service.upload_avatar(user.id, content=b"img", content_type="image/png")
    assert (await service.nearby(lat=30.04, lng=31.23)).count == 1

    await service.delete(user.id)
    await service.delete(user.id)
    assert (await service.nearby(lat=30.04, lng=31.23)).count == 0
    assert len(avatars.deleted) == 1
    with pytest.raises(NotFoundError):
        await service.get_profile(user.id)


@pytest.mark.asyncio
async def test_delete_survives_avatar_host_failure(db, tokens):
    avatars = RecordingAvatars(delete_ok=False)
    service = UserService(
        lambda: InMemoryUnitOfWork(db), tokens=tokens, avatars=avatars, password_rounds=4
    )
    user = await _register(service)
    await service.upload_avatar(user.id, content=b"img", content_type="image/png")
    await service.delete(user.id)
    with pytest.raises(NotFoundError):
        await service.get_profile(user.id)
