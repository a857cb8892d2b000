# tests/conftest.py
import os

# The app reads its settings at import time; pin the in-memory store before importing it
os.environ.setdefault("APP_ENV", "test")
os.environ["STORE_BACKEND"] = "memory"
os.environ["TESTING"] = "1"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["JWT_SECRET"] = "test-secret-key-with-at-least-32-bytes"

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from gigglemap.core.config import Settings, get_settings
from gigglemap.main import create_app
from gigglemap.middleware.rate_limit import reset_rate_limits

get_settings.cache_clear()


class FakeAvatarStorage:
    """Records uploads/deletes instead of calling the image host."""

    def __init__(self) -> None:
        self.uploads: list[tuple[int, bytes]] = []
        self.deleted: list[str] = []

    async def upload(self, content: bytes, *, user_id: int) -> str:
        self.uploads.append((user_id, content))
        n = len(self.uploads)
        return (
            "https://res.cloudinary.com/demo/image/upload/v1/"
            f"gigglemap/avatars/user_{user_id}_avatar_{n}.jpg"
        )

    async def delete(self, url: str) -> bool:
        self.deleted.append(url)
        return True


@pytest.fixture
def settings() -> Settings:
    return Settings(
        app_env="test",
        store_backend="memory",
        bcrypt_rounds=4,
        jwt_secret="test-secret-key-with-at-least-32-bytes",
    )


@pytest.fixture
def avatar_storage() -> FakeAvatarStorage:
    return FakeAvatarStorage()


@pytest.fixture
def app(settings, avatar_storage):
    reset_rate_limits()
    return create_app(settings, avatar_storage=avatar_storage)


@pytest_asyncio.fixture
async def app_client(app):
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


@pytest.fixture
def make_user(app_client):
    """Register + log in; returns ``(user_json, bearer_headers)``."""

    async def _make(username: str = "alice", password: str = "secret123", **extra):
        body = {
            "username": username,
            "email": f"{username}@example.com",
            "password": password,
            **extra,
        }
        res = await app_client.post("/users/register", json=body)
        assert res.status_code == 201, res.text
        res = await app_client.post(
            "/users/login", json={"emailOrUsername": username, "password": password}
        )
        assert res.status_code == 200, res.text
        data = res.json()
        return data["user"], {"Authorization": f"Bearer {data['token']}"}

    return _make
