"""PostGIS fixtures; every test here is skipped unless TEST_DATABASE_URL is set."""

from __future__ import annotations

import os
from collections.abc import AsyncIterator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine

from gigglemap.core.config import Settings
from gigglemap.db import create_engine_from_url, create_session_factory
from gigglemap.infra.unit_of_work import SqlAlchemyUnitOfWork
from gigglemap.main import create_app
from gigglemap.models import Base


def _test_url() -> str:
    url = os.getenv("TEST_DATABASE_URL")
    if not url:
        pytest.skip("TEST_DATABASE_URL is required for PostGIS integration tests")
    return url


@pytest_asyncio.fixture
async def pg_engine() -> AsyncIterator[AsyncEngine]:
    engine = create_engine_from_url(_test_url())
    async with engine.begin() as conn:
        await conn.execute(text("CREATE EXTENSION IF NOT EXISTS postgis"))
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)
    try:
        yield engine
    finally:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)
        await engine.dispose()


@pytest.fixture
def uow_factory(pg_engine):
    session_factory = create_session_factory(pg_engine)
    return lambda: SqlAlchemyUnitOfWork(session_factory)


@pytest_asyncio.fixture
async def pg_client(pg_engine, avatar_storage) -> AsyncIterator[AsyncClient]:
    settings = Settings(
        app_env="test",
        store_backend="postgis",
        database_url=_test_url(),
        bcrypt_rounds=4,
        jwt_secret="test-secret-key-with-at-least-32-bytes",
    )
    app = create_app(settings, avatar_storage=avatar_storage)
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    await app.state.engine.dispose()
