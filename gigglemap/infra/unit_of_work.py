"""Unit of Work abstraction used by the service layer."""

from __future__ import annotations

from collections.abc import Callable
from contextlib import AbstractAsyncContextManager
from typing import Protocol

import structlog
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from gigglemap.core.exceptions import InfrastructureError
from gigglemap.repositories.interfaces import PlaceRepository, UserRepository
from gigglemap.repositories.memory import (
    InMemoryDatabase,
    InMemoryPlaceRepository,
    InMemoryUserRepository,
)
from gigglemap.repositories.sqlalchemy import (
    SqlAlchemyPlaceRepository,
    SqlAlchemyUserRepository,
)

logger = structlog.get_logger(__name__)


class UnitOfWork(Protocol, AbstractAsyncContextManager["UnitOfWork"]):
    """Defines the repository boundary exposed to services."""

    places: PlaceRepository
    users: UserRepository

    async def commit(self) -> None: ...

    async def rollback(self) -> None: ...

    async def ping(self) -> None: ...


UnitOfWorkFactory = Callable[[], UnitOfWork]


class SqlAlchemyUnitOfWork(UnitOfWork):
    """Unit of Work backed by SQLAlchemy async sessions."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory
        self._session: AsyncSession | None = None
        self.places: PlaceRepository
        self.users: UserRepository

    async def __aenter__(self) -> SqlAlchemyUnitOfWork:
        session = self._session_factory()
        self._session = session
        self.places = SqlAlchemyPlaceRepository(session)
        self.users = SqlAlchemyUserRepository(session)
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        if self._session is None:
            return
        try:
            if exc_type:
                await self._session.rollback()
            else:
                await self._session.commit()
        except SQLAlchemyError as commit_exc:
            logger.error("uow_commit_failed", error=str(commit_exc))
            raise InfrastructureError("Database error") from commit_exc
        finally:
            await self._session.close()
            self._session = None
        if isinstance(exc, SQLAlchemyError):
            logger.error("uow_storage_error", error=str(exc))
            raise InfrastructureError("Database error") from exc

    async def commit(self) -> None:
        if self._session is not None:
            await self._session.commit()

    async def rollback(self) -> None:
        if self._session is not None:
            await self._session.rollback()

    async def ping(self) -> None:
        await self.session.execute(text("SELECT 1"))

    @property
    def session(self) -> AsyncSession:
        if self._session is None:
            raise RuntimeError("UnitOfWork session is not initialized. Use within context manager.")
        return self._session


class InMemoryUnitOfWork(UnitOfWork):
    """Unit of Work over an ``InMemoryDatabase``; writes apply immediately."""

    def __init__(self, db: InMemoryDatabase) -> None:
        self._db = db
        self.places = InMemoryPlaceRepository(db)
        self.users = InMemoryUserRepository(db)

    async def __aenter__(self) -> InMemoryUnitOfWork:
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        return None

    async def commit(self) -> None:
        return None

    async def rollback(self) -> None:
        return None

    async def ping(self) -> None:
        return None
