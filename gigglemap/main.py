from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import sentry_sdk
import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from sentry_sdk.integrations.starlette import StarletteIntegration
from slowapi.errors import RateLimitExceeded
from starlette.middleware.cors import CORSMiddleware

from gigglemap.api import errors
from gigglemap.api.routers.healthz import router as healthz_router
from gigglemap.api.routers.places import router as places_router
from gigglemap.api.routers.places import seed_router as places_seed_router
from gigglemap.api.routers.readyz import router as readyz_router
from gigglemap.api.routers.users import router as users_router
from gigglemap.core.config import Settings, get_settings
from gigglemap.core.startup import mark_migrations_not_required, run_database_migrations
from gigglemap.db import create_engine_from_url, create_session_factory
from gigglemap.infra.unit_of_work import InMemoryUnitOfWork, SqlAlchemyUnitOfWork
from gigglemap.logging import setup_logging
from gigglemap.middleware.rate_limit import limiter, rate_limit_middleware
from gigglemap.middleware.request_id import request_id_middleware
from gigglemap.middleware.security_headers import security_headers_middleware
from gigglemap.repositories.memory import InMemoryDatabase
from gigglemap.services.avatars import AvatarStorage, CloudinaryAvatarStorage
from gigglemap.services.security import TokenService

logger = structlog.get_logger(__name__)


def _init_sentry(settings: Settings) -> None:
    if not settings.sentry_dsn:
        return
    sentry_sdk.init(
        dsn=settings.sentry_dsn,
        environment=settings.app_env,
        release=settings.release,
        integrations=[StarletteIntegration()],
        traces_sample_rate=settings.traces_rate,
        send_default_pii=False,
    )


def _wire_store(app: FastAPI, settings: Settings) -> None:
    """Build the unit-of-work factory eagerly so the app serves without a lifespan run."""

    app.state.engine = None
    if settings.store_backend == "memory":
        db = InMemoryDatabase()
        app.state.memory_db = db
        app.state.uow_factory = lambda: InMemoryUnitOfWork(db)
        return
    engine = create_engine_from_url(settings.database_url)
    session_factory = create_session_factory(engine)
    app.state.engine = engine
    app.state.uow_factory = lambda: SqlAlchemyUnitOfWork(session_factory)


@asynccontextmanager
async def _lifespan(app: FastAPI) -> AsyncIterator[None]:
    settings: Settings = app.state.settings
    if settings.run_migrations and settings.store_backend == "postgis":
        run_database_migrations(settings)
    logger.info("app_startup", env=settings.app_env, store=settings.store_backend)
    try:
        yield
    finally:
        if app.state.engine is not None:
            await app.state.engine.dispose()
        logger.info("app_shutdown")


def create_app(
    settings: Settings | None = None, *, avatar_storage: AvatarStorage | None = None
) -> FastAPI:
    settings = settings or get_settings()
    setup_logging(app_env=settings.app_env)
    _init_sentry(settings)

    app = FastAPI(title="gigglemap", lifespan=_lifespan)
    app.state.settings = settings
    app.state.limiter = limiter
    app.state.tokens = TokenService.from_settings(settings)
    app.state.avatar_storage = avatar_storage or CloudinaryAvatarStorage.from_settings(settings)
    _wire_store(app, settings)
    if not (settings.run_migrations and settings.store_backend == "postgis"):
        mark_migrations_not_required("disabled")

    errors.install(app)

    app.middleware("http")(request_id_middleware)
    app.middleware("http")(security_headers_middleware)
    app.middleware("http")(rate_limit_middleware)
    if settings.cors_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=settings.cors_origins,
            allow_credentials=True,
            allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS", "HEAD"],
            allow_headers=["*"],
        )

    app.include_router(places_router)
    app.include_router(users_router)
    app.include_router(healthz_router)
    app.include_router(readyz_router)
    if not settings.is_prod:
        app.include_router(places_seed_router)

    @app.get("/health")
    def health():
        return {"status": "ok", "env": settings.app_env}

    @app.exception_handler(RateLimitExceeded)
    async def _rate_limit_handler(request: Request, exc: RateLimitExceeded):
        return JSONResponse(status_code=429, content={"error": "Too Many Requests"})

    return app


app = create_app()
