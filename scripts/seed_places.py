"""Seed the three sample places (City Square, Library Park, Food Plaza).

Uses the configured store (``DATABASE_URL`` / ``STORE_BACKEND``). Not idempotent:
running it twice inserts the samples twice.
"""

from __future__ import annotations

import argparse
import asyncio

import structlog

from gigglemap.core.config import get_settings
from gigglemap.db import create_engine_from_url, create_session_factory
from gigglemap.infra.unit_of_work import SqlAlchemyUnitOfWork
from gigglemap.logging import setup_logging
from gigglemap.services.places import PlaceService

logger = structlog.get_logger(__name__)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Seed sample places into PostGIS.")
    parser.add_argument(
        "--database-url",
        default=None,
        help="Override DATABASE_URL (any postgres:// form is accepted).",
    )
    parser.add_argument(
        "--allow-prod",
        action="store_true",
        help="Permit seeding when APP_ENV=prod.",
    )
    return parser.parse_args(argv)


async def async_main(args: argparse.Namespace) -> int:
    settings = get_settings()
    engine = create_engine_from_url(args.database_url or settings.database_url)
    session_factory = create_session_factory(engine)
    try:
        svc = PlaceService(lambda: SqlAlchemyUnitOfWork(session_factory))
        ids = await svc.seed_sample_places()
    finally:
        await engine.dispose()
    logger.info("seed_places_done", ids=ids)
    return 0


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    settings = get_settings()
    setup_logging(app_env=settings.app_env)

    if settings.is_prod and not args.allow_prod:
        logger.error("seed_places_refused", reason="APP_ENV=prod (pass --allow-prod)")
        return 1

    try:
        return asyncio.run(async_main(args))
    except Exception:  # noqa: BLE001
        logger.exception("seed_places_failed")
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
