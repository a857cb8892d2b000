"""Alembic upgrade at startup, tracked for ``/readyz``."""

from __future__ import annotations

import os
import subprocess
import threading
import time
from dataclasses import dataclass
from functools import partial

import structlog
from structlog.stdlib import BoundLogger

from gigglemap.core.config import Settings

UPGRADE_COMMAND = ("alembic", "upgrade", "head")


@dataclass
class MigrationState:
    completed: bool = False
    error: str | None = None
    worker: threading.Thread | None = None

    def finish(self, error: str | None) -> None:
        self.completed = error is None
        self.error = error


_state = MigrationState()


def is_migration_completed() -> bool:
    return _state.completed


def last_migration_error() -> str | None:
    return _state.error


def mark_migrations_not_required(reason: str) -> None:
    _state.finish(None)
    structlog.get_logger(__name__).info("alembic_upgrade_skipped", reason=reason)


def reset_migration_state() -> None:
    _state.completed = False
    _state.error = None


def _exits_on_failure(settings: Settings) -> bool:
    if settings.alembic_exit_on_failure is not None:
        return settings.alembic_exit_on_failure
    return settings.is_prod


def upgrade_head(*, attempts: int, delay_seconds: float, log: BoundLogger) -> str | None:
    """Run the upgrade with linear backoff; return ``None`` or the last error."""

    error = "alembic upgrade failed"
    for attempt in range(1, attempts + 1):
        log.info("alembic_upgrade_start", attempt=attempt)
        try:
            subprocess.run(UPGRADE_COMMAND, check=True)
        except FileNotFoundError:
            log.error("alembic_command_missing", command=" ".join(UPGRADE_COMMAND))
            return "alembic command not found"
        except subprocess.CalledProcessError as exc:
            error = f"alembic exited with return code {exc.returncode}"
            log.error("alembic_upgrade_failed", attempt=attempt, returncode=exc.returncode)
        else:
            log.info("alembic_upgrade_succeeded", attempt=attempt)
            return None
        if attempt < attempts:
            time.sleep(delay_seconds * attempt)
    log.error("alembic_upgrade_exhausted", attempts=attempts)
    return error


def run_database_migrations(settings: Settings) -> None:
    """Blocks and exits the process on failure in prod; runs on a daemon thread elsewhere."""

    log = structlog.get_logger(__name__)
    if _state.completed:
        log.info("alembic_upgrade_skipped", reason="already_completed")
        return
    if os.getenv("TESTING"):
        mark_migrations_not_required("testing")
        return

    upgrade = partial(
        upgrade_head,
        attempts=settings.alembic_startup_max_attempts,
        delay_seconds=settings.alembic_startup_retry_seconds,
    )
    if _exits_on_failure(settings):
        _state.finish(upgrade(log=log))
        if _state.error:
            raise SystemExit(1)
        return

    if _state.worker is not None and _state.worker.is_alive():
        log.info("alembic_upgrade_skipped", reason="already_running")
        return
    reset_migration_state()
    _state.worker = threading.Thread(
        target=lambda: _state.finish(upgrade(log=log.bind(mode="background"))),
        name="alembic-startup",
        daemon=True,
    )
    _state.worker.start()
    log.info("alembic_upgrade_background_started")
