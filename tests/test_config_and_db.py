from __future__ import annotations

import pytest

from gigglemap.core.config import Settings
from gigglemap.db import apply_asyncpg_scheme, create_engine_from_url


@pytest.mark.parametrize(
    "raw",
    [
        "postgres://u:p@h:5432/d",
        "postgresql://u:p@h:5432/d",
        "postgresql+psycopg://u:p@h:5432/d",
        "postgresql+psycopg2://u:p@h:5432/d",
        "postgresql+asyncpg://u:p@h:5432/d",
    ],
)
def test_urls_are_normalised_to_asyncpg(raw):
    assert apply_asyncpg_scheme(raw) == "postgresql+asyncpg://u:p@h:5432/d"


def test_engine_drops_libpq_only_query_args():
    engine = create_engine_from_url(
        "postgresql://u:p@h:5432/d?sslmode=require&channel_binding=require"
    )
    assert engine.url.drivername == "postgresql+asyncpg"
    assert "sslmode" not in engine.url.query
    assert "channel_binding" not in engine.url.query


def test_settings_from_env(monkeypatch):
    monkeypatch.setenv("ALLOW_ORIGINS", "https://a.example, https://b.example ,")
    monkeypatch.setenv("SENTRY_TRACES_RATE", "0.9")
    monkeypatch.setenv("APP_ENV", "prod")
    settings = Settings()
    assert settings.cors_origins == ["https://a.example", "https://b.example"]
    assert settings.traces_rate == 0.2
    assert settings.is_prod


def test_bcrypt_rounds_bounds():
    with pytest.raises(ValueError):
        Settings(bcrypt_rounds=2)
