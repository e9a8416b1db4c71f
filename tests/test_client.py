"""
Tests for `repositories/client.py`.

Covers configuration rules:
- DATABASE_URL is required; SUPABASE_* are only required for the guard ledger.
- LOG_LEVEL defaults to INFO and is normalized to upper case.
- SQLite engines run every transaction as BEGIN IMMEDIATE.
"""

from __future__ import annotations

import pytest
from sqlalchemy import text

from repositories.client import (
    Settings,
    create_db_engine,
    create_supabase_client,
    load_settings,
)


@pytest.fixture
def clean_env(monkeypatch):
    for name in ("DATABASE_URL", "SUPABASE_URL", "SUPABASE_KEY", "LOG_LEVEL"):
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


def test_load_settings_requires_database_url(clean_env) -> None:
    with pytest.raises(RuntimeError, match="DATABASE_URL"):
        load_settings(env_path=None)


def test_load_settings_reads_environment(clean_env) -> None:
    clean_env.setenv("DATABASE_URL", "sqlite:///./orders.db")
    clean_env.setenv("SUPABASE_URL", "https://example.supabase.co")
    clean_env.setenv("SUPABASE_KEY", "secret")
    clean_env.setenv("LOG_LEVEL", "debug")

    settings = load_settings(env_path=None)

    assert settings == Settings(
        database_url="sqlite:///./orders.db",
        supabase_url="https://example.supabase.co",
        supabase_key="secret",
        log_level="DEBUG",
    )


def test_load_settings_reads_env_file(clean_env, tmp_path) -> None:
    env_file = tmp_path / ".env"
    env_file.write_text("DATABASE_URL=sqlite:///./from_file.db\n")

    settings = load_settings(env_path=env_file)

    assert settings.database_url == "sqlite:///./from_file.db"
    assert settings.log_level == "INFO"
    assert settings.supabase_url is None


def test_create_supabase_client_requires_credentials() -> None:
    with pytest.raises(RuntimeError, match="SUPABASE_URL"):
        create_supabase_client(Settings(database_url="sqlite://"))

    with pytest.raises(RuntimeError, match="SUPABASE_KEY"):
        create_supabase_client(Settings(database_url="sqlite://", supabase_url="https://x.supabase.co"))


def test_sqlite_engine_opens_write_transactions(tmp_path) -> None:
    engine = create_db_engine(f"sqlite:///{tmp_path / 'scratch.db'}")
    try:
        with engine.begin() as conn:
            conn.execute(text("CREATE TABLE scratch (id INTEGER PRIMARY KEY)"))
            conn.execute(text("INSERT INTO scratch (id) VALUES (1)"))
        with engine.connect() as conn:
            assert conn.execute(text("SELECT count(*) FROM scratch")).scalar() == 1
    finally:
        engine.dispose()
