"""Tests for the Alembic migration runner."""

from pathlib import Path

from alembic import command
from alembic.config import Config
from sqlalchemy import create_engine, inspect

from resolve_api.db.models import Base

ALEMBIC_DIR = Path(__file__).resolve().parents[3] / "alembic"


def _alembic_config() -> Config:
    config = Config()
    config.set_main_option("script_location", str(ALEMBIC_DIR))
    return config


def test_upgrade_creates_every_model_table(monkeypatch, tmp_path):
    url = f"sqlite:///{tmp_path / 'migrated.db'}"
    monkeypatch.setenv("DATABASE_URL_MIGRATIONS", url)

    command.upgrade(_alembic_config(), "head")

    engine = create_engine(url)
    try:
        tables = set(inspect(engine).get_table_names())
    finally:
        engine.dispose()
    assert set(Base.metadata.tables) <= tables
    assert "alembic_version" in tables


def test_migration_url_falls_back_to_database_url(monkeypatch, tmp_path):
    url = f"sqlite:///{tmp_path / 'fallback.db'}"
    monkeypatch.delenv("DATABASE_URL_MIGRATIONS", raising=False)
    monkeypatch.setenv("DATABASE_URL", url)

    command.upgrade(_alembic_config(), "head")

    engine = create_engine(url)
    try:
        assert "cases" in inspect(engine).get_table_names()
    finally:
        engine.dispose()
