"""Alembic migration runner for the Resolve schema.

The URL comes from DATABASE_URL_MIGRATIONS when set (a direct, non-pooled
connection), otherwise from the same DATABASE_URL the API reads. Online runs
connect through build_engine() so Supabase hosts get sslmode=require.
"""

import os
import sys
from logging.config import fileConfig
from pathlib import Path

from alembic import context

sys.path.insert(0, str(Path(__file__).parent.parent / "apps" / "api"))

from resolve_api.config.env import get_database_url  # noqa: E402
from resolve_api.db.engine import build_engine  # noqa: E402
from resolve_api.db.models import Base  # noqa: E402

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata


def resolve_migration_url() -> str:
    """Migration URL, falling back to the API's database URL.

    Raises:
        RuntimeError: No DATABASE_URL in production
    """
    return os.getenv("DATABASE_URL_MIGRATIONS") or get_database_url()


database_url = resolve_migration_url()
config.set_main_option("sqlalchemy.url", database_url)


def run_migrations_offline() -> None:
    """Emit SQL for the pending migrations without connecting."""
    context.configure(
        url=database_url,
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        compare_type=True,
    )

    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    connectable = build_engine(database_url)

    with connectable.connect() as connection:
        context.configure(connection=connection, target_metadata=target_metadata, compare_type=True)

        with context.begin_transaction():
            context.run_migrations()

    connectable.dispose()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
