"""Database session management.

The engine is built once at import from DATABASE_URL; tests set
DATABASE_URL before importing and override get_db.
"""

from contextlib import contextmanager
from typing import Generator, Iterator

from sqlalchemy.orm import Session

from resolve_api.config.env import get_database_url
from resolve_api.db.engine import build_engine, build_sessionmaker

engine = build_engine(get_database_url())

SessionLocal = build_sessionmaker(engine)


def get_db() -> Generator[Session, None, None]:
    """FastAPI dependency: one session per request, always closed."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def session_scope() -> Iterator[Session]:
    """Session for work outside a request (startup seeding).

    Rolls back on error and re-raises; the caller decides whether to swallow.
    """
    db = SessionLocal()
    try:
        yield db
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()
