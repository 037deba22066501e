"""Pytest configuration and fixtures."""

import os
import sys
from pathlib import Path

# Inject sys.path for reliable pytest imports
sys.path.insert(0, str(Path(__file__).resolve().parents[1]))  # => .../apps/api

# Must be set before resolve_api.db.session is imported
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("RESOLVE_JSON_LOGS", "false")

import uuid
from types import SimpleNamespace
from typing import Callable
from unittest.mock import MagicMock, patch

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from resolve_api.billing import stripe_client
from resolve_api.db.models import Base, User
from resolve_api.db.session import get_db
from resolve_api.main import app
from resolve_api.services import ai_generation
from resolve_api.services import email_service

TEST_DATABASE_URL = "sqlite:///:memory:"


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch, tmp_path):
    """Keep tests off real integrations and off the working directory."""
    for name in (
        "OPENAI_API_KEY",
        "STRIPE_SECRET_KEY",
        "STRIPE_WEBHOOK_SECRET",
        "SES_FROM_EMAIL",
        "ADMIN_EMAIL",
        "UPLOAD_MAX_BYTES",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("UPLOADS_DIR", str(tmp_path / "uploads"))
    monkeypatch.setenv("DOCUMENTS_DIR", str(tmp_path / "documents"))

    ai_generation.get_openai_client.cache_clear()
    monkeypatch.setattr(email_service, "_email_service", None, raising=False)
    monkeypatch.setattr(stripe_client, "_stripe_client", None, raising=False)
    yield
    ai_generation.get_openai_client.cache_clear()


@pytest.fixture(scope="function")
def db_session() -> Session:
    """Fresh in-memory SQLite database per test."""
    engine = create_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)

    SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = SessionLocal()

    try:
        yield session
        session.rollback()
    finally:
        session.close()
        Base.metadata.drop_all(engine)
        engine.dispose()


@pytest.fixture
def fake_supabase() -> dict[str, tuple[str, str]]:
    """Supabase auth double: maps bearer tokens to (user_id, email).

    Unknown tokens raise, which session auth turns into 401.
    """
    tokens: dict[str, tuple[str, str]] = {}

    def get_user(token: str):
        if token not in tokens:
            raise RuntimeError("invalid JWT")
        user_id, email = tokens[token]
        return SimpleNamespace(user=SimpleNamespace(id=user_id, email=email))

    client = MagicMock()
    client.auth.get_user.side_effect = get_user

    with patch("resolve_api.auth.session_auth.get_supabase_client", return_value=client):
        yield tokens


@pytest.fixture
def make_user(db_session: Session, fake_supabase) -> Callable[..., tuple[User, dict[str, str]]]:
    """Create a users row and return it with matching Authorization headers."""

    def _make(role: str = "user", email: str | None = None, **fields) -> tuple[User, dict[str, str]]:
        user_id = str(uuid.uuid4())
        email = email or f"{user_id[:8]}@example.com"
        user = User(id=user_id, email=email, role=role, **fields)
        db_session.add(user)
        db_session.commit()
        db_session.refresh(user)

        token = f"token-{user_id}"
        fake_supabase[token] = (user_id, email)
        return user, {"Authorization": f"Bearer {token}"}

    return _make


@pytest.fixture
def test_client(db_session: Session):
    """TestClient with db_session dependency override."""

    def override_get_db():
        try:
            yield db_session
        finally:
            pass  # Don't close - db_session fixture handles it

    app.dependency_overrides[get_db] = override_get_db
    client = TestClient(app)
    yield client
    app.dependency_overrides.clear()


@pytest.fixture
def create_case(test_client: TestClient) -> Callable[..., dict]:
    """Open a case through the API as the given caller."""

    def _create(headers: dict[str, str], **overrides) -> dict:
        payload = {
            "title": "Unpaid invoice - bathroom renovation",
            "issueType": "unpaid_payment",
            "amount": "$12,500",
            "description": "Builder has not paid the final progress claim.",
        }
        payload.update(overrides)
        response = test_client.post("/api/cases", json=payload, headers=headers)
        assert response.status_code == 201, response.text
        return response.json()

    return _create
