from __future__ import annotations

import os
import tempfile

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import update

# Configure the app before it is imported
os.environ.setdefault("ENV", "test")
os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///:memory:")
os.environ.setdefault("JWT_SECRET", "test_jwt_secret_32_chars_minimum")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("STORAGE_ROOT", tempfile.mkdtemp(prefix="event-calendar-uploads-"))
os.environ.setdefault("STORAGE_PUBLIC_BASE_URL", "http://testserver/uploads")

from event_calendar.db import SessionLocal, get_engine  # noqa: E402
from event_calendar.main import app  # noqa: E402
from event_calendar.models import Base, User  # noqa: E402
from event_calendar.models.user import UserRole  # noqa: E402
from event_calendar.storage import create_storage, get_storage  # noqa: E402



@pytest.fixture(autouse=True)
def clean_db():
    # Fresh schema for each test
    engine = get_engine()
    Base.metadata.drop_all(engine)
    Base.metadata.create_all(engine)
    yield


@pytest.fixture
def storage(tmp_path):
    return create_storage(
        backend="local",
        root=tmp_path / "uploads",
        public_base_url="http://testserver/uploads",
    )


@pytest.fixture
def client(storage) -> TestClient:
    app.dependency_overrides[get_storage] = lambda: storage
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def db_session():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def make_user(client: TestClient, db_session):
    """Register through the API and optionally promote; returns (token, user_id)."""

    def _make(
        email: str,
        role: UserRole = UserRole.USER,
        name: str = "Test User",
        password: str = "StrongPass123",
    ) -> tuple[str, str]:
        resp = client.post(
            "/api/v1/auth/register",
            json={"name": name, "email": email, "password": password},
        )
        assert resp.status_code == 201, resp.text
        data = resp.json()["data"]
        if role != UserRole.USER:
            db_session.execute(update(User).where(User.email == email).values(role=role))
            db_session.commit()
        return data["token"], data["user"]["id"]

    return _make


@pytest.fixture
def admin(make_user) -> tuple[str, str]:
    return make_user("admin@example.com", role=UserRole.ADMIN, name="Admin")
