import os
import uuid

import pytest

os.environ.setdefault("DATABASE_URL", "sqlite:///./test_huddle.db")
os.environ.setdefault("ENV", "test")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
if os.path.exists("test_huddle.db"):
    os.remove("test_huddle.db")

from fastapi.testclient import TestClient  # noqa: E402

from app.main import app  # noqa: E402
from app.db.base import Base  # noqa: E402
from app.db.session import engine  # noqa: E402

Base.metadata.create_all(bind=engine)


@pytest.fixture(scope="session")
def client():
    with TestClient(app) as c:
        yield c


@pytest.fixture
def make_user(client):
    """Register a fresh user and return (user json, auth headers)."""

    def _make(prefix: str = "user"):
        name = f"{prefix}_{uuid.uuid4().hex[:8]}"
        response = client.post(
            "/api/v1/register",
            json={"username": name, "email": f"{name}@example.com", "password": "testpass123"},
        )
        assert response.status_code == 201, response.text
        body = response.json()
        return body["user"], {"Authorization": f"Bearer {body['access_token']}"}

    return _make
