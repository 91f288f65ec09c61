"""Integration test fixtures."""

from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from credwarden.config_schema import SecurityPolicyConfig
from credwarden.server import create_server

ADMIN_PASSWORD = "CorrectPass1!"


@pytest.fixture
def db_path(tmp_path: Path) -> Path:
    return tmp_path / "test.db"


@pytest.fixture
def app(db_path: Path):
    """Create app with real SQLite database.

    Args:
        db_path: Path of the temporary database file.

    Returns:
        Configured FastAPI application with SQLite database.
    """
    return create_server(
        db_path=db_path,
        security=SecurityPolicyConfig(pbkdf2_iterations=10000, password_history_count=3),
        login_delay_max_seconds=0,
    )


@pytest.fixture
def client(app):
    """Create test client.

    Args:
        app: FastAPI application instance.

    Returns:
        TestClient for making requests to the app.
    """
    return TestClient(app)


@pytest.fixture
def authenticated_client(client):
    """Create authenticated test client.

    Initializes the system with an admin user and returns
    a client that is logged in.

    Args:
        client: Base test client.

    Returns:
        TestClient with authenticated session cookie.
    """
    response = client.post(
        "/api/v1/initialize",
        json={"username": "admin", "password": ADMIN_PASSWORD},
    )
    assert response.status_code == 200
    return client
