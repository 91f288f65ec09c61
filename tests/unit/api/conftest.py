"""Fixtures for API route tests."""

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine as sa_create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from credwarden.api.app import create_app
from credwarden.auth import CredentialVerifier
from credwarden.config_schema import SecurityPolicyConfig
from credwarden.db import (
    SqlAccountStore,
    SqlConfigSource,
    SqlHistoryStore,
    User,
    init_db,
)

API_POLICY = SecurityPolicyConfig(pbkdf2_iterations=10000)
ADMIN_PASSWORD = "CorrectPass1!"


@pytest.fixture
def engine():
    """Create an in-memory SQLite database engine with thread safety."""
    # Use StaticPool for in-memory SQLite to allow multi-threaded access
    engine = sa_create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(engine)
    return engine


@pytest.fixture
def db_session(engine):
    """Create a database session."""
    session_factory = sessionmaker(bind=engine)
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def app(engine):
    """Create app with database dependency override."""
    from credwarden.api.deps import get_db

    app = create_app()
    app.state.security_defaults = API_POLICY
    app.state.login_delay_max_seconds = 0

    def override_get_db():
        session_factory = sessionmaker(bind=engine)
        session = session_factory()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    return app


@pytest.fixture
def client(app):
    """Create a test client."""
    return TestClient(app)


@pytest.fixture
def make_user(db_session):
    """Create users through the verifier and commit them."""

    def _make(username: str, password: str = ADMIN_PASSWORD, **kwargs) -> User:
        verifier = CredentialVerifier(
            accounts=SqlAccountStore(db_session),
            history=SqlHistoryStore(db_session),
            config_source=SqlConfigSource(db_session, API_POLICY),
        )
        verifier.create_account(username, password, **kwargs)
        db_session.commit()
        return verifier.accounts.get_user(username)

    return _make


@pytest.fixture
def test_user(make_user):
    """Create a test user in the database."""
    return make_user("admin")


@pytest.fixture
def authenticated_client(client, test_user):
    """Client logged in as the test user."""
    response = client.post(
        "/api/v1/auth/login",
        json={"username": "admin", "password": ADMIN_PASSWORD},
    )
    assert response.status_code == 200
    return client


@pytest.fixture
def fetch_user(engine):
    """Read a user row through a fresh session."""

    def _fetch(username: str) -> User:
        session = sessionmaker(bind=engine, expire_on_commit=False)()
        try:
            return session.query(User).filter(User.username == username).one()
        finally:
            session.close()

    return _fetch
