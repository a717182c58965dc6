"""
Test configuration and fixtures for the social network backend.

- Session-scoped engine (SQLite in memory unless TEST_DATABASE_URL is set)
- Function-scoped session over freshly created tables
- A fresh application per test with its database dependency overridden
- Clients and header helpers for authenticated requests
"""

import os
import tempfile

# Settings are read at import time; pin the test environment first.
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("REALTIME_BACKEND", "local")
os.environ.setdefault("DRAMATIQ_BROKER", "stub")
os.environ.setdefault("SERVER_KEY", "test-server-key")
os.environ.setdefault("UPLOADS_DIR", tempfile.mkdtemp(prefix="sn-uploads-"))

from typing import Callable, Generator

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session
from sqlalchemy.pool import StaticPool

from app.config import settings
from app.database import Base, make_session_factory
from app.dependencies import get_db
from app.main import create_app
from app.models import User, Session as UserSession
from tests.factories import create_user, create_session


# =============================================================================
# Database Fixtures
# =============================================================================


def get_test_database_url() -> str:
    """
    Get the test database URL.

    Priority:
    1. TEST_DATABASE_URL environment variable
    2. Shared in-memory SQLite database
    """
    return os.environ.get("TEST_DATABASE_URL", "sqlite://")


@pytest.fixture(scope="session")
def test_engine():
    """
    Create test database engine once per session.

    In-memory SQLite uses a single shared connection so the request thread,
    background dispatch and the test body all see the same database.
    """
    database_url = get_test_database_url()
    if database_url.startswith("sqlite"):
        engine = create_engine(
            database_url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    else:
        engine = create_engine(database_url)

    yield engine

    engine.dispose()


@pytest.fixture
def session_factory(test_engine):
    return make_session_factory(test_engine)


@pytest.fixture
def db(test_engine, session_factory) -> Generator[Session, None, None]:
    """
    Provide a database session over freshly created tables.

    Services commit, so isolation comes from recreating the schema for
    every test rather than from rolling back a transaction.
    """
    Base.metadata.create_all(test_engine)
    session = session_factory()

    yield session

    session.close()
    Base.metadata.drop_all(test_engine)


# =============================================================================
# Application / TestClient Fixtures
# =============================================================================


@pytest.fixture
def app(db: Session, session_factory) -> Generator[FastAPI, None, None]:
    """Fresh application whose request sessions are the test session."""
    application = create_app(session_factory=session_factory)

    def override_get_db():
        try:
            yield db
        finally:
            pass  # Don't close - managed by db fixture

    application.dependency_overrides[get_db] = override_get_db
    yield application
    application.dependency_overrides.clear()


@pytest.fixture
def client(app: FastAPI) -> Generator[TestClient, None, None]:
    """Anonymous TestClient."""
    with TestClient(app) as test_client:
        # Set default Referer so CSRF Origin middleware allows requests
        test_client.headers["referer"] = "http://testserver/"
        yield test_client


# =============================================================================
# Authentication Fixtures
# =============================================================================


@pytest.fixture
def test_user(db: Session) -> User:
    """Create a test user."""
    return create_user(db, email="testuser@example.com", first_name="Test", last_name="User")


@pytest.fixture
def test_session(db: Session, test_user: User) -> UserSession:
    """Create a session for the test user."""
    return create_session(db, test_user)


@pytest.fixture
def auth_client(app: FastAPI, test_session: UserSession) -> Generator[TestClient, None, None]:
    """
    Authenticated TestClient for the test user (cookie transport).

    Creates a separate TestClient instance to avoid cookie conflicts.
    """
    with TestClient(app) as test_client:
        test_client.cookies.set(settings.session_cookie_name, test_session.token)
        # Set default Referer so CSRF Origin middleware allows requests
        test_client.headers["referer"] = "http://testserver/"
        yield test_client


@pytest.fixture
def auth_headers(db: Session) -> Callable[[User], dict]:
    """
    Build Bearer headers for any user.

    Used when one test acts as several users through the same client.
    """

    def _headers(user: User) -> dict:
        session = create_session(db, user)
        return {"Authorization": f"Bearer {session.token}"}

    return _headers


# =============================================================================
# pytest markers
# =============================================================================


def pytest_configure(config):
    """Configure custom pytest markers."""
    config.addinivalue_line(
        "markers",
        "security: marks tests as security tests (deselect with '-m not security')",
    )
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m not slow')"
    )
    config.addinivalue_line("markers", "integration: marks tests as integration tests")
