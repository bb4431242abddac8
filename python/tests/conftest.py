"""Pytest configuration and fixtures for Scaaf tests.

Test isolation strategy:
- Every test gets its own in-memory SQLite database built from the ORM
  metadata (one shared connection via StaticPool)
- The app's get_db dependency is overridden to use that database
- Auth tests mint RS256 tokens verified by MockJwtVerifier
"""

import os

# Settings are read from the environment; provide test values before any
# scaaf module is imported.
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("SUPABASE_JWKS_URL", "http://localhost:54321/auth/v1/.well-known/jwks.json")
os.environ.setdefault("SUPABASE_ISSUER", "test-issuer")
os.environ.setdefault("SUPABASE_AUDIENCES", "test-audience")
os.environ.setdefault("SCAAF_ENV", "test")
os.environ.setdefault("LOG_JSON", "false")

from collections.abc import Generator
from uuid import UUID

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy import Engine
from sqlalchemy.orm import Session, sessionmaker

from scaaf.api.deps import get_app_settings
from scaaf.app import add_request_id_middleware, create_app
from scaaf.auth.middleware import AuthMiddleware
from scaaf.config import Settings, clear_settings_cache, get_settings
from scaaf.db.engine import create_db_engine
from scaaf.db.models import Base
from scaaf.db.session import create_session_factory, get_db
from scaaf.services.bootstrap import ensure_user
from tests.helpers import create_test_user_id
from tests.support.test_verifier import MockJwtVerifier


@pytest.fixture
def engine() -> Generator[Engine, None, None]:
    """Fresh in-memory database with the full schema."""
    engine = create_db_engine("sqlite://")
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine: Engine) -> sessionmaker[Session]:
    return create_session_factory(engine)


@pytest.fixture
def db_session(session_factory: sessionmaker[Session]) -> Generator[Session, None, None]:
    """Session for arranging and inspecting test data."""
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def test_settings() -> Settings:
    """Settings the app sees; tests may copy with model_copy(update=...)."""
    return get_settings()


def build_app(
    session_factory: sessionmaker[Session],
    settings: Settings,
    with_auth: bool = True,
) -> FastAPI:
    """App wired to the test database, with auth verified by MockJwtVerifier."""

    def override_get_db() -> Generator[Session, None, None]:
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    def bootstrap_callback(user_id: UUID) -> None:
        db = session_factory()
        try:
            ensure_user(db, user_id)
        finally:
            db.close()

    app = create_app(skip_auth_middleware=True)
    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_app_settings] = lambda: settings

    if with_auth:
        app.add_middleware(
            AuthMiddleware,
            verifier=MockJwtVerifier(),
            bootstrap_callback=bootstrap_callback,
            session_cookie_name=settings.auth_cookie_name,
        )
    add_request_id_middleware(app, log_requests=False)
    return app


@pytest.fixture
def app(session_factory: sessionmaker[Session], test_settings: Settings) -> FastAPI:
    return build_app(session_factory, test_settings)


@pytest.fixture
def client(app: FastAPI) -> Generator[TestClient, None, None]:
    """Test client with auth middleware; use auth_headers() for requests."""
    with TestClient(app) as client:
        yield client


@pytest.fixture
def make_client(session_factory: sessionmaker[Session]):
    """Build a client for an app that sees different settings.

    Usage:
        with make_client(test_settings.model_copy(update={...})) as client:
            ...
    """

    def make(settings: Settings) -> TestClient:
        return TestClient(build_app(session_factory, settings))

    return make


@pytest.fixture
def test_user_id() -> UUID:
    return create_test_user_id()


@pytest.fixture(autouse=True)
def reset_settings_cache():
    """Reset the settings cache before each test."""
    clear_settings_cache()
    yield
    clear_settings_cache()
