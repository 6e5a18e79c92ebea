"""Pytest configuration and fixtures."""

import os

# Settings are read at import time; point them at throwaway values first
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["SUPABASE_URL"] = "http://supabase.test"
os.environ["SUPABASE_JWT_SECRET"] = "test-jwt-secret"
os.environ["FEE_CASCADE_SCOPE"] = "all"

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from syndicpro.main import app
from syndicpro.api.deps import get_db
from syndicpro.core.auth import User, get_current_user
from syndicpro.core.database import Base
from syndicpro.core.permissions import Role
from syndicpro.realtime.feed import ChangeFeed
from syndicpro.services.store import DataStore
from tests.users import ADMIN, EDITOR, VIEWER

engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)


@pytest.fixture
def db():
    """Fresh in-memory schema per test."""
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def feed() -> ChangeFeed:
    return ChangeFeed()


@pytest.fixture
def store(db, feed) -> DataStore:
    return DataStore(db, feed=feed)


@pytest.fixture
def profiles(store):
    """One profile per role."""
    store.upsert_profile(ADMIN.id, ADMIN.email, Role.ADMIN)
    store.upsert_profile(EDITOR.id, EDITOR.email, Role.EDITOR)
    store.upsert_profile(VIEWER.id, VIEWER.email, Role.VIEWER)


@pytest.fixture
def identity() -> dict:
    """Mutable holder for the identity the API sees; defaults to the admin."""
    return {"user": ADMIN}


@pytest.fixture
def login_as(identity):
    def _login(user: User) -> None:
        identity["user"] = user
    return _login


@pytest.fixture
def client(db, identity):
    """TestClient bound to the test database, authenticated as `identity`."""
    app.dependency_overrides[get_db] = lambda: db
    app.dependency_overrides[get_current_user] = lambda: identity["user"]
    try:
        with TestClient(app) as test_client:
            yield test_client
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def apartment_data() -> dict:
    return {
        "number": "A1",
        "floor": 1,
        "resident_name": "Karim Benali",
        "resident_cin": "BE123456",
        "phone": "0600000000",
        "occupancy_type": "owner",
        "status": "occupied",
    }
