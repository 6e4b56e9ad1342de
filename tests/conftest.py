"""
Pytest configuration and shared fixtures for the bookings API tests.

Every test runs against a fresh in-memory SQLite database built from the
models; the identity platform is replaced by a dependency override.
"""

import os

os.environ["DATABASE_URL"] = "sqlite://"
os.environ.setdefault("AUTH_URL", "https://auth.test")
os.environ.setdefault("CRON_SECRET", "test-cron-secret")
os.environ.setdefault("REQUIRE_ACTIVE_SUBSCRIPTION", "true")

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from app.auth import AuthUser, get_current_user  # noqa: E402
from app.database import Base, SessionLocal, engine  # noqa: E402
from app.domain.bookings.router import get_capabilities  # noqa: E402
from app.main import app as fastapi_app  # noqa: E402
from app.models import Business, BusinessMember, Service  # noqa: E402
from app.schema_capabilities import SchemaCapabilities, reset_schema_capabilities  # noqa: E402

OWNER_ID = "user-owner"
OWNER_EMAIL = "owner@example.com"
CRON_SECRET = os.environ["CRON_SECRET"]


@pytest.fixture
def db_session():
    """Fresh schema per test."""
    Base.metadata.create_all(bind=engine)
    reset_schema_capabilities()
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)
        reset_schema_capabilities()


@pytest.fixture
def business(db_session):
    """Business with an active subscription, owned by the default test user."""
    business = Business(owner_id=OWNER_ID, name="Sparkle Co", subscription_status="active")
    db_session.add(business)
    db_session.commit()
    db_session.refresh(business)
    return business


@pytest.fixture
def service(db_session, business):
    """60 minute service priced at $150."""
    service = Service(
        business_id=business.id, name="Deep Clean", duration_minutes=60, price_cents=15000
    )
    db_session.add(service)
    db_session.commit()
    db_session.refresh(service)
    return service


@pytest.fixture
def add_member(db_session, business):
    """Add a business_members row and return its user id."""

    def _add(user_id: str, role: str):
        db_session.add(BusinessMember(business_id=business.id, user_id=user_id, role=role))
        db_session.commit()
        return user_id

    return _add


@pytest.fixture
def current_user():
    """Mutable holder for the authenticated user."""
    return {"user": AuthUser(id=OWNER_ID, email=OWNER_EMAIL)}


@pytest.fixture
def capabilities():
    """Capabilities of a database built from the current models."""
    return {"value": None}


@pytest.fixture
def client(db_session, current_user, capabilities):
    """Test client with auth and schema capabilities overridden."""

    async def _current_user():
        return current_user["user"]

    def _capabilities():
        return capabilities["value"] or SchemaCapabilities.from_models()

    fastapi_app.dependency_overrides[get_current_user] = _current_user
    fastapi_app.dependency_overrides[get_capabilities] = _capabilities
    try:
        yield TestClient(fastapi_app)
    finally:
        fastapi_app.dependency_overrides.clear()


@pytest.fixture
def fresh(db_session):
    """Query helper that bypasses the session identity map."""

    def _query(model):
        db_session.expire_all()
        return db_session.query(model)

    return _query
