"""
Pytest configuration and fixtures for backend tests.

This module is automatically loaded by pytest and provides:
- TESTING environment flag to disable .env loading
- Canva test credentials
- Shared fixtures for database sessions, test clients and sample data
"""

import os

# Set TESTING flag BEFORE any app imports
# This prevents loading .env file during tests, ensuring test isolation
os.environ["TESTING"] = "1"

# Generate a proper Fernet key for token encryption tests
from cryptography.fernet import Fernet
os.environ["TOKEN_ENCRYPTION_KEY"] = Fernet.generate_key().decode()

# Canva OAuth test credentials - explicit values for test isolation
os.environ["CANVA_CLIENT_ID"] = "test-canva-client-id"
os.environ["CANVA_CLIENT_SECRET"] = "test-canva-client-secret"
os.environ["CANVA_API_BASE_URL"] = "https://api.canva.test/rest"
os.environ["CANVA_AUTH_BASE_URL"] = "https://www.canva.test/api"
# No CANVA_BRAND_TEMPLATE_ID: tests pass a template explicitly when they need one

# Frontend host for OAuth redirect tests
os.environ["FRONTEND_HOST"] = "http://localhost:8080"

from datetime import datetime, timezone

import pytest
from fastapi.testclient import TestClient
from sqlmodel import Session, SQLModel, create_engine
from sqlmodel.pool import StaticPool

from tripmatrix.main import app
from tripmatrix.api.deps import get_db
from tripmatrix.models import Trip, TripPlace, User


@pytest.fixture(name="session")
def session_fixture():
    """Create a new in-memory database session for each test."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    with Session(engine) as session:
        yield session


@pytest.fixture(name="client")
def client_fixture(session: Session):
    """Create a test client with database session override."""

    def get_session_override():
        return session

    app.dependency_overrides[get_db] = get_session_override
    client = TestClient(app)
    yield client
    app.dependency_overrides.clear()


@pytest.fixture
def user(session: Session) -> User:
    """The user the proxy headers in API tests identify."""
    user = User(username="traveler", email="traveler@example.com")
    session.add(user)
    session.commit()
    session.refresh(user)
    return user


@pytest.fixture
def trip(session: Session, user: User) -> Trip:
    trip = Trip(
        creator_id=user.id,
        title="Paris Weekend",
        description="Two days in Paris",
        cover_image="https://images.example.com/paris-cover.jpg",
    )
    session.add(trip)
    session.commit()
    session.refresh(trip)
    return trip


@pytest.fixture
def eiffel_tower(session: Session, trip: Trip) -> TripPlace:
    place = TripPlace(
        trip_id=trip.id,
        name="Eiffel Tower",
        visited_at=datetime(2024, 5, 1, 14, 30, tzinfo=timezone.utc),
        rating=5,
        comment="Windy at the top",
        images=["https://images.example.com/eiffel.jpg"],
    )
    session.add(place)
    session.commit()
    session.refresh(place)
    return place
