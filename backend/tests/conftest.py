"""
Pytest configuration and fixtures for backend tests.
"""

import os

# Settings are cached on first import; point them at SQLite before the app loads
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["RATING_CORRELATION_DELAY_MS"] = "0"

from datetime import datetime
from typing import Generator

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from app.core.database import Base, get_db
from app.main import app
from app.models.entity import Entity
from app.models.user import Profile

# Create in-memory SQLite database for testing
SQLALCHEMY_DATABASE_URL = "sqlite:///:memory:"

engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture(scope="function")
def db() -> Generator[Session, None, None]:
    """Create a fresh database session for each test."""
    # Create all tables
    Base.metadata.create_all(bind=engine)

    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        # Drop all tables after test
        Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def client(db: Session) -> Generator[TestClient, None, None]:
    """Create a test client with database override."""
    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()


@pytest.fixture
def make_profile(db: Session):
    """Factory creating profiles; created_at is staggered so candidate order is stable."""
    created = []

    def _make(username: str | None = None) -> Profile:
        profile = Profile(
            username=username or f"user{len(created)}",
            created_at=datetime(2024, 1, 1, 0, len(created)),
        )
        db.add(profile)
        db.commit()
        db.refresh(profile)
        created.append(profile)
        return profile

    return _make


@pytest.fixture
def make_entities(db: Session):
    """Factory creating ``n`` entities named Product 0..n-1."""
    def _make(n: int, category_type: str = "product") -> list[Entity]:
        entities = [Entity(name=f"Product {i}", type=category_type) for i in range(n)]
        db.add_all(entities)
        db.commit()
        for entity in entities:
            db.refresh(entity)
        return entities

    return _make
