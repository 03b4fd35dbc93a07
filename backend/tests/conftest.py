"""Pytest configuration and fixtures."""

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import models  # noqa: F401
from api.dependencies import get_clock, get_market_calendar
from database import Base, get_db
from main import app
from services.market_calendar import MarketCalendar
from tests.fixtures import MARKET_OPEN_NOW
from tests.fixtures.mocks import FixedClock


@pytest.fixture(name="db")
def db_fixture():
    """Create an in-memory SQLite database for testing."""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)

    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = TestingSessionLocal()

    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture(name="clock")
def clock_fixture():
    """Clock frozen at a moment the market is open."""
    return FixedClock(MARKET_OPEN_NOW)


@pytest.fixture(name="calendar")
def calendar_fixture():
    """New York session calendar without holidays."""
    return MarketCalendar()


@pytest.fixture(name="client")
def client_fixture(db, clock, calendar):
    """Create a test client with the test database and a frozen clock."""

    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_clock] = lambda: clock
    app.dependency_overrides[get_market_calendar] = lambda: calendar
    client = TestClient(app)
    yield client
    app.dependency_overrides.clear()
