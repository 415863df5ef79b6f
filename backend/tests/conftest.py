"""Pytest configuration and fixtures."""

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from api.helpers import set_market_data_service_override
from database import Base, get_db
from main import app
from services.market_data_service import MarketDataService
# Pytest fixtures - imported to make them available to tests
from tests.fixtures import (  # noqa: F401
    aapl,
    auth_headers,
    auth_session,
    currencies,
    eur_portfolio,
    institution,
    other_user,
    portfolio,
    second_portfolio,
    user,
)
from tests.fixtures.mocks import MockQuoteProvider


@pytest.fixture(name="db")
def db_fixture():
    """Create an in-memory SQLite database for testing."""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    @event.listens_for(engine, "connect")
    def _set_pragma(dbapi_conn, connection_record):
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    Base.metadata.create_all(bind=engine)

    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = TestingSessionLocal()

    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture(name="mock_provider")
def mock_provider_fixture():
    """An empty mock quote provider; tests fill in what they need."""
    return MockQuoteProvider()


@pytest.fixture(name="client")
def client_fixture(db, mock_provider):
    """Create a test client with the test database and a mock quote provider."""

    def override_get_db():
        try:
            yield db
        except Exception:
            db.rollback()
            raise

    app.dependency_overrides[get_db] = override_get_db
    set_market_data_service_override(MarketDataService(provider=mock_provider))
    client = TestClient(app)
    yield client
    app.dependency_overrides.clear()
    set_market_data_service_override(None)
