"""Pytest configuration and fixtures."""

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import models  # noqa: F401
from database import Base
from main import app
from api.sync import get_sync_service as get_sync_service_for_sync
from services.report_job_engine import EngineConfig
from services.sync_service import SyncService
# Pytest fixtures - imported to make them available to tests
from tests.fixtures import (  # noqa: F401
    clock,
    fake_credentials,
    store,
)
from tests.fixtures.mocks import MockCursorSource, MockReportJobClient, make_registry


@pytest.fixture(name="engine")
def engine_fixture():
    """Create an in-memory SQLite database for testing."""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture(name="session_factory")
def session_factory_fixture(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture(name="db")
def db_fixture(session_factory):
    """A session on the test database."""
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture(name="sync_service")
def sync_service_fixture(store, fake_credentials, clock):
    """SyncService wired to in-memory sources, the test store and a fake clock."""
    registry = make_registry(
        MockCursorSource("posthog"),
        MockReportJobClient("amazon_ads"),
    )
    return SyncService(
        source_registry=registry,
        store=store,
        credentials=fake_credentials,
        clock=clock,
        engine_config=EngineConfig(),
    )


@pytest.fixture(name="client")
def client_fixture(sync_service):
    """Create a test client whose sync endpoint uses the test SyncService."""

    def override_get_sync_service():
        return sync_service

    app.dependency_overrides[get_sync_service_for_sync] = override_get_sync_service
    client = TestClient(app)
    yield client
    app.dependency_overrides.clear()
