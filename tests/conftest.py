"""
Pytest fixtures for Codedrop tests.

Provides a fake clock, repositories, the share service and a test client.
"""
import os
from datetime import datetime, timedelta, timezone
from typing import Generator

import pytest
from fastapi.testclient import TestClient

# Set test environment before importing the app module
os.environ.setdefault("STORAGE_BACKEND", "memory")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("CLEANUP_INTERVAL_SECONDS", "0")
os.environ.setdefault("ALLOWED_HOSTS", "testserver")

from config import Settings
from database import InMemoryShareRepository
from main import create_app
from service import ShareService


class FakeClock:
    """Mutable clock so tests can move past expiry horizons."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, delta: timedelta):
        self.now += delta


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc))


@pytest.fixture
def repository() -> InMemoryShareRepository:
    return InMemoryShareRepository()


@pytest.fixture
def service(repository, clock) -> ShareService:
    return ShareService(repository, clock=clock)


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        debug=True,
        allowed_hosts=["testserver"],
        storage_backend="memory",
        data_dir=tmp_path,
        database_path=tmp_path / "shares.db",
        cleanup_interval_seconds=0,
        rate_limit_enabled=False,
    )


@pytest.fixture
def test_client(settings, repository, clock) -> Generator[TestClient, None, None]:
    """
    FastAPI TestClient backed by an in-memory repository and the fake clock.

    Yields:
        TestClient: client for the app
    """
    app = create_app(settings, repository)
    app.state.service = ShareService(repository, clock=clock)
    with TestClient(app) as client:
        yield client
