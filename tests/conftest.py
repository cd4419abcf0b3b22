"""Shared test fixtures for tracker tests."""

from __future__ import annotations

from datetime import datetime, timezone

import mongomock
import pytest
from fastapi.testclient import TestClient

from api.app import create_app
from tracker.clock import FrozenClock
from tracker.context import AppContext
from tracker.settings import Settings
from tracker.store import Store

# Wednesday afternoon, UTC.
NOW = datetime(2026, 2, 11, 15, 0, tzinfo=timezone.utc)

ENV_KEYS = (
    "TRACKER_CONFIG",
    "MONGO_URI",
    "MONGO_DB",
    "TRACKER_TIMEZONE",
    "TZ",
    "HOST",
    "PORT",
    "LOG_LEVEL",
    "CORS_ORIGIN_REGEX",
    "MONGO_TIMEOUT_MS",
)


@pytest.fixture
def clean_env(monkeypatch: pytest.MonkeyPatch) -> pytest.MonkeyPatch:
    """Unset every setting variable; anything set during the test is undone."""
    for key in ENV_KEYS:
        # setenv first so monkeypatch remembers to remove the key afterwards.
        monkeypatch.setenv(key, "")
        monkeypatch.delenv(key)
    return monkeypatch


@pytest.fixture
def settings() -> Settings:
    return Settings(mongo_uri="mongodb://localhost:27017/tracker_test", db_name="tracker_test")


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock(NOW)


@pytest.fixture
def store() -> Store:
    s = Store(mongomock.MongoClient(), "tracker_test")
    yield s
    s.close()


@pytest.fixture
def ctx(settings: Settings, store: Store, clock: FrozenClock) -> AppContext:
    return AppContext.build(settings, store, clock)


@pytest.fixture
def tasks(ctx: AppContext):
    return ctx.tasks


@pytest.fixture
def focus(ctx: AppContext):
    return ctx.focus


@pytest.fixture
def client(ctx: AppContext) -> TestClient:
    with TestClient(create_app(ctx)) as c:
        yield c
