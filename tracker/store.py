"""MongoDB document store: connection, collections, ids and datetimes.

pymongo hands back naive datetimes in UTC; everything above this module
works with aware datetimes, so values are normalized on the way in and out.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Iterator

from bson import ObjectId
from pymongo import MongoClient
from pymongo.collection import Collection
from pymongo.database import Database
from pymongo.errors import PyMongoError

from tracker.errors import InvalidIdError, StoreError
from tracker.settings import Settings

logger = logging.getLogger(__name__)

TASKS_COLLECTION = "tasks"
SESSIONS_COLLECTION = "focussessions"


class Store:
    """Handle on the tracker database and its two collections."""

    def __init__(self, client: MongoClient, db_name: str) -> None:
        self.client = client
        self.db: Database = client[db_name]

    @property
    def tasks(self) -> Collection:
        return self.db[TASKS_COLLECTION]

    @property
    def sessions(self) -> Collection:
        return self.db[SESSIONS_COLLECTION]

    def ping(self) -> None:
        self.client.admin.command("ping")

    def close(self) -> None:
        self.client.close()


def connect(settings: Settings) -> Store:
    """Open the client and verify the server answers; fail fast otherwise."""
    client: MongoClient = MongoClient(
        settings.mongo_uri,
        serverSelectionTimeoutMS=settings.server_selection_timeout_ms,
    )
    store = Store(client, settings.db_name)
    try:
        store.ping()
    except PyMongoError as e:
        client.close()
        raise StoreError(f"MongoDB connection failed: {e}", status_code=500) from e
    logger.info("Connected to MongoDB database %r", settings.db_name)
    return store


@contextmanager
def store_errors(action: str) -> Iterator[None]:
    """Translate driver failures into StoreError."""
    try:
        yield
    except PyMongoError as e:
        logger.error("%s failed: %s", action, e)
        raise StoreError(str(e)) from e


# ── Identifiers ───────────────────────────────────────────────


def is_object_id(value: Any) -> bool:
    return isinstance(value, str) and ObjectId.is_valid(value)


def parse_object_id(value: Any) -> ObjectId:
    """Parse a 24-hex identifier string. Raises InvalidIdError."""
    if not is_object_id(value):
        raise InvalidIdError()
    return ObjectId(value)


# ── Datetimes ─────────────────────────────────────────────────


def to_store_datetime(value: datetime | None) -> datetime | None:
    """Aware datetime -> naive UTC, as BSON stores it."""
    if value is None:
        return None
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    # BSON dates carry millisecond precision.
    return value.replace(microsecond=value.microsecond // 1000 * 1000)


def from_store_datetime(value: Any) -> datetime | None:
    """Stored datetime -> aware UTC. Non-datetimes read as absent."""
    if not isinstance(value, datetime):
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)
