"""Focus session management.

A session is open from ``start`` (endedAt == startedAt, durationMin == 0)
until ``stop`` closes it once with the elapsed whole minutes.
"""

from __future__ import annotations

import logging
import math
from dataclasses import replace
from datetime import datetime, timedelta
from typing import Any

from pymongo import DESCENDING, ReturnDocument

from tracker.clock import SystemClock
from tracker.errors import MissingParameterError, NotFoundError, SessionClosedError
from tracker.models import FocusSession, TaskRef
from tracker.store import (
    Store,
    from_store_datetime,
    is_object_id,
    parse_object_id,
    store_errors,
    to_store_datetime,
)
from tracker.tasks import TaskRepository

logger = logging.getLogger(__name__)

DEFAULT_LIST_LIMIT = 20
MAX_LIST_LIMIT = 100


def elapsed_minutes(started_at: datetime, ended_at: datetime) -> int:
    """Whole minutes between two instants, half rounded up, never negative."""
    ms = (ended_at - started_at).total_seconds() * 1000
    return max(0, math.floor(ms / 60000 + 0.5))


def clamp_limit(raw: Any) -> int:
    """Session list limit: default 20, clamped to [1, 100]."""
    if raw is None or raw == "":
        return DEFAULT_LIST_LIMIT
    try:
        value = float(raw)
    except (TypeError, ValueError):
        return DEFAULT_LIST_LIMIT
    if math.isnan(value):
        return DEFAULT_LIST_LIMIT
    return int(max(1, min(MAX_LIST_LIMIT, value)))


class FocusSessionRepository:
    """Start/stop/list over the ``focussessions`` collection."""

    def __init__(self, store: Store, clock: SystemClock, tasks: TaskRepository) -> None:
        self._store = store
        self._clock = clock
        self._tasks = tasks

    def start(self, task_id: Any = None) -> FocusSession:
        """Open a session. A malformed task id is dropped, not rejected."""
        now = to_store_datetime(self._clock.now())
        doc: dict[str, Any] = {
            "startedAt": now,
            "endedAt": now,
            "durationMin": 0,
            "createdAt": now,
            "updatedAt": now,
        }
        if task_id and is_object_id(task_id):
            doc["taskId"] = parse_object_id(task_id)
        elif task_id:
            logger.debug("Ignoring malformed taskId %r on focus start", task_id)

        with store_errors("start focus session"):
            result = self._store.sessions.insert_one(doc)
        doc["_id"] = result.inserted_id
        logger.info("Started focus session %s", result.inserted_id)
        return FocusSession.from_doc(doc)

    def stop(self, session_id: Any) -> FocusSession:
        """Close an open session. Stopping a closed one raises SessionClosedError."""
        if not session_id:
            raise MissingParameterError("sessionId required")
        oid = parse_object_id(session_id)

        with store_errors("stop focus session"):
            doc = self._store.sessions.find_one({"_id": oid})
            if doc is None:
                raise NotFoundError("session not found")

            session = FocusSession.from_doc(doc)
            if not session.is_open:
                raise SessionClosedError("session already stopped")

            now = from_store_datetime(to_store_datetime(self._clock.now()))
            started_at = session.started_at or now
            minutes = elapsed_minutes(started_at, now)

            # A stopped session must never end on its start instant, or it reads as open.
            ended_at = max(now, started_at + timedelta(milliseconds=1))
            changes = {
                "endedAt": to_store_datetime(ended_at),
                "durationMin": minutes,
                "updatedAt": to_store_datetime(now),
            }
            updated = self._store.sessions.find_one_and_update(
                {"_id": oid, "endedAt": doc.get("startedAt")},
                {"$set": changes},
                return_document=ReturnDocument.AFTER,
            )
            if updated is None:
                # Another stop got there first.
                raise SessionClosedError("session already stopped")

        logger.info("Stopped focus session %s after %d min", oid, minutes)
        return FocusSession.from_doc(updated)

    def list(self, limit: Any = None) -> list[FocusSession]:
        """Most recent sessions first, each with its task title resolved when it still exists."""
        n = clamp_limit(limit)
        with store_errors("list focus sessions"):
            cursor = (
                self._store.sessions.find({})
                .sort([("createdAt", DESCENDING), ("_id", DESCENDING)])
                .limit(n)
            )
            sessions = [FocusSession.from_doc(d) for d in cursor]

        ids = sorted({s.task_id for s in sessions if s.task_id})
        titles = self._tasks.titles_for(ids)
        return [self._resolve(s, titles) for s in sessions]

    @staticmethod
    def _resolve(session: FocusSession, titles: dict[str, str]) -> FocusSession:
        if session.task_id is None:
            return session
        title = titles.get(session.task_id)
        if title is None:
            # Task was deleted; the reference is dangling.
            return replace(session, task_id=None)
        return replace(session, task=TaskRef(id=session.task_id, title=title))
