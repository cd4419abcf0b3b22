"""Task repository: listing, CRUD and the completion transition rule."""

from __future__ import annotations

import logging
import re
from datetime import datetime
from typing import Any, Mapping

from pymongo import ASCENDING, DESCENDING, ReturnDocument

from tracker.clock import SystemClock
from tracker.errors import NotFoundError
from tracker.models import (
    Task,
    TaskFilter,
    UpdateTaskFields,
    coerce_due_date,
    coerce_notes,
    coerce_priority,
    coerce_status,
    coerce_tags,
    coerce_title,
)
from tracker.store import Store, is_object_id, parse_object_id, store_errors, to_store_datetime

logger = logging.getLogger(__name__)


def build_query(flt: TaskFilter) -> dict[str, Any]:
    """Translate a TaskFilter into a MongoDB query document."""
    where: dict[str, Any] = {}
    if flt.status:
        where["status"] = flt.status
    if flt.priority:
        where["priority"] = flt.priority
    if flt.tag:
        where["tags"] = flt.tag
    if flt.q:
        where["title"] = {"$regex": re.escape(flt.q), "$options": "i"}
    return where


def build_sort(flt: TaskFilter) -> list[tuple[str, int]]:
    direction = ASCENDING if flt.dir == "asc" else DESCENDING
    return [(flt.sort, direction), ("_id", DESCENDING)]


def completion_change(current_status: str, next_status: str, now: datetime) -> dict[str, Any]:
    """Fields to set alongside a status change.

    Entering ``done`` stamps completedAt; leaving it clears completedAt.
    Any other change (or no change) leaves completedAt alone.
    """
    if current_status != "done" and next_status == "done":
        return {"completedAt": to_store_datetime(now)}
    if current_status == "done" and next_status != "done":
        return {"completedAt": None}
    return {}


class TaskRepository:
    """CRUD over the ``tasks`` collection."""

    def __init__(self, store: Store, clock: SystemClock) -> None:
        self._store = store
        self._clock = clock

    def list(self, flt: TaskFilter | None = None) -> list[Task]:
        flt = flt or TaskFilter()
        with store_errors("list tasks"):
            cursor = self._store.tasks.find(build_query(flt)).sort(build_sort(flt))
            return [Task.from_doc(d) for d in cursor]

    def get(self, task_id: str) -> Task:
        oid = parse_object_id(task_id)
        with store_errors("get task"):
            doc = self._store.tasks.find_one({"_id": oid})
        if doc is None:
            raise NotFoundError()
        return Task.from_doc(doc)

    def create(self, payload: Mapping[str, Any]) -> Task:
        """Validate and insert a new task. Nothing is written on validation failure."""
        title = coerce_title(payload.get("title"))
        status = payload.get("status")
        now = to_store_datetime(self._clock.now())
        doc: dict[str, Any] = {
            "title": title,
            "notes": coerce_notes(payload.get("notes", "")),
            "status": "todo" if status is None else coerce_status(status),
            "priority": coerce_priority(payload.get("priority", 2)),
            "dueDate": to_store_datetime(coerce_due_date(payload.get("dueDate"))),
            "tags": coerce_tags(payload.get("tags", [])),
            "completedAt": None,
            "createdAt": now,
            "updatedAt": now,
        }
        with store_errors("create task"):
            result = self._store.tasks.insert_one(doc)
        doc["_id"] = result.inserted_id
        logger.info("Created task %s", result.inserted_id)
        return Task.from_doc(doc)

    def update(self, task_id: str, fields: UpdateTaskFields) -> Task:
        oid = parse_object_id(task_id)
        update = fields.changes()
        if "dueDate" in update:
            update["dueDate"] = to_store_datetime(update["dueDate"])

        with store_errors("update task"):
            if "status" in update:
                current = self._store.tasks.find_one({"_id": oid}, {"status": 1})
                if current is None:
                    raise NotFoundError()
                update.update(
                    completion_change(current.get("status", "todo"), update["status"], self._clock.now())
                )

            update["updatedAt"] = to_store_datetime(self._clock.now())
            doc = self._store.tasks.find_one_and_update(
                {"_id": oid},
                {"$set": update},
                return_document=ReturnDocument.AFTER,
            )
        if doc is None:
            raise NotFoundError()
        return Task.from_doc(doc)

    def delete(self, task_id: str) -> dict[str, bool]:
        """Remove a task. Focus sessions pointing at it are left dangling."""
        oid = parse_object_id(task_id)
        with store_errors("delete task"):
            result = self._store.tasks.delete_one({"_id": oid})
        if result.deleted_count == 0:
            raise NotFoundError()
        logger.info("Deleted task %s", oid)
        return {"ok": True}

    def titles_for(self, task_ids: list[str]) -> dict[str, str]:
        """Map of existing task id -> title; missing or malformed ids are simply absent."""
        oids = [parse_object_id(t) for t in task_ids if is_object_id(t)]
        if not oids:
            return {}
        with store_errors("resolve task titles"):
            cursor = self._store.tasks.find({"_id": {"$in": oids}}, {"title": 1})
            return {str(d["_id"]): str(d.get("title", "")) for d in cursor}
