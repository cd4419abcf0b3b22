"""Typed dataclasses for the task tracker data model.

Entities are read from store documents with ``from_doc`` and rendered for
the API with ``to_dict``. Store keys and JSON keys are camelCase; Python
attributes are snake_case. Absent optionals render as ``None``.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Any, Mapping

from tracker.errors import ValidationError
from tracker.store import from_store_datetime

VALID_STATUSES = ("todo", "doing", "done")
VALID_PRIORITIES = (1, 2, 3)
SORT_FIELDS = ("createdAt", "priority", "dueDate", "title")
UPDATABLE_FIELDS = ("title", "notes", "status", "priority", "dueDate", "tags")


def isoformat(value: datetime | None) -> str | None:
    """UTC ISO-8601 with millisecond precision and a ``Z`` suffix."""
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    value = value.astimezone(timezone.utc)
    return value.isoformat(timespec="milliseconds").replace("+00:00", "Z")


# ── Field coercion ────────────────────────────────────────────


def coerce_title(value: Any) -> str:
    if not isinstance(value, str) or not value:
        raise ValidationError("title is required")
    return value


def coerce_notes(value: Any) -> str:
    if value is None:
        return ""
    return str(value)


def coerce_status(value: Any) -> str:
    if value not in VALID_STATUSES:
        raise ValidationError(f"Invalid status: {value!r}")
    return value


def _to_number(value: Any) -> float | None:
    if isinstance(value, bool):
        return float(value)
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value.strip())
        except ValueError:
            return None
    return None


def coerce_priority(value: Any) -> int:
    number = _to_number(value)
    if number is None or not number.is_integer() or int(number) not in VALID_PRIORITIES:
        raise ValidationError(f"priority must be one of 1, 2, 3 (got {value!r})")
    return int(number)


def coerce_due_date(value: Any) -> datetime | None:
    """Falsy -> None; ISO date/datetime string or epoch milliseconds -> UTC datetime."""
    if not value:
        return None
    if isinstance(value, bool):
        raise ValidationError(f"Invalid dueDate: {value!r}")
    if isinstance(value, (int, float)):
        if not math.isfinite(value):
            raise ValidationError(f"Invalid dueDate: {value!r}")
        try:
            return datetime.fromtimestamp(value / 1000, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            raise ValidationError(f"Invalid dueDate: {value!r}")
    if isinstance(value, str):
        text = value.strip()
        if text.endswith(("Z", "z")):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
            if parsed.tzinfo is None:
                parsed = parsed.replace(tzinfo=timezone.utc)
            # An offset can push year 1 or 9999 out of range.
            return parsed.astimezone(timezone.utc)
        except (OverflowError, ValueError):
            raise ValidationError(f"Invalid dueDate: {value!r}")
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day, tzinfo=timezone.utc)
    raise ValidationError(f"Invalid dueDate: {value!r}")


def coerce_tags(value: Any) -> list[str]:
    if not isinstance(value, (list, tuple)):
        return []
    return [str(t) for t in value]


# ── Tasks ─────────────────────────────────────────────────────


@dataclass
class Task:
    id: str = ""
    title: str = ""
    notes: str = ""
    status: str = "todo"
    priority: int = 2
    due_date: datetime | None = None
    tags: list[str] = field(default_factory=list)
    completed_at: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @classmethod
    def from_doc(cls, d: Mapping[str, Any]) -> Task:
        return cls(
            id=str(d.get("_id", "")),
            title=str(d.get("title", "")),
            notes=str(d.get("notes") or ""),
            status=str(d.get("status", "todo")),
            priority=int(d.get("priority", 2)),
            due_date=from_store_datetime(d.get("dueDate")),
            tags=[str(t) for t in (d.get("tags") or [])],
            completed_at=from_store_datetime(d.get("completedAt")),
            created_at=from_store_datetime(d.get("createdAt")),
            updated_at=from_store_datetime(d.get("updatedAt")),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "_id": self.id,
            "title": self.title,
            "notes": self.notes,
            "status": self.status,
            "priority": self.priority,
            "dueDate": isoformat(self.due_date),
            "tags": list(self.tags),
            "completedAt": isoformat(self.completed_at),
            "createdAt": isoformat(self.created_at),
            "updatedAt": isoformat(self.updated_at),
        }


@dataclass
class TaskFilter:
    """Normalized list options. Invalid status/priority are dropped, not rejected."""

    status: str | None = None
    priority: int | None = None
    tag: str | None = None
    q: str | None = None
    sort: str = "createdAt"
    dir: str = "desc"

    @classmethod
    def from_dict(cls, d: Mapping[str, Any]) -> TaskFilter:
        status = d.get("status")
        if status not in VALID_STATUSES:
            status = None

        number = _to_number(d.get("priority"))
        priority = int(number) if number is not None and number in VALID_PRIORITIES else None

        tag = str(d.get("tag") or "").strip() or None
        q = str(d.get("q") or "").strip() or None

        sort = d.get("sort") or "createdAt"
        if sort not in SORT_FIELDS:
            sort = "createdAt"
        direction = "asc" if str(d.get("dir") or "desc").lower() == "asc" else "desc"

        return cls(status=status, priority=priority, tag=tag, q=q, sort=sort, dir=direction)


class _Unset:
    """Marker for fields absent from a partial update."""

    _instance: _Unset | None = None

    def __new__(cls) -> _Unset:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "UNSET"

    def __bool__(self) -> bool:
        return False


UNSET: Any = _Unset()


@dataclass
class UpdateTaskFields:
    """Partial update of a Task. Only allow-listed fields; absent ones stay UNSET."""

    title: str | _Unset = UNSET
    notes: str | _Unset = UNSET
    status: str | _Unset = UNSET
    priority: int | _Unset = UNSET
    due_date: datetime | None | _Unset = UNSET
    tags: list[str] | _Unset = UNSET

    @classmethod
    def from_dict(cls, d: Mapping[str, Any]) -> UpdateTaskFields:
        """Copy and coerce the allow-listed keys; everything else is ignored."""
        fields = cls()
        if "title" in d:
            fields.title = coerce_title(d["title"])
        if "notes" in d:
            fields.notes = coerce_notes(d["notes"])
        if "status" in d:
            fields.status = coerce_status(d["status"])
        if "priority" in d:
            fields.priority = coerce_priority(d["priority"])
        if "dueDate" in d:
            fields.due_date = coerce_due_date(d["dueDate"])
        if "tags" in d:
            fields.tags = coerce_tags(d["tags"])
        return fields

    def changes(self) -> dict[str, Any]:
        """Provided fields keyed by their store names."""
        pairs = {
            "title": self.title,
            "notes": self.notes,
            "status": self.status,
            "priority": self.priority,
            "dueDate": self.due_date,
            "tags": self.tags,
        }
        return {k: v for k, v in pairs.items() if v is not UNSET}


# ── Focus sessions ────────────────────────────────────────────


@dataclass
class TaskRef:
    """Resolved weak reference from a session to its task."""

    id: str
    title: str

    def to_dict(self) -> dict[str, Any]:
        return {"_id": self.id, "title": self.title}


@dataclass
class FocusSession:
    id: str = ""
    task_id: str | None = None
    started_at: datetime | None = None
    ended_at: datetime | None = None
    duration_min: int = 0
    created_at: datetime | None = None
    updated_at: datetime | None = None
    task: TaskRef | None = None

    @classmethod
    def from_doc(cls, d: Mapping[str, Any]) -> FocusSession:
        task_id = d.get("taskId")
        return cls(
            id=str(d.get("_id", "")),
            task_id=str(task_id) if task_id is not None else None,
            started_at=from_store_datetime(d.get("startedAt")),
            ended_at=from_store_datetime(d.get("endedAt")),
            duration_min=int(d.get("durationMin", 0) or 0),
            created_at=from_store_datetime(d.get("createdAt")),
            updated_at=from_store_datetime(d.get("updatedAt")),
        )

    @property
    def is_open(self) -> bool:
        return self.ended_at == self.started_at

    def to_dict(self) -> dict[str, Any]:
        return {
            "_id": self.id,
            "taskId": self.task.to_dict() if self.task is not None else self.task_id,
            "startedAt": isoformat(self.started_at),
            "endedAt": isoformat(self.ended_at),
            "durationMin": self.duration_min,
            "createdAt": isoformat(self.created_at),
            "updatedAt": isoformat(self.updated_at),
        }


# ── Statistics ────────────────────────────────────────────────


@dataclass
class Overview:
    today_completed: int = 0
    streak: int = 0
    weekly_focus_minutes: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "todayCompleted": self.today_completed,
            "streak": self.streak,
            "weeklyFocusMinutes": self.weekly_focus_minutes,
        }
