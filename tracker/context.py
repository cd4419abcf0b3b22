"""Process-wide application context, built once at startup."""

from __future__ import annotations

from dataclasses import dataclass

from tracker.clock import SystemClock
from tracker.focus import FocusSessionRepository
from tracker.settings import Settings
from tracker.stats import StatsEngine
from tracker.store import Store, connect
from tracker.tasks import TaskRepository


@dataclass
class AppContext:
    settings: Settings
    clock: SystemClock
    store: Store
    tasks: TaskRepository
    focus: FocusSessionRepository
    stats: StatsEngine

    @classmethod
    def build(cls, settings: Settings, store: Store, clock: SystemClock | None = None) -> AppContext:
        """Wire repositories around an already connected store."""
        clock = clock or SystemClock(settings.tz)
        tasks = TaskRepository(store, clock)
        return cls(
            settings=settings,
            clock=clock,
            store=store,
            tasks=tasks,
            focus=FocusSessionRepository(store, clock, tasks),
            stats=StatsEngine(store, clock),
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> AppContext:
        """Connect to MongoDB (fail fast) and wire everything."""
        return cls.build(settings, connect(settings))

    def close(self) -> None:
        self.store.close()
