"""Overview statistics: completions today, completion streak, weekly focus minutes.

Day boundaries and day buckets all use the clock's timezone.
"""

from __future__ import annotations

import logging
from datetime import date, timedelta

from tracker.clock import SystemClock
from tracker.models import Overview
from tracker.store import Store, from_store_datetime, store_errors, to_store_datetime

logger = logging.getLogger(__name__)

STREAK_WINDOW_DAYS = 60
WEEK_DAYS = 7


def count_streak(covered: set[date], today: date, window: int = STREAK_WINDOW_DAYS) -> int:
    """Consecutive covered days ending at ``today``; stops at the first gap."""
    streak = 0
    for offset in range(window):
        if today - timedelta(days=offset) in covered:
            streak += 1
        else:
            break
    return streak


class StatsEngine:
    def __init__(self, store: Store, clock: SystemClock) -> None:
        self._store = store
        self._clock = clock

    def today_completed(self) -> int:
        since = to_store_datetime(self._clock.start_of_today())
        with store_errors("count completed tasks"):
            return self._store.tasks.count_documents(
                {"status": "done", "completedAt": {"$gte": since}}
            )

    def completion_days(self) -> set[date]:
        """Calendar days within the streak window with at least one completion."""
        since = to_store_datetime(self._clock.start_of_n_days_ago(STREAK_WINDOW_DAYS))
        with store_errors("load completions"):
            cursor = self._store.tasks.find(
                {"status": "done", "completedAt": {"$gte": since}},
                {"completedAt": 1},
            )
            stamps = [from_store_datetime(d.get("completedAt")) for d in cursor]
        return {self._clock.day_of(s) for s in stamps if s is not None}

    def streak(self) -> int:
        return count_streak(self.completion_days(), self._clock.today())

    def weekly_focus_minutes(self) -> int:
        """Sum of durationMin for sessions started in the last 7 days, today included."""
        since = to_store_datetime(self._clock.start_of_n_days_ago(WEEK_DAYS - 1))
        with store_errors("aggregate focus minutes"):
            rows = list(
                self._store.sessions.aggregate(
                    [
                        {"$match": {"startedAt": {"$gte": since}}},
                        {"$group": {"_id": None, "minutes": {"$sum": "$durationMin"}}},
                    ]
                )
            )
        return int(rows[0]["minutes"]) if rows else 0

    def overview(self) -> Overview:
        # Three independent reads; no snapshot across them.
        result = Overview(
            today_completed=self.today_completed(),
            streak=self.streak(),
            weekly_focus_minutes=self.weekly_focus_minutes(),
        )
        logger.debug("Overview computed: %s", result)
        return result
