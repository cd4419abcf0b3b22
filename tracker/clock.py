"""Clock and day-boundary helpers.

All boundaries are computed in one configured timezone so that "today"
and day buckets do not depend on where a record was written from.
"""

from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone
from zoneinfo import ZoneInfo


class SystemClock:
    """Wall clock in the configured timezone."""

    def __init__(self, tz: ZoneInfo | None = None) -> None:
        self.tz = tz or ZoneInfo("UTC")

    def now(self) -> datetime:
        return datetime.now(self.tz)

    def today(self) -> date:
        return self.now().date()

    def start_of_day(self, day: date) -> datetime:
        """Local midnight of ``day`` as an aware datetime."""
        return datetime.combine(day, time.min, tzinfo=self.tz)

    def start_of_today(self) -> datetime:
        return self.start_of_day(self.today())

    def start_of_n_days_ago(self, n: int) -> datetime:
        return self.start_of_day(self.today() - timedelta(days=n))

    def day_of(self, moment: datetime) -> date:
        """Calendar day of ``moment`` in the clock's timezone (naive = UTC)."""
        if moment.tzinfo is None:
            moment = moment.replace(tzinfo=timezone.utc)
        return moment.astimezone(self.tz).date()


class FrozenClock(SystemClock):
    """Clock pinned to a fixed instant; ``advance`` moves it forward."""

    def __init__(self, moment: datetime, tz: ZoneInfo | None = None) -> None:
        super().__init__(tz)
        if moment.tzinfo is None:
            moment = moment.replace(tzinfo=self.tz)
        self._moment = moment.astimezone(self.tz)

    def now(self) -> datetime:
        return self._moment

    def advance(self, **delta: float) -> datetime:
        self._moment = self._moment + timedelta(**delta)
        return self._moment

    def set(self, moment: datetime) -> None:
        if moment.tzinfo is None:
            moment = moment.replace(tzinfo=self.tz)
        self._moment = moment.astimezone(self.tz)
