"""
Clock -- injectable time source for the payables lifecycle.

Due-date checks ("is this invoice past due?"), payment-date defaults and
the lifecycle scheduler all read time from a ``Clock`` handed to them at
construction.  Nothing below the kernel calls ``datetime.now()`` or
``date.today()`` itself.

All clocks speak UTC.  "Today" is the UTC calendar date of ``now()``, so
an invoice due on the 14th becomes overdue when the UTC date reaches the
15th.
"""

from abc import ABC, abstractmethod
from datetime import date, datetime, timedelta, timezone

DEFAULT_TEST_TIME = datetime(2024, 1, 15, 12, 0, 0, tzinfo=timezone.utc)


class Clock(ABC):
    """Source of the current moment (timezone-aware, UTC)."""

    @abstractmethod
    def now(self) -> datetime:
        ...

    def today(self) -> date:
        return self.now().date()


class SystemClock(Clock):
    """Wall-clock time.  The only place real time enters the system."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class DeterministicClock(Clock):
    """
    Clock whose time only moves when told to.

    ``now()`` is stable between calls.  ``advance`` and ``advance_days``
    move it forward; ``set_time`` jumps to an absolute moment, which is how
    scheduler tests land on a cron minute.
    """

    def __init__(self, fixed_time: datetime | None = None):
        self._current = fixed_time or DEFAULT_TEST_TIME

    def now(self) -> datetime:
        return self._current

    def set_time(self, time: datetime) -> None:
        self._current = time

    def advance(self, seconds: int = 1) -> None:
        self._current += timedelta(seconds=seconds)

    def advance_days(self, days: int = 1) -> None:
        self._current += timedelta(days=days)

    def tick(self) -> datetime:
        """Move one second forward and return the new moment."""
        self.advance(1)
        return self._current
