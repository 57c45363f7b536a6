"""
Injectable time source.

Services take a ``Clock`` and never call ``datetime.now()`` themselves.
Engines take no clock at all: lock age, overdue days and reminder dates
are computed from times the caller passes in.

Consumers:
    - EditLockManager: acquisition timestamps and expiry.
    - WorkflowPolicy: ``completed_at`` and ``lost_at`` stamps.
    - CommissionRuleService: ``updated_at`` on saved rules.
"""

from abc import ABC, abstractmethod
from datetime import date, datetime, timedelta, timezone

EPOCH_FOR_TESTS = datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


class Clock(ABC):
    """Source of timezone-aware UTC timestamps."""

    @abstractmethod
    def now(self) -> datetime: ...

    def today(self) -> date:
        return self.now().date()


class SystemClock(Clock):
    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class DeterministicClock(Clock):
    """
    Clock that only moves when told to.

    Lock expiry tests step it forward by exact second counts, so
    ``now()`` is stable between calls.
    """

    def __init__(self, start: datetime | None = None):
        self._current = start or EPOCH_FOR_TESTS

    def now(self) -> datetime:
        return self._current

    def advance(self, seconds: float = 1) -> None:
        self._current += timedelta(seconds=seconds)

    def tick(self) -> datetime:
        """Step one second and return the new time."""
        self.advance(1)
        return self._current
