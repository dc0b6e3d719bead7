"""
Clock -- Deterministic time abstraction.

Responsibility:
    Provides an injectable clock so that domain, selector and service code
    never call ``datetime.now()`` directly.  Deadlines, overdue scans and
    history timestamps all read time through a Clock.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O (except SystemClock,
    which is the one sanctioned I/O boundary for time).

Failure modes:
    - DeterministicClock.set_time raises ValueError on a naive datetime.
"""

from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone


class Clock(ABC):
    """
    Abstract clock interface.

    Contract:
        All services that need current time receive a Clock instance via
        constructor injection.

    Guarantees:
        - ``now()`` returns a timezone-aware UTC ``datetime``.
    """

    @abstractmethod
    def now(self) -> datetime:
        """Get the current time."""
        ...


class SystemClock(Clock):
    """Production clock that returns actual system time."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class DeterministicClock(Clock):
    """
    Test clock with controlled time.

    Guarantees:
        - ``now()`` returns the same value on repeated calls until
          ``advance()`` or ``set_time()`` is called.
    """

    def __init__(self, fixed_time: datetime | None = None):
        """
        Args:
            fixed_time: Starting time.  Defaults to 2024-01-01 12:00 UTC.
        """
        self._fixed_time = fixed_time or datetime(
            2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc
        )
        if self._fixed_time.tzinfo is None:
            raise ValueError("DeterministicClock requires a timezone-aware time")
        self._offset = timedelta(0)

    def now(self) -> datetime:
        return (self._fixed_time + self._offset).astimezone(timezone.utc)

    def set_time(self, time: datetime) -> None:
        """Set the clock to a specific time."""
        if time.tzinfo is None:
            raise ValueError("DeterministicClock requires a timezone-aware time")
        self._fixed_time = time
        self._offset = timedelta(0)

    def advance(self, seconds: int = 0, *, days: int = 0, hours: int = 0) -> None:
        """Advance the clock by the given amount."""
        self._offset += timedelta(days=days, hours=hours, seconds=seconds)
