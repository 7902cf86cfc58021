"""
Core Module - Clock.

============================================================
RESPONSIBILITY
============================================================
Provides a testable clock for every time-dependent calculation:
trailing windows for scoring, grant expiry, cache TTLs and
time-series day boundaries.

============================================================
DESIGN PRINCIPLES
============================================================
- All datetimes are naive UTC (matches what the store returns)
- Engines take a clock argument, defaulting to the global one
- MockClock makes trailing-window tests deterministic

============================================================
"""

from abc import ABC, abstractmethod
from contextlib import contextmanager
from datetime import date, datetime, time, timedelta, timezone
from typing import Generator, Optional
import threading


def to_naive_utc(value: datetime) -> datetime:
    """Normalize a datetime to naive UTC."""
    if value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def start_of_day(day: date) -> datetime:
    """Midnight at the start of a UTC day."""
    return datetime.combine(day, time.min)


def end_of_day(day: date) -> datetime:
    """Last representable instant of a UTC day."""
    return datetime.combine(day, time.max)


# ============================================================
# CLOCK PROTOCOL
# ============================================================

class ClockProtocol(ABC):
    """Abstract interface for the engine clock."""

    @abstractmethod
    def now(self) -> datetime:
        """Get current naive UTC datetime."""
        pass

    def today(self) -> date:
        """Get current UTC date."""
        return self.now().date()

    def days_ago(self, days: int) -> date:
        """Date `days` calendar days before today."""
        return self.today() - timedelta(days=days)


# ============================================================
# SYSTEM CLOCK (PRODUCTION)
# ============================================================

class SystemClock(ClockProtocol):
    """Production clock using actual system time."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc).replace(tzinfo=None)


# ============================================================
# MOCK CLOCK (TESTING)
# ============================================================

class MockClock(ClockProtocol):
    """
    Mock clock for testing.

    Allows time manipulation for deterministic tests.
    """

    def __init__(self, initial_time: Optional[datetime] = None):
        """
        Initialize mock clock.

        Args:
            initial_time: Starting time (defaults to current UTC)
        """
        self._time = to_naive_utc(initial_time) if initial_time else SystemClock().now()
        self._lock = threading.Lock()

    def now(self) -> datetime:
        with self._lock:
            return self._time

    def set_time(self, new_time: datetime) -> None:
        """Set the current time."""
        with self._lock:
            self._time = to_naive_utc(new_time)

    def advance(self, seconds: float = 0, **kwargs) -> None:
        """
        Advance time by the specified amount.

        Args:
            seconds: Number of seconds to advance
            **kwargs: Passed to timedelta (hours, minutes, days, etc.)
        """
        with self._lock:
            self._time = self._time + timedelta(seconds=seconds, **kwargs)

    @contextmanager
    def freeze(self, at_time: Optional[datetime] = None) -> Generator[None, None, None]:
        """
        Context manager that pins the time and restores it afterwards.

        Args:
            at_time: Time to freeze at (defaults to current)
        """
        with self._lock:
            original_time = self._time
            if at_time:
                self._time = to_naive_utc(at_time)

        try:
            yield
        finally:
            with self._lock:
                self._time = original_time


# ============================================================
# GLOBAL CLOCK
# ============================================================

_clock: Optional[ClockProtocol] = None
_clock_lock = threading.Lock()


def get_clock() -> ClockProtocol:
    """Get the global clock instance."""
    global _clock
    with _clock_lock:
        if _clock is None:
            _clock = SystemClock()
        return _clock


def set_clock(clock: Optional[ClockProtocol]) -> None:
    """Replace the global clock. Passing None restores the system clock."""
    global _clock
    with _clock_lock:
        _clock = clock
