# src/phasetrace/telemetry/clock.py
"""Clock abstraction for testable event timestamps.

Production code uses SystemClock (the default).
Tests inject MockClock to pin and advance wall-clock time.
"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from typing import Protocol


class Clock(Protocol):
    """Source of current UTC time for event timestamps."""

    def now(self) -> datetime:
        """Return the current time as a timezone-aware UTC datetime."""
        ...


class SystemClock:
    """Production clock backed by the system wall clock."""

    def now(self) -> datetime:
        """Return current system time in UTC."""
        return datetime.now(tz=UTC)


class MockClock:
    """Controllable clock for deterministic testing.

    Example:
        clock = MockClock(datetime(2026, 1, 30, 12, 0, tzinfo=UTC))
        tracer = LangfuseTracer(config, clock=clock)
        clock.advance(1.5)
    """

    def __init__(self, start: datetime | None = None) -> None:
        """Initialize mock clock.

        Args:
            start: Initial time. Must be timezone-aware. Defaults to
                2026-01-01T00:00:00Z.

        Raises:
            ValueError: If start is naive.
        """
        if start is None:
            start = datetime(2026, 1, 1, tzinfo=UTC)
        if start.tzinfo is None:
            raise ValueError("MockClock requires a timezone-aware start time")
        self._current = start.astimezone(UTC)

    def now(self) -> datetime:
        """Return current mock time."""
        return self._current

    def advance(self, seconds: float) -> None:
        """Advance mock time by specified seconds.

        Raises:
            ValueError: If seconds is negative.
        """
        if seconds < 0:
            raise ValueError(f"Cannot advance time by negative amount: {seconds}")
        self._current += timedelta(seconds=seconds)


def format_timestamp(value: datetime) -> str:
    """Render a UTC datetime as ISO-8601 with a trailing Z."""
    return value.astimezone(UTC).isoformat(timespec="microseconds").replace("+00:00", "Z")


# Default clock for production use
DEFAULT_CLOCK: Clock = SystemClock()
