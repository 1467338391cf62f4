# src/fanin/core/clock.py
"""Clock abstraction for testable key generation.

Push keys embed a wall-clock millisecond timestamp. Production code uses
SystemClock (the default); tests inject MockClock to pin or advance time.
"""

from __future__ import annotations

import time
from typing import Protocol


class Clock(Protocol):
    """Abstract wall clock with millisecond resolution."""

    def time_ms(self) -> int:
        """Return milliseconds since the Unix epoch."""
        ...


class SystemClock:
    """Production clock backed by time.time_ns()."""

    def time_ms(self) -> int:
        return time.time_ns() // 1_000_000


class MockClock:
    """Controllable clock for deterministic testing.

    Example:
        clock = MockClock(start_ms=1_700_000_000_000)
        keys = PushKeyGenerator(clock=clock)
        first = keys.generate()
        clock.advance(5)
        assert keys.generate() > first
    """

    def __init__(self, start_ms: int = 0) -> None:
        self._current = start_ms

    def time_ms(self) -> int:
        return self._current

    def advance(self, ms: int) -> None:
        """Advance mock time.

        Raises:
            ValueError: If ms is negative.
        """
        if ms < 0:
            raise ValueError(f"Cannot advance time by negative amount: {ms}")
        self._current += ms


# Default clock for production use
DEFAULT_CLOCK: Clock = SystemClock()
