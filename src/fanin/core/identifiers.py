# src/fanin/core/identifiers.py
"""Push-key generation for store records.

Keys are 8 timestamp characters followed by random entropy characters,
drawn from an alphabet whose ASCII order matches its numeric order. Keys
therefore sort chronologically, and keys generated within the same
millisecond still sort in generation order because the entropy part is
incremented rather than redrawn.
"""

from __future__ import annotations

import secrets
import threading

from fanin.contracts.records import RecordKey
from fanin.core.clock import DEFAULT_CLOCK, Clock

# 64 characters in ascending ASCII order
PUSH_CHARS = "-0123456789ABCDEFGHIJKLMNOPQRSTUVWXYZ_abcdefghijklmnopqrstuvwxyz"

TIMESTAMP_CHARS = 8


class PushKeyGenerator:
    """Thread-safe generator of chronologically sortable keys.

    Example:
        keys = PushKeyGenerator()
        key = keys.generate()   # e.g. "-NqZb3Xa0Bc9dEfGh1Ij"
    """

    def __init__(self, *, entropy_chars: int = 12, clock: Clock | None = None) -> None:
        """Initialize generator.

        Args:
            entropy_chars: Number of random characters after the timestamp
            clock: Clock for the timestamp part. Defaults to system clock.

        Raises:
            ValueError: If entropy_chars < 1
        """
        if entropy_chars < 1:
            raise ValueError(f"entropy_chars must be >= 1, got {entropy_chars}")
        self._entropy_chars = entropy_chars
        self._clock = clock if clock is not None else DEFAULT_CLOCK
        self._lock = threading.Lock()
        self._last_ms = -1
        self._last_entropy: list[int] = []

    def generate(self) -> RecordKey:
        """Return a fresh key."""
        with self._lock:
            now = self._clock.time_ms()
            if now == self._last_ms:
                self._increment_entropy()
            else:
                self._last_ms = now
                self._last_entropy = [secrets.randbelow(64) for _ in range(self._entropy_chars)]
            entropy = self._last_entropy.copy()

        stamp = []
        for _ in range(TIMESTAMP_CHARS):
            stamp.append(PUSH_CHARS[now % 64])
            now //= 64
        if now:
            raise ValueError("Clock value does not fit in a push-key timestamp")
        return RecordKey("".join(reversed(stamp)) + "".join(PUSH_CHARS[i] for i in entropy))

    def _increment_entropy(self) -> None:
        # Same millisecond: add one to the entropy, carrying leftwards
        i = self._entropy_chars - 1
        while i >= 0 and self._last_entropy[i] == 63:
            self._last_entropy[i] = 0
            i -= 1
        if i >= 0:
            self._last_entropy[i] += 1
