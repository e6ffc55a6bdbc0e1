"""
Identifier generation.

Entity ids are millisecond timestamps, matching the ids already in stored
data. Two calls inside the same millisecond would collide, so the generator
hands out max(now, last + 1): ids stay close to the wall clock but are
strictly increasing.
"""

import threading
import time
from typing import Callable, Optional


def _now_ms() -> int:
    return time.time_ns() // 1_000_000


class IdGenerator:
    """Strictly increasing, timestamp-based integer ids."""

    def __init__(self, clock: Optional[Callable[[], int]] = None):
        """
        Args:
            clock: Returns the current time in milliseconds.
                   Defaults to the system clock.
        """
        self._clock = clock or _now_ms
        self._last = 0
        self._lock = threading.Lock()

    def next_id(self) -> int:
        """Return a new id greater than every id returned before."""
        with self._lock:
            self._last = max(self._clock(), self._last + 1)
            return self._last

    def observe(self, existing_id: int) -> None:
        """Never hand out an id at or below one already in use."""
        with self._lock:
            self._last = max(self._last, existing_id)
