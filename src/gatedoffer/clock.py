"""Time sources.

Campaign components read time through a ``Clock`` — any zero-argument
callable returning unix seconds. Production code uses ``system_clock``;
tests drive a ``ManualClock``.
"""

from __future__ import annotations

import time
from typing import Callable

Clock = Callable[[], int]


def system_clock() -> int:
    """Current unix time in whole seconds."""
    return int(time.time())


class ManualClock:
    """A clock that only moves when told to.

    Usage:
        clock = ManualClock(1_700_000_000)
        clock.advance(100)
        assert clock() == 1_700_000_100
    """

    def __init__(self, start: int = 0) -> None:
        self._now = start

    def __call__(self) -> int:
        return self._now

    def advance(self, seconds: int) -> int:
        if seconds < 0:
            raise ValueError("Clock cannot move backwards")
        self._now += seconds
        return self._now

    def set(self, now: int) -> None:
        if now < self._now:
            raise ValueError("Clock cannot move backwards")
        self._now = now
