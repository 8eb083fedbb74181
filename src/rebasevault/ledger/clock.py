from __future__ import annotations

import time


def wall_clock() -> int:
    """Current UNIX time in whole seconds."""
    return int(time.time())


class ManualClock:
    """Deterministic clock for simulations and tests.

    Only moves when told to; callable like `wall_clock`.
    """

    def __init__(self, start: int = 1):
        self.now = int(start)

    def __call__(self) -> int:
        return self.now

    def advance(self, seconds: int) -> int:
        if seconds < 0:
            raise ValueError("clock cannot move backwards")
        self.now += int(seconds)
        return self.now

    def warp(self, ts: int) -> int:
        if ts < self.now:
            raise ValueError("clock cannot move backwards")
        self.now = int(ts)
        return self.now
