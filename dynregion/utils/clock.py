"""Manually advanced clock for deterministic runs."""

from __future__ import annotations

import threading


class ManualClock:
    """Callable clock that only moves when told to.

    Drop-in for ``time.monotonic`` wherever a component takes a ``clock``.
    """

    __slots__ = ("_now", "_lock")

    def __init__(self, start: float = 0.0) -> None:
        self._now = start
        self._lock = threading.Lock()

    def __call__(self) -> float:
        with self._lock:
            return self._now

    def advance(self, seconds: float) -> float:
        if seconds < 0:
            raise ValueError("clock cannot go backwards")
        with self._lock:
            self._now += seconds
            return self._now

    def set(self, value: float) -> None:
        with self._lock:
            self._now = value
