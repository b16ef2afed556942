"""Thread-safe ring buffer for controller events exposed via the API."""

from __future__ import annotations

import threading
from collections import deque
from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class ControlEvent:
    """A single notable controller decision for the API event feed."""

    timestamp: float
    category: str
    message: str


class EventLog:
    """Bounded event log. Writers append; readers snapshot a slice.

    Oldest events are dropped once ``capacity`` is reached. Thread-safe via
    a simple lock; writes happen once per cycle and reads are copies.
    """

    __slots__ = ("_buffer", "_lock")

    def __init__(self, capacity: int = 500) -> None:
        self._buffer: deque[ControlEvent] = deque(maxlen=capacity)
        self._lock = threading.Lock()

    def append(self, event: ControlEvent) -> None:
        with self._lock:
            self._buffer.append(event)

    def append_many(self, events: list[ControlEvent]) -> None:
        with self._lock:
            self._buffer.extend(events)

    def since(self, timestamp: float) -> list[ControlEvent]:
        """Return all events with timestamp >= *timestamp*."""
        with self._lock:
            return [e for e in self._buffer if e.timestamp >= timestamp]

    def latest(self, count: int = 50) -> list[ControlEvent]:
        """Return the *count* most recent events."""
        with self._lock:
            items = list(self._buffer)
        return items[-count:] if count > 0 else []

    def clear(self) -> None:
        with self._lock:
            self._buffer.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._buffer)
