"""Per-agent movement tracking for predictive chunk loading."""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable

from dynregion.core.models import Position

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class AgentMovementState:
    """Last observation plus derived velocity (blocks/second) and forecast."""

    last_position: Position
    last_update: float
    velocity_x: float = 0.0
    velocity_z: float = 0.0
    predicted_x: float = 0.0
    predicted_z: float = 0.0

    def predicted_position(self) -> Position:
        return Position(self.last_position.world, self.predicted_x, self.last_position.y, self.predicted_z)

    @property
    def speed(self) -> float:
        return (self.velocity_x ** 2 + self.velocity_z ** 2) ** 0.5


class MovementPredictor:
    """Tracks agents and extrapolates their position a fixed horizon ahead.

    State is created on first observation, refreshed on every later one and
    dropped on ``remove``. All access goes through one lock so readers on
    other threads always see a consistent record.
    """

    __slots__ = ("_horizon", "_clock", "_states", "_lock")

    def __init__(self, horizon_seconds: float = 2.0, clock: Callable[[], float] = time.monotonic) -> None:
        self._horizon = horizon_seconds
        self._clock = clock
        self._states: dict[str, AgentMovementState] = {}
        self._lock = threading.Lock()

    @property
    def horizon(self) -> float:
        return self._horizon

    def update(self, agent_id: str, position: Position) -> AgentMovementState:
        now = self._clock()
        with self._lock:
            state = self._states.get(agent_id)
            if state is None:
                state = AgentMovementState(
                    last_position=position, last_update=now,
                    predicted_x=position.x, predicted_z=position.z,
                )
                self._states[agent_id] = state
                return state

            if position.world != state.last_position.world:
                # Teleport between worlds: old velocity says nothing about the new one
                state.velocity_x = 0.0
                state.velocity_z = 0.0
            else:
                dt = now - state.last_update
                if dt > 0:
                    state.velocity_x = (position.x - state.last_position.x) / dt
                    state.velocity_z = (position.z - state.last_position.z) / dt

            state.predicted_x = position.x + state.velocity_x * self._horizon
            state.predicted_z = position.z + state.velocity_z * self._horizon
            state.last_position = position
            state.last_update = now
            return state

    def remove(self, agent_id: str) -> None:
        with self._lock:
            self._states.pop(agent_id, None)

    def get(self, agent_id: str) -> AgentMovementState | None:
        with self._lock:
            state = self._states.get(agent_id)
            if state is None:
                return None
            return AgentMovementState(
                last_position=state.last_position, last_update=state.last_update,
                velocity_x=state.velocity_x, velocity_z=state.velocity_z,
                predicted_x=state.predicted_x, predicted_z=state.predicted_z,
            )

    def predicted_position(self, agent_id: str) -> Position | None:
        with self._lock:
            state = self._states.get(agent_id)
            return state.predicted_position() if state is not None else None

    def tracked_ids(self) -> set[str]:
        with self._lock:
            return set(self._states)

    def prune_stale(self, max_age_seconds: float) -> int:
        """Drop agents not observed for *max_age_seconds*; returns how many."""
        cutoff = self._clock() - max_age_seconds
        with self._lock:
            stale = [aid for aid, s in self._states.items() if s.last_update < cutoff]
            for aid in stale:
                del self._states[aid]
        if stale:
            logger.debug("Pruned %d stale movement records", len(stale))
        return len(stale)

    def clear(self) -> None:
        with self._lock:
            self._states.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._states)
