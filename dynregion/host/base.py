"""WorldHost — the I/O surface between the controller and the host runtime.

The controller only decides *what* to load, unload, cap or scale; a host
carries it out. Load/unload/remove/set calls report success as a bool and
may also raise; callers treat both as a transient failure and retry on a
later cycle.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Iterable

from dynregion.core.capabilities import HostCapabilities
from dynregion.core.models import Agent, ChunkKey, EntityInfo


class WorldHost(ABC):
    """Abstract host runtime."""

    @property
    @abstractmethod
    def capabilities(self) -> HostCapabilities: ...

    @abstractmethod
    def online_agents(self) -> list[Agent]:
        """Current observation of every connected agent."""

    @abstractmethod
    def worlds(self) -> list[str]: ...

    # -- chunks --

    @abstractmethod
    def load_chunk(self, chunk: ChunkKey) -> bool: ...

    @abstractmethod
    def unload_chunk(self, chunk: ChunkKey) -> bool: ...

    @abstractmethod
    def is_chunk_loaded(self, chunk: ChunkKey) -> bool: ...

    @abstractmethod
    def loaded_chunks(self, world: str) -> Iterable[ChunkKey]: ...

    def loaded_chunk_count(self, world: str) -> int:
        return sum(1 for _ in self.loaded_chunks(world))

    # -- entities --

    @abstractmethod
    def entities(self, world: str) -> list[EntityInfo]: ...

    @abstractmethod
    def remove_entity(self, entity_id: int) -> bool: ...

    # -- optional capabilities --

    def set_view_distance(self, agent_id: str, distance: int) -> bool:
        """Only called when ``capabilities.per_agent_view_distance`` is set."""
        return False

    def set_random_tick_scale(self, world: str, scale: float) -> bool:
        """Only called when ``capabilities.random_tick_scaling`` is set."""
        return False

    # -- performance signals --

    @abstractmethod
    def tick_timings(self) -> tuple[float, float]:
        """Return the latest measured (mspt, tps)."""
