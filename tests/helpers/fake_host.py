"""FakeHost — scriptable WorldHost for unit tests.

Records every call the controller makes and lets a test decide which
loads fail, what the tick timings are and which agents are online.

Usage:
    host = FakeHost()
    host.add_agent("a", 10, 10)
    host.fail_loads.add(ChunkKey("world", 0, 0))
    manager = RegionBudgetManager(config, host, clock=clock)
"""

from __future__ import annotations

import os
import sys

sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", ".."))

from dynregion.core.capabilities import HostCapabilities
from dynregion.core.enums import EntityCategory
from dynregion.core.models import Agent, ChunkKey, EntityInfo, Position
from dynregion.host.base import WorldHost

FULL_CAPABILITIES = HostCapabilities(
    name="fake", per_agent_view_distance=True, random_tick_scaling=True, partitioned_scheduling=False,
)


class FakeHost(WorldHost):
    def __init__(self, capabilities: HostCapabilities | None = None, worlds=("world",)) -> None:
        self._capabilities = capabilities or FULL_CAPABILITIES
        self._worlds = list(worlds)
        self.agents: dict[str, Agent] = {}
        self.entity_map: dict[int, EntityInfo] = {}
        self.loaded: set[ChunkKey] = set()
        self.load_calls: list[ChunkKey] = []
        self.unload_calls: list[ChunkKey] = []
        self.fail_loads: set[ChunkKey] = set()
        self.fail_unloads: set[ChunkKey] = set()
        self.raise_on_load = False
        self.refuse_view_distance = False
        self.view_distances: dict[str, int] = {}
        self.tick_scales: dict[str, float] = {}
        self.timings = (20.0, 20.0)
        self._next_entity_id = 1

    # -- test setup --

    def add_agent(self, agent_id: str, x: float, z: float, world: str | None = "world") -> Agent:
        agent = Agent(agent_id, Position(world, x, 64.0, z))
        self.agents[agent_id] = agent
        return agent

    def remove_agent(self, agent_id: str) -> None:
        self.agents.pop(agent_id, None)

    def add_entity(self, category: EntityCategory, x: float, z: float, world: str = "world") -> EntityInfo:
        entity = EntityInfo(self._next_entity_id, category, Position(world, x, 64.0, z))
        self._next_entity_id += 1
        self.entity_map[entity.entity_id] = entity
        return entity

    def preload(self, *chunks: ChunkKey) -> None:
        self.loaded.update(chunks)

    # -- WorldHost --

    @property
    def capabilities(self) -> HostCapabilities:
        return self._capabilities

    def online_agents(self) -> list[Agent]:
        return list(self.agents.values())

    def worlds(self) -> list[str]:
        return list(self._worlds)

    def load_chunk(self, chunk: ChunkKey) -> bool:
        self.load_calls.append(chunk)
        if self.raise_on_load:
            raise RuntimeError("host exploded")
        if chunk in self.fail_loads:
            return False
        self.loaded.add(chunk)
        return True

    def unload_chunk(self, chunk: ChunkKey) -> bool:
        self.unload_calls.append(chunk)
        if chunk in self.fail_unloads:
            return False
        self.loaded.discard(chunk)
        return True

    def is_chunk_loaded(self, chunk: ChunkKey) -> bool:
        return chunk in self.loaded

    def loaded_chunks(self, world: str) -> list[ChunkKey]:
        return sorted(c for c in self.loaded if c.world == world)

    def entities(self, world: str) -> list[EntityInfo]:
        return [e for e in self.entity_map.values() if e.position.world == world]

    def remove_entity(self, entity_id: int) -> bool:
        return self.entity_map.pop(entity_id, None) is not None

    def set_view_distance(self, agent_id: str, distance: int) -> bool:
        if self.refuse_view_distance:
            return False
        self.view_distances[agent_id] = distance
        return True

    def set_random_tick_scale(self, world: str, scale: float) -> bool:
        self.tick_scales[world] = scale
        return True

    def tick_timings(self) -> tuple[float, float]:
        return self.timings
