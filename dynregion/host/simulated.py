"""SimulatedHost — an in-memory world used by the CLI, the server and tests.

Agents walk in groups toward RNG-chosen waypoints, a few wander alone,
entities are scattered per world and tick cost is modelled from what is
loaded. Every random draw goes through ``DeterministicRNG`` so a run is a
pure function of the seed and the sequence of ``advance`` calls.
"""

from __future__ import annotations

import logging
import math
import threading
from dataclasses import dataclass
from typing import TYPE_CHECKING

from dynregion.core.capabilities import HostCapabilities
from dynregion.core.enums import Domain, EntityCategory
from dynregion.core.models import Agent, ChunkKey, EntityInfo, Position
from dynregion.host.base import WorldHost
from dynregion.systems.rng import DeterministicRNG

if TYPE_CHECKING:
    from dynregion.config import RegionPerfConfig

logger = logging.getLogger(__name__)

WAYPOINT_REACHED_BLOCKS = 8.0
GROUP_SPREAD_BLOCKS = 24.0
RESPAWN_PER_SECOND = 5.0

# Tick cost model (milliseconds)
BASE_MSPT = 8.0
MSPT_PER_CHUNK = 0.05
MSPT_PER_ENTITY = 0.02
MSPT_PER_AGENT = 0.4
MSPT_PER_EXTRA_VIEW = 0.05
MSPT_JITTER = 2.0

_CATEGORY_WEIGHTS = (
    (EntityCategory.MOB, 0.45),
    (EntityCategory.ANIMAL, 0.35),
    (EntityCategory.PROJECTILE, 0.15),
    (EntityCategory.OTHER, 0.05),
)


@dataclass(slots=True)
class _Walker:
    """A group centre or a lone agent moving toward a waypoint."""

    walker_id: int
    world: str
    x: float
    z: float
    target_x: float
    target_z: float
    speed: float
    legs: int = 0


class SimulatedHost(WorldHost):
    """Deterministic stand-in for a real game server."""

    def __init__(
        self,
        config: RegionPerfConfig,
        rng: DeterministicRNG | None = None,
        capabilities: HostCapabilities | None = None,
        populate: bool = True,
    ) -> None:
        self._config = config
        self._rng = rng or DeterministicRNG(config.seed)
        self._capabilities = capabilities or HostCapabilities(
            name="simulated",
            per_agent_view_distance=True,
            random_tick_scaling=True,
            partitioned_scheduling=config.num_workers > 1,
        )
        self._worlds = list(config.sim_worlds)
        self._lock = threading.Lock()
        self._step = 0
        self._elapsed = 0.0

        self._walkers: dict[int, _Walker] = {}
        # agent id -> (walker id, dx, dz); agents without a walker stay put
        self._membership: dict[str, tuple[int, float, float]] = {}
        self._agents: dict[str, Agent] = {}
        self._entities: dict[int, EntityInfo] = {}
        self._next_entity_id = 1
        self._loaded: dict[str, set[ChunkKey]] = {w: set() for w in self._worlds}
        self._load_attempts = 0
        self._view_distances: dict[str, int] = {}
        self._tick_scales: dict[str, float] = {w: 1.0 for w in self._worlds}

        if populate:
            self._populate()

    # -- setup --

    def _populate(self) -> None:
        cfg = self._config
        for group in range(max(1, cfg.sim_groups)):
            self._walkers[group] = self._new_walker(group, self._worlds[group % len(self._worlds)])

        lone_id = len(self._walkers)
        for i in range(cfg.sim_agents):
            agent_id = f"agent-{i:03d}"
            if i % 4 == 3:
                # every fourth agent roams on its own
                walker = self._new_walker(lone_id, self._worlds[i % len(self._worlds)])
                self._walkers[lone_id] = walker
                self._membership[agent_id] = (lone_id, 0.0, 0.0)
                lone_id += 1
            else:
                group = i % max(1, cfg.sim_groups)
                dx = self._rng.uniform(Domain.SPAWN, agent_id, 0, -GROUP_SPREAD_BLOCKS, GROUP_SPREAD_BLOCKS)
                dz = self._rng.uniform(Domain.SPAWN, agent_id, 1, -GROUP_SPREAD_BLOCKS, GROUP_SPREAD_BLOCKS)
                self._membership[agent_id] = (group, dx, dz)
            self._agents[agent_id] = Agent(agent_id, self._member_position(agent_id))

        for world in self._worlds:
            for _ in range(cfg.sim_entities_per_world):
                self._spawn_entity(world)

        logger.info(
            "Simulated host: %d agents, %d walkers, %d entities across %s",
            len(self._agents), len(self._walkers), len(self._entities), self._worlds,
        )

    def _new_walker(self, walker_id: int, world: str) -> _Walker:
        x, z = self._waypoint(walker_id, 0)
        tx, tz = self._waypoint(walker_id, 1)
        speed = self._rng.uniform(Domain.MOVEMENT, walker_id, 0, 3.0, 7.0)
        return _Walker(walker_id, world, x, z, tx, tz, speed, legs=1)

    def _waypoint(self, walker_id: int, leg: int) -> tuple[float, float]:
        radius = self._config.sim_world_radius
        return (
            self._rng.uniform(Domain.WAYPOINT, walker_id, leg * 2, -radius, radius),
            self._rng.uniform(Domain.WAYPOINT, walker_id, leg * 2 + 1, -radius, radius),
        )

    def _spawn_entity(self, world: str) -> EntityInfo:
        eid = self._next_entity_id
        self._next_entity_id += 1
        radius = self._config.sim_world_radius
        roll = self._rng.random(Domain.SPAWN, eid)
        category = EntityCategory.OTHER
        acc = 0.0
        for candidate, weight in _CATEGORY_WEIGHTS:
            acc += weight
            if roll < acc:
                category = candidate
                break
        position = Position(
            world,
            self._rng.uniform(Domain.SPAWN, eid, 1, -radius, radius),
            64.0,
            self._rng.uniform(Domain.SPAWN, eid, 2, -radius, radius),
        )
        entity = EntityInfo(eid, category, position)
        self._entities[eid] = entity
        return entity

    def _member_position(self, agent_id: str) -> Position:
        walker_id, dx, dz = self._membership[agent_id]
        walker = self._walkers[walker_id]
        return Position(walker.world, walker.x + dx, 64.0, walker.z + dz)

    # -- simulation --

    @property
    def elapsed(self) -> float:
        return self._elapsed

    def advance(self, dt: float) -> None:
        """Move every walker by *dt* seconds and top up despawned entities."""
        if dt <= 0:
            return
        with self._lock:
            self._step += 1
            self._elapsed += dt
            for walker in self._walkers.values():
                self._move(walker, dt)
            for agent_id, agent in list(self._agents.items()):
                if agent_id in self._membership and agent.online:
                    self._agents[agent_id] = Agent(agent_id, self._member_position(agent_id))

            per_world = {w: 0 for w in self._worlds}
            for entity in self._entities.values():
                if entity.position.world in per_world:
                    per_world[entity.position.world] += 1
            budget = max(1, math.ceil(RESPAWN_PER_SECOND * dt))
            for world, count in per_world.items():
                for _ in range(min(budget, self._config.sim_entities_per_world - count)):
                    self._spawn_entity(world)

    def _move(self, walker: _Walker, dt: float) -> None:
        dx = walker.target_x - walker.x
        dz = walker.target_z - walker.z
        dist = math.hypot(dx, dz)
        if dist <= WAYPOINT_REACHED_BLOCKS:
            walker.legs += 1
            walker.target_x, walker.target_z = self._waypoint(walker.walker_id, walker.legs)
            return
        step = min(dist, walker.speed * dt)
        walker.x += dx / dist * step
        walker.z += dz / dist * step

    def place_agent(self, agent_id: str, position: Position) -> None:
        """Pin an agent at *position*; pinned agents no longer follow a walker."""
        with self._lock:
            self._membership.pop(agent_id, None)
            self._agents[agent_id] = Agent(agent_id, position)

    def disconnect(self, agent_id: str) -> None:
        with self._lock:
            self._agents.pop(agent_id, None)
            self._membership.pop(agent_id, None)
            self._view_distances.pop(agent_id, None)

    def add_entity(self, category: EntityCategory, position: Position) -> EntityInfo:
        with self._lock:
            eid = self._next_entity_id
            self._next_entity_id += 1
            entity = EntityInfo(eid, category, position)
            self._entities[eid] = entity
            return entity

    # -- WorldHost --

    @property
    def capabilities(self) -> HostCapabilities:
        return self._capabilities

    def online_agents(self) -> list[Agent]:
        with self._lock:
            return [a for a in self._agents.values() if a.online]

    def worlds(self) -> list[str]:
        return list(self._worlds)

    def load_chunk(self, chunk: ChunkKey) -> bool:
        with self._lock:
            if chunk.world not in self._loaded:
                return False
            self._load_attempts += 1
            if self._rng.chance(
                Domain.HOST_FAILURE, str(chunk), self._load_attempts, self._config.sim_load_failure_rate,
            ):
                return False
            self._loaded[chunk.world].add(chunk)
            return True

    def unload_chunk(self, chunk: ChunkKey) -> bool:
        with self._lock:
            loaded = self._loaded.get(chunk.world)
            if loaded is None:
                return False
            loaded.discard(chunk)
            return True

    def is_chunk_loaded(self, chunk: ChunkKey) -> bool:
        with self._lock:
            return chunk in self._loaded.get(chunk.world, ())

    def loaded_chunks(self, world: str) -> list[ChunkKey]:
        with self._lock:
            return sorted(self._loaded.get(world, ()))

    def loaded_chunk_count(self, world: str) -> int:
        with self._lock:
            return len(self._loaded.get(world, ()))

    def entities(self, world: str) -> list[EntityInfo]:
        with self._lock:
            return [e for e in self._entities.values() if e.position.world == world]

    def remove_entity(self, entity_id: int) -> bool:
        with self._lock:
            return self._entities.pop(entity_id, None) is not None

    def set_view_distance(self, agent_id: str, distance: int) -> bool:
        with self._lock:
            if agent_id not in self._agents:
                return False
            self._view_distances[agent_id] = distance
            return True

    def view_distance(self, agent_id: str) -> int | None:
        with self._lock:
            return self._view_distances.get(agent_id)

    def set_random_tick_scale(self, world: str, scale: float) -> bool:
        with self._lock:
            if world not in self._tick_scales:
                return False
            self._tick_scales[world] = scale
            return True

    def random_tick_scale(self, world: str) -> float:
        with self._lock:
            return self._tick_scales.get(world, 1.0)

    def tick_timings(self) -> tuple[float, float]:
        with self._lock:
            chunks = sum(len(s) for s in self._loaded.values())
            scale = sum(self._tick_scales.values()) / len(self._tick_scales) if self._tick_scales else 1.0
            extra_view = sum(max(0, d - 8) for d in self._view_distances.values())
            jitter = self._rng.uniform(Domain.TICK_JITTER, 0, self._step, -MSPT_JITTER, MSPT_JITTER)
            mspt = (
                BASE_MSPT
                + MSPT_PER_CHUNK * chunks * (0.5 + 0.5 * scale)
                + MSPT_PER_ENTITY * len(self._entities)
                + MSPT_PER_AGENT * len(self._agents)
                + MSPT_PER_EXTRA_VIEW * extra_view
                + jitter
            )
        mspt = max(1.0, mspt)
        tps = min(float(self._config.ticks_per_second), 1000.0 / mspt)
        return mspt, tps
