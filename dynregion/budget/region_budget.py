"""Per-region chunk budgets with rate-limited, predictive load/unload.

Each hot region earns load tokens over wall-clock time. Every cycle the
manager works out which chunks the region's agents need (around where they
are and where they are heading), releases chunks nobody needs, and spends
tokens on queued loads under a hard per-cycle ceiling so a burst of loads
never lands inside a single simulation tick.
"""

from __future__ import annotations

import logging
import math
import threading
import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Callable, Iterable

from dynregion.budget.movement import MovementPredictor
from dynregion.core.models import Agent, ChunkKey, Position
from dynregion.core.regions import HotRegion, RegionKey

if TYPE_CHECKING:
    from dynregion.config import RegionPerfConfig
    from dynregion.host.base import WorldHost

logger = logging.getLogger(__name__)

REPLENISH_GRANULARITY_SECONDS = 1.0


@dataclass(slots=True)
class RegionBudgetState:
    """Token counter and chunk bookkeeping for one logical region."""

    tokens: int
    last_replenish: float
    loaded: set[ChunkKey] = field(default_factory=set)
    # dicts used as insertion-ordered sets
    pending_load: dict[ChunkKey, None] = field(default_factory=dict)
    pending_unload: dict[ChunkKey, None] = field(default_factory=dict)
    lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)


@dataclass(frozen=True, slots=True)
class RegionBudgetView:
    """Read-only statistics for one region, safe to hand to other threads."""

    key: RegionKey
    tokens: int
    loaded: int
    pending_load: int
    pending_unload: int


@dataclass(frozen=True, slots=True)
class ChunkCycleResult:
    """What one ``process_region_chunks`` call did."""

    loaded: int = 0
    unloaded: int = 0
    queued: int = 0
    failures: int = 0


class RegionBudgetManager:
    """Owns every region's tokens and pending sets; others only read stats."""

    def __init__(
        self,
        config: RegionPerfConfig,
        host: WorldHost,
        predictor: MovementPredictor | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._config = config
        self._host = host
        self._clock = clock
        self._predictor = predictor or MovementPredictor(config.prediction_horizon_seconds, clock)
        self._base_rate = config.chunk_budget_per_region_per_sec
        self._rate_adjustment = 0
        self._regions: dict[RegionKey, RegionBudgetState] = {}
        self._lock = threading.RLock()

    # -- rate --

    @property
    def predictor(self) -> MovementPredictor:
        return self._predictor

    @property
    def effective_rate(self) -> int:
        """Tokens per region per second after the control-loop adjustment."""
        return max(1, self._base_rate + self._rate_adjustment)

    @property
    def max_loads_per_cycle(self) -> int:
        return max(1, self.effective_rate // self._config.ticks_per_second)

    def set_rate_adjustment(self, delta: int) -> None:
        if delta != self._rate_adjustment:
            logger.debug("Chunk budget adjustment %+d -> %+d", self._rate_adjustment, delta)
        self._rate_adjustment = delta

    # -- budgets --

    def update_budgets(self, hot_regions: Iterable[HotRegion]) -> None:
        """Replenish reported regions and purge every key this pass no longer reports."""
        now = self._clock()
        rate = self.effective_rate
        reported: set[RegionKey] = set()

        with self._lock:
            for region in hot_regions:
                key = region.key
                if key in reported:
                    continue
                reported.add(key)

                state = self._regions.get(key)
                if state is None:
                    self._regions[key] = RegionBudgetState(tokens=0, last_replenish=now)
                    continue

                with state.lock:
                    elapsed = now - state.last_replenish
                    if elapsed >= REPLENISH_GRANULARITY_SECONDS:
                        state.tokens += math.floor(elapsed * rate)
                        state.last_replenish = now

            stale = [key for key in self._regions if key not in reported]
            for key in stale:
                del self._regions[key]

        if stale:
            logger.debug("Purged budget state for %d stale regions", len(stale))

    def process_region_chunks(self, region: HotRegion, agents: Iterable[Agent]) -> ChunkCycleResult:
        """Run one unload -> load -> enqueue cycle for *region*."""
        with self._lock:
            state = self._regions.get(region.key)
        if state is None:
            return ChunkCycleResult()

        local_agents = [a for a in agents if a.online and a.position.world == region.world]
        required = self._required_chunks(region.world, local_agents)
        rate = self.effective_rate
        max_loads = self.max_loads_per_cycle
        loaded = unloaded = queued = failures = 0

        with state.lock:
            # 1. release what nobody needs; required-again chunks leave the unload queue
            for chunk in list(state.pending_unload):
                if chunk in required:
                    del state.pending_unload[chunk]
            for chunk in state.loaded:
                if chunk not in required and chunk not in state.pending_load:
                    state.pending_unload[chunk] = None

            # 2. unloads first; each one hands a token back
            for chunk in list(state.pending_unload):
                if state.tokens >= rate:
                    break
                if self._try_unload(chunk):
                    state.loaded.discard(chunk)
                    del state.pending_unload[chunk]
                    state.tokens += 1
                    unloaded += 1
                else:
                    failures += 1

            # 3. loads, bounded by tokens and the per-cycle ceiling
            for chunk in list(state.pending_load):
                if state.tokens <= 0 or loaded >= max_loads:
                    break
                if self._try_load(chunk):
                    state.loaded.add(chunk)
                    del state.pending_load[chunk]
                    state.tokens -= 1
                    loaded += 1
                else:
                    failures += 1

            # 4. queue new work, close-by chunks first
            priority: list[ChunkKey] = []
            normal: list[ChunkKey] = []
            for chunk in sorted(required):
                if chunk in state.loaded or chunk in state.pending_load:
                    continue
                if self._is_high_priority(chunk, local_agents):
                    priority.append(chunk)
                else:
                    normal.append(chunk)
            for chunk in priority + normal:
                state.pending_load[chunk] = None
            queued = len(priority) + len(normal)

        return ChunkCycleResult(loaded=loaded, unloaded=unloaded, queued=queued, failures=failures)

    def aggressive_unload_cold_regions(self, agents: Iterable[Agent]) -> int:
        """Unload every host chunk with no agent nearby, ignoring budgets and caps."""
        positions_by_world: dict[str, list[Position]] = {}
        for agent in agents:
            if agent.online and agent.position.world is not None:
                positions_by_world.setdefault(agent.position.world, []).append(agent.position)

        radius = self._config.aggressive_unload_distance_blocks
        released: set[ChunkKey] = set()
        for world, positions in positions_by_world.items():
            try:
                candidates = list(self._host.loaded_chunks(world))
            except Exception:
                logger.warning("Could not list loaded chunks for world %s", world, exc_info=True)
                continue
            for chunk in candidates:
                origin = chunk.origin()
                if any(p.horizontal_distance(origin) < radius for p in positions):
                    continue
                if self._try_unload(chunk):
                    released.add(chunk)

        if released:
            with self._lock:
                states = list(self._regions.values())
            for state in states:
                with state.lock:
                    state.loaded.difference_update(released)
                    for chunk in released:
                        state.pending_unload.pop(chunk, None)
            logger.info("Aggressive unload released %d chunks", len(released))
        return len(released)

    # -- movement --

    def update_player_movement(self, agent_id: str, position: Position) -> None:
        self._predictor.update(agent_id, position)

    def remove_player_movement(self, agent_id: str) -> None:
        self._predictor.remove(agent_id)

    # -- read-only stats --

    def region_keys(self) -> list[RegionKey]:
        with self._lock:
            return list(self._regions)

    def get_region_view(self, key: RegionKey) -> RegionBudgetView | None:
        with self._lock:
            state = self._regions.get(key)
        if state is None:
            return None
        with state.lock:
            return RegionBudgetView(
                key=key, tokens=state.tokens, loaded=len(state.loaded),
                pending_load=len(state.pending_load), pending_unload=len(state.pending_unload),
            )

    def get_budget_for_region(self, region: HotRegion) -> int:
        view = self.get_region_view(region.key)
        return view.tokens if view is not None else 0

    def get_loaded_chunk_count(self, region: HotRegion) -> int:
        view = self.get_region_view(region.key)
        return view.loaded if view is not None else 0

    def get_pending_counts(self, region: HotRegion) -> tuple[int, int]:
        """(pending loads, pending unloads) for *region*."""
        view = self.get_region_view(region.key)
        return (view.pending_load, view.pending_unload) if view is not None else (0, 0)

    def get_total_loaded_chunk_count(self) -> int:
        with self._lock:
            states = list(self._regions.values())
        total = 0
        for state in states:
            with state.lock:
                total += len(state.loaded)
        return total

    def clear(self) -> None:
        with self._lock:
            self._regions.clear()
        self._rate_adjustment = 0
        self._predictor.clear()

    # -- internals --

    def _required_chunks(self, world: str, agents: list[Agent]) -> set[ChunkKey]:
        required: set[ChunkKey] = set()
        for agent in agents:
            required.update(ChunkKey.of(agent.position).around(self._config.chunk_radius_current))
            predicted = self._predictor.predicted_position(agent.agent_id)
            if predicted is not None and predicted.world == world:
                required.update(ChunkKey.of(predicted).around(self._config.chunk_radius_predicted))
        return required

    def _is_high_priority(self, chunk: ChunkKey, agents: list[Agent]) -> bool:
        origin = chunk.origin()
        limit = self._config.priority_distance_blocks
        return any(a.position.horizontal_distance(origin) < limit for a in agents)

    def _try_load(self, chunk: ChunkKey) -> bool:
        try:
            ok = bool(self._host.load_chunk(chunk))
        except Exception:
            logger.debug("Load of %s raised, retrying next cycle", chunk, exc_info=True)
            return False
        if not ok:
            logger.debug("Load of %s refused, retrying next cycle", chunk)
        return ok

    def _try_unload(self, chunk: ChunkKey) -> bool:
        try:
            ok = bool(self._host.unload_chunk(chunk))
        except Exception:
            logger.debug("Unload of %s raised, retrying next cycle", chunk, exc_info=True)
            return False
        if not ok:
            logger.debug("Unload of %s refused, retrying next cycle", chunk)
        return ok
