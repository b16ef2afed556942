"""Per-agent view distance driven by region temperature and tick health."""

from __future__ import annotations

import logging
import math
import threading
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable, Iterable

from dynregion.core.enums import Domain, RegionTemperature
from dynregion.core.models import Agent, Position
from dynregion.core.regions import HotRegion
from dynregion.systems.rng import DeterministicRNG

if TYPE_CHECKING:
    from dynregion.cluster.density import DensityClusterer
    from dynregion.config import RegionPerfConfig
    from dynregion.host.base import WorldHost

logger = logging.getLogger(__name__)

MIN_VIEW_DISTANCE = 2
MAX_VIEW_DISTANCE = 32
DEFAULT_VIEW_DISTANCE = 8
MIN_MULTIPLIER = 0.7
MAX_BOOST_RADIUS = 10


@dataclass(frozen=True, slots=True)
class ViewDistanceStats:
    hot_agents: int = 0
    normal_agents: int = 0
    cold_agents: int = 0
    average_view_distance: float = 0.0
    performance_multiplier: float = 1.0


@dataclass(frozen=True, slots=True)
class ViewBoost:
    """Temporary extra view distance granted to one agent."""

    extra: int
    expires_at: float


class ViewDistanceAdapter:
    """Picks a view distance per agent and pushes changes to the host.

    Crowded areas get short distances, quiet ones long distances; a shared
    performance multiplier shrinks everything while ticks run slow. Hosts
    without per-agent view distance skip the whole component.
    """

    def __init__(
        self,
        clusterer: DensityClusterer,
        host: WorldHost,
        config: RegionPerfConfig,
        rng: DeterministicRNG,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._clusterer = clusterer
        self._host = host
        self._config = config
        self._rng = rng
        self._clock = clock
        self._ranges = {
            RegionTemperature.HOT: config.view_distance_hot,
            RegionTemperature.NORMAL: config.view_distance_normal,
            RegionTemperature.COLD: config.view_distance_cold,
        }
        self._distances: dict[str, int] = {}
        self._temperatures: dict[str, RegionTemperature] = {}
        self._boosts: dict[str, ViewBoost] = {}
        self._multiplier = 1.0
        self._last_multiplier_update: float | None = None
        self._lock = threading.Lock()

    @property
    def enabled(self) -> bool:
        return self._host.capabilities.per_agent_view_distance

    @property
    def performance_multiplier(self) -> float:
        return self._multiplier

    def update_view_distances(
        self,
        agents: Iterable[Agent],
        hot_regions: Iterable[HotRegion],
        view_distance_delta: int = 0,
    ) -> int:
        """Recompute targets for all online agents; returns host updates made."""
        if not self.enabled:
            return 0

        regions = list(hot_regions)
        self.cleanup_expired_boosts()
        changed = 0
        seen: set[str] = set()

        with self._lock:
            for agent in agents:
                if agent is None or not agent.online or agent.position.world is None:
                    continue
                seen.add(agent.agent_id)

                temperature = self.get_region_temperature(agent.position, regions)
                self._temperatures[agent.agent_id] = temperature
                target = int(self._base_distance(agent.agent_id, temperature) * self._multiplier)
                target += view_distance_delta
                boost = self._boosts.get(agent.agent_id)
                if boost is not None:
                    target += boost.extra
                target = max(MIN_VIEW_DISTANCE, min(MAX_VIEW_DISTANCE, target))

                if self._distances.get(agent.agent_id) == target:
                    continue
                if self._push(agent.agent_id, target):
                    self._distances[agent.agent_id] = target
                    changed += 1

            for store in (self._distances, self._temperatures, self._boosts):
                for agent_id in [a for a in store if a not in seen]:
                    del store[agent_id]

        if changed:
            logger.debug("Updated view distance for %d agents", changed)
        return changed

    def reset_all_view_distances(self, agents: Iterable[Agent]) -> int:
        """Put every online agent back on the default distance; returns host updates made."""
        if not self.enabled:
            return 0
        restored = 0
        with self._lock:
            for agent in agents:
                if agent is None or not agent.online:
                    continue
                if self._push(agent.agent_id, DEFAULT_VIEW_DISTANCE):
                    self._distances[agent.agent_id] = DEFAULT_VIEW_DISTANCE
                    restored += 1
        logger.info("Restored default view distance for %d agents", restored)
        return restored

    def get_region_temperature(self, position: Position, hot_regions: Iterable[HotRegion]) -> RegionTemperature:
        """HOT inside a region box, NORMAL near a region centre, else COLD."""
        regions = list(hot_regions)
        if not regions or position.world is None:
            return RegionTemperature.COLD
        if self._clusterer.is_location_in_hot_region(position, regions):
            return RegionTemperature.HOT

        grid_size = self._clusterer.grid_size
        nearest = math.inf
        for region in regions:
            if region.world != position.world:
                continue
            cx, cz = region.center_blocks(grid_size)
            nearest = min(nearest, math.hypot(position.x - cx, position.z - cz))
        if nearest < grid_size * 2:
            return RegionTemperature.NORMAL
        return RegionTemperature.COLD

    def update_performance_multiplier(self, mspt: float, target_mspt: float, tps: float, min_tps: float) -> bool:
        """Nudge the shared multiplier; rate-limited, returns True when evaluated."""
        now = self._clock()
        with self._lock:
            if (
                self._last_multiplier_update is not None
                and now - self._last_multiplier_update < self._config.view_multiplier_interval_seconds
            ):
                return False
            self._last_multiplier_update = now

            tps_ratio = min_tps / tps if tps > 0 else math.inf
            ratio = max(mspt / target_mspt, tps_ratio)
            multiplier = self._multiplier
            if ratio > 1.2:
                multiplier = max(MIN_MULTIPLIER, multiplier - 0.1)
            elif ratio < 0.8:
                multiplier = min(1.0, multiplier + 0.1)
            if 0.9 <= ratio <= 1.1:
                # drift back toward neutral while healthy
                if multiplier < 1.0:
                    multiplier = min(1.0, multiplier + 0.05)
                elif multiplier > 1.0:
                    multiplier = max(1.0, multiplier - 0.05)
            self._multiplier = round(multiplier, 2)
        return True

    # -- boosts --

    def boost(self, agent_id: str, radius: int) -> ViewBoost:
        """Grant +2*radius view distance for the configured boost duration."""
        if not 1 <= radius <= MAX_BOOST_RADIUS:
            raise ValueError(f"boost radius must be within 1..{MAX_BOOST_RADIUS}, got {radius}")
        boost = ViewBoost(extra=radius * 2, expires_at=self._clock() + self._config.boost_duration_seconds)
        with self._lock:
            self._boosts[agent_id] = boost
            # force a push on the next update
            self._distances.pop(agent_id, None)
        logger.info("Boosted view distance of %s by %d until t=%.0f", agent_id, boost.extra, boost.expires_at)
        return boost

    def cleanup_expired_boosts(self) -> int:
        now = self._clock()
        with self._lock:
            expired = [a for a, b in self._boosts.items() if b.expires_at <= now]
            for agent_id in expired:
                del self._boosts[agent_id]
                self._distances.pop(agent_id, None)
        return len(expired)

    def active_boosts(self) -> dict[str, ViewBoost]:
        with self._lock:
            return dict(self._boosts)

    # -- read side --

    def get_view_distance(self, agent_id: str) -> int:
        with self._lock:
            return self._distances.get(agent_id, DEFAULT_VIEW_DISTANCE)

    def get_temperature(self, agent_id: str) -> RegionTemperature | None:
        with self._lock:
            return self._temperatures.get(agent_id)

    def get_stats(self) -> ViewDistanceStats:
        with self._lock:
            temps = list(self._temperatures.values())
            distances = list(self._distances.values())
            multiplier = self._multiplier
        return ViewDistanceStats(
            hot_agents=temps.count(RegionTemperature.HOT),
            normal_agents=temps.count(RegionTemperature.NORMAL),
            cold_agents=temps.count(RegionTemperature.COLD),
            average_view_distance=sum(distances) / len(distances) if distances else 0.0,
            performance_multiplier=multiplier,
        )

    def reset(self) -> None:
        with self._lock:
            self._distances.clear()
            self._temperatures.clear()
            self._boosts.clear()
            self._multiplier = 1.0
            self._last_multiplier_update = None

    # -- internals --

    def _base_distance(self, agent_id: str, temperature: RegionTemperature) -> int:
        # stable per (agent, temperature) so repeated scans don't flap
        low, high = self._ranges[temperature]
        return self._rng.randint(Domain.VIEW_DISTANCE, agent_id, int(temperature), low, high)

    def _push(self, agent_id: str, distance: int) -> bool:
        try:
            ok = bool(self._host.set_view_distance(agent_id, distance))
        except Exception:
            logger.debug("Setting view distance for %s raised", agent_id, exc_info=True)
            return False
        if not ok:
            logger.debug("Host refused view distance %d for %s", distance, agent_id)
        return ok
