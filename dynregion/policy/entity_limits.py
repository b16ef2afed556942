"""Entity caps and random-tick scaling outside hot regions."""

from __future__ import annotations

import logging
import sys
import threading
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable, Iterable

from dynregion.core.enums import EntityCategory
from dynregion.core.models import EntityInfo, Position
from dynregion.core.regions import HotRegion

if TYPE_CHECKING:
    from dynregion.cluster.density import DensityClusterer
    from dynregion.config import RegionPerfConfig
    from dynregion.host.base import WorldHost

logger = logging.getLogger(__name__)

UNLIMITED = sys.maxsize


@dataclass(frozen=True, slots=True)
class EntityLimits:
    max_mobs: int
    max_animals: int
    max_projectiles: int
    random_tick_scale: float

    def cap_for(self, category: EntityCategory) -> int:
        if category is EntityCategory.MOB:
            return self.max_mobs
        if category is EntityCategory.ANIMAL:
            return self.max_animals
        if category is EntityCategory.PROJECTILE:
            return self.max_projectiles
        return UNLIMITED


@dataclass(frozen=True, slots=True)
class EntityStats:
    total_mobs: int = 0
    total_animals: int = 0
    total_projectiles: int = 0
    hot_mobs: int = 0
    hot_animals: int = 0
    hot_projectiles: int = 0

    @property
    def cold_mobs(self) -> int:
        return self.total_mobs - self.hot_mobs

    @property
    def cold_animals(self) -> int:
        return self.total_animals - self.hot_animals

    @property
    def cold_projectiles(self) -> int:
        return self.total_projectiles - self.hot_projectiles


def hot_key(region: HotRegion) -> str:
    return f"hot:{region.key}"


def cold_key(world: str) -> str:
    return f"cold:{world}"


class EntityController:
    """Keeps per-region limits and trims entities in cold areas.

    Hot regions are unlimited. Everything else in a world shares that
    world's cold caps, enforced by removing the entities furthest from any
    agent first.
    """

    def __init__(
        self,
        clusterer: DensityClusterer,
        host: WorldHost,
        config: RegionPerfConfig,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._clusterer = clusterer
        self._host = host
        self._config = config
        self._clock = clock
        self._limits: dict[str, EntityLimits] = {}
        self._last_cleanup: dict[str, float] = {}
        self._lock = threading.Lock()

    def update_entity_limits(self, hot_regions: Iterable[HotRegion], worlds: Iterable[str]) -> None:
        cfg = self._config
        fresh: dict[str, EntityLimits] = {}
        for region in hot_regions:
            fresh[hot_key(region)] = EntityLimits(UNLIMITED, UNLIMITED, UNLIMITED, cfg.random_tick_scale_hot)
        for world in worlds:
            fresh[cold_key(world)] = EntityLimits(
                cfg.cold_mob_cap, cfg.cold_animal_cap, cfg.cold_projectile_cap, cfg.random_tick_scale_cold,
            )
        with self._lock:
            # replacing the map purges keys this pass did not report
            self._limits = fresh

    def apply_entity_limits(self, hot_regions: Iterable[HotRegion], worlds: Iterable[str]) -> int:
        """Enforce cold caps per world, at most once per cleanup interval; returns removals."""
        regions = list(hot_regions)
        now = self._clock()
        removed = 0
        agent_positions: dict[str, list[Position]] | None = None

        for world in worlds:
            key = cold_key(world)
            with self._lock:
                last = self._last_cleanup.get(key)
                if last is not None and now - last < self._config.entity_cleanup_interval_seconds:
                    continue
                self._last_cleanup[key] = now
                limits = self._limits.get(key)
            if limits is None:
                continue

            if agent_positions is None:
                agent_positions = self._agent_positions()
            removed += self._enforce_world(world, regions, limits, agent_positions.get(world, []))

        if removed:
            logger.info("Removed %d entities over cold caps", removed)
        return removed

    def apply_random_tick_scaling(
        self,
        hot_regions: Iterable[HotRegion],
        worlds: Iterable[str],
        ratio_delta: float = 0.0,
    ) -> dict[str, float]:
        """Hot worlds tick at the hot scale, the rest at the cold scale, shifted by *ratio_delta*."""
        if not self._host.capabilities.random_tick_scaling:
            return {}
        hot_worlds = {region.world for region in hot_regions}
        applied: dict[str, float] = {}
        for world in worlds:
            base = self._config.random_tick_scale_hot if world in hot_worlds else self._config.random_tick_scale_cold
            scale = max(0.0, min(1.0, base + ratio_delta))
            try:
                ok = self._host.set_random_tick_scale(world, scale)
            except Exception:
                logger.debug("Setting random tick scale for %s raised", world, exc_info=True)
                continue
            if ok:
                applied[world] = scale
        return applied

    def get_entity_limits(self, key: str) -> EntityLimits | None:
        with self._lock:
            return self._limits.get(key)

    def limit_keys(self) -> list[str]:
        with self._lock:
            return sorted(self._limits)

    def get_entity_stats(self, world: str, hot_regions: Iterable[HotRegion]) -> EntityStats:
        regions = [r for r in hot_regions if r.world == world]
        totals = {c: 0 for c in EntityCategory}
        hot = {c: 0 for c in EntityCategory}
        for entity in self._host.entities(world):
            totals[entity.category] += 1
            if self._clusterer.is_location_in_hot_region(entity.position, regions):
                hot[entity.category] += 1
        return EntityStats(
            total_mobs=totals[EntityCategory.MOB],
            total_animals=totals[EntityCategory.ANIMAL],
            total_projectiles=totals[EntityCategory.PROJECTILE],
            hot_mobs=hot[EntityCategory.MOB],
            hot_animals=hot[EntityCategory.ANIMAL],
            hot_projectiles=hot[EntityCategory.PROJECTILE],
        )

    def reset(self) -> None:
        with self._lock:
            self._limits.clear()
            self._last_cleanup.clear()

    # -- internals --

    def _agent_positions(self) -> dict[str, list[Position]]:
        positions: dict[str, list[Position]] = {}
        for agent in self._host.online_agents():
            if agent.online and agent.position.world is not None:
                positions.setdefault(agent.position.world, []).append(agent.position)
        return positions

    def _enforce_world(
        self,
        world: str,
        regions: list[HotRegion],
        limits: EntityLimits,
        agents: list[Position],
    ) -> int:
        try:
            entities = self._host.entities(world)
        except Exception:
            logger.warning("Could not list entities for world %s", world, exc_info=True)
            return 0

        world_regions = [r for r in regions if r.world == world]
        cold: dict[EntityCategory, list[EntityInfo]] = {}
        for entity in entities:
            if self._clusterer.is_location_in_hot_region(entity.position, world_regions):
                continue
            cold.setdefault(entity.category, []).append(entity)

        removed = 0
        for category, members in cold.items():
            excess = len(members) - limits.cap_for(category)
            if excess <= 0:
                continue
            members.sort(key=lambda e: self._nearest_agent_distance(e.position, agents), reverse=True)
            for entity in members[:excess]:
                try:
                    if self._host.remove_entity(entity.entity_id):
                        removed += 1
                except Exception:
                    logger.debug("Removing entity %d raised", entity.entity_id, exc_info=True)
        return removed

    @staticmethod
    def _nearest_agent_distance(position: Position, agents: list[Position]) -> float:
        if not agents:
            return 0.0
        return min(position.horizontal_distance(a) for a in agents)
