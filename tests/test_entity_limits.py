"""Tests for EntityController.

Covers:
- Limit map: hot regions unlimited, one cold entry per world, stale keys purged
- Cold caps remove the entities furthest from any agent first
- Entities inside hot-region boxes are never removed
- Per-world cleanup interval
- Random tick scaling per world, shifted by the control delta
"""

import os
import sys

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import pytest

from dynregion.cluster.density import DensityClusterer
from dynregion.config import RegionPerfConfig
from dynregion.core.capabilities import HostCapabilities
from dynregion.core.enums import EntityCategory
from dynregion.core.models import Agent, Position
from dynregion.policy.entity_limits import UNLIMITED, EntityController, cold_key, hot_key
from dynregion.utils.clock import ManualClock
from tests.helpers.fake_host import FakeHost


def _make_controller(host=None, **overrides):
    config = RegionPerfConfig(**overrides)
    clusterer = DensityClusterer(config.grid_size, config.hot_threshold_agents)
    host = host or FakeHost(worlds=("world", "nether"))
    clock = ManualClock(0.0)
    return EntityController(clusterer, host, config, clock), clusterer, host, clock


def _crowd_regions(clusterer):
    agents = [Agent(f"h{i}", Position("world", 5.0 + i, 64.0, 5.0)) for i in range(3)]
    return clusterer.compute_hot_regions(agents)


class TestLimitMap:
    def test_hot_and_cold_entries(self):
        controller, clusterer, host, _ = _make_controller()
        regions = _crowd_regions(clusterer)
        controller.update_entity_limits(regions, host.worlds())

        assert controller.limit_keys() == ["cold:nether", "cold:world", "hot:world:0:0"]
        hot = controller.get_entity_limits(hot_key(regions[0]))
        assert hot.max_mobs == UNLIMITED
        assert hot.random_tick_scale == 1.0

        cold = controller.get_entity_limits(cold_key("world"))
        assert (cold.max_mobs, cold.max_animals, cold.max_projectiles) == (60, 60, 50)
        assert cold.random_tick_scale == 0.5
        assert cold.cap_for(EntityCategory.OTHER) == UNLIMITED

    def test_stale_region_keys_are_purged(self):
        controller, clusterer, host, _ = _make_controller()
        controller.update_entity_limits(_crowd_regions(clusterer), host.worlds())
        controller.update_entity_limits([], host.worlds())
        assert controller.limit_keys() == ["cold:nether", "cold:world"]


class TestApplyLimits:
    def test_furthest_removed_first(self):
        controller, _, host, _ = _make_controller(cold_mob_cap=2)
        host.add_agent("a", 0, 0)
        for x in (100, 400, 200, 300):
            host.add_entity(EntityCategory.MOB, x, 0)
        controller.update_entity_limits([], host.worlds())

        assert controller.apply_entity_limits([], host.worlds()) == 2
        assert sorted(e.position.x for e in host.entities("world")) == [100, 200]

    def test_hot_region_entities_are_exempt(self):
        controller, clusterer, host, _ = _make_controller(cold_mob_cap=1)
        regions = _crowd_regions(clusterer)
        host.add_agent("a", 0, 0)
        for x in (10, 20, 30):
            host.add_entity(EntityCategory.MOB, x, x)
        host.add_entity(EntityCategory.MOB, 500, 500)
        host.add_entity(EntityCategory.MOB, 600, 600)
        controller.update_entity_limits(regions, host.worlds())

        assert controller.apply_entity_limits(regions, host.worlds()) == 1
        remaining = sorted(e.position.x for e in host.entities("world"))
        assert remaining == [10, 20, 30, 500]

    def test_categories_capped_separately(self):
        controller, _, host, _ = _make_controller(cold_mob_cap=1, cold_animal_cap=5, cold_projectile_cap=0)
        for x in (100, 200):
            host.add_entity(EntityCategory.MOB, x, 0)
            host.add_entity(EntityCategory.ANIMAL, x, 0)
            host.add_entity(EntityCategory.PROJECTILE, x, 0)
            host.add_entity(EntityCategory.OTHER, x, 0)
        controller.update_entity_limits([], host.worlds())

        assert controller.apply_entity_limits([], host.worlds()) == 3
        stats = controller.get_entity_stats("world", [])
        assert (stats.total_mobs, stats.total_animals, stats.total_projectiles) == (1, 2, 0)

    def test_cleanup_interval(self):
        controller, _, host, clock = _make_controller(cold_mob_cap=0)
        controller.update_entity_limits([], host.worlds())
        controller.apply_entity_limits([], host.worlds())

        host.add_entity(EntityCategory.MOB, 100, 0)
        clock.advance(5.0)
        assert controller.apply_entity_limits([], host.worlds()) == 0
        clock.advance(5.0)
        assert controller.apply_entity_limits([], host.worlds()) == 1

    def test_no_limits_no_removal(self):
        controller, _, host, _ = _make_controller(cold_mob_cap=0)
        host.add_entity(EntityCategory.MOB, 100, 0)
        assert controller.apply_entity_limits([], host.worlds()) == 0

    def test_entity_stats_split_hot_and_cold(self):
        controller, clusterer, host, _ = _make_controller()
        regions = _crowd_regions(clusterer)
        host.add_entity(EntityCategory.MOB, 10, 10)
        host.add_entity(EntityCategory.MOB, 900, 900)
        host.add_entity(EntityCategory.ANIMAL, 900, 900)

        stats = controller.get_entity_stats("world", regions)
        assert (stats.total_mobs, stats.hot_mobs, stats.cold_mobs) == (2, 1, 1)
        assert stats.cold_animals == 1


class TestRandomTickScaling:
    def test_hot_and_cold_worlds(self):
        controller, clusterer, host, _ = _make_controller()
        applied = controller.apply_random_tick_scaling(_crowd_regions(clusterer), host.worlds())
        assert applied == {"world": 1.0, "nether": 0.5}
        assert host.tick_scales == applied

    def test_delta_and_clamp(self):
        controller, clusterer, host, _ = _make_controller()
        applied = controller.apply_random_tick_scaling(_crowd_regions(clusterer), host.worlds(), -0.2)
        assert applied["world"] == pytest.approx(0.8)
        assert applied["nether"] == pytest.approx(0.3)

        applied = controller.apply_random_tick_scaling([], host.worlds(), -0.5)
        assert applied == {"world": 0.0, "nether": 0.0}

    def test_incapable_host(self):
        host = FakeHost(capabilities=HostCapabilities(name="plain"))
        controller, _, _, _ = _make_controller(host=host)
        assert controller.apply_random_tick_scaling([], host.worlds()) == {}
        assert host.tick_scales == {}
