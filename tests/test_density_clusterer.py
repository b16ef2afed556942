"""Tests for density mapping and hot-region clustering.

Covers:
- Grid cell mapping uses floor semantics and is stable
- Density map skips offline agents and agents without a world
- 8-connected hot cells form one region; cold cells never join
- Region totals, bounding box, area and density
- Bounding-box containment and grid distance helpers
"""

import math
import os
import sys

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import pytest

from dynregion.cluster.density import DensityClusterer
from dynregion.core.grid import GridCell, cell_of
from dynregion.core.models import Agent, Position


def _agent(agent_id: str, x: float, z: float, world: str | None = "world", online: bool = True) -> Agent:
    return Agent(agent_id, Position(world, x, 64.0, z), online=online)


def _cell(x: int, z: int, world: str = "world") -> GridCell:
    return GridCell(x, z, world)


class TestCellMapping:
    def test_floor_for_negative_coordinates(self):
        cell = cell_of(Position("world", -1.0, 0.0, -65.0), 64)
        assert (cell.cell_x, cell.cell_z) == (-1, -2)

    def test_same_input_same_cell(self):
        clusterer = DensityClusterer(64, 3)
        pos = Position("world", 130.5, 70.0, -12.25)
        assert clusterer.cell_of(pos) == clusterer.cell_of(pos)
        assert clusterer.cell_of(pos) == _cell(2, -1)

    def test_worldless_position_rejected(self):
        with pytest.raises(ValueError):
            cell_of(Position(None, 1.0, 0.0, 1.0), 64)

    def test_cells_are_hashable_keys(self):
        assert {_cell(1, 2): 1}[GridCell(1, 2, "world")] == 1
        assert _cell(1, 2) != _cell(1, 2, "nether")


class TestDensityMap:
    def test_counts_agents_per_cell(self):
        clusterer = DensityClusterer(64, 3)
        density = clusterer.create_density_map([
            _agent("a", 1, 1), _agent("b", 63, 63), _agent("c", 64, 0),
        ])
        assert density == {_cell(0, 0): 2, _cell(1, 0): 1}

    def test_skips_offline_and_worldless_agents(self):
        clusterer = DensityClusterer(64, 3)
        density = clusterer.create_density_map([
            _agent("a", 1, 1),
            _agent("b", 1, 1, world=None),
            _agent("c", 1, 1, online=False),
        ])
        assert density == {_cell(0, 0): 1}


class TestClustering:
    def test_five_agents_one_cell(self):
        clusterer = DensityClusterer(grid_size=64, hot_threshold=3)
        agents = [_agent(f"a{i}", x, 0) for i, x in enumerate((0, 10, 20, 30, 40))]
        regions = clusterer.compute_hot_regions(agents)

        assert len(regions) == 1
        region = regions[0]
        assert (region.min_x, region.min_z, region.max_x, region.max_z) == (0, 0, 0, 0)
        assert region.total_agents == 5
        assert region.area == 1
        assert region.density == 5.0

    def test_connected_cells_merge_and_cold_cell_is_left_out(self):
        clusterer = DensityClusterer(64, 3)
        density = {_cell(0, 0): 5, _cell(1, 0): 4, _cell(0, 1): 3, _cell(2, 2): 2}
        regions = clusterer.cluster_hot_regions(density)

        assert len(regions) == 1
        region = regions[0]
        assert region.cells == {_cell(0, 0), _cell(1, 0), _cell(0, 1)}
        assert region.total_agents == 12
        assert region.area == 4
        assert region.density == pytest.approx(3.0)

    def test_diagonal_neighbours_join(self):
        clusterer = DensityClusterer(64, 3)
        regions = clusterer.cluster_hot_regions({_cell(0, 0): 3, _cell(1, 1): 3})
        assert len(regions) == 1
        assert regions[0].total_agents == 6

    def test_gap_splits_regions(self):
        clusterer = DensityClusterer(64, 3)
        regions = clusterer.cluster_hot_regions({_cell(0, 0): 3, _cell(2, 0): 4})
        assert len(regions) == 2
        assert sorted(r.total_agents for r in regions) == [3, 4]
        assert sorted(r.cluster_id for r in regions) == [0, 1]

    def test_worlds_never_merge(self):
        clusterer = DensityClusterer(64, 3)
        regions = clusterer.cluster_hot_regions({_cell(0, 0, "a"): 3, _cell(1, 0, "b"): 3})
        assert len(regions) == 2
        assert {r.world for r in regions} == {"a", "b"}

    def test_every_hot_cell_in_exactly_one_region(self):
        clusterer = DensityClusterer(64, 2)
        density = {
            _cell(0, 0): 2, _cell(1, 1): 5, _cell(2, 2): 2,
            _cell(5, 5): 3, _cell(6, 5): 1, _cell(10, 0): 9, _cell(-4, -4): 2,
        }
        regions = clusterer.cluster_hot_regions(density)
        hot = {c for c, n in density.items() if n >= 2}

        seen = [c for r in regions for c in r.cells]
        assert len(seen) == len(set(seen))
        assert set(seen) == hot
        for region in regions:
            assert region.total_agents == sum(density[c] for c in region.cells)

    def test_malformed_counts_are_treated_as_empty(self):
        clusterer = DensityClusterer(64, 1)
        assert clusterer.cluster_hot_regions({_cell(0, 0): -4}) == []
        assert clusterer.cluster_hot_regions({}) == []
        assert clusterer.cluster_hot_regions({_cell(0, 0): "many", _cell(1, 0): float("nan")}) == []

    def test_float_counts_are_truncated(self):
        clusterer = DensityClusterer(64, 3)
        regions = clusterer.cluster_hot_regions({_cell(0, 0): 5.0, _cell(1, 0): 3.9, _cell(2, 0): 2.9})
        assert len(regions) == 1
        assert regions[0].total_agents == 8
        assert len(regions[0].cells) == 2

    def test_region_key_is_smallest_cell(self):
        clusterer = DensityClusterer(64, 3)
        regions = clusterer.cluster_hot_regions({_cell(3, 1): 3, _cell(2, 2): 3, _cell(2, 3): 3})
        assert len(regions) == 1
        key = regions[0].key
        assert (key.world, key.anchor_x, key.anchor_z) == ("world", 2, 2)
        assert str(key) == "world:2:2"

    def test_region_key_survives_reclustering(self):
        clusterer = DensityClusterer(64, 3)
        first = clusterer.cluster_hot_regions({_cell(9, 9): 3, _cell(0, 0): 4})
        second = clusterer.cluster_hot_regions({_cell(0, 0): 5, _cell(9, 9): 3})
        assert {r.key for r in first} == {r.key for r in second}


class TestLocationQueries:
    def _l_shape(self):
        clusterer = DensityClusterer(64, 3)
        regions = clusterer.cluster_hot_regions({_cell(0, 0): 3, _cell(1, 0): 3, _cell(0, 1): 3})
        return clusterer, regions

    def test_inside_cluster_cell(self):
        clusterer, regions = self._l_shape()
        assert clusterer.is_location_in_hot_region(Position("world", 70, 0, 10), regions)

    def test_box_corner_outside_cluster_still_counts(self):
        clusterer, regions = self._l_shape()
        # cell (1, 1) is not part of the cluster but is inside its bounding box
        assert clusterer.is_location_in_hot_region(Position("world", 100, 0, 100), regions)

    def test_outside_box(self):
        clusterer, regions = self._l_shape()
        assert not clusterer.is_location_in_hot_region(Position("world", 200, 0, 0), regions)

    def test_other_world_and_missing_world(self):
        clusterer, regions = self._l_shape()
        assert not clusterer.is_location_in_hot_region(Position("nether", 10, 0, 10), regions)
        assert not clusterer.is_location_in_hot_region(Position(None, 10, 0, 10), regions)
        assert clusterer.get_hot_region_for_location(Position(None, 10, 0, 10), regions) is None

    def test_region_for_location(self):
        clusterer, regions = self._l_shape()
        assert clusterer.get_hot_region_for_location(Position("world", 10, 0, 10), regions) is regions[0]

    def test_grid_distance(self):
        clusterer = DensityClusterer(64, 3)
        a = Position("world", 10, 0, 10)
        assert clusterer.grid_distance(a, Position("world", 3 * 64 + 1, 0, 4 * 64 + 1)) == 5.0
        assert clusterer.grid_distance(a, Position("nether", 0, 0, 0)) == math.inf
        assert clusterer.grid_distance(a, Position(None, 0, 0, 0)) == math.inf
