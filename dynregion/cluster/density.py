"""Density clustering: agent positions -> density map -> connected hot regions."""

from __future__ import annotations

import logging
import math
import numbers
from collections import deque
from typing import Iterable, Mapping

from dynregion.core.grid import UNASSIGNED, CellState, GridCell, cell_of
from dynregion.core.models import Agent, Position
from dynregion.core.regions import HotRegion

logger = logging.getLogger(__name__)


def _as_count(value: object) -> int:
    """Agent count from a density map value; non-numbers, negatives and NaN read as 0."""
    if isinstance(value, bool) or not isinstance(value, numbers.Real):
        return 0
    if not math.isfinite(value):
        return 0
    return max(0, int(value))


class DensityClusterer:
    """Groups adjacent high-density grid cells into hot regions.

    Cells are hot when at least ``hot_threshold`` agents occupy them; hot
    cells touching on any of their 8 neighbours (same world) form one region.
    """

    __slots__ = ("_grid_size", "_hot_threshold")

    def __init__(self, grid_size: int = 64, hot_threshold: int = 3) -> None:
        self._grid_size = grid_size
        self._hot_threshold = hot_threshold

    @property
    def grid_size(self) -> int:
        return self._grid_size

    @property
    def hot_threshold(self) -> int:
        return self._hot_threshold

    def cell_of(self, position: Position) -> GridCell:
        return cell_of(position, self._grid_size)

    def create_density_map(self, agents: Iterable[Agent]) -> dict[GridCell, int]:
        """Count online agents per grid cell; agents without a world are skipped."""
        density: dict[GridCell, int] = {}
        for agent in agents:
            if agent is None or not agent.online or agent.position.world is None:
                continue
            cell = cell_of(agent.position, self._grid_size)
            density[cell] = density.get(cell, 0) + 1
        return density

    def cluster_hot_regions(self, density_map: Mapping[GridCell, int]) -> list[HotRegion]:
        """BFS over hot cells; one region per 8-connected component.

        Cluster ids start at 0 in first-seen order and are only unique within
        this call.
        """
        states: dict[GridCell, CellState] = {}
        hot_cells: list[GridCell] = []
        for cell, count in density_map.items():
            if cell.world is None:
                continue
            count = _as_count(count)
            state = CellState(count=count, hot=count >= self._hot_threshold, cluster_id=UNASSIGNED)
            states[cell] = state
            if state.hot:
                hot_cells.append(cell)

        regions: list[HotRegion] = []
        next_id = 0
        for start in hot_cells:
            if states[start].cluster_id != UNASSIGNED:
                continue

            members: list[GridCell] = []
            queue: deque[GridCell] = deque([start])
            states[start].cluster_id = next_id
            while queue:
                current = queue.popleft()
                members.append(current)
                for neighbor in current.neighbors():
                    nstate = states.get(neighbor)
                    if nstate is not None and nstate.hot and nstate.cluster_id == UNASSIGNED:
                        nstate.cluster_id = next_id
                        queue.append(neighbor)

            regions.append(HotRegion.from_cells(
                next_id, start.world, ((c, states[c].count) for c in members),
            ))
            next_id += 1

        return regions

    def compute_hot_regions(self, agents: Iterable[Agent]) -> list[HotRegion]:
        """Clustering entry point: positions -> hot regions for this pass."""
        regions = self.cluster_hot_regions(self.create_density_map(agents))
        logger.debug("Clustering produced %d hot regions", len(regions))
        return regions

    def get_hot_region_for_location(self, position: Position, regions: Iterable[HotRegion]) -> HotRegion | None:
        """First region whose bounding box holds *position*'s cell."""
        if position.world is None:
            return None
        cell = cell_of(position, self._grid_size)
        for region in regions:
            if region.box_contains(cell):
                return region
        return None

    def is_location_in_hot_region(self, position: Position, regions: Iterable[HotRegion]) -> bool:
        """Bounding-box containment; concave clusters are treated as their box."""
        return self.get_hot_region_for_location(position, regions) is not None

    def grid_distance(self, a: Position, b: Position) -> float:
        """Euclidean distance in cells; ``inf`` when the worlds differ or are unknown."""
        if a.world is None or b.world is None or a.world != b.world:
            return math.inf
        ca = cell_of(a, self._grid_size)
        cb = cell_of(b, self._grid_size)
        return math.hypot(ca.cell_x - cb.cell_x, ca.cell_z - cb.cell_z)
