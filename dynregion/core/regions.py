"""HotRegion — a connected cluster of hot density cells.

Regions are rebuilt from scratch on every clustering pass. ``cluster_id`` is
only meaningful inside the pass that produced it; anything that keeps state
per region across passes keys it by ``RegionKey`` instead and must drop keys
that a later pass no longer reports.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Iterable, Mapping

from dynregion.core.grid import GridCell


@dataclass(frozen=True, slots=True, order=True)
class RegionKey:
    """Pass-independent logical identity: world plus the region's anchor cell."""

    world: str
    anchor_x: int
    anchor_z: int

    def __str__(self) -> str:
        return f"{self.world}:{self.anchor_x}:{self.anchor_z}"


@dataclass(frozen=True, slots=True, eq=False)
class HotRegion:
    """Immutable cluster snapshot with derived bounding box and totals."""

    cluster_id: int
    world: str
    cell_counts: Mapping[GridCell, int]
    min_x: int = field(init=False)
    max_x: int = field(init=False)
    min_z: int = field(init=False)
    max_z: int = field(init=False)
    total_agents: int = field(init=False)

    def __post_init__(self) -> None:
        if not self.cell_counts:
            raise ValueError("a hot region needs at least one cell")
        counts = MappingProxyType(dict(self.cell_counts))
        xs = [c.cell_x for c in counts]
        zs = [c.cell_z for c in counts]
        object.__setattr__(self, "cell_counts", counts)
        object.__setattr__(self, "min_x", min(xs))
        object.__setattr__(self, "max_x", max(xs))
        object.__setattr__(self, "min_z", min(zs))
        object.__setattr__(self, "max_z", max(zs))
        object.__setattr__(self, "total_agents", sum(counts.values()))

    @classmethod
    def from_cells(cls, cluster_id: int, world: str, cells: Iterable[tuple[GridCell, int]]) -> HotRegion:
        return cls(cluster_id=cluster_id, world=world, cell_counts=dict(cells))

    @property
    def cells(self) -> frozenset[GridCell]:
        return frozenset(self.cell_counts)

    @property
    def area(self) -> int:
        return (self.max_x - self.min_x + 1) * (self.max_z - self.min_z + 1)

    @property
    def density(self) -> float:
        return self.total_agents / self.area

    @property
    def key(self) -> RegionKey:
        anchor = min((c.cell_x, c.cell_z) for c in self.cell_counts)
        return RegionKey(self.world, anchor[0], anchor[1])

    def box_contains(self, cell: GridCell) -> bool:
        """Bounding-box test; a cell in the box but outside the cluster still counts."""
        return (
            cell.world == self.world
            and self.min_x <= cell.cell_x <= self.max_x
            and self.min_z <= cell.cell_z <= self.max_z
        )

    def center_blocks(self, grid_size: int) -> tuple[float, float]:
        """Box centre in block coordinates."""
        return (
            (self.min_x + self.max_x) / 2.0 * grid_size,
            (self.min_z + self.max_z) / 2.0 * grid_size,
        )

    def __repr__(self) -> str:
        return (
            f"HotRegion(id={self.cluster_id}, world={self.world!r}, agents={self.total_agents}, "
            f"area={self.area}, bounds=({self.min_x},{self.min_z})-({self.max_x},{self.max_z}))"
        )
