"""Density grid: immutable cell keys and their per-pass mutable state."""

from __future__ import annotations

import math
from dataclasses import dataclass

from dynregion.core.models import Position

UNASSIGNED = -1

# 8-neighbourhood offsets, (0, 0) excluded
NEIGHBOR_OFFSETS: tuple[tuple[int, int], ...] = tuple(
    (dx, dz) for dx in (-1, 0, 1) for dz in (-1, 0, 1) if (dx, dz) != (0, 0)
)


@dataclass(frozen=True, slots=True, order=True)
class GridCell:
    """Identity of one density cell. Hash and equality cover all fields."""

    cell_x: int
    cell_z: int
    world: str

    def neighbors(self) -> list[GridCell]:
        return [GridCell(self.cell_x + dx, self.cell_z + dz, self.world) for dx, dz in NEIGHBOR_OFFSETS]

    def __repr__(self) -> str:
        return f"GridCell({self.cell_x}, {self.cell_z}, {self.world!r})"


@dataclass(slots=True)
class CellState:
    """Mutable value stored under a GridCell during one clustering pass."""

    count: int = 0
    hot: bool = False
    cluster_id: int = UNASSIGNED


def cell_of(position: Position, grid_size: int) -> GridCell:
    """Map a block position onto the density grid (floor, not truncation)."""
    if position.world is None:
        raise ValueError("cannot map a position without a world onto the grid")
    return GridCell(
        math.floor(position.x / grid_size),
        math.floor(position.z / grid_size),
        position.world,
    )
