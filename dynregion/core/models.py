"""Core data models: Position, Agent, ChunkKey, EntityInfo."""

from __future__ import annotations

import math
from dataclasses import dataclass

from dynregion.core.enums import EntityCategory

CHUNK_SIZE = 16  # blocks per chunk edge


@dataclass(frozen=True, slots=True)
class Position:
    """Immutable world position in blocks.

    ``world`` is ``None`` when the host could not resolve a world for the
    observation; such positions are skipped by density mapping.
    """

    world: str | None
    x: float = 0.0
    y: float = 0.0
    z: float = 0.0

    def horizontal_distance(self, other: Position) -> float:
        """Distance on the x/z plane, ``inf`` across worlds."""
        if self.world is None or self.world != other.world:
            return math.inf
        return math.hypot(self.x - other.x, self.z - other.z)

    def offset(self, dx: float, dz: float) -> Position:
        return Position(self.world, self.x + dx, self.y, self.z + dz)

    def __repr__(self) -> str:
        return f"{self.world}({self.x:.1f}, {self.y:.1f}, {self.z:.1f})"


@dataclass(frozen=True, slots=True)
class Agent:
    """One observation of a connected player."""

    agent_id: str
    position: Position
    online: bool = True


@dataclass(frozen=True, slots=True, order=True)
class ChunkKey:
    """A fixed-size 16x16 block tile of a world."""

    world: str
    chunk_x: int
    chunk_z: int

    @classmethod
    def of(cls, position: Position) -> ChunkKey:
        if position.world is None:
            raise ValueError("position has no world")
        return cls(
            position.world,
            math.floor(position.x / CHUNK_SIZE),
            math.floor(position.z / CHUNK_SIZE),
        )

    def origin(self) -> Position:
        """Block position of the tile's minimum corner."""
        return Position(self.world, float(self.chunk_x * CHUNK_SIZE), 0.0, float(self.chunk_z * CHUNK_SIZE))

    def around(self, radius: int) -> list[ChunkKey]:
        """All tiles in the square of *radius* tiles around this one."""
        return [
            ChunkKey(self.world, cx, cz)
            for cx in range(self.chunk_x - radius, self.chunk_x + radius + 1)
            for cz in range(self.chunk_z - radius, self.chunk_z + radius + 1)
        ]

    def __str__(self) -> str:
        return f"{self.world}[{self.chunk_x},{self.chunk_z}]"


@dataclass(frozen=True, slots=True)
class EntityInfo:
    """A non-player entity reported by the host."""

    entity_id: int
    category: EntityCategory
    position: Position
