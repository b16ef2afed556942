"""Core data models: positions, grid cells, hot regions, status snapshots."""

from dynregion.core.capabilities import HostCapabilities
from dynregion.core.enums import CycleKind, Domain, EntityCategory, RegionTemperature
from dynregion.core.grid import GridCell
from dynregion.core.models import Agent, ChunkKey, EntityInfo, Position
from dynregion.core.regions import HotRegion, RegionKey
from dynregion.core.snapshot import RegionStatus, StatusSnapshot

__all__ = [
    "Agent",
    "ChunkKey",
    "CycleKind",
    "Domain",
    "EntityCategory",
    "EntityInfo",
    "GridCell",
    "HostCapabilities",
    "HotRegion",
    "Position",
    "RegionKey",
    "RegionStatus",
    "RegionTemperature",
    "StatusSnapshot",
]
