"""Immutable status snapshot published after every orchestrator tick."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from dynregion.core.regions import HotRegion

if TYPE_CHECKING:
    from dynregion.budget.region_budget import RegionBudgetView
    from dynregion.control.adaptive import ControlOutput
    from dynregion.policy.view_distance import ViewDistanceStats


@dataclass(frozen=True, slots=True)
class RegionStatus:
    """One hot region joined with its budget bookkeeping."""

    key: str
    world: str
    cluster_id: int
    min_x: int
    min_z: int
    max_x: int
    max_z: int
    total_agents: int
    cell_count: int
    area: int
    density: float
    tokens: int
    loaded_chunks: int
    pending_load: int
    pending_unload: int

    @classmethod
    def from_region(cls, region: HotRegion, budget: RegionBudgetView | None) -> RegionStatus:
        return cls(
            key=str(region.key),
            world=region.world,
            cluster_id=region.cluster_id,
            min_x=region.min_x,
            min_z=region.min_z,
            max_x=region.max_x,
            max_z=region.max_z,
            total_agents=region.total_agents,
            cell_count=len(region.cell_counts),
            area=region.area,
            density=region.density,
            tokens=budget.tokens if budget else 0,
            loaded_chunks=budget.loaded if budget else 0,
            pending_load=budget.pending_load if budget else 0,
            pending_unload=budget.pending_unload if budget else 0,
        )


@dataclass(frozen=True, slots=True)
class StatusSnapshot:
    """Read-only view of the controller, safe to hand to API threads."""

    tick: int
    elapsed: float
    host: str
    mspt: float
    tps: float
    loaded_chunks: int
    agent_count: int
    effective_chunk_rate: int
    control: ControlOutput
    view_stats: ViewDistanceStats
    regions: tuple[RegionStatus, ...]

    @property
    def hot_region_count(self) -> int:
        return len(self.regions)
