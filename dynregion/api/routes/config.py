"""GET /api/v1/config — expose controller configuration."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from dynregion.api.dependencies import get_runtime_manager
from dynregion.api.runtime_manager import RuntimeManager
from dynregion.api.schemas import ConfigResponse

router = APIRouter()


@router.get("/config", response_model=ConfigResponse)
def get_config(
    manager: RuntimeManager = Depends(get_runtime_manager),
) -> ConfigResponse:
    cfg = manager.config
    return ConfigResponse(
        grid_size=cfg.grid_size,
        hot_threshold_agents=cfg.hot_threshold_agents,
        scan_interval_seconds=cfg.scan_interval_seconds,
        control_interval_seconds=cfg.control_interval_seconds,
        target_mspt=cfg.target_mspt,
        min_tps=cfg.min_tps,
        chunk_budget_per_region_per_sec=cfg.chunk_budget_per_region_per_sec,
        chunk_radius_current=cfg.chunk_radius_current,
        chunk_radius_predicted=cfg.chunk_radius_predicted,
        num_workers=cfg.num_workers,
        seed=cfg.seed,
        sim_agents=cfg.sim_agents,
        sim_worlds=list(cfg.sim_worlds),
        tick_rate=manager.tick_rate,
    )
