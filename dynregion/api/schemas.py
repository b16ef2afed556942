"""Pydantic response models for the REST API."""

from __future__ import annotations

from pydantic import BaseModel, Field


# --- Status ---

class ControlOutputSchema(BaseModel):
    view_distance_delta: int = 0
    chunk_budget_delta: int = 0
    random_tick_ratio_delta: float = 0.0
    aggressive_unload: bool = False


class ViewStatsSchema(BaseModel):
    hot_agents: int = 0
    normal_agents: int = 0
    cold_agents: int = 0
    average_view_distance: float = 0.0
    performance_multiplier: float = 1.0


class StatusResponse(BaseModel):
    tick: int
    elapsed: float
    running: bool
    paused: bool
    host: str
    mspt: float
    tps: float
    loaded_chunks: int
    agent_count: int
    hot_region_count: int
    effective_chunk_rate: int
    control: ControlOutputSchema
    view_distance: ViewStatsSchema


# --- Regions ---

class RegionSchema(BaseModel):
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
    tokens: int = 0
    loaded_chunks: int = 0
    pending_load: int = 0
    pending_unload: int = 0


class RegionsResponse(BaseModel):
    tick: int
    regions: list[RegionSchema] = Field(default_factory=list)


# --- Profile ---

class MetricsStatsSchema(BaseModel):
    avg_tps: float = 0.0
    min_tps: float = 0.0
    max_tps: float = 0.0
    avg_mspt: float = 0.0
    min_mspt: float = 0.0
    max_mspt: float = 0.0
    avg_loaded_chunks: float = 0.0
    avg_hot_regions: float = 0.0
    avg_agents: float = 0.0
    sample_count: int = 0


class ControllerStatsSchema(BaseModel):
    avg_mspt: float = 0.0
    min_mspt: float = 0.0
    max_mspt: float = 0.0
    avg_tps: float = 0.0
    min_tps: float = 0.0
    max_tps: float = 0.0
    avg_hot_regions: float = 0.0
    avg_loaded_chunks: float = 0.0
    sample_count: int = 0


class ProfileResponse(BaseModel):
    window_seconds: float | None = None
    metrics: MetricsStatsSchema
    controller: ControllerStatsSchema


# --- Events ---

class EventSchema(BaseModel):
    timestamp: float
    category: str
    message: str


class EventsResponse(BaseModel):
    events: list[EventSchema] = Field(default_factory=list)


# --- Control ---

class ControlResponse(BaseModel):
    status: str
    message: str
    tick: int


class BoostResponse(BaseModel):
    agent_id: str
    radius: int
    extra_view_distance: int
    expires_at: float


# --- Config ---

class ConfigResponse(BaseModel):
    grid_size: int
    hot_threshold_agents: int
    scan_interval_seconds: float
    control_interval_seconds: float
    target_mspt: float
    min_tps: float
    chunk_budget_per_region_per_sec: int
    chunk_radius_current: int
    chunk_radius_predicted: int
    num_workers: int
    seed: int
    sim_agents: int
    sim_worlds: list[str]
    tick_rate: float
