"""GET /api/v1/status, /regions, /profile, /events — read-only controller state."""

from __future__ import annotations

from dataclasses import asdict

from fastapi import APIRouter, Depends, HTTPException, Query

from dynregion.api.dependencies import get_runtime_manager
from dynregion.api.runtime_manager import RuntimeManager
from dynregion.api.schemas import (
    ControllerStatsSchema,
    ControlOutputSchema,
    EventSchema,
    EventsResponse,
    MetricsStatsSchema,
    ProfileResponse,
    RegionSchema,
    RegionsResponse,
    StatusResponse,
    ViewStatsSchema,
)

router = APIRouter()


@router.get("/status", response_model=StatusResponse)
def get_status(manager: RuntimeManager = Depends(get_runtime_manager)) -> StatusResponse:
    snapshot = manager.get_snapshot()
    if snapshot is None:
        raise HTTPException(status_code=503, detail="No status published yet.")
    return StatusResponse(
        tick=snapshot.tick,
        elapsed=snapshot.elapsed,
        running=manager.running,
        paused=manager.paused,
        host=snapshot.host,
        mspt=snapshot.mspt,
        tps=snapshot.tps,
        loaded_chunks=snapshot.loaded_chunks,
        agent_count=snapshot.agent_count,
        hot_region_count=snapshot.hot_region_count,
        effective_chunk_rate=snapshot.effective_chunk_rate,
        control=ControlOutputSchema(**asdict(snapshot.control)),
        view_distance=ViewStatsSchema(**asdict(snapshot.view_stats)),
    )


@router.get("/regions", response_model=RegionsResponse)
def get_regions(
    world: str | None = Query(None, description="Only regions in this world"),
    manager: RuntimeManager = Depends(get_runtime_manager),
) -> RegionsResponse:
    snapshot = manager.get_snapshot()
    if snapshot is None:
        return RegionsResponse(tick=0)
    regions = [
        RegionSchema(**asdict(r))
        for r in snapshot.regions
        if world is None or r.world == world
    ]
    regions.sort(key=lambda r: r.total_agents, reverse=True)
    return RegionsResponse(tick=snapshot.tick, regions=regions)


@router.get("/profile", response_model=ProfileResponse)
def get_profile(
    seconds: float | None = Query(None, gt=0, le=3600, description="Window in seconds; all history if omitted"),
    manager: RuntimeManager = Depends(get_runtime_manager),
) -> ProfileResponse:
    metrics, controller = manager.profile(seconds)
    return ProfileResponse(
        window_seconds=seconds,
        metrics=MetricsStatsSchema(**asdict(metrics)),
        controller=ControllerStatsSchema(**asdict(controller)),
    )


@router.get("/events", response_model=EventsResponse)
def get_events(
    limit: int = Query(50, ge=1, le=500),
    category: str | None = Query(None),
    manager: RuntimeManager = Depends(get_runtime_manager),
) -> EventsResponse:
    events = manager.event_log.latest(limit)
    if category is not None:
        events = [e for e in events if e.category == category]
    return EventsResponse(
        events=[EventSchema(timestamp=e.timestamp, category=e.category, message=e.message) for e in events],
    )
