"""POST /api/v1/control/{action} and /boost/{agent_id} — runtime controls."""

from __future__ import annotations

from enum import Enum

from fastapi import APIRouter, Depends, HTTPException, Query

from dynregion.api.dependencies import get_runtime_manager
from dynregion.api.runtime_manager import RuntimeManager
from dynregion.api.schemas import BoostResponse, ControlResponse

router = APIRouter()


class ControlAction(str, Enum):
    start = "start"
    pause = "pause"
    resume = "resume"
    step = "step"
    reset = "reset"
    reload = "reload"


def _tick(manager: RuntimeManager) -> int:
    snapshot = manager.get_snapshot()
    return snapshot.tick if snapshot else 0


@router.post("/control/{action}", response_model=ControlResponse)
def control(
    action: ControlAction,
    manager: RuntimeManager = Depends(get_runtime_manager),
) -> ControlResponse:
    tick = _tick(manager)

    match action:
        case ControlAction.start:
            if manager.running:
                return ControlResponse(status="noop", message="Already running.", tick=tick)
            manager.start()
            return ControlResponse(status="ok", message="Controller started.", tick=tick)

        case ControlAction.pause:
            if not manager.running:
                return ControlResponse(status="error", message="Not running.", tick=tick)
            manager.pause()
            return ControlResponse(status="ok", message="Controller paused.", tick=tick)

        case ControlAction.resume:
            if not manager.running:
                return ControlResponse(status="error", message="Not running.", tick=tick)
            manager.resume()
            return ControlResponse(status="ok", message="Controller resumed.", tick=tick)

        case ControlAction.step:
            if manager.running:
                manager.step()
                return ControlResponse(status="ok", message="Single tick requested.", tick=tick)
            manager.advance_once()
            return ControlResponse(status="ok", message="Single tick executed.", tick=_tick(manager))

        case ControlAction.reset:
            manager.reset()
            return ControlResponse(status="ok", message="Controller reset.", tick=_tick(manager))

        case ControlAction.reload:
            try:
                manager.reload_config()
            except (OSError, ValueError) as exc:
                return ControlResponse(status="error", message=f"Config reload failed: {exc}", tick=tick)
            return ControlResponse(status="ok", message="Configuration reloaded.", tick=_tick(manager))


@router.post("/boost/{agent_id}", response_model=BoostResponse)
def boost(
    agent_id: str,
    radius: int = Query(3, description="Boost radius in chunks (1-10)"),
    manager: RuntimeManager = Depends(get_runtime_manager),
) -> BoostResponse:
    try:
        granted = manager.boost(agent_id, radius)
    except KeyError:
        raise HTTPException(status_code=404, detail=f"Agent {agent_id} not online")
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc))
    return BoostResponse(
        agent_id=agent_id, radius=radius,
        extra_view_distance=granted.extra, expires_at=granted.expires_at,
    )
