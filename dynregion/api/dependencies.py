"""Request-scoped access to the RuntimeManager stored on ``app.state``."""

from __future__ import annotations

from fastapi import HTTPException, Request

from dynregion.api.runtime_manager import RuntimeManager


def get_runtime_manager(request: Request) -> RuntimeManager:
    manager: RuntimeManager | None = getattr(request.app.state, "runtime_manager", None)
    if manager is None:
        raise HTTPException(status_code=503, detail="Controller runtime is not running")
    return manager
