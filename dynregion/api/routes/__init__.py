"""Versioned API route modules."""

from fastapi import APIRouter

from dynregion.api.routes.config import router as config_router
from dynregion.api.routes.control import router as control_router
from dynregion.api.routes.status import router as status_router

api_router = APIRouter(prefix="/api/v1")
api_router.include_router(status_router, tags=["Status"])
api_router.include_router(control_router, tags=["Control"])
api_router.include_router(config_router, tags=["Config"])

__all__ = ["api_router"]
