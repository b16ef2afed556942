"""FastAPI application factory with lifespan management."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from dynregion.api.routes import api_router
from dynregion.api.runtime_manager import RuntimeManager
from dynregion.config import RegionPerfConfig
from dynregion.utils.logging import setup_logging

logger = logging.getLogger(__name__)


def create_app(
    config: RegionPerfConfig | None = None,
    autostart: bool = True,
    config_path: str | Path | None = None,
) -> FastAPI:
    """Build and return the fully-configured FastAPI application.

    ``config_path`` is the JSON file re-read by the ``reload`` control action.
    """
    if config is None:
        config = RegionPerfConfig()

    _config = config

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        setup_logging(_config.log_level, _config.debug)
        manager = RuntimeManager(_config, config_path=config_path)
        app.state.runtime_manager = manager
        if autostart:
            manager.start()
        logger.info("API server started on a %s host.", manager.host.capabilities.name)
        yield
        manager.stop()
        app.state.runtime_manager = None
        logger.info("API server shutting down.")

    app = FastAPI(
        title="dynregion",
        description=(
            "Density-driven region performance controller.\n\n"
            "## API Groups\n\n"
            "- **Status** — Live controller state: tick health, hot regions, events, profiles\n"
            "- **Control** — Runtime lifecycle, config reload and per-agent view boosts\n"
            "- **Config** — Read-only controller configuration\n"
        ),
        version="0.1.0",
        lifespan=lifespan,
        openapi_tags=[
            {"name": "Status", "description": "Read-only controller state polled by dashboards."},
            {"name": "Control", "description": "Start, pause, resume, single-step, reset, reload and view boosts."},
            {"name": "Config", "description": "Read-only controller configuration parameters."},
        ],
    )

    # dashboards may be served from any origin
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(api_router)
    return app
