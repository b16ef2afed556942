"""Controller configuration with sensible defaults and range validation."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Mapping

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RegionPerfConfig:
    """Immutable configuration for the controller and its simulated host."""

    # Density grid
    grid_size: int = 64                     # blocks per density cell edge
    hot_threshold_agents: int = 3

    # Cycle intervals (seconds)
    scan_interval_seconds: float = 4.0
    control_interval_seconds: float = 5.0
    metrics_interval_seconds: float = 1.0
    cleanup_interval_seconds: float = 60.0

    # Performance envelope
    target_mspt: float = 45.0
    min_tps: float = 19.5
    ticks_per_second: int = 20

    # Chunk budget
    chunk_budget_per_region_per_sec: int = 12
    chunk_radius_current: int = 2           # tiles around the agent
    chunk_radius_predicted: int = 1         # tiles around the predicted position
    priority_distance_blocks: float = 64.0  # 4 tiles
    aggressive_unload_distance_blocks: float = 128.0  # 8 tiles
    prediction_horizon_seconds: float = 2.0
    movement_stale_seconds: float = 300.0

    # Adaptive control
    control_min_interval_seconds: float = 2.0
    control_max_samples: int = 20

    # Random tick scaling
    random_tick_scale_hot: float = 1.0
    random_tick_scale_cold: float = 0.5

    # Entity caps outside hot regions
    cold_mob_cap: int = 60
    cold_animal_cap: int = 60
    cold_projectile_cap: int = 50
    entity_cleanup_interval_seconds: float = 10.0

    # Per-agent view distance ranges (chunks)
    view_distance_hot: tuple[int, int] = (6, 8)
    view_distance_normal: tuple[int, int] = (8, 10)
    view_distance_cold: tuple[int, int] = (10, 12)
    view_multiplier_interval_seconds: float = 5.0
    boost_duration_seconds: float = 300.0

    # Metrics
    metrics_dir: str = "metrics"
    metrics_max_rolling: int = 300          # 5 minutes at 1-second intervals
    metrics_save_interval_seconds: float = 30.0
    metrics_retention_days: int = 7

    # Workers
    num_workers: int = 1
    worker_timeout_seconds: float = 2.0

    # Simulated host
    seed: int = 42
    sim_worlds: tuple[str, ...] = ("world", "world_nether")
    sim_agents: int = 24
    sim_groups: int = 3
    sim_entities_per_world: int = 150
    sim_load_failure_rate: float = 0.02
    sim_world_radius: float = 1500.0
    sim_seconds_per_tick: float = 0.25      # simulated time per runtime tick

    # Logging
    log_level: str = "INFO"
    debug: bool = False

    def validated(self) -> RegionPerfConfig:
        """Return a copy with out-of-range values replaced by their defaults."""
        defaults = RegionPerfConfig()
        fixes: dict[str, Any] = {}

        def _check(name: str, ok: bool) -> None:
            if not ok:
                default = getattr(defaults, name)
                logger.warning("Invalid %s: %r. Using default: %r", name, getattr(self, name), default)
                fixes[name] = default

        _check("grid_size", 16 <= self.grid_size <= 256)
        _check("hot_threshold_agents", self.hot_threshold_agents >= 1)
        _check("scan_interval_seconds", 1.0 <= self.scan_interval_seconds <= 10.0)
        _check("target_mspt", 10.0 <= self.target_mspt <= 100.0)
        _check("min_tps", 10.0 <= self.min_tps <= 20.0)
        _check("ticks_per_second", self.ticks_per_second >= 1)
        _check("chunk_budget_per_region_per_sec", self.chunk_budget_per_region_per_sec >= 1)
        _check("control_max_samples", self.control_max_samples >= 2)
        _check("metrics_max_rolling", self.metrics_max_rolling >= 1)
        _check("num_workers", self.num_workers >= 1)
        for name in ("view_distance_hot", "view_distance_normal", "view_distance_cold"):
            low, high = getattr(self, name)
            _check(name, 2 <= low <= high <= 32)
        return replace(self, **fixes) if fixes else self

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> RegionPerfConfig:
        """Build a config from plain data; unknown keys are ignored with a warning."""
        known = {f.name: f for f in fields(cls)}
        kwargs: dict[str, Any] = {}
        for name, value in data.items():
            if name not in known:
                logger.warning("Unknown config key %r ignored", name)
                continue
            if isinstance(value, list):
                value = tuple(value)
            kwargs[name] = value
        return cls(**kwargs).validated()


def read_config(path: str | Path) -> RegionPerfConfig:
    """Strictly read a JSON config file.

    Raises ``OSError`` when the file cannot be read and ``ValueError`` when
    it is not valid JSON or not a JSON object.
    """
    config_path = Path(path)
    data = json.loads(config_path.read_text(encoding="utf-8"))
    if not isinstance(data, dict):
        raise ValueError(f"{config_path} is not a JSON object")
    try:
        return RegionPerfConfig.from_mapping(data)
    except TypeError as exc:
        raise ValueError(f"{config_path} has a mistyped option: {exc}") from exc


def load_config(path: str | Path | None) -> RegionPerfConfig:
    """Load a JSON config file; a missing or unreadable file yields defaults."""
    if path is None:
        return RegionPerfConfig()
    config_path = Path(path)
    if not config_path.exists():
        logger.info("Config %s not found, using defaults", config_path)
        return RegionPerfConfig()
    try:
        return read_config(config_path)
    except (OSError, ValueError) as exc:
        logger.warning("Could not read config %s (%s), using defaults", config_path, exc)
        return RegionPerfConfig()
