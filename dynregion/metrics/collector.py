"""Rolling performance metrics with periodic JSON snapshots.

The collector only reads from the host and the core components; nothing it
does feeds back into control decisions except through the values it
publishes.
"""

from __future__ import annotations

import json
import logging
import threading
import time
from collections import deque
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING, Any, Callable, Sequence

from dynregion.core.regions import HotRegion

if TYPE_CHECKING:
    from dynregion.config import RegionPerfConfig
    from dynregion.host.base import WorldHost

logger = logging.getLogger(__name__)

ROLLING_FILE = "rolling.json"
SECONDS_PER_DAY = 86400.0


@dataclass(frozen=True, slots=True)
class PerformanceData:
    timestamp: float
    tps: float
    mspt: float
    loaded_chunks: int
    hot_regions: int
    total_agents: int
    world_chunk_counts: dict[str, int] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class MetricsStats:
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


class MetricsCollector:
    """Samples the host once per metrics cycle and keeps a bounded history."""

    def __init__(
        self,
        host: WorldHost,
        config: RegionPerfConfig,
        clock: Callable[[], float] = time.monotonic,
        wall_clock: Callable[[], float] = time.time,
    ) -> None:
        self._host = host
        self._clock = clock
        self._wall_clock = wall_clock
        self._dir = Path(config.metrics_dir)
        self._save_interval = config.metrics_save_interval_seconds
        self._retention_seconds = config.metrics_retention_days * SECONDS_PER_DAY
        self._rolling: deque[PerformanceData] = deque(maxlen=config.metrics_max_rolling)
        self._current = PerformanceData(
            timestamp=clock(), tps=float(config.ticks_per_second), mspt=0.0,
            loaded_chunks=0, hot_regions=0, total_agents=0,
        )
        self._last_save = clock()
        self._lock = threading.Lock()

    @property
    def rolling_path(self) -> Path:
        return self._dir / ROLLING_FILE

    def update_metrics(self, hot_regions: Sequence[HotRegion]) -> PerformanceData:
        now = self._clock()
        mspt, tps = self._host.tick_timings()
        world_counts = {world: self._host.loaded_chunk_count(world) for world in self._host.worlds()}
        data = PerformanceData(
            timestamp=now,
            tps=tps,
            mspt=mspt,
            loaded_chunks=sum(world_counts.values()),
            hot_regions=len(hot_regions),
            total_agents=len(self._host.online_agents()),
            world_chunk_counts=world_counts,
        )
        with self._lock:
            self._current = data
            self._rolling.append(data)
            due = now - self._last_save >= self._save_interval
            if due:
                self._last_save = now
        if due:
            self.save_rolling_data()
        return data

    def save_rolling_data(self) -> bool:
        """Write the rolling window to disk; failures are logged, not raised."""
        with self._lock:
            entries = [asdict(d) for d in self._rolling]
        payload: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(self._wall_clock(), tz=timezone.utc).isoformat(),
            "data": entries,
        }
        try:
            self._dir.mkdir(parents=True, exist_ok=True)
            self.rolling_path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
        except OSError:
            logger.warning("Could not save rolling metrics to %s", self.rolling_path, exc_info=True)
            return False
        logger.debug("Rolling metrics saved to %s (%d entries)", self.rolling_path, len(entries))
        return True

    def cleanup_old_metrics(self) -> int:
        """Delete metric files older than the retention window."""
        if not self._dir.is_dir():
            return 0
        cutoff = self._wall_clock() - self._retention_seconds
        removed = 0
        for path in self._dir.glob("*.json"):
            try:
                if path.stat().st_mtime < cutoff:
                    path.unlink()
                    removed += 1
            except OSError:
                logger.warning("Could not remove old metrics file %s", path, exc_info=True)
        if removed:
            logger.info("Removed %d old metrics files", removed)
        return removed

    def get_rolling_data(self, seconds: float | None = None) -> list[PerformanceData]:
        with self._lock:
            entries = list(self._rolling)
        if seconds is None:
            return entries
        cutoff = self._clock() - seconds
        return [d for d in entries if d.timestamp >= cutoff]

    def get_performance_stats(self, seconds: float | None = None) -> MetricsStats:
        entries = self.get_rolling_data(seconds)
        if not entries:
            return MetricsStats()
        n = len(entries)
        tps = [d.tps for d in entries]
        mspt = [d.mspt for d in entries]
        return MetricsStats(
            avg_tps=sum(tps) / n,
            min_tps=min(tps),
            max_tps=max(tps),
            avg_mspt=sum(mspt) / n,
            min_mspt=min(mspt),
            max_mspt=max(mspt),
            avg_loaded_chunks=sum(d.loaded_chunks for d in entries) / n,
            avg_hot_regions=sum(d.hot_regions for d in entries) / n,
            avg_agents=sum(d.total_agents for d in entries) / n,
            sample_count=n,
        )

    # -- current values --

    @property
    def current(self) -> PerformanceData:
        with self._lock:
            return self._current

    @property
    def current_tps(self) -> float:
        return self.current.tps

    @property
    def current_mspt(self) -> float:
        return self.current.mspt

    @property
    def loaded_chunk_count(self) -> int:
        return self.current.loaded_chunks

    @property
    def hot_region_count(self) -> int:
        return self.current.hot_regions

    @property
    def agent_count(self) -> int:
        return self.current.total_agents

    def reset(self) -> None:
        with self._lock:
            self._rolling.clear()
            self._last_save = self._clock()
