"""Orchestrator — drives every periodic cycle of the controller.

Cycles run in a fixed order each tick when their interval has elapsed:
  1. Movement — observe agents, feed the predictor (every tick)
  2. Density scan — cluster, budgets, view distances, per-region chunk work
  3. Metrics — sample host timings and counts
  4. Control — feed the controller and hand its output to the consumers
  5. Cleanup — prune stale movement records, boosts and old metric files

A failing cycle is logged and skipped; the remaining cycles still run.
"""

from __future__ import annotations

import functools
import logging
import threading
import time
from typing import TYPE_CHECKING, Callable

from dynregion.budget.movement import MovementPredictor
from dynregion.budget.region_budget import ChunkCycleResult, RegionBudgetManager
from dynregion.cluster.density import DensityClusterer
from dynregion.control.adaptive import AdaptiveControlSystem, ControlOutput
from dynregion.core.enums import CycleKind
from dynregion.core.models import Agent
from dynregion.core.regions import HotRegion
from dynregion.core.snapshot import RegionStatus, StatusSnapshot
from dynregion.engine.dispatcher import DispatchTask, TaskDispatcher
from dynregion.metrics.collector import MetricsCollector
from dynregion.policy.entity_limits import EntityController
from dynregion.policy.view_distance import ViewBoost, ViewDistanceAdapter
from dynregion.systems.rng import DeterministicRNG
from dynregion.utils.event_log import ControlEvent, EventLog

if TYPE_CHECKING:
    from dynregion.config import RegionPerfConfig
    from dynregion.host.base import WorldHost

logger = logging.getLogger(__name__)


class Orchestrator:
    """Owns the core components and wires their inputs and outputs together.

    Only the orchestrator thread mutates controller state. Other threads
    read the published ``StatusSnapshot``, the hot-region tuple and the
    event log.
    """

    def __init__(
        self,
        config: RegionPerfConfig,
        host: WorldHost,
        clock: Callable[[], float] = time.monotonic,
        rng: DeterministicRNG | None = None,
        dispatcher: TaskDispatcher | None = None,
        event_log: EventLog | None = None,
    ) -> None:
        self._config = config
        self._host = host
        self._clock = clock
        rng = rng or DeterministicRNG(config.seed)

        self._clusterer = DensityClusterer(config.grid_size, config.hot_threshold_agents)
        self._predictor = MovementPredictor(config.prediction_horizon_seconds, clock)
        self._budget = RegionBudgetManager(config, host, self._predictor, clock)
        self._controller = AdaptiveControlSystem(
            config.target_mspt, config.min_tps, clock,
            min_interval=config.control_min_interval_seconds,
            max_samples=config.control_max_samples,
        )
        self._view = ViewDistanceAdapter(self._clusterer, host, config, rng, clock)
        self._entities = EntityController(self._clusterer, host, config, clock)
        self._metrics = MetricsCollector(host, config, clock)
        self._dispatcher = dispatcher or TaskDispatcher(
            config.num_workers,
            config.worker_timeout_seconds,
            partitioned=host.capabilities.partitioned_scheduling,
        )
        self._event_log = event_log or EventLog()

        self._intervals = {
            CycleKind.DENSITY_SCAN: config.scan_interval_seconds,
            CycleKind.METRICS: config.metrics_interval_seconds,
            CycleKind.CONTROL: config.control_interval_seconds,
            CycleKind.CLEANUP: config.cleanup_interval_seconds,
        }
        self._last_run: dict[CycleKind, float] = {}
        self._cycle_timings: dict[CycleKind, float] = {}
        self._tick_count = 0
        self._started_at = clock()
        self._agents: list[Agent] = []
        self._hot_regions: tuple[HotRegion, ...] = ()
        self._last_output = ControlOutput()
        self._snapshot: StatusSnapshot | None = None
        self._snapshot_lock = threading.Lock()

        logger.info("Orchestrator ready on host %s", host.capabilities.describe())

    # -- components --

    @property
    def config(self) -> RegionPerfConfig:
        return self._config

    @property
    def host(self) -> WorldHost:
        return self._host

    @property
    def clusterer(self) -> DensityClusterer:
        return self._clusterer

    @property
    def budget_manager(self) -> RegionBudgetManager:
        return self._budget

    @property
    def controller(self) -> AdaptiveControlSystem:
        return self._controller

    @property
    def view_adapter(self) -> ViewDistanceAdapter:
        return self._view

    @property
    def entity_controller(self) -> EntityController:
        return self._entities

    @property
    def metrics(self) -> MetricsCollector:
        return self._metrics

    @property
    def event_log(self) -> EventLog:
        return self._event_log

    @property
    def tick_count(self) -> int:
        return self._tick_count

    @property
    def hot_regions(self) -> tuple[HotRegion, ...]:
        return self._hot_regions

    @property
    def cycle_timings(self) -> dict[CycleKind, float]:
        """Wall seconds spent in each cycle during the last tick."""
        return dict(self._cycle_timings)

    def get_snapshot(self) -> StatusSnapshot | None:
        with self._snapshot_lock:
            return self._snapshot

    # -- tick --

    def tick(self) -> list[CycleKind]:
        """Run every due cycle once; returns the cycles that ran."""
        now = self._clock()
        self._cycle_timings = {}
        ran = [CycleKind.MOVEMENT]
        self._run_cycle(CycleKind.MOVEMENT, self._movement_cycle)

        for kind, fn in (
            (CycleKind.DENSITY_SCAN, self._density_scan_cycle),
            (CycleKind.METRICS, self._metrics_cycle),
            (CycleKind.CONTROL, self._control_cycle),
            (CycleKind.CLEANUP, self._cleanup_cycle),
        ):
            last = self._last_run.get(kind)
            if last is not None and now - last < self._intervals[kind]:
                continue
            self._last_run[kind] = now
            self._run_cycle(kind, fn)
            ran.append(kind)

        self._tick_count += 1
        self._publish_snapshot()
        return ran

    def _run_cycle(self, kind: CycleKind, fn: Callable[[], None]) -> None:
        t0 = time.perf_counter()
        try:
            fn()
        except Exception:
            logger.exception("%s cycle failed, continuing", kind.name)
            self._emit("error", f"{kind.name.lower()} cycle failed")
        finally:
            self._cycle_timings[kind] = time.perf_counter() - t0

    def _movement_cycle(self) -> None:
        agents = [a for a in self._host.online_agents() if a.online]
        present = set()
        for agent in agents:
            present.add(agent.agent_id)
            if agent.position.world is not None:
                self._budget.update_player_movement(agent.agent_id, agent.position)
        for agent_id in self._predictor.tracked_ids() - present:
            self.agent_quit(agent_id)
        self._agents = agents

    def _density_scan_cycle(self) -> None:
        agents = self._agents
        previous = len(self._hot_regions)
        regions = tuple(self._clusterer.compute_hot_regions(agents))
        self._hot_regions = regions
        worlds = self._host.worlds()
        output = self._controller.get_current_output()

        self._budget.update_budgets(regions)
        self._view.update_view_distances(agents, regions, output.view_distance_delta)
        self._entities.update_entity_limits(regions, worlds)

        tasks = [
            DispatchTask(
                functools.partial(self._budget.process_region_chunks, region, agents),
                affinity=region.world,
                label=str(region.key),
            )
            for region in regions
        ]
        results = [r for r in self._dispatcher.dispatch(tasks) if isinstance(r, ChunkCycleResult)]
        self._entities.apply_entity_limits(regions, worlds)

        loaded = sum(r.loaded for r in results)
        unloaded = sum(r.unloaded for r in results)
        logger.debug(
            "Density scan: %d agents, %d hot regions, %d loads, %d unloads",
            len(agents), len(regions), loaded, unloaded,
        )
        if len(regions) != previous:
            self._emit("regions", f"hot regions {previous} -> {len(regions)}")

    def _metrics_cycle(self) -> None:
        self._metrics.update_metrics(self._hot_regions)

    def _control_cycle(self) -> None:
        data = self._metrics.current
        regions = self._hot_regions
        self._controller.update(data.mspt, data.tps, len(regions), data.loaded_chunks)
        output = self._controller.get_current_output()

        self._budget.set_rate_adjustment(output.chunk_budget_delta)
        self._view.update_performance_multiplier(data.mspt, self._config.target_mspt, data.tps, self._config.min_tps)
        self._entities.apply_random_tick_scaling(regions, self._host.worlds(), output.random_tick_ratio_delta)

        if output != self._last_output:
            self._emit(
                "control",
                f"view {output.view_distance_delta:+d}, chunks {output.chunk_budget_delta:+d}, "
                f"random tick {output.random_tick_ratio_delta:+.1f}, aggressive={output.aggressive_unload}",
            )
            self._last_output = output

        if output.aggressive_unload:
            released = self._budget.aggressive_unload_cold_regions(self._agents)
            if released:
                self._emit("unload", f"aggressive unload released {released} chunks")

    def _cleanup_cycle(self) -> None:
        self._predictor.prune_stale(self._config.movement_stale_seconds)
        self._view.cleanup_expired_boosts()
        self._metrics.cleanup_old_metrics()

    # -- external events --

    def agent_quit(self, agent_id: str) -> None:
        self._budget.remove_player_movement(agent_id)

    def boost(self, agent_id: str, radius: int) -> ViewBoost:
        boost = self._view.boost(agent_id, radius)
        self._emit("boost", f"{agent_id} view distance +{boost.extra}")
        return boost

    def reset(self) -> None:
        """Drop all learned state; configuration and host stay as they are."""
        self._controller.reset()
        self._budget.clear()
        self._view.reset()
        self._entities.reset()
        self._metrics.reset()
        self._last_run.clear()
        self._hot_regions = ()
        self._agents = []
        self._last_output = ControlOutput()
        self._tick_count = 0
        with self._snapshot_lock:
            self._snapshot = None
        logger.info("Orchestrator reset")

    def shutdown(self) -> None:
        """Hand agents back their default view distance, stop workers and flush metrics."""
        self._view.reset_all_view_distances(self._agents)
        self._dispatcher.shutdown()
        self._metrics.save_rolling_data()

    # -- internals --

    def _emit(self, category: str, message: str) -> None:
        self._event_log.append(ControlEvent(self._clock(), category, message))

    def _publish_snapshot(self) -> None:
        data = self._metrics.current
        regions = tuple(
            RegionStatus.from_region(region, self._budget.get_region_view(region.key))
            for region in self._hot_regions
        )
        snapshot = StatusSnapshot(
            tick=self._tick_count,
            elapsed=self._clock() - self._started_at,
            host=self._host.capabilities.name,
            mspt=data.mspt,
            tps=data.tps,
            loaded_chunks=data.loaded_chunks,
            agent_count=len(self._agents),
            effective_chunk_rate=self._budget.effective_rate,
            control=self._controller.get_current_output(),
            view_stats=self._view.get_stats(),
            regions=regions,
        )
        with self._snapshot_lock:
            self._snapshot = snapshot
