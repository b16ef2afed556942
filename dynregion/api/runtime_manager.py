"""RuntimeManager — runs the orchestrator over a simulated host on a background thread.

The API only reads the orchestrator's published ``StatusSnapshot`` and
event log; every mutation happens on the runtime thread or under the tick
lock.
"""

from __future__ import annotations

import logging
import threading
from pathlib import Path

from dynregion.config import RegionPerfConfig, read_config
from dynregion.control.adaptive import PerformanceStats
from dynregion.core.snapshot import StatusSnapshot
from dynregion.engine.orchestrator import Orchestrator
from dynregion.host.simulated import SimulatedHost
from dynregion.metrics.collector import MetricsStats
from dynregion.policy.view_distance import ViewBoost
from dynregion.systems.rng import DeterministicRNG
from dynregion.utils.clock import ManualClock
from dynregion.utils.event_log import ControlEvent, EventLog

logger = logging.getLogger(__name__)

DEFAULT_TICK_INTERVAL = 0.05
MIN_TICK_INTERVAL = 0.01
MAX_TICK_INTERVAL = 2.0
PAUSE_POLL_SECONDS = 0.01
JOIN_TIMEOUT_SECONDS = 5.0


class RuntimeManager:
    """Owns one simulated host plus orchestrator and drives it in real time.

    Route handlers read the orchestrator's published snapshot and the
    shared event log. Lifecycle commands flip threading Events that the
    runtime thread polls between ticks.
    """

    def __init__(self, config: RegionPerfConfig, config_path: str | Path | None = None) -> None:
        self._config = config
        self._config_path = Path(config_path) if config_path is not None else None
        self._tick_rate: float = DEFAULT_TICK_INTERVAL  # real seconds between ticks
        self._event_log = EventLog()
        self._tick_lock = threading.Lock()

        self._clock: ManualClock | None = None
        self._host: SimulatedHost | None = None
        self._orchestrator: Orchestrator | None = None

        self._thread: threading.Thread | None = None
        self._running = threading.Event()
        self._paused = threading.Event()
        self._step_requested = threading.Event()
        self._stop_requested = threading.Event()

        self._build()

    # -- public properties --

    @property
    def config(self) -> RegionPerfConfig:
        return self._config

    @property
    def running(self) -> bool:
        return self._running.is_set()

    @property
    def paused(self) -> bool:
        return self._paused.is_set()

    @property
    def tick_rate(self) -> float:
        return self._tick_rate

    @tick_rate.setter
    def tick_rate(self, value: float) -> None:
        self._tick_rate = min(MAX_TICK_INTERVAL, max(MIN_TICK_INTERVAL, value))

    @property
    def event_log(self) -> EventLog:
        return self._event_log

    @property
    def orchestrator(self) -> Orchestrator:
        assert self._orchestrator is not None
        return self._orchestrator

    @property
    def host(self) -> SimulatedHost:
        assert self._host is not None
        return self._host

    def get_snapshot(self) -> StatusSnapshot | None:
        return self.orchestrator.get_snapshot()

    def now(self) -> float:
        assert self._clock is not None
        return self._clock()

    # -- lifecycle --

    def start(self) -> None:
        if self.running:
            return
        self._stop_requested.clear()
        self._paused.clear()
        self._running.set()
        self._thread = threading.Thread(target=self._run_loop, name="region-runtime", daemon=True)
        self._thread.start()
        logger.info("RuntimeManager started (tick_rate=%.3fs)", self._tick_rate)

    def pause(self) -> None:
        self._paused.set()
        logger.info("RuntimeManager paused at tick %d", self.orchestrator.tick_count)

    def resume(self) -> None:
        self._paused.clear()
        logger.info("RuntimeManager resumed at tick %d", self.orchestrator.tick_count)

    def step(self) -> None:
        """Pause if needed, then let the runtime thread run a single tick."""
        if not self.paused:
            self.pause()
        self._step_requested.set()

    def stop(self) -> None:
        self._stop_requested.set()
        self._paused.clear()
        self._running.clear()
        thread, self._thread = self._thread, None
        if thread is not None and thread.is_alive():
            thread.join(timeout=JOIN_TIMEOUT_SECONDS)
        self.orchestrator.shutdown()
        logger.info("RuntimeManager stopped.")

    def reset(self) -> None:
        """Stop, rebuild, and leave stopped ready to start."""
        self.stop()
        self._event_log.clear()
        self._build()
        logger.info("RuntimeManager reset.")

    # -- commands --

    def advance_once(self) -> None:
        """Advance simulated time by one tick and run the orchestrator."""
        with self._tick_lock:
            self._clock.advance(self._config.sim_seconds_per_tick)
            self._host.advance(self._config.sim_seconds_per_tick)
            self._orchestrator.tick()

    def reload_config(self) -> RegionPerfConfig:
        """Re-read the config file and rebuild the controller over the same world.

        The simulated host and clock carry on; controller state starts over
        under the new settings. Raises ``ValueError`` when no file was given
        or it does not parse, ``OSError`` when it cannot be read.
        """
        if self._config_path is None:
            raise ValueError("no config file was given at startup")
        try:
            config = read_config(self._config_path)
        except (OSError, ValueError) as exc:
            logger.error("Config reload from %s failed: %s", self._config_path, exc)
            self._event_log.append(ControlEvent(self.now(), "error", f"config reload failed: {exc}"))
            raise

        with self._tick_lock:
            self.orchestrator.shutdown()
            self._config = config
            self._orchestrator = Orchestrator(
                config, self.host, self._clock, DeterministicRNG(config.seed), event_log=self._event_log,
            )
            self._orchestrator.tick()
        self._event_log.append(ControlEvent(self.now(), "config", f"reloaded {self._config_path.name}"))
        logger.info("Configuration reloaded from %s", self._config_path)
        return config

    def boost(self, agent_id: str, radius: int) -> ViewBoost:
        """Boost an online agent's view distance; ``KeyError`` if unknown."""
        if agent_id not in {a.agent_id for a in self.host.online_agents()}:
            raise KeyError(agent_id)
        with self._tick_lock:
            return self.orchestrator.boost(agent_id, radius)

    def profile(self, seconds: float | None) -> tuple[MetricsStats, PerformanceStats]:
        orchestrator = self.orchestrator
        return (
            orchestrator.metrics.get_performance_stats(seconds),
            orchestrator.controller.get_performance_stats(seconds),
        )

    # -- internals --

    def _build(self) -> None:
        cfg = self._config
        rng = DeterministicRNG(cfg.seed)
        self._clock = ManualClock()
        self._host = SimulatedHost(cfg, rng)
        self._orchestrator = Orchestrator(cfg, self._host, self._clock, rng, event_log=self._event_log)
        # initial snapshot so status routes have data before the first tick
        with self._tick_lock:
            self._orchestrator.tick()

    def _run_loop(self) -> None:
        logger.info("Runtime thread started.")

        while not self._stop_requested.is_set():
            stepping = self._step_requested.is_set()
            if self._paused.is_set() and not stepping:
                self._step_requested.wait(PAUSE_POLL_SECONDS)
                continue
            self._step_requested.clear()

            try:
                self.advance_once()
            except Exception:
                logger.exception("Runtime tick failed, stopping")
                break

            if not stepping:
                self._stop_requested.wait(self._tick_rate)

        self._running.clear()
        logger.info("Runtime thread exited.")
