"""PID-lite feedback controller that turns tick timings into load adjustments.

Every evaluation folds the worse of the tick-duration and tick-rate errors
into a bounded P+I+D sum, maps it onto coarse action steps and then applies
emergency floors that bypass the smooth path entirely.
"""

from __future__ import annotations

import logging
import threading
import time
from collections import deque
from dataclasses import dataclass
from typing import Callable

logger = logging.getLogger(__name__)

KP = 0.1
KI = 0.01
KD = 0.05

VIEW_DELTA_BOUNDS = (-3, 3)
CHUNK_DELTA_BOUNDS = (-10, 10)
RANDOM_TICK_DELTA_BOUNDS = (-0.5, 0.5)

# (threshold, view, chunk, random tick, aggressive), strongest first
_REDUCE_STEPS = ((0.6, -2, -4, -0.2, True), (0.3, -1, -2, -0.1, False))
_INCREASE_STEPS = ((-0.6, 2, 4, 0.2), (-0.3, 1, 2, 0.1))


def _clamp(value, low, high):
    return max(low, min(high, value))


@dataclass(frozen=True, slots=True)
class PerformanceSample:
    timestamp: float
    mspt: float
    tps: float
    hot_regions: int
    loaded_chunks: int


@dataclass(frozen=True, slots=True)
class ControlOutput:
    """Adjustments consumed by the budget manager and the policy components."""

    view_distance_delta: int = 0
    chunk_budget_delta: int = 0
    random_tick_ratio_delta: float = 0.0
    aggressive_unload: bool = False

    @property
    def is_neutral(self) -> bool:
        return self == NEUTRAL_OUTPUT


NEUTRAL_OUTPUT = ControlOutput()


@dataclass(frozen=True, slots=True)
class PerformanceStats:
    avg_mspt: float = 0.0
    min_mspt: float = 0.0
    max_mspt: float = 0.0
    avg_tps: float = 0.0
    min_tps: float = 0.0
    max_tps: float = 0.0
    avg_hot_regions: float = 0.0
    avg_loaded_chunks: float = 0.0
    sample_count: int = 0


class AdaptiveControlSystem:
    """Rolling-sample controller; output is swapped atomically under a lock.

    ``update`` is rate-limited to one evaluation per ``min_interval``
    seconds. Readers on any thread get a consistent ``ControlOutput``.
    """

    def __init__(
        self,
        target_mspt: float = 45.0,
        min_tps: float = 19.5,
        clock: Callable[[], float] = time.monotonic,
        min_interval: float = 2.0,
        max_samples: int = 20,
    ) -> None:
        self._target_mspt = target_mspt
        self._min_tps = min_tps
        self._clock = clock
        self._min_interval = min_interval
        self._samples: deque[PerformanceSample] = deque(maxlen=max_samples)
        self._output = NEUTRAL_OUTPUT
        self._last_evaluation: float | None = None
        self._lock = threading.Lock()

    @property
    def target_mspt(self) -> float:
        return self._target_mspt

    @property
    def min_tps(self) -> float:
        return self._min_tps

    def update(self, mspt: float, tps: float, hot_regions: int, loaded_chunks: int) -> bool:
        """Evaluate a new measurement; returns False when rate-limited."""
        now = self._clock()
        with self._lock:
            if self._last_evaluation is not None and now - self._last_evaluation < self._min_interval:
                return False
            self._last_evaluation = now
            self._samples.append(PerformanceSample(now, mspt, tps, hot_regions, loaded_chunks))

            signal = _clamp(
                KP * self._error(mspt, tps) + KI * self._integral() + KD * self._derivative(),
                -1.0, 1.0,
            )
            output = self._to_actions(signal, mspt, tps)
            changed = output != self._output
            self._output = output

        if changed:
            logger.info(
                "Control output changed (signal=%.3f, mspt=%.1f, tps=%.2f): %s",
                signal, mspt, tps, output,
            )
        return True

    def get_current_output(self) -> ControlOutput:
        with self._lock:
            return self._output

    def samples(self) -> list[PerformanceSample]:
        with self._lock:
            return list(self._samples)

    def get_performance_stats(self, window_seconds: float | None = None) -> PerformanceStats:
        """Aggregate samples newer than *window_seconds* (all when None)."""
        samples = self.samples()
        if window_seconds is not None:
            cutoff = self._clock() - window_seconds
            samples = [s for s in samples if s.timestamp >= cutoff]
        if not samples:
            return PerformanceStats()

        n = len(samples)
        mspts = [s.mspt for s in samples]
        tpss = [s.tps for s in samples]
        return PerformanceStats(
            avg_mspt=sum(mspts) / n,
            min_mspt=min(mspts),
            max_mspt=max(mspts),
            avg_tps=sum(tpss) / n,
            min_tps=min(tpss),
            max_tps=max(tpss),
            avg_hot_regions=sum(s.hot_regions for s in samples) / n,
            avg_loaded_chunks=sum(s.loaded_chunks for s in samples) / n,
            sample_count=n,
        )

    def reset(self) -> None:
        """Drop history and return to neutral; targets are kept."""
        with self._lock:
            self._samples.clear()
            self._output = NEUTRAL_OUTPUT
            self._last_evaluation = None
        logger.info("Adaptive control reset")

    # -- internals (caller holds the lock) --

    def _error(self, mspt: float, tps: float) -> float:
        mspt_error = (mspt - self._target_mspt) / self._target_mspt
        tps_error = (self._min_tps - tps) / self._min_tps
        return max(mspt_error, tps_error)

    def _integral(self) -> float:
        total = 0.0
        previous = None
        for sample in self._samples:
            if previous is not None:
                total += self._error(sample.mspt, sample.tps) * (sample.timestamp - previous.timestamp)
            previous = sample
        return total

    def _derivative(self) -> float:
        if len(self._samples) < 2:
            return 0.0
        previous, latest = self._samples[-2], self._samples[-1]
        dt = latest.timestamp - previous.timestamp
        if dt <= 0:
            return 0.0
        return (self._error(latest.mspt, latest.tps) - self._error(previous.mspt, previous.tps)) / dt

    def _to_actions(self, signal: float, mspt: float, tps: float) -> ControlOutput:
        view, chunk, tick, aggressive = 0, 0, 0.0, False

        if signal > 0.3:
            for threshold, v, c, t, a in _REDUCE_STEPS:
                if signal > threshold:
                    view, chunk, tick, aggressive = v, c, t, a
                    break
        elif signal < -0.3:
            for threshold, v, c, t in _INCREASE_STEPS:
                if signal < threshold:
                    view, chunk, tick = v, c, t
                    break

        if mspt > self._target_mspt * 1.5 or tps < self._min_tps * 0.8:
            view = min(view, -2)
            chunk = min(chunk, -6)
            tick = min(tick, -0.2)
            aggressive = True

        return ControlOutput(
            view_distance_delta=_clamp(view, *VIEW_DELTA_BOUNDS),
            chunk_budget_delta=_clamp(chunk, *CHUNK_DELTA_BOUNDS),
            random_tick_ratio_delta=_clamp(tick, *RANDOM_TICK_DELTA_BOUNDS),
            aggressive_unload=aggressive,
        )
