"""Tests for AdaptiveControlSystem.

Covers:
- Emergency override on very slow ticks or very low tick rate
- Rate limiting: calls inside the minimum interval are no-ops
- Output clamping for any non-negative input
- Reset is idempotent and re-enables immediate evaluation
- Rolling statistics and sample window bounds
- Smooth path: signal bands, time-weighted integral and derivative
"""

import itertools
import logging
import os
import sys

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import pytest

from dynregion.control.adaptive import (
    CHUNK_DELTA_BOUNDS,
    NEUTRAL_OUTPUT,
    RANDOM_TICK_DELTA_BOUNDS,
    VIEW_DELTA_BOUNDS,
    AdaptiveControlSystem,
    ControlOutput,
)
from dynregion.utils.clock import ManualClock


def _make_controller(**overrides):
    clock = ManualClock(0.0)
    kwargs = dict(target_mspt=45.0, min_tps=19.5, clock=clock, min_interval=2.0, max_samples=20)
    kwargs.update(overrides)
    return AdaptiveControlSystem(**kwargs), clock


class TestEmergency:
    def test_slow_ticks_trigger_aggressive_unload(self):
        controller, _ = _make_controller()
        assert controller.update(80.0, 10.0, 5, 1000) is True

        output = controller.get_current_output()
        assert output.aggressive_unload is True
        assert output.view_distance_delta <= -2
        assert output.chunk_budget_delta <= -4
        assert output.random_tick_ratio_delta <= -0.2

    def test_low_tick_rate_alone_triggers(self):
        controller, _ = _make_controller()
        controller.update(30.0, 15.0, 0, 0)
        assert controller.get_current_output().aggressive_unload is True

    def test_aggressive_whenever_thresholds_are_crossed(self):
        for mspt, tps in itertools.product((0.0, 40.0, 67.6, 500.0), (0.0, 15.0, 15.7, 20.0)):
            controller, _ = _make_controller()
            controller.update(mspt, tps, 3, 100)
            expected = mspt > 45.0 * 1.5 or tps < 19.5 * 0.8
            if expected:
                assert controller.get_current_output().aggressive_unload, (mspt, tps)

    def test_healthy_server_stays_calm(self):
        controller, clock = _make_controller()
        for _ in range(10):
            controller.update(20.0, 20.0, 2, 400)
            clock.advance(2.0)
        output = controller.get_current_output()
        assert not output.aggressive_unload
        assert output.view_distance_delta >= 0
        assert output.chunk_budget_delta >= 0

    def test_recovers_after_emergency(self):
        controller, clock = _make_controller()
        controller.update(80.0, 10.0, 5, 1000)
        clock.advance(2.0)
        controller.update(20.0, 20.0, 5, 1000)
        assert controller.get_current_output() == NEUTRAL_OUTPUT


class TestRateLimit:
    def test_calls_inside_interval_are_noops(self):
        controller, clock = _make_controller()
        controller.update(80.0, 10.0, 5, 1000)
        before = controller.get_current_output()

        for _ in range(3):
            clock.advance(0.5)
            assert controller.update(10.0, 20.0, 0, 0) is False
        assert controller.get_current_output() == before
        assert len(controller.samples()) == 1

    def test_evaluates_again_after_interval(self):
        controller, clock = _make_controller()
        controller.update(30.0, 20.0, 0, 0)
        clock.advance(2.0)
        assert controller.update(30.0, 20.0, 0, 0) is True
        assert len(controller.samples()) == 2


class TestClamping:
    @pytest.mark.parametrize("mspt", [0.0, 1.0, 45.0, 90.0, 1e6])
    @pytest.mark.parametrize("tps", [0.0, 5.0, 19.5, 20.0, 1e6])
    def test_output_within_bounds(self, mspt, tps):
        controller, clock = _make_controller()
        for _ in range(25):
            controller.update(mspt, tps, 10, 5000)
            clock.advance(2.0)
            output = controller.get_current_output()
            assert VIEW_DELTA_BOUNDS[0] <= output.view_distance_delta <= VIEW_DELTA_BOUNDS[1]
            assert CHUNK_DELTA_BOUNDS[0] <= output.chunk_budget_delta <= CHUNK_DELTA_BOUNDS[1]
            assert RANDOM_TICK_DELTA_BOUNDS[0] <= output.random_tick_ratio_delta <= RANDOM_TICK_DELTA_BOUNDS[1]


class TestResetAndStats:
    def test_reset_twice_is_neutral(self):
        controller, _ = _make_controller()
        controller.update(80.0, 10.0, 5, 1000)
        controller.reset()
        first = controller.get_current_output()
        controller.reset()
        assert first == controller.get_current_output() == ControlOutput()
        assert first.is_neutral

    def test_reset_allows_immediate_update(self):
        controller, _ = _make_controller()
        controller.update(30.0, 20.0, 0, 0)
        controller.reset()
        assert controller.update(80.0, 10.0, 0, 0) is True
        assert controller.samples()[0].mspt == 80.0

    def test_performance_stats(self):
        controller, clock = _make_controller()
        controller.update(80.0, 10.0, 4, 1000)
        clock.advance(2.0)
        controller.update(20.0, 20.0, 2, 600)

        stats = controller.get_performance_stats()
        assert stats.sample_count == 2
        assert stats.avg_mspt == pytest.approx(50.0)
        assert (stats.min_mspt, stats.max_mspt) == (20.0, 80.0)
        assert stats.avg_tps == pytest.approx(15.0)
        assert stats.avg_hot_regions == pytest.approx(3.0)
        assert stats.avg_loaded_chunks == pytest.approx(800.0)

        recent = controller.get_performance_stats(window_seconds=1.0)
        assert recent.sample_count == 1
        assert recent.avg_mspt == 20.0

    def test_empty_stats(self):
        controller, _ = _make_controller()
        assert controller.get_performance_stats().sample_count == 0

    def test_sample_window_is_bounded(self):
        controller, clock = _make_controller(max_samples=3)
        for i in range(5):
            controller.update(30.0 + i, 20.0, 0, 0)
            clock.advance(2.0)
        assert [s.mspt for s in controller.samples()] == [32.0, 33.0, 34.0]

    def test_output_change_is_logged(self, caplog):
        controller, _ = _make_controller()
        with caplog.at_level(logging.INFO, logger="dynregion.control.adaptive"):
            controller.update(80.0, 10.0, 5, 1000)
        assert any("Control output changed" in r.getMessage() for r in caplog.records)


class TestSmoothPath:
    """Band mapping and the P/I/D terms with the emergency override out of the way."""

    HEALTHY = (45.0, 20.0)

    @pytest.mark.parametrize("signal, expected", [
        (0.31, ControlOutput(-1, -2, -0.1, False)),
        (0.61, ControlOutput(-2, -4, -0.2, True)),
        (-0.31, ControlOutput(1, 2, 0.1, False)),
        (-0.61, ControlOutput(2, 4, 0.2, False)),
        (0.3, NEUTRAL_OUTPUT),
        (-0.3, NEUTRAL_OUTPUT),
        (0.0, NEUTRAL_OUTPUT),
    ])
    def test_signal_bands(self, signal, expected):
        controller, _ = _make_controller()
        assert controller._to_actions(signal, *self.HEALTHY) == expected

    def test_override_only_tightens_mild_band(self):
        controller, _ = _make_controller()
        output = controller._to_actions(0.31, 70.0, 20.0)
        assert output == ControlOutput(-2, -6, -0.2, True)

    def test_integral_is_time_weighted(self):
        controller, clock = _make_controller(min_interval=0.5)
        controller.update(54.0, 20.0, 0, 0)     # error 0.2
        clock.advance(1.0)
        controller.update(63.0, 20.0, 0, 0)     # error 0.4
        clock.advance(5.0)
        controller.update(49.5, 20.0, 0, 0)     # error 0.1

        assert controller._integral() == pytest.approx(0.4 * 1.0 + 0.1 * 5.0)

    def test_derivative(self):
        controller, clock = _make_controller(min_interval=0.0)
        controller.update(54.0, 20.0, 0, 0)
        controller.update(63.0, 20.0, 0, 0)
        assert controller._derivative() == 0.0

        clock.advance(2.0)
        controller.update(72.0, 20.0, 0, 0)
        assert controller._derivative() == pytest.approx((0.6 - 0.4) / 2.0)

    def test_sustained_load_reaches_mild_band(self):
        controller, clock = _make_controller()
        outputs = []
        for _ in range(20):
            controller.update(67.0, 19.6, 2, 500)
            outputs.append(controller.get_current_output())
            clock.advance(5.0)

        # the integral crosses 0.3 on the twelfth evaluation and the window caps it below 0.6
        assert outputs[10] == NEUTRAL_OUTPUT
        assert outputs[11] == ControlOutput(-1, -2, -0.1, False)
        assert outputs[-1] == ControlOutput(-1, -2, -0.1, False)
