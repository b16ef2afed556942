"""Tests for MetricsCollector.

Covers:
- Sampling host timings, chunk counts and agent counts
- Bounded rolling window and windowed statistics
- Periodic JSON snapshots and unwritable metric directories
- Retention cleanup of old metric files
"""

import json
import os
import sys

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import pytest

from dynregion.config import RegionPerfConfig
from dynregion.core.models import ChunkKey
from dynregion.metrics.collector import ROLLING_FILE, MetricsCollector
from dynregion.utils.clock import ManualClock
from tests.helpers.fake_host import FakeHost

WALL_NOW = 1_700_000_000.0
DAY = 86400.0


def _make_collector(tmp_path, **overrides):
    config = RegionPerfConfig(metrics_dir=str(tmp_path / "metrics"), **overrides)
    host = FakeHost(worlds=("world", "nether"))
    clock = ManualClock(0.0)
    collector = MetricsCollector(host, config, clock, wall_clock=lambda: WALL_NOW)
    return collector, host, clock


class TestSampling:
    def test_initial_values(self, tmp_path):
        collector, _, _ = _make_collector(tmp_path)
        assert collector.current_tps == 20.0
        assert collector.current_mspt == 0.0
        assert collector.get_rolling_data() == []

    def test_update_reads_host(self, tmp_path):
        collector, host, clock = _make_collector(tmp_path)
        host.timings = (31.5, 18.0)
        host.preload(ChunkKey("world", 0, 0), ChunkKey("world", 1, 0), ChunkKey("nether", 0, 0))
        host.add_agent("a", 0, 0)
        host.add_agent("b", 10, 10)
        clock.advance(1.0)

        data = collector.update_metrics([object(), object()])
        assert (data.mspt, data.tps) == (31.5, 18.0)
        assert data.loaded_chunks == 3
        assert data.world_chunk_counts == {"world": 2, "nether": 1}
        assert data.hot_regions == 2
        assert data.total_agents == 2
        assert collector.current is data
        assert collector.loaded_chunk_count == 3

    def test_rolling_window_is_bounded(self, tmp_path):
        collector, host, clock = _make_collector(tmp_path, metrics_max_rolling=3)
        for mspt in (10.0, 20.0, 30.0, 40.0, 50.0):
            host.timings = (mspt, 20.0)
            clock.advance(1.0)
            collector.update_metrics([])
        assert [d.mspt for d in collector.get_rolling_data()] == [30.0, 40.0, 50.0]

    def test_windowed_stats(self, tmp_path):
        collector, host, clock = _make_collector(tmp_path)
        for mspt in (10.0, 20.0, 60.0):
            host.timings = (mspt, 20.0)
            clock.advance(1.0)
            collector.update_metrics([])

        stats = collector.get_performance_stats()
        assert stats.sample_count == 3
        assert stats.avg_mspt == pytest.approx(30.0)
        assert stats.max_mspt == 60.0

        recent = collector.get_performance_stats(seconds=1.5)
        assert recent.sample_count == 2
        assert recent.min_mspt == 20.0

    def test_reset(self, tmp_path):
        collector, _, clock = _make_collector(tmp_path)
        clock.advance(1.0)
        collector.update_metrics([])
        collector.reset()
        assert collector.get_performance_stats().sample_count == 0


class TestPersistence:
    def test_snapshot_written_after_save_interval(self, tmp_path):
        collector, _, clock = _make_collector(tmp_path)
        clock.advance(1.0)
        collector.update_metrics([])
        assert not collector.rolling_path.exists()

        clock.advance(29.0)
        collector.update_metrics([])
        assert collector.rolling_path.name == ROLLING_FILE
        payload = json.loads(collector.rolling_path.read_text(encoding="utf-8"))
        assert payload["timestamp"].startswith("2023-11-14")
        assert len(payload["data"]) == 2
        assert payload["data"][0]["tps"] == 20.0

    def test_unwritable_directory(self, tmp_path):
        blocker = tmp_path / "blocker"
        blocker.write_text("not a directory", encoding="utf-8")
        config = RegionPerfConfig(metrics_dir=str(blocker / "metrics"))
        collector = MetricsCollector(FakeHost(), config, ManualClock(0.0))
        assert collector.save_rolling_data() is False

    def test_cleanup_old_files(self, tmp_path):
        collector, _, _ = _make_collector(tmp_path)
        directory = tmp_path / "metrics"
        directory.mkdir()
        old = directory / "old.json"
        fresh = directory / "fresh.json"
        notes = directory / "notes.txt"
        for path in (old, fresh, notes):
            path.write_text("{}", encoding="utf-8")
        os.utime(old, (WALL_NOW - 8 * DAY, WALL_NOW - 8 * DAY))
        os.utime(notes, (WALL_NOW - 8 * DAY, WALL_NOW - 8 * DAY))
        os.utime(fresh, (WALL_NOW - DAY, WALL_NOW - DAY))

        assert collector.cleanup_old_metrics() == 1
        assert not old.exists()
        assert fresh.exists() and notes.exists()

    def test_cleanup_without_directory(self, tmp_path):
        collector, _, _ = _make_collector(tmp_path)
        assert collector.cleanup_old_metrics() == 0
