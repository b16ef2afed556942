#!/usr/bin/env python3
"""Per-cycle timing profiler for the controller over the simulated host.

Usage:
    python scripts/profile_cycles.py --ticks 2000 --seed 42
    python scripts/profile_cycles.py --ticks 2000 --agents 200 --workers 4
    python scripts/profile_cycles.py --ticks 500 --cprofile cycles.prof

Reports:
    - Wall time per cycle kind (count, mean, p50, p95, max)
    - Controller outcome (avg/max mspt, loaded chunks, hot regions)
    - Optional: cProfile dump
"""

from __future__ import annotations

import argparse
import cProfile
import os
import statistics
import sys
from dataclasses import replace

# Ensure project root is on path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from dynregion.config import RegionPerfConfig
from dynregion.core.enums import CycleKind
from dynregion.engine.orchestrator import Orchestrator
from dynregion.host.simulated import SimulatedHost
from dynregion.systems.rng import DeterministicRNG
from dynregion.utils.clock import ManualClock


def _run(cfg: RegionPerfConfig, num_ticks: int) -> tuple[dict[CycleKind, list[float]], Orchestrator]:
    rng = DeterministicRNG(cfg.seed)
    clock = ManualClock()
    host = SimulatedHost(cfg, rng)
    orchestrator = Orchestrator(cfg, host, clock, rng)

    timings: dict[CycleKind, list[float]] = {kind: [] for kind in CycleKind}
    for _ in range(num_ticks):
        clock.advance(cfg.sim_seconds_per_tick)
        host.advance(cfg.sim_seconds_per_tick)
        orchestrator.tick()
        for kind, seconds in orchestrator.cycle_timings.items():
            timings[kind].append(seconds)

    orchestrator.shutdown()
    return timings, orchestrator


def _percentile(values: list[float], pct: float) -> float:
    ordered = sorted(values)
    index = min(len(ordered) - 1, int(len(ordered) * pct))
    return ordered[index]


def _report(timings: dict[CycleKind, list[float]], orchestrator: Orchestrator) -> None:
    print(f"{'cycle':<14}{'count':>8}{'mean ms':>10}{'p50 ms':>10}{'p95 ms':>10}{'max ms':>10}")
    for kind, values in timings.items():
        if not values:
            continue
        ms = [v * 1000 for v in values]
        print(
            f"{kind.name.lower():<14}{len(ms):>8}{statistics.fmean(ms):>10.3f}"
            f"{_percentile(ms, 0.5):>10.3f}{_percentile(ms, 0.95):>10.3f}{max(ms):>10.3f}"
        )

    stats = orchestrator.metrics.get_performance_stats()
    print()
    print(f"simulated mspt  avg {stats.avg_mspt:.1f}  max {stats.max_mspt:.1f}")
    print(f"loaded chunks   avg {stats.avg_loaded_chunks:.0f}")
    print(f"hot regions     avg {stats.avg_hot_regions:.1f}")
    print(f"events          {len(orchestrator.event_log)}")


def main() -> None:
    parser = argparse.ArgumentParser(description="Profile controller cycles")
    parser.add_argument("--ticks", type=int, default=2000)
    parser.add_argument("--seed", type=int, default=42)
    parser.add_argument("--agents", type=int, default=None)
    parser.add_argument("--workers", type=int, default=1)
    parser.add_argument("--metrics-dir", type=str, default="metrics-profile")
    parser.add_argument("--cprofile", type=str, default=None, help="write cProfile stats to this file")
    args = parser.parse_args()

    cfg = RegionPerfConfig(seed=args.seed, num_workers=args.workers, metrics_dir=args.metrics_dir)
    if args.agents is not None:
        cfg = replace(cfg, sim_agents=args.agents)

    if args.cprofile:
        profiler = cProfile.Profile()
        profiler.enable()
        timings, orchestrator = _run(cfg, args.ticks)
        profiler.disable()
        profiler.dump_stats(args.cprofile)
        print(f"cProfile stats written to {args.cprofile}")
    else:
        timings, orchestrator = _run(cfg, args.ticks)

    _report(timings, orchestrator)


if __name__ == "__main__":
    main()
