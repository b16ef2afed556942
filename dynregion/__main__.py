"""Entry point: ``python -m dynregion``.

Supports two modes:
  - ``python -m dynregion``            → Launch the FastAPI status/control server
  - ``python -m dynregion cli``        → Headless deterministic run over the simulated host
"""

from __future__ import annotations

import argparse
import logging
from dataclasses import replace

logger = logging.getLogger(__name__)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Density-driven region performance controller")
    sub = parser.add_subparsers(dest="command")

    # --- Server mode (default) ---
    srv = sub.add_parser("serve", help="Start the FastAPI status/control server (default)")
    srv.add_argument("--host", type=str, default="127.0.0.1")
    srv.add_argument("--port", type=int, default=8000)
    _add_common(srv)

    # --- Headless CLI mode ---
    cli = sub.add_parser("cli", help="Run a headless controller session")
    cli.add_argument("--ticks", type=int, default=1200, help="ticks of sim_seconds_per_tick simulated time")
    _add_common(cli)

    return parser


def _add_common(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--config", type=str, default=None, help="JSON config file")
    parser.add_argument("--seed", type=int, default=None)
    parser.add_argument("--agents", type=int, default=None)
    parser.add_argument("--workers", type=int, default=None)
    parser.add_argument("--metrics-dir", type=str, default=None)
    parser.add_argument("--log-level", type=str, default=None, choices=["DEBUG", "INFO", "WARNING"])
    parser.add_argument("--debug", action="store_true")


def _config_from_args(args: argparse.Namespace):
    from dynregion.config import load_config

    config = load_config(args.config)
    overrides = {
        "seed": args.seed,
        "sim_agents": args.agents,
        "num_workers": args.workers,
        "metrics_dir": args.metrics_dir,
        "log_level": args.log_level,
    }
    overrides = {k: v for k, v in overrides.items() if v is not None}
    if args.debug:
        overrides["debug"] = True
    return replace(config, **overrides).validated() if overrides else config


def _run_server(args: argparse.Namespace) -> None:
    import uvicorn

    from dynregion.api.app import create_app

    config = _config_from_args(args)
    app = create_app(config, config_path=args.config)
    uvicorn.run(app, host=args.host, port=args.port, log_level=config.log_level.lower())


def _run_cli(args: argparse.Namespace) -> None:
    from dynregion.engine.orchestrator import Orchestrator
    from dynregion.host.simulated import SimulatedHost
    from dynregion.systems.rng import DeterministicRNG
    from dynregion.utils.clock import ManualClock
    from dynregion.utils.logging import setup_logging

    config = _config_from_args(args)
    setup_logging(config.log_level, config.debug)

    rng = DeterministicRNG(config.seed)
    clock = ManualClock()
    host = SimulatedHost(config, rng)
    orchestrator = Orchestrator(config, host, clock, rng)

    logger.info("=== Controller session started (seed=%d, ticks=%d) ===", config.seed, args.ticks)
    try:
        for i in range(1, args.ticks + 1):
            clock.advance(config.sim_seconds_per_tick)
            host.advance(config.sim_seconds_per_tick)
            orchestrator.tick()

            if i % 120 == 0:
                snap = orchestrator.get_snapshot()
                if snap is not None:
                    logger.info(
                        "t=%.0fs: mspt=%.1f tps=%.2f chunks=%d hot=%d rate=%d control=%s",
                        clock(), snap.mspt, snap.tps, snap.loaded_chunks,
                        snap.hot_region_count, snap.effective_chunk_rate, snap.control,
                    )
    finally:
        orchestrator.shutdown()

    stats = orchestrator.metrics.get_performance_stats()
    logger.info(
        "=== Finished: avg mspt=%.1f (max %.1f), avg tps=%.2f, avg chunks=%.0f, %d events ===",
        stats.avg_mspt, stats.max_mspt, stats.avg_tps, stats.avg_loaded_chunks, len(orchestrator.event_log),
    )
    logger.info("Rolling metrics written to %s", orchestrator.metrics.rolling_path)


def main() -> None:
    parser = _build_parser()
    args = parser.parse_args()

    # Default to serve mode if no subcommand given
    if args.command is None or args.command == "serve":
        if args.command is None:
            args = parser.parse_args(["serve"])
        _run_server(args)
    elif args.command == "cli":
        _run_cli(args)


if __name__ == "__main__":
    main()
