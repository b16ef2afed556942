"""Logging setup shared by the server, the CLI and the scripts."""

from __future__ import annotations

import logging
import sys

LOG_FORMAT = "%(asctime)s [%(levelname)-5s] %(threadName)-14s %(name)-32s | %(message)s"

# Per-request access lines drown out controller decisions
NOISY_LOGGERS = ("uvicorn.access",)


def setup_logging(level: str = "INFO", debug: bool = False) -> None:
    """Route every logger to stdout; ``debug`` forces DEBUG for ``dynregion`` only."""
    numeric_level = getattr(logging, level.upper(), logging.INFO)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(fmt=LOG_FORMAT, datefmt="%H:%M:%S"))

    root = logging.getLogger()
    root.setLevel(numeric_level)
    root.handlers.clear()
    root.addHandler(handler)

    logging.getLogger("dynregion").setLevel(logging.DEBUG if debug else numeric_level)
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(numeric_level, logging.WARNING))
