"""Loguru helpers for CLI commands."""

from __future__ import annotations

import sys
from pathlib import Path

from loguru import logger

_SINK_IDS: dict[str, int] = {}

_VERBOSITY_LEVELS = {1: "WARNING", 2: "INFO", 3: "DEBUG"}


def level_for_verbosity(verbose: int) -> str | None:
    """Map the 0-3 verbosity scale onto a loguru level; None means silent."""
    if verbose <= 0:
        return None
    return _VERBOSITY_LEVELS.get(min(verbose, 3), "DEBUG")


def configure_logging(verbose: int) -> str | None:
    """Replace the stderr sink with one at the level for ``verbose``."""
    if "stderr" in _SINK_IDS:
        logger.remove(_SINK_IDS.pop("stderr"))
    else:
        logger.remove()
    level = level_for_verbosity(verbose)
    if level is None:
        return None
    _SINK_IDS["stderr"] = logger.add(
        sys.stderr,
        level=level,
        format="<dim>{time:HH:mm:ss}</dim> <level>{level: <7}</level> {message}",
    )
    return level


def ensure_rotating_log_file(name: str, level: str = "INFO") -> Path:
    """Ensure a rotating log sink for the given command name."""
    log_dir = Path.home() / ".cortexrpc" / "logs"
    log_path = log_dir / f"{name}.log"
    if name in _SINK_IDS:
        return log_path
    log_dir.mkdir(parents=True, exist_ok=True)
    sink_id = logger.add(
        str(log_path),
        level=level,
        rotation="10 MB",
        retention="14 days",
        enqueue=True,
        encoding="utf-8",
        backtrace=False,
        diagnose=False,
    )
    _SINK_IDS[name] = sink_id
    return log_path
