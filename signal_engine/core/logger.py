"""
Logging setup for the engine: the `signal_engine` logger tree to stdout,
an optional log file, and per-module level overrides.
"""

from __future__ import annotations
import logging
import sys
from pathlib import Path
from typing import Mapping, Optional

ROOT_LOGGER = "signal_engine"

# Short name -> logger used by that part of the engine
MODULE_LOGGERS = {
    "scoring": "signal_engine.scoring",
    "gates": "signal_engine.gates",
    "risk": "signal_engine.risk",
    "backtest": "signal_engine.backtest",
    "walk_forward": "signal_engine.backtest.walk_forward",
    "config": "signal_engine.config",
}

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def parse_level(level: str) -> int:
    """'debug' / 'INFO' / ... -> logging level. Raises ValueError on an unknown name."""
    value = logging.getLevelName(str(level).upper())
    if not isinstance(value, int):
        raise ValueError(f"Unknown log level '{level}'")
    return value


def module_logger_name(module: str) -> str:
    """Accept a short name ('gates') or a full logger name ('signal_engine.gates')."""
    if module in MODULE_LOGGERS:
        return MODULE_LOGGERS[module]
    if module in MODULE_LOGGERS.values():
        return module
    raise ValueError(f"Unknown module logger '{module}'; expected one of {sorted(MODULE_LOGGERS)}")


def setup_logging(
    level: str = "INFO",
    log_dir: Optional[Path] = None,
    log_file: Optional[str] = None,
    module_levels: Optional[Mapping[str, str]] = None,
) -> logging.Logger:
    """
    Configure the `signal_engine` logger tree. The core itself never writes
    files; only callers that pass log_dir do.

    module_levels lets one part run louder or quieter than the rest, e.g.
    {"gates": "DEBUG", "backtest": "WARNING"}. Modules not listed follow the
    root level.
    """
    root = logging.getLogger(ROOT_LOGGER)
    root.setLevel(parse_level(level))
    root.handlers.clear()

    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)
    console = logging.StreamHandler(sys.stdout)
    console.setFormatter(formatter)
    root.addHandler(console)

    if log_dir and log_file:
        log_dir = Path(log_dir)
        log_dir.mkdir(parents=True, exist_ok=True)
        fh = logging.FileHandler(log_dir / log_file, encoding="utf-8")
        fh.setFormatter(formatter)
        root.addHandler(fh)

    overrides = {module_logger_name(m): parse_level(lvl) for m, lvl in (module_levels or {}).items()}
    for name in MODULE_LOGGERS.values():
        logging.getLogger(name).setLevel(overrides.get(name, logging.NOTSET))

    return root
