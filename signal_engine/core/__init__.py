"""Core: config, types, errors, logging."""

from signal_engine.core.config import EngineConfig, load_config
from signal_engine.core.errors import ConfigError, InvalidSignalShape, SignalEngineError
from signal_engine.core.logger import setup_logging
from signal_engine.core.types import Bar, CompositeSignal, Position, Side, Signal, Trade

__all__ = [
    "EngineConfig",
    "load_config",
    "ConfigError",
    "InvalidSignalShape",
    "SignalEngineError",
    "setup_logging",
    "Bar",
    "CompositeSignal",
    "Position",
    "Side",
    "Signal",
    "Trade",
]
