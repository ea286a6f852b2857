"""
Error taxonomy: configuration errors fail fast, signal-shape errors are soft.
"""

from __future__ import annotations


class SignalEngineError(Exception):
    """Base class for engine errors."""


class ConfigError(SignalEngineError, ValueError):
    """Structurally invalid configuration. Raised before any candle is processed."""


class InvalidSignalShape(SignalEngineError, ValueError):
    """An indicator emitted a signal missing a field or carrying an unknown value."""

    def __init__(self, indicator: str, field: str, detail: str = ""):
        self.indicator = indicator
        self.field = field
        msg = f"Invalid field '{field}' in signal from {indicator}"
        if detail:
            msg = f"{msg}: {detail}"
        super().__init__(msg)
