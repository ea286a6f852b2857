"""Utils: timeframes."""

from signal_engine.utils.timeframes import periods_per_year, timeframe_minutes

__all__ = ["periods_per_year", "timeframe_minutes"]
