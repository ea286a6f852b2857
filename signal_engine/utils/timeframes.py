"""Candle timeframe helpers."""

MINUTES_PER_YEAR = 365 * 24 * 60

_UNIT_MINUTES = {"m": 1, "h": 60, "d": 60 * 24, "w": 60 * 24 * 7}


def timeframe_minutes(tf: str) -> int:
    """Convert an exchange timeframe ('1m', '5m', '1h', '4h', '1d', '1w') to minutes."""
    tf = tf.strip().lower()
    unit = tf[-1:]
    if unit not in _UNIT_MINUTES or not tf[:-1].isdigit():
        raise ValueError(f"Unsupported timeframe: {tf}")
    minutes = int(tf[:-1]) * _UNIT_MINUTES[unit]
    if minutes <= 0:
        raise ValueError(f"Unsupported timeframe: {tf}")
    return minutes


def periods_per_year(tf: str) -> float:
    """Number of candles of this timeframe in a year, for annualizing per-candle returns."""
    return MINUTES_PER_YEAR / timeframe_minutes(tf)
