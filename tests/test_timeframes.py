"""Unit tests for utils.timeframes."""

import pytest
from signal_engine.utils.timeframes import periods_per_year, timeframe_minutes


def test_timeframe_minutes():
    assert timeframe_minutes("5m") == 5
    assert timeframe_minutes("1h") == 60
    assert timeframe_minutes("4H") == 240
    assert timeframe_minutes("1d") == 1440
    assert timeframe_minutes("1w") == 10080


@pytest.mark.parametrize("tf", ["1x", "m", "0m", ""])
def test_timeframe_invalid(tf):
    with pytest.raises(ValueError):
        timeframe_minutes(tf)


def test_periods_per_year():
    assert periods_per_year("1h") == 8760
    assert periods_per_year("5m") == 105120
