"""Unit tests for backtesting.walk_forward."""

from datetime import datetime, timedelta

import pytest
from signal_engine.backtesting.walk_forward import (
    TradeSample,
    WalkForwardValidator,
    sample_stats,
    split_windows,
)


def _samples(pnls):
    t0 = datetime(2024, 1, 1)
    return [TradeSample(t0 + timedelta(hours=i), p) for i, p in enumerate(pnls)]


def test_split_single_window():
    windows = split_windows(100, train_pct=0.7)
    assert len(windows) == 1
    w = windows[0]
    assert (w.train_start, w.train_end, w.test_start, w.test_end) == (0, 70, 70, 100)


def test_split_rolling_windows():
    windows = split_windows(100, train_pct=0.5, step_bars=20)
    assert [w.test_start for w in windows] == [50, 70, 90]
    assert windows[-1].test_end == 100


def test_split_too_short():
    assert split_windows(1, train_pct=0.7) == []


def test_consistent_edge_passes():
    result = WalkForwardValidator().validate(_samples([1.0] * 30))
    assert result.passed is True
    assert result.reasons == []
    assert result.out_of_sample.trades == 9
    assert result.out_of_sample.profit_factor == 999.0


def test_too_few_trades():
    result = WalkForwardValidator().validate(_samples([1.0] * 10))
    assert result.passed is False
    assert "insufficient_total_trades" in result.reasons
    assert "insufficient_oos_trades" in result.reasons


def test_degrading_out_of_sample():
    result = WalkForwardValidator().validate(_samples([1.0] * 21 + [-1.0] * 9))
    assert result.passed is False
    assert "oos_expectancy_below_threshold" in result.reasons
    assert "oos_profit_factor_below_threshold" in result.reasons
    assert result.in_sample.expectancy == 1.0


def test_samples_sorted_by_time():
    samples = list(reversed(_samples([1.0] * 21 + [-1.0] * 9)))
    result = WalkForwardValidator().validate(samples)
    assert result.out_of_sample.expectancy == -1.0


def test_sample_stats_drawdown():
    stats = sample_stats([10.0, -50.0])
    assert stats.max_drawdown == pytest.approx(50.0)
    assert stats.profit_factor == 0.2
