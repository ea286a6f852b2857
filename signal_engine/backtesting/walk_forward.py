"""
Walk-forward validation: split history into in-sample and out-of-sample, and reject
a setup whose out-of-sample trades do not hold up.
"""

from __future__ import annotations
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional, Sequence, Tuple

import numpy as np

from signal_engine.analytics.metrics import max_drawdown

logger = logging.getLogger("signal_engine.backtest.walk_forward")

NO_LOSS_PROFIT_FACTOR = 999.0


@dataclass
class WalkForwardWindow:
    """Single train/test window of bar indices (end exclusive)."""
    train_start: int
    train_end: int
    test_start: int
    test_end: int


def split_windows(
    n_bars: int,
    train_pct: float = 0.7,
    step_bars: Optional[int] = None,
) -> List[WalkForwardWindow]:
    """
    One train/test split at train_pct when step_bars is None, else rolling
    windows of the same train length advanced by step_bars.
    """
    train_len = int(n_bars * train_pct)
    if train_len < 1 or train_len >= n_bars:
        return []
    if step_bars is None:
        return [WalkForwardWindow(0, train_len, train_len, n_bars)]
    if step_bars < 1:
        raise ValueError("step_bars must be >= 1")
    windows = []
    start = 0
    while start + train_len < n_bars:
        test_end = min(start + train_len + step_bars, n_bars)
        windows.append(WalkForwardWindow(start, start + train_len, start + train_len, test_end))
        start += step_bars
    return windows


@dataclass(frozen=True)
class TradeSample:
    timestamp: datetime
    pnl_percent: float
    feature_key: str = ""


@dataclass(frozen=True)
class WalkForwardConfig:
    in_sample_ratio: float = 0.7
    min_trades: int = 20
    min_oos_expectancy: float = 0.1
    min_oos_profit_factor: float = 1.1
    max_oos_drawdown: float = 12.0


@dataclass(frozen=True)
class SampleStats:
    trades: int
    expectancy: float
    profit_factor: float
    max_drawdown: float
    win_rate: float


@dataclass
class WalkForwardResult:
    passed: bool
    in_sample: Optional[SampleStats] = None
    out_of_sample: Optional[SampleStats] = None
    reasons: List[str] = field(default_factory=list)


def sample_stats(pnl_percents: Sequence[float]) -> SampleStats:
    """Expectancy, profit factor and compounded drawdown of a run of per-trade percent returns."""
    arr = np.asarray(pnl_percents, dtype=float)
    if arr.size == 0:
        return SampleStats(0, 0.0, 0.0, 0.0, 0.0)
    gains = arr[arr > 0].sum()
    losses = -arr[arr < 0].sum()
    if losses > 0:
        pf = float(gains / losses)
    else:
        pf = NO_LOSS_PROFIT_FACTOR if gains > 0 else 0.0
    equity = np.concatenate(([1.0], np.cumprod(1.0 + arr / 100.0)))
    return SampleStats(
        trades=int(arr.size),
        expectancy=float(arr.mean()),
        profit_factor=pf,
        max_drawdown=max_drawdown(equity),
        win_rate=float((arr >= 0).mean() * 100.0),
    )


class WalkForwardValidator:
    def __init__(self, config: Optional[WalkForwardConfig] = None):
        self.config = config or WalkForwardConfig()

    def split(self, samples: Sequence[TradeSample]) -> Tuple[List[TradeSample], List[TradeSample]]:
        ordered = sorted(samples, key=lambda s: s.timestamp)
        cut = max(1, int(len(ordered) * self.config.in_sample_ratio))
        return ordered[:cut], ordered[cut:]

    def validate(self, samples: Sequence[TradeSample]) -> WalkForwardResult:
        """All failing rules are reported, like the entry gate."""
        cfg = self.config
        in_sample, out_sample = self.split(samples)
        is_stats = sample_stats([s.pnl_percent for s in in_sample])
        oos_stats = sample_stats([s.pnl_percent for s in out_sample])

        reasons: List[str] = []
        if len(samples) < cfg.min_trades:
            reasons.append("insufficient_total_trades")
        if oos_stats.trades < max(5, int(cfg.min_trades * 0.2)):
            reasons.append("insufficient_oos_trades")
        if oos_stats.expectancy < cfg.min_oos_expectancy:
            reasons.append("oos_expectancy_below_threshold")
        if oos_stats.profit_factor < cfg.min_oos_profit_factor:
            reasons.append("oos_profit_factor_below_threshold")
        if oos_stats.max_drawdown > cfg.max_oos_drawdown:
            reasons.append("oos_drawdown_above_threshold")

        if reasons:
            logger.info("Walk-forward rejected: %s", ", ".join(reasons))
        return WalkForwardResult(passed=not reasons, in_sample=is_stats, out_of_sample=oos_stats, reasons=reasons)
