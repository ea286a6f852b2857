"""
Backtest performance metrics from closed-trade PnLs and the per-candle equity series.
Sharpe/Sortino are computed on per-candle equity returns and annualized by candle count.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Optional, Sequence

import numpy as np


@dataclass
class PerformanceMetrics:
    total_return_pct: float
    sharpe_ratio: float
    sortino_ratio: float
    max_drawdown_pct: float
    win_rate: float
    profit_factor: float
    expectancy: float
    total_trades: int
    winning_trades: int
    losing_trades: int
    avg_win: float
    avg_loss: float


def equity_returns(equity: Sequence[float]) -> np.ndarray:
    """Simple period returns of an equity series; empty for fewer than two points."""
    arr = np.asarray(equity, dtype=float)
    if arr.size < 2:
        return np.empty(0)
    prev = np.where(arr[:-1] != 0, arr[:-1], 1.0)
    return np.diff(arr) / prev


def sharpe_ratio(returns: Sequence[float], risk_free_rate: float = 0.0, periods_per_year: float = 252.0) -> float:
    """Annualized Sharpe. 0.0 for empty or flat series."""
    arr = np.asarray(returns, dtype=float)
    if arr.size == 0:
        return 0.0
    excess = arr - risk_free_rate / periods_per_year
    if excess.std() <= 1e-12:
        return 0.0
    return float(np.sqrt(periods_per_year) * excess.mean() / excess.std())


def sortino_ratio(returns: Sequence[float], risk_free_rate: float = 0.0, periods_per_year: float = 252.0) -> float:
    """Annualized Sortino (downside deviation). Falls back to Sharpe with no downside."""
    arr = np.asarray(returns, dtype=float)
    if arr.size == 0:
        return 0.0
    excess = arr - risk_free_rate / periods_per_year
    downside = arr[arr < 0]
    if downside.size == 0 or downside.std() <= 1e-12:
        return sharpe_ratio(arr, risk_free_rate, periods_per_year)
    return float(np.sqrt(periods_per_year) * excess.mean() / downside.std())


def max_drawdown(equity: Sequence[float]) -> float:
    """Largest peak-to-trough decline of the equity series, as a positive percent."""
    arr = np.asarray(equity, dtype=float)
    if arr.size == 0:
        return 0.0
    peak = np.maximum.accumulate(arr)
    dd = (peak - arr) / np.where(peak > 0, peak, 1.0)
    return float(max(0.0, np.max(dd))) * 100.0


def win_rate(pnls: Sequence[float]) -> float:
    """Winning trades as a percent of all trades."""
    if not pnls:
        return 0.0
    return sum(1 for p in pnls if p > 0) / len(pnls) * 100.0


def profit_factor(pnls: Sequence[float]) -> float:
    """Gross profit / gross loss. inf with wins and no losses, 0 with neither."""
    wins = sum(p for p in pnls if p > 0)
    losses = sum(-p for p in pnls if p < 0)
    if losses <= 0:
        return float("inf") if wins > 0 else 0.0
    return wins / losses


def expectancy(pnls: Sequence[float]) -> float:
    if not pnls:
        return 0.0
    return sum(pnls) / len(pnls)


def compute_metrics(
    pnls: Sequence[float],
    equity: Optional[Sequence[float]] = None,
    initial_balance: float = 1.0,
    risk_free_rate: float = 0.0,
    periods_per_year: float = 252.0,
) -> PerformanceMetrics:
    """
    Full metrics for a run. `equity` is the mark-to-market series; when omitted it is
    rebuilt from the PnLs starting at initial_balance.
    """
    pnls = list(pnls)
    if equity is None:
        curve = [initial_balance]
        for p in pnls:
            curve.append(curve[-1] + p)
        equity = curve
    equity = list(equity)
    wins = [p for p in pnls if p > 0]
    losses = [p for p in pnls if p < 0]
    final = equity[-1] if equity else initial_balance
    rets = equity_returns(equity)
    return PerformanceMetrics(
        total_return_pct=(final - initial_balance) / initial_balance * 100.0 if initial_balance else 0.0,
        sharpe_ratio=sharpe_ratio(rets, risk_free_rate, periods_per_year),
        sortino_ratio=sortino_ratio(rets, risk_free_rate, periods_per_year),
        max_drawdown_pct=max_drawdown(equity),
        win_rate=win_rate(pnls),
        profit_factor=profit_factor(pnls),
        expectancy=expectancy(pnls),
        total_trades=len(pnls),
        winning_trades=len(wins),
        losing_trades=len(losses),
        avg_win=sum(wins) / len(wins) if wins else 0.0,
        avg_loss=sum(losses) / len(losses) if losses else 0.0,
    )
