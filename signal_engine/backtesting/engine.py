"""
Backtest engine: replays candles with precomputed indicator outputs through the
signal generator and the position simulator. Closed candles only, no lookahead:
the signal for candle i sees indicator output i and the state left by candle i-1.
"""

from __future__ import annotations
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional, Sequence, Union

import pandas as pd

from signal_engine.analytics.metrics import PerformanceMetrics, compute_metrics
from signal_engine.backtesting.simulator import PositionSimulator
from signal_engine.core.config import EngineConfig
from signal_engine.core.types import Bar, EquityPoint, ScoringContext, Trade
from signal_engine.scoring.generator import SignalGenerator
from signal_engine.utils.timeframes import periods_per_year

logger = logging.getLogger("signal_engine.backtest")

Candles = Union[pd.DataFrame, Sequence[Bar]]

CANDLE_COLUMNS = ("time", "open", "high", "low", "close")


@dataclass
class BacktestResult:
    initial_balance: float
    final_balance: float
    total_return: float
    total_trades: int
    winning_trades: int
    losing_trades: int
    win_rate: float
    profit_factor: float
    sharpe_ratio: float
    max_drawdown: float
    avg_win: float
    avg_loss: float
    trades: List[Trade] = field(default_factory=list)
    equity: List[EquityPoint] = field(default_factory=list)
    metrics: Optional[PerformanceMetrics] = None

    def summary(self) -> Dict[str, Any]:
        return {
            "initial_balance": round(self.initial_balance, 2),
            "final_balance": round(self.final_balance, 2),
            "total_return_pct": round(self.total_return, 2),
            "total_trades": self.total_trades,
            "winning_trades": self.winning_trades,
            "losing_trades": self.losing_trades,
            "win_rate_pct": round(self.win_rate, 2),
            "profit_factor": round(self.profit_factor, 2),
            "sharpe_ratio": round(self.sharpe_ratio, 2),
            "max_drawdown_pct": round(self.max_drawdown, 2),
            "avg_win": round(self.avg_win, 2),
            "avg_loss": round(self.avg_loss, 2),
        }


def to_bars(candles: Candles) -> List[Bar]:
    """Accept an OHLCV DataFrame (time, open, high, low, close[, volume]) or Bars."""
    if not isinstance(candles, pd.DataFrame):
        return list(candles)
    missing = [c for c in CANDLE_COLUMNS if c not in candles.columns]
    if missing:
        raise ValueError(f"Candle frame missing columns: {missing}")
    bars = []
    for row in candles.itertuples(index=False):
        t = row.time
        bars.append(Bar(
            time=t if isinstance(t, datetime) else pd.Timestamp(t).to_pydatetime(),
            open=float(row.open),
            high=float(row.high),
            low=float(row.low),
            close=float(row.close),
            volume=float(getattr(row, "volume", 0.0) or 0.0),
        ))
    return bars


def _at(series: Optional[Sequence[Any]], i: int) -> Any:
    if series is None or i >= len(series):
        return None
    return series[i]


class BacktestEngine:
    """
    Deterministic replay. indicator_series maps an indicator name to one raw output
    per candle (None where the indicator has nothing yet).
    """

    def __init__(self, config: Optional[EngineConfig] = None):
        self.config = config or EngineConfig()
        self.generator = SignalGenerator.from_config(self.config)

    def run(
        self,
        candles: Candles,
        indicator_series: Mapping[str, Sequence[Any]],
        microstructure_series: Optional[Sequence[Optional[Mapping[str, Any]]]] = None,
        regime_series: Optional[Sequence[Optional[Mapping[str, Any]]]] = None,
    ) -> BacktestResult:
        """
        regime_series optionally carries per-candle {atr_percent, is_choppy, trend, mtf_aligned}.
        """
        bt = self.config.backtest
        bars = to_bars(candles)
        for name, series in indicator_series.items():
            if len(series) != len(bars):
                raise ValueError(f"Indicator series '{name}' has {len(series)} points for {len(bars)} candles")

        sim = PositionSimulator(self.config.risk, bt.initial_balance, bt.symbol)
        prev_score = 0.0
        last = len(bars) - 1

        for i in range(min(bt.warmup_period, len(bars)), len(bars)):
            bar = bars[i]
            if i == last:
                sim.update(bar)
                sim.close_all(bar)
                sim.mark(bar)
                break
            readings = {
                name: series[i] for name, series in indicator_series.items() if series[i] is not None
            }
            regime = _at(regime_series, i) or {}
            ctx = ScoringContext(
                prev_score=prev_score,
                is_choppy=bool(regime.get("is_choppy", False)),
                atr_percent=regime.get("atr_percent"),
                drawdown_pct=sim.current_drawdown,
                trend=regime.get("trend"),
                mtf_aligned=bool(regime.get("mtf_aligned", True)),
                candle_index=i,
                timestamp=bar.time,
            )
            signal = self.generator.generate(readings, _at(microstructure_series, i), ctx)
            prev_score = signal.composite_score
            sim.step(bar, signal)

        sim_result = sim.result()
        pnls = [t.pnl for t in sim_result.trades]
        equity = [bt.initial_balance] + [p.value for p in sim_result.equity]
        metrics = compute_metrics(
            pnls,
            equity=equity,
            initial_balance=bt.initial_balance,
            periods_per_year=periods_per_year(bt.timeframe),
        )
        logger.info(
            "Backtest %s %s: %d trades, return %.2f%%, max DD %.2f%%",
            bt.symbol, bt.timeframe, metrics.total_trades, metrics.total_return_pct, sim_result.max_drawdown,
        )
        return BacktestResult(
            initial_balance=bt.initial_balance,
            final_balance=sim_result.final_balance,
            total_return=metrics.total_return_pct,
            total_trades=metrics.total_trades,
            winning_trades=metrics.winning_trades,
            losing_trades=metrics.losing_trades,
            win_rate=metrics.win_rate,
            profit_factor=metrics.profit_factor,
            sharpe_ratio=metrics.sharpe_ratio,
            max_drawdown=sim_result.max_drawdown,
            avg_win=metrics.avg_win,
            avg_loss=metrics.avg_loss,
            trades=sim_result.trades,
            equity=sim_result.equity,
            metrics=metrics,
        )


def run_backtest(
    candles: Candles,
    indicator_series: Mapping[str, Sequence[Any]],
    config: Optional[EngineConfig] = None,
    microstructure_series: Optional[Sequence[Optional[Mapping[str, Any]]]] = None,
) -> BacktestResult:
    return BacktestEngine(config).run(candles, indicator_series, microstructure_series)
