"""Backtesting: candle replay, position simulation, walk-forward validation."""

from signal_engine.backtesting.engine import BacktestEngine, BacktestResult, run_backtest
from signal_engine.backtesting.simulator import PositionSimulator, SimulationResult
from signal_engine.backtesting.walk_forward import TradeSample, WalkForwardValidator, split_windows

__all__ = [
    "BacktestEngine",
    "BacktestResult",
    "run_backtest",
    "PositionSimulator",
    "SimulationResult",
    "TradeSample",
    "WalkForwardValidator",
    "split_windows",
]
