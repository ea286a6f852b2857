#!/usr/bin/env python3
"""
Signal Engine CLI: backtest | score
Usage:
  python main.py backtest --candles candles.csv --indicators indicators.json [--config config.yaml]
  python main.py score --snapshot snapshot.json [--config config.yaml]

indicators.json: {"rsi": [<output per candle or null>, ...], ...}
snapshot.json:   {"indicators": {...}, "microstructure": {...}, "context": {...}}
"""

from __future__ import annotations
import argparse
import json
import logging
import sys
from pathlib import Path

import pandas as pd

# Project root
ROOT = Path(__file__).resolve().parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from signal_engine.backtesting.engine import BacktestEngine
from signal_engine.core.config import load_config
from signal_engine.core.errors import SignalEngineError
from signal_engine.core.logger import setup_logging
from signal_engine.core.types import ScoringContext
from signal_engine.scoring.generator import SignalGenerator, indicator_scores_to_dict

logger = logging.getLogger("signal_engine")


def _read_json(path: Path):
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


def run_backtest(config_path: Path | None, candles_path: Path, indicators_path: Path, micro_path: Path | None) -> int:
    """Replay a candle CSV with precomputed indicator outputs."""
    config = load_config(config_path, ROOT)
    setup_logging(config.log_level, config.log_dir, config.log_file, config.log_modules)
    df = pd.read_csv(candles_path)
    if "time" in df.columns:
        df["time"] = pd.to_datetime(df["time"], utc=True)
    indicator_series = _read_json(indicators_path)
    micro_series = _read_json(micro_path) if micro_path else None
    logger.info("Backtest %s %s on %d candles", config.backtest.symbol, config.backtest.timeframe, len(df))
    result = BacktestEngine(config).run(df, indicator_series, micro_series)
    m = result.metrics
    print("\n--- Backtest Results ---")
    print(f"Balance: {result.initial_balance:.2f} -> {result.final_balance:.2f} ({result.total_return:.2f}%)")
    print(f"Total trades: {result.total_trades} (wins: {result.winning_trades}, losses: {result.losing_trades})")
    print(f"Win rate: {result.win_rate:.1f}%")
    print(f"Profit factor: {result.profit_factor:.2f}")
    print(f"Sharpe ratio: {result.sharpe_ratio:.2f}")
    if m:
        print(f"Sortino ratio: {m.sortino_ratio:.2f}")
        print(f"Expectancy: {m.expectancy:.2f} USD/trade")
    print(f"Max drawdown: {result.max_drawdown:.2f}%")
    for reason in sorted({t.reason for t in result.trades}):
        print(f"  exits by {reason}: {sum(1 for t in result.trades if t.reason == reason)}")
    return 0


def run_score(config_path: Path | None, snapshot_path: Path) -> int:
    """Score one indicator snapshot and print the composite decision."""
    config = load_config(config_path, ROOT)
    setup_logging(config.log_level, config.log_dir, config.log_file, config.log_modules)
    snapshot = _read_json(snapshot_path)
    ctx = ScoringContext(**(snapshot.get("context") or {}))
    signal = SignalGenerator.from_config(config).generate(
        snapshot.get("indicators") or {},
        snapshot.get("microstructure"),
        ctx,
    )
    out = {
        "composite_score": round(signal.composite_score, 2),
        "tier": signal.tier,
        "side": signal.side.value if signal.side else None,
        "confidence": round(signal.confidence, 1),
        "authorized": signal.authorized,
        "block_reasons": list(signal.block_reasons),
        "indicator_score": round(signal.indicator_score, 2),
        "microstructure_score": round(signal.microstructure_score, 2),
        "indicator_scores": indicator_scores_to_dict(signal),
        "signal_type": signal.signal_type,
        "signal_source": signal.signal_source,
        "recommended_leverage": signal.recommended_leverage,
        "rejected": list(signal.rejected),
    }
    print(json.dumps(out, indent=2))
    return 0


def main() -> int:
    parser = argparse.ArgumentParser(description="Signal Engine CLI")
    sub = parser.add_subparsers(dest="mode", required=True)
    bt = sub.add_parser("backtest", help="Replay candles with precomputed indicator outputs")
    bt.add_argument("--candles", type=Path, required=True, help="OHLCV CSV (time, open, high, low, close, volume)")
    bt.add_argument("--indicators", type=Path, required=True, help="JSON: indicator name -> per-candle outputs")
    bt.add_argument("--microstructure", type=Path, default=None, help="JSON list of per-candle order-flow inputs")
    bt.add_argument("--config", type=Path, default=None, help="Path to config.yaml")
    sc = sub.add_parser("score", help="Score one indicator snapshot")
    sc.add_argument("--snapshot", type=Path, required=True, help="JSON snapshot")
    sc.add_argument("--config", type=Path, default=None, help="Path to config.yaml")
    args = parser.parse_args()
    try:
        if args.mode == "backtest":
            return run_backtest(args.config, args.candles, args.indicators, args.microstructure)
        return run_score(args.config, args.snapshot)
    except SignalEngineError as e:
        logger.error("%s", e)
        print(f"error: {e}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    sys.exit(main())
