"""
Position simulator: one leveraged position at a time, walked candle by candle.

Per candle, in order: ROI from close, highest ROI, break-even promotion (once),
trailing stop, intrabar stop-loss check (low for long / high for short), then
take-profit. A stop touched in the same candle as the target wins.
Cash and PnL accumulate in Decimal.
"""

from __future__ import annotations
import logging
from dataclasses import dataclass, field
from decimal import Decimal, localcontext
from typing import List, Optional

from signal_engine.core.config import RiskConfig
from signal_engine.core.types import Bar, CompositeSignal, EquityPoint, Position, Side, Trade
from signal_engine.risk import decimal_math as dm
from signal_engine.risk.position_calculator import PositionCalculator

logger = logging.getLogger("signal_engine.backtest")


@dataclass
class SimulationResult:
    initial_balance: float
    final_balance: float
    trades: List[Trade] = field(default_factory=list)
    equity: List[EquityPoint] = field(default_factory=list)
    max_drawdown: float = 0.0


class PositionSimulator:
    def __init__(self, risk: Optional[RiskConfig] = None, initial_balance: float = 10000.0, symbol: str = "BTCUSDT"):
        self.risk = risk or RiskConfig()
        self.risk.check_fee_floor()
        self.symbol = symbol
        self.initial_balance = initial_balance
        self.calculator = PositionCalculator(
            leverage=self.risk.leverage,
            entry_fee=self.risk.entry_fee,
            exit_fee=self.risk.exit_fee,
            maintenance_margin=self.risk.maintenance_margin,
            break_even_buffer=self.risk.break_even_safety_buffer,
        )
        self.cash = dm.to_decimal(initial_balance)
        self.position: Optional[Position] = None
        self.trades: List[Trade] = []
        self.equity: List[EquityPoint] = []
        self.peak_equity = dm.to_decimal(initial_balance)
        self.max_drawdown = 0.0
        self.current_drawdown = 0.0

    @property
    def balance(self) -> float:
        return float(self.cash)

    def open_position(self, bar: Bar, side: Side) -> Optional[Position]:
        """Open at the candle close with adverse slippage. Returns None if a position is open or size is 0."""
        if self.position is not None:
            return None
        risk = self.risk
        slip = dm.to_decimal(risk.slippage)
        close = dm.to_decimal(bar.close)
        entry = float(close * (1 + slip) if side is Side.LONG else close * (1 - slip))
        plan = self.calculator.calculate_position(
            balance=self.balance,
            risk_percent=risk.risk_per_trade_pct,
            entry_price=entry,
            side=side,
            stop_loss_roi=risk.stop_loss_roi,
            take_profit_roi=risk.take_profit_roi,
            leverage=risk.leverage,
            multiplier=risk.contract_multiplier,
            lot_size=risk.lot_size,
        )
        if plan.size <= 0:
            logger.warning("Position size rounds to 0 at %.4f (balance=%.2f); entry skipped", entry, self.balance)
            return None
        self.position = Position(
            symbol=self.symbol,
            side=side,
            entry_price=entry,
            size=plan.size,
            leverage=plan.leverage,
            stop_loss=plan.stop_loss,
            take_profit=plan.take_profit,
            entry_time=bar.time,
            margin=plan.margin,
        )
        logger.debug(
            "Open %s %s size=%s entry=%.4f sl=%.4f tp=%.4f",
            side.value, self.symbol, plan.size, entry, plan.stop_loss, plan.take_profit,
        )
        return self.position

    def update(self, bar: Bar) -> Optional[Trade]:
        """Advance the open position through one candle. Returns the Trade if it closed."""
        pos = self.position
        if pos is None:
            return None
        risk = self.risk
        lev = pos.leverage

        roi = dm.current_roi(pos.side, pos.entry_price, bar.close, lev)
        pos.highest_roi = max(pos.highest_roi, roi)

        if risk.break_even_enabled and not pos.break_even_triggered and roi >= risk.break_even_activation_roi:
            pos.break_even_triggered = True
            candidate = dm.price_at_roi(pos.side, pos.entry_price, risk.break_even_buffer_roi, lev)
            if pos.is_better_stop(candidate):
                pos.stop_loss = candidate
                logger.debug("Break-even stop for %s moved to %.4f", pos.symbol, candidate)

        if risk.trailing_enabled and pos.highest_roi >= risk.trailing_activation_roi:
            peak_price = dm.price_at_roi(pos.side, pos.entry_price, pos.highest_roi, lev)
            candidate = dm.price_at_roi(pos.side, peak_price, -risk.trailing_distance_roi, lev)
            if pos.is_better_stop(candidate):
                pos.stop_loss = candidate
                pos.trailing_active = True

        if pos.side is Side.LONG:
            stop_hit = bar.low <= pos.stop_loss
            target_hit = bar.high >= pos.take_profit
        else:
            stop_hit = bar.high >= pos.stop_loss
            target_hit = bar.low <= pos.take_profit

        if stop_hit:
            if pos.trailing_active:
                reason = "trailing_stop"
            elif pos.break_even_triggered and pos.stop_loss != pos.initial_stop_loss:
                reason = "break_even"
            else:
                reason = "stop_loss"
            return self._close(bar, pos.stop_loss, reason)
        if target_hit:
            return self._close(bar, pos.take_profit, "take_profit")
        return None

    def mark(self, bar: Bar) -> EquityPoint:
        """Record equity (cash + unrealized PnL at close) and update peak and drawdown."""
        equity = self.cash
        pos = self.position
        if pos is not None:
            equity += dm.unrealized_pnl(pos.side, pos.entry_price, bar.close, pos.size, self.risk.contract_multiplier)
        if equity > self.peak_equity:
            self.peak_equity = equity
        self.current_drawdown = dm.drawdown_percent(self.peak_equity, equity)
        self.max_drawdown = max(self.max_drawdown, self.current_drawdown)
        point = EquityPoint(timestamp=bar.time, value=float(equity))
        self.equity.append(point)
        return point

    def step(self, bar: Bar, signal: Optional[CompositeSignal] = None) -> Optional[Trade]:
        """
        One candle: manage the open position, then open a new one if the signal is
        authorized and the slot is free, then mark equity.
        """
        trade = self.update(bar)
        if signal is not None and signal.authorized and signal.side is not None and self.position is None:
            self.open_position(bar, signal.side)
        self.mark(bar)
        return trade

    def close_all(self, bar: Bar, reason: str = "end_of_backtest") -> Optional[Trade]:
        """Force-close the open position at the candle close."""
        if self.position is None:
            return None
        return self._close(bar, bar.close, reason)

    def result(self) -> SimulationResult:
        return SimulationResult(
            initial_balance=self.initial_balance,
            final_balance=self.balance,
            trades=list(self.trades),
            equity=list(self.equity),
            max_drawdown=self.max_drawdown,
        )

    def _close(self, bar: Bar, level: float, reason: str) -> Trade:
        with localcontext(dm.CONTEXT):
            return self._settle(bar, level, reason)

    def _settle(self, bar: Bar, level: float, reason: str) -> Trade:
        pos = self.position
        risk = self.risk
        slip = dm.to_decimal(risk.slippage)
        level_d = dm.to_decimal(level)
        exit_price = level_d * (1 - slip) if pos.side is Side.LONG else level_d * (1 + slip)

        size = dm.to_decimal(pos.size)
        mult = dm.to_decimal(risk.contract_multiplier)
        gross = dm.unrealized_pnl(pos.side, pos.entry_price, exit_price, size, mult)
        entry_notional = dm.to_decimal(pos.entry_price) * size * mult
        exit_notional = exit_price * size * mult
        fees = entry_notional * dm.to_decimal(risk.entry_fee) + exit_notional * dm.to_decimal(risk.exit_fee)
        pnl = gross - fees
        margin = dm.to_decimal(pos.margin)
        roi = pnl / margin * 100 if margin > 0 else Decimal(0)
        self.cash += pnl

        trade = Trade(
            symbol=pos.symbol,
            side=pos.side,
            size=pos.size,
            leverage=pos.leverage,
            entry_price=pos.entry_price,
            exit_price=float(exit_price),
            stop_loss=pos.stop_loss,
            take_profit=pos.take_profit,
            margin=pos.margin,
            entry_time=pos.entry_time,
            exit_time=bar.time,
            reason=reason,
            pnl=float(pnl),
            roi=float(roi),
            fees=float(fees),
            highest_roi=pos.highest_roi,
        )
        self.trades.append(trade)
        self.position = None
        logger.info(
            "Close %s %s reason=%s exit=%.4f pnl=%.2f roi=%.2f%%",
            trade.side.value, trade.symbol, reason, trade.exit_price, trade.pnl, trade.roi,
        )
        return trade
