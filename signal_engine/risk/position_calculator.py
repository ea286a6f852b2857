"""
Position calculator: size, stop-loss / take-profit from ROI, liquidation, break-even.

Size = floor(balance * risk% * leverage / (price * multiplier) / lot) * lot, so the
margin put up is the risk fraction of the balance.
"""

from __future__ import annotations
import logging
from dataclasses import dataclass
from decimal import Decimal

from signal_engine.core.types import Side
from signal_engine.risk import decimal_math as dm

logger = logging.getLogger("signal_engine.risk")


@dataclass(frozen=True)
class PositionPlan:
    size: float
    notional: float
    margin: float
    leverage: int
    side: Side
    entry: float
    stop_loss: float
    take_profit: float
    liquidation: float
    break_even_roi: float
    risk_reward: float
    max_loss: float
    max_profit: float


class PositionCalculator:
    """Leverage-aware sizing and price levels, all in Decimal."""

    def __init__(
        self,
        leverage: int = 50,
        entry_fee: float = dm.DEFAULT_TAKER_FEE,
        exit_fee: float = dm.DEFAULT_TAKER_FEE,
        maintenance_margin: float = 0.004,
        break_even_buffer: float = 0.1,
    ):
        self.leverage = leverage
        self.entry_fee = entry_fee
        self.exit_fee = exit_fee
        self.maintenance_margin = maintenance_margin
        self.break_even_buffer = break_even_buffer

    def size(
        self,
        balance: float,
        risk_percent: float,
        entry_price: float,
        leverage: int | None = None,
        multiplier: float = 1.0,
        lot_size: float = 1.0,
    ) -> tuple[float, float, float]:
        """Return (size, notional, margin). Size is floored to the lot; 0 if below one lot."""
        lev = Decimal(leverage or self.leverage)
        price = dm.to_decimal(entry_price)
        mult = dm.to_decimal(multiplier)
        if price <= 0:
            return 0.0, 0.0, 0.0
        notional = dm.to_decimal(balance) * dm.to_decimal(risk_percent) / 100 * lev
        size = dm.floor_to_step(notional / (price * mult), lot_size)
        real_notional = size * price * mult
        return float(size), float(real_notional), float(real_notional / lev)

    def liquidation_price(self, side: Side, entry_price: float, leverage: int | None = None) -> float:
        """Long: entry * (1 - (1/lev) * (1 - mm)). Short mirrors."""
        lev = dm.to_decimal(leverage or self.leverage)
        factor = (1 / lev) * (1 - dm.to_decimal(self.maintenance_margin))
        return float(dm.to_decimal(entry_price) * (1 - side.sign * factor))

    def break_even_roi(self, leverage: int | None = None) -> float:
        return dm.break_even_roi(
            leverage or self.leverage,
            buffer=self.break_even_buffer,
            entry_fee=self.entry_fee,
            exit_fee=self.exit_fee,
        )

    def net_roi(self, side: Side, entry_price: float, exit_price: float, leverage: int | None = None) -> float:
        """Leveraged ROI % after round-trip fees (fees scale with leverage against margin)."""
        lev = leverage or self.leverage
        gross = dm.current_roi(side, entry_price, exit_price, lev)
        fee_roi = dm.break_even_roi(lev, buffer=0, entry_fee=self.entry_fee, exit_fee=self.exit_fee)
        return dm.subtract(gross, fee_roi)

    def calculate_position(
        self,
        balance: float,
        risk_percent: float,
        entry_price: float,
        side: Side,
        stop_loss_roi: float,
        take_profit_roi: float,
        leverage: int | None = None,
        multiplier: float = 1.0,
        lot_size: float = 1.0,
    ) -> PositionPlan:
        lev = leverage or self.leverage
        size, notional, margin = self.size(balance, risk_percent, entry_price, lev, multiplier, lot_size)
        if size <= 0:
            logger.debug("Size rounded to 0 (balance=%.2f price=%.4f lot=%s)", balance, entry_price, lot_size)
        return PositionPlan(
            size=size,
            notional=notional,
            margin=margin,
            leverage=lev,
            side=side,
            entry=entry_price,
            stop_loss=dm.stop_loss_price(side, entry_price, stop_loss_roi, lev),
            take_profit=dm.take_profit_price(side, entry_price, take_profit_roi, lev),
            liquidation=self.liquidation_price(side, entry_price, lev),
            break_even_roi=self.break_even_roi(lev),
            risk_reward=dm.divide(take_profit_roi, stop_loss_roi),
            max_loss=dm.multiply(margin, dm.divide(stop_loss_roi, 100)),
            max_profit=dm.multiply(margin, dm.divide(take_profit_roi, 100)),
        )
