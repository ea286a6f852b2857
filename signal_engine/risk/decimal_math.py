"""
Decimal arithmetic for fees, ROI, prices and sizing.

Floats are converted through str() so 0.1 stays 0.1. All helpers run in a local
context (precision 20, ROUND_HALF_UP) and return floats unless noted.
"""

from __future__ import annotations
import functools
from decimal import ROUND_DOWN, ROUND_HALF_UP, Context, Decimal, localcontext
from typing import Union

Number = Union[int, float, str, Decimal]

CONTEXT = Context(prec=20, rounding=ROUND_HALF_UP)

# KuCoin futures VIP0 taker fee
DEFAULT_TAKER_FEE = 0.0006


def to_decimal(value: Number) -> Decimal:
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def _precise(f):
    @functools.wraps(f)
    def wrapped(*args, **kwargs):
        with localcontext(CONTEXT):
            return f(*args, **kwargs)
    return wrapped


def _side_sign(side) -> int:
    value = getattr(side, "value", side)
    if value == "long":
        return 1
    if value == "short":
        return -1
    raise ValueError(f"Unknown side: {side!r}")


@_precise
def break_even_roi(
    leverage: Number,
    buffer: Number = 0.1,
    entry_fee: Number = DEFAULT_TAKER_FEE,
    exit_fee: Number = DEFAULT_TAKER_FEE,
) -> float:
    """
    Fee-adjusted break-even ROI: (entry_fee + exit_fee) * leverage * 100 + buffer.
    E.g. (0.0006 + 0.0006) * 10 * 100 + 0.1 = 1.3.
    """
    fees = to_decimal(entry_fee) + to_decimal(exit_fee)
    return float(fees * to_decimal(leverage) * 100 + to_decimal(buffer))


@_precise
def stop_loss_price(side, entry_price: Number, stop_loss_roi: Number, leverage: Number) -> float:
    """Long: entry * (1 - roi/100/lev). Short: entry * (1 + roi/100/lev)."""
    move = to_decimal(stop_loss_roi) / 100 / to_decimal(leverage)
    return float(to_decimal(entry_price) * (1 - _side_sign(side) * move))


@_precise
def take_profit_price(side, entry_price: Number, take_profit_roi: Number, leverage: Number) -> float:
    """Long: entry * (1 + roi/100/lev). Short: entry * (1 - roi/100/lev)."""
    move = to_decimal(take_profit_roi) / 100 / to_decimal(leverage)
    return float(to_decimal(entry_price) * (1 + _side_sign(side) * move))


@_precise
def price_at_roi(side, entry_price: Number, roi: Number, leverage: Number) -> float:
    """Price at which a position shows the given leveraged ROI."""
    move = to_decimal(roi) / 100 / to_decimal(leverage)
    return float(to_decimal(entry_price) * (1 + _side_sign(side) * move))


@_precise
def current_roi(side, entry_price: Number, current_price: Number, leverage: Number) -> float:
    """Leveraged ROI % at current_price. 0.0 when entry is zero."""
    entry = to_decimal(entry_price)
    if entry == 0:
        return 0.0
    move = (to_decimal(current_price) - entry) / entry
    return float(_side_sign(side) * move * to_decimal(leverage) * 100)


@_precise
def unrealized_pnl(side, entry_price: Number, current_price: Number, size: Number, multiplier: Number = 1) -> Decimal:
    """Unrealized PnL in quote currency, as Decimal so balances can accumulate exactly."""
    diff = to_decimal(current_price) - to_decimal(entry_price)
    return _side_sign(side) * diff * to_decimal(size) * to_decimal(multiplier)


@_precise
def drawdown_percent(peak_equity: Number, current_equity: Number) -> float:
    """Drawdown from peak in percent, never negative. 0.0 when peak <= 0."""
    peak = to_decimal(peak_equity)
    if peak <= 0:
        return 0.0
    dd = (peak - to_decimal(current_equity)) / peak * 100
    return max(0.0, float(dd))


@_precise
def position_size(usd_value: Number, price: Number, leverage: Number) -> float:
    """Base-currency size for a margin of usd_value at the given leverage."""
    px = to_decimal(price)
    if px == 0:
        return 0.0
    return float(to_decimal(usd_value) * to_decimal(leverage) / px)


@_precise
def exposure_ratio(total_exposure: Number, balance: Number) -> float:
    bal = to_decimal(balance)
    if bal <= 0:
        return 0.0
    return float(to_decimal(total_exposure) / bal)


@_precise
def floor_to_step(value: Number, step: Number) -> Decimal:
    """Round down to a multiple of step (lot size)."""
    d_step = to_decimal(step)
    return (to_decimal(value) / d_step).to_integral_value(rounding=ROUND_DOWN) * d_step


@_precise
def add(a: Number, b: Number) -> float:
    return float(to_decimal(a) + to_decimal(b))


@_precise
def subtract(a: Number, b: Number) -> float:
    return float(to_decimal(a) - to_decimal(b))


@_precise
def multiply(a: Number, b: Number) -> float:
    return float(to_decimal(a) * to_decimal(b))


@_precise
def divide(a: Number, b: Number) -> float:
    if to_decimal(b) == 0:
        raise ZeroDivisionError("Division by zero")
    return float(to_decimal(a) / to_decimal(b))


@_precise
def percentage(value: Number, total: Number) -> float:
    t = to_decimal(total)
    if t == 0:
        return 0.0
    return float(to_decimal(value) / t * 100)
