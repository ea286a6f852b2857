"""Unit tests for risk.position_calculator and risk.leverage."""

import pytest
from signal_engine.core.types import Side
from signal_engine.risk.leverage import LeverageCalculator, recommended_leverage
from signal_engine.risk.position_calculator import PositionCalculator


def test_size_uses_risk_fraction_as_margin():
    calc = PositionCalculator(leverage=50)
    size, notional, margin = calc.size(10000, 2.0, 100, lot_size=0.001)
    assert size == pytest.approx(100.0)
    assert notional == pytest.approx(10000.0)
    assert margin == pytest.approx(200.0)


def test_size_floors_to_lot():
    calc = PositionCalculator(leverage=10)
    size, _, _ = calc.size(1000, 1.0, 33.0, lot_size=0.1)
    # 100 notional / 33 = 3.03 -> 3.0
    assert size == pytest.approx(3.0)
    assert calc.size(1, 1.0, 100000, lot_size=1)[0] == 0.0


def test_calculate_position_long():
    plan = PositionCalculator(leverage=50).calculate_position(
        balance=10000, risk_percent=2.0, entry_price=100, side=Side.LONG,
        stop_loss_roi=0.5, take_profit_roi=2.0, lot_size=0.001,
    )
    assert plan.stop_loss == pytest.approx(99.99)
    assert plan.take_profit == pytest.approx(100.04)
    assert plan.liquidation == pytest.approx(100 * (1 - 0.02 * 0.996))
    assert plan.break_even_roi == pytest.approx(6.1)
    assert plan.risk_reward == pytest.approx(4.0)
    assert plan.max_loss == pytest.approx(1.0)
    assert plan.max_profit == pytest.approx(4.0)


def test_liquidation_short_above_entry():
    calc = PositionCalculator(leverage=20)
    assert calc.liquidation_price(Side.SHORT, 100) > 100


def test_net_roi_subtracts_fees():
    calc = PositionCalculator(leverage=50)
    # +1% move at 50x = 50% gross; fees 0.12% x 50 = 6%
    assert calc.net_roi(Side.LONG, 100, 101) == pytest.approx(44.0)


def test_optimal_leverage_bands():
    calc = LeverageCalculator()
    assert calc.optimal_leverage(0.2) == 100
    assert calc.optimal_leverage(0.8) == 50
    assert calc.optimal_leverage(1.5) == 25
    assert calc.optimal_leverage(10) == 5
    assert LeverageCalculator(max_leverage=20).optimal_leverage(0.2) == 20
    assert LeverageCalculator(min_leverage=10).optimal_leverage(10) == 10


def test_recommended_leverage():
    assert recommended_leverage(150, 100) == 50
    assert recommended_leverage(100, 50) == 15
    assert recommended_leverage(-70, 80) == 12
    assert recommended_leverage(30, 100) == 0
