"""Risk: decimal math, position sizing, leverage."""

from signal_engine.risk.position_calculator import PositionCalculator, PositionPlan
from signal_engine.risk.leverage import LeverageCalculator, recommended_leverage

__all__ = ["PositionCalculator", "PositionPlan", "LeverageCalculator", "recommended_leverage"]
