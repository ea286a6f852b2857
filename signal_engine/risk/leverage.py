"""Volatility-aware leverage and score-based leverage recommendation."""

from __future__ import annotations
from typing import Sequence, Tuple

# (max ATR %, leverage); first band whose max >= ATR% wins.
DEFAULT_ATR_BANDS: Tuple[Tuple[float, int], ...] = (
    (0.3, 100),
    (0.5, 75),
    (1.0, 50),
    (2.0, 25),
    (3.0, 10),
    (float("inf"), 5),
)

# (min |score|, leverage at 100% confidence)
SCORE_LEVERAGE_BANDS: Tuple[Tuple[float, int], ...] = (
    (130.0, 50),
    (95.0, 30),
    (65.0, 15),
    (40.0, 10),
)


class LeverageCalculator:
    def __init__(
        self,
        min_leverage: int = 1,
        max_leverage: int = 100,
        atr_bands: Sequence[Tuple[float, int]] = DEFAULT_ATR_BANDS,
    ):
        if min_leverage < 1 or max_leverage < min_leverage:
            raise ValueError("Require 1 <= min_leverage <= max_leverage")
        self.min_leverage = min_leverage
        self.max_leverage = max_leverage
        self.atr_bands = tuple(atr_bands)

    def optimal_leverage(self, atr_percent: float, volatility_factor: float = 1.0) -> int:
        """Leverage for the ATR band, scaled and clamped to [min, max]."""
        leverage = self.atr_bands[-1][1]
        for max_atr, band_leverage in self.atr_bands:
            if atr_percent <= max_atr:
                leverage = band_leverage
                break
        leverage = round(leverage * volatility_factor)
        return max(self.min_leverage, min(self.max_leverage, leverage))


def recommended_leverage(score: float, confidence: float) -> int:
    """Leverage suggestion for a composite score; 0 inside the neutral band."""
    abs_score = abs(score)
    conf = max(0.0, min(100.0, confidence)) / 100.0
    for min_score, leverage in SCORE_LEVERAGE_BANDS:
        if abs_score >= min_score:
            return round(leverage * conf)
    return 0
