"""Confidence adjustment for market regime: choppiness, volatility, conflicting signals."""

from __future__ import annotations
from enum import Enum
from typing import Optional

from signal_engine.core.config import ConfidenceConfig

CHOP_ATR_PERCENT = 2.0
CHOP_VOLATILITY = 0.01


class VolatilityRegime(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


def clamp_confidence(value: float) -> float:
    return max(0.0, min(100.0, value))


class ConfidenceCalculator:
    def __init__(self, config: Optional[ConfidenceConfig] = None):
        self.config = config or ConfidenceConfig()

    def adjust(
        self,
        base: float,
        is_choppy: bool = False,
        atr_percent: Optional[float] = None,
        conflicting_signals: int = 0,
    ) -> float:
        """
        Subtract regime penalties from base confidence, clamped to [0, 100].
        Penalties are additive and independent.
        """
        cfg = self.config
        if not cfg.enabled:
            return clamp_confidence(base)
        adjusted = base
        if is_choppy:
            adjusted -= cfg.chop_penalty
        if atr_percent is not None:
            if atr_percent >= cfg.vol_high_threshold:
                adjusted -= cfg.vol_penalty_high
            elif atr_percent >= cfg.vol_medium_threshold:
                adjusted -= cfg.vol_penalty_medium
        if conflicting_signals > 0:
            adjusted -= conflicting_signals * cfg.conflict_penalty_per_signal
        return clamp_confidence(adjusted)

    @staticmethod
    def is_market_choppy(atr_percent: float, volatility: float) -> bool:
        # Low ATR and flat realized volatility.
        return atr_percent < CHOP_ATR_PERCENT and volatility < CHOP_VOLATILITY

    @staticmethod
    def volatility_regime(atr_percent: float) -> VolatilityRegime:
        if atr_percent < 2.0:
            return VolatilityRegime.LOW
        if atr_percent < 4.0:
            return VolatilityRegime.MEDIUM
        return VolatilityRegime.HIGH
