"""Unit tests for scoring.confidence."""

import pytest
from signal_engine.core.config import ConfidenceConfig
from signal_engine.scoring.confidence import ConfidenceCalculator, VolatilityRegime


def test_choppy_and_high_volatility():
    calc = ConfidenceCalculator(ConfidenceConfig(chop_penalty=5, vol_penalty_high=6, vol_high_threshold=6))
    assert calc.adjust(80, is_choppy=True, atr_percent=7) == pytest.approx(69)


def test_medium_volatility_penalty():
    calc = ConfidenceCalculator()
    assert calc.adjust(80, atr_percent=4.0) == pytest.approx(77)
    assert calc.adjust(80, atr_percent=3.9) == pytest.approx(80)


def test_conflict_penalty():
    assert ConfidenceCalculator().adjust(80, conflicting_signals=3) == pytest.approx(74)


def test_clamped():
    calc = ConfidenceCalculator()
    assert calc.adjust(5, is_choppy=True, atr_percent=10, conflicting_signals=5) == 0.0
    assert calc.adjust(150) == 100.0


def test_disabled_returns_base():
    calc = ConfidenceCalculator(ConfidenceConfig(enabled=False))
    assert calc.adjust(80, is_choppy=True, atr_percent=7, conflicting_signals=4) == 80
    assert calc.adjust(120) == 100.0


def test_market_regime_helpers():
    assert ConfidenceCalculator.is_market_choppy(1.5, 0.005) is True
    assert ConfidenceCalculator.is_market_choppy(2.5, 0.005) is False
    assert ConfidenceCalculator.volatility_regime(1.0) is VolatilityRegime.LOW
    assert ConfidenceCalculator.volatility_regime(3.0) is VolatilityRegime.MEDIUM
    assert ConfidenceCalculator.volatility_regime(4.0) is VolatilityRegime.HIGH
