"""Unit tests for scoring.normalizer."""

import math

import pytest
from signal_engine.core.config import ScoringConfig
from signal_engine.core.errors import InvalidSignalShape
from signal_engine.core.types import (
    Direction,
    EnhancedReading,
    LegacyReading,
    Signal,
    SignalCategory,
    Strength,
)
from signal_engine.scoring.normalizer import SignalNormalizer


def _raw(type_="bullish_crossover", direction="bullish", strength="strong", message="m"):
    return {"type": type_, "direction": direction, "strength": strength, "message": message}


def test_category_from_type():
    assert SignalCategory.from_type("bullish_crossover") is SignalCategory.CROSSOVER
    assert SignalCategory.from_type("golden_cross") is SignalCategory.GOLDEN_DEATH_CROSS
    assert SignalCategory.from_type("rsi_oversold") is SignalCategory.OVERSOLD
    assert SignalCategory.from_type("hidden_bullish_divergence") is SignalCategory.DIVERGENCE
    assert SignalCategory.from_type("something_else") is SignalCategory.GENERIC


def test_validate_signal_ok():
    s = SignalNormalizer().validate_signal(_raw(), "rsi")
    assert s.direction is Direction.BULLISH
    assert s.strength is Strength.STRONG
    assert s.priority == 2


@pytest.mark.parametrize("field", ["type", "direction", "strength", "message"])
def test_validate_signal_missing_field(field):
    raw = _raw()
    del raw[field]
    with pytest.raises(InvalidSignalShape) as exc:
        SignalNormalizer().validate_signal(raw, "kdj")
    assert exc.value.indicator == "kdj"
    assert exc.value.field == field


def test_validate_signal_unknown_direction_and_strength():
    n = SignalNormalizer()
    with pytest.raises(InvalidSignalShape) as exc:
        n.validate_signal(_raw(direction="sideways"), "rsi")
    assert exc.value.field == "direction"
    with pytest.raises(InvalidSignalShape) as exc:
        n.validate_signal(_raw(strength="huge"), "rsi")
    assert exc.value.field == "strength"


def test_signal_metadata_is_read_only():
    raw = _raw()
    raw["metadata"] = {"k": 1}
    s = SignalNormalizer().validate_signal(raw, "rsi")
    raw["metadata"]["k"] = 2
    assert s.metadata["k"] == 1
    with pytest.raises(TypeError):
        s.metadata["k"] = 3


@pytest.mark.parametrize("reading, field", [
    ({"value": 1, "signals": [dict(_raw(), metadata="oops")]}, "metadata"),
    ({"value": 1, "signals": 5}, "signals"),
    ({"value": 1, "signals": "bullish"}, "signals"),
    ({"value": 1, "signals": [_raw()], "trend": 1}, "trend"),
])
def test_normalize_rejects_malformed_reading(reading, field):
    with pytest.raises(InvalidSignalShape) as exc:
        SignalNormalizer().normalize("kdj", reading)
    assert exc.value.indicator == "kdj"
    assert exc.value.field == field


def test_normalize_enhanced_and_legacy():
    n = SignalNormalizer()
    enhanced = n.normalize("rsi", {"value": 25, "signals": [_raw()], "trend": "bullish"})
    assert isinstance(enhanced, EnhancedReading)
    assert enhanced.trend == "bullish"
    legacy = n.normalize("rsi", {"value": 25, "score": -3, "signal": "oversold"})
    assert isinstance(legacy, LegacyReading)
    assert legacy.score == -3
    assert legacy.label == "oversold"
    # empty signals array falls back to legacy
    assert isinstance(n.normalize("rsi", {"value": 25, "signals": []}), LegacyReading)


def test_normalize_non_finite_score_is_zero():
    n = SignalNormalizer()
    assert n.normalize("rsi", {"value": 1, "score": float("nan")}).score == 0.0
    assert n.normalize("rsi", {"value": 1, "score": float("inf")}).score == 0.0


def test_highest_priority_signal():
    n = SignalNormalizer()
    level = Signal("support_level", Direction.BULLISH, Strength.STRONG, "a")
    cross_1 = Signal("bullish_crossover", Direction.BULLISH, Strength.WEAK, "b")
    cross_2 = Signal("bearish_crossover", Direction.BEARISH, Strength.STRONG, "c")
    div = Signal("bearish_divergence", Direction.BEARISH, Strength.WEAK, "d")
    assert n.highest_priority_signal([level, cross_1, cross_2]) is cross_1
    assert n.highest_priority_signal([level, cross_1, div]) is div
    assert n.highest_priority_signal([]) is None


def test_contribution():
    n = SignalNormalizer()
    s = Signal("bearish_divergence", Direction.BEARISH, Strength.VERY_STRONG, "x")
    assert n.contribution(40, s) == pytest.approx(-40 * 1.5 * 1.5)


@pytest.mark.parametrize("score,tier", [
    (220, "EXTREME_BUY"),
    (130, "EXTREME_BUY"),
    (129.99, "STRONG_BUY"),
    (95, "STRONG_BUY"),
    (65, "BUY"),
    (40, "BUY_WEAK"),
    (39.99, "NEUTRAL"),
    (0, "NEUTRAL"),
    (-39.99, "NEUTRAL"),
    (-40, "SELL_WEAK"),
    (-65, "SELL"),
    (-95, "STRONG_SELL"),
    (-130, "EXTREME_SELL"),
    (-220, "EXTREME_SELL"),
])
def test_classify_bands(score, tier):
    assert SignalNormalizer().classify(score) == tier


def test_classify_total():
    n = SignalNormalizer()
    tiers = {t for _, buy, sell in ScoringConfig().tiers for t in (buy, sell)} | {"NEUTRAL"}
    for x in range(-300, 301):
        assert n.classify(x / 1.5) in tiers
    assert n.classify(math.nan) == "NEUTRAL"
