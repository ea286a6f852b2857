"""Unit tests for scoring.gates."""

from signal_engine.core.config import GateConfig
from signal_engine.core.types import GateContext
from signal_engine.scoring.gates import EntryGate


def _ctx(**overrides):
    base = dict(
        score=90.0,
        prev_score=0.0,
        confidence=95.0,
        indicators_agreeing=5,
        total_indicators=5,
        trend_aligned=True,
    )
    base.update(overrides)
    return GateContext(**base)


def test_passing_context():
    r = EntryGate().evaluate(_ctx())
    assert r.passed is True
    assert r.reasons == ()
    assert r.applied is True
    assert r.threshold_used == 80.0


def test_dead_zone_only():
    gate = EntryGate(GateConfig(dead_zone_min=20, threshold_score=10))
    r = gate.evaluate(_ctx(score=15))
    assert r.passed is False
    assert r.reasons == ("dead_zone",)


def test_all_failing_reasons_reported_in_order():
    gate = EntryGate(GateConfig(threshold_cross_required=True, max_drawdown_pct=20))
    r = gate.evaluate(_ctx(
        score=5, prev_score=5, confidence=10, indicators_agreeing=1, total_indicators=4,
        trend_aligned=False, drawdown_pct=30,
    ))
    assert r.reasons == (
        "dead_zone",
        "min_score",
        "threshold_cross",
        "min_confidence",
        "min_indicators",
        "confluence_percent",
        "trend_alignment",
        "max_drawdown",
    )


def test_confluence_skipped_without_indicators():
    gate = EntryGate(GateConfig(min_indicators_agreeing=0))
    r = gate.evaluate(_ctx(indicators_agreeing=0, total_indicators=0))
    assert "confluence_percent" not in r.reasons


def test_atr_surcharge():
    gate = EntryGate()
    assert gate.threshold_for(None) == 80
    assert gate.threshold_for(3.9) == 80
    assert gate.threshold_for(4.0) == 85
    assert gate.threshold_for(7.0) == 90
    assert gate.evaluate(_ctx(score=88, atr_percent=7.0)).reasons == ("min_score",)


def test_threshold_cross_only_on_crossing_tick():
    gate = EntryGate(GateConfig(threshold_cross_required=True))
    assert gate.evaluate(_ctx(prev_score=70, score=85)).passed is True
    assert gate.evaluate(_ctx(prev_score=85, score=90)).reasons == ("threshold_cross",)
    assert gate.evaluate(_ctx(prev_score=-70, score=-85)).passed is True
    assert gate.evaluate(_ctx(prev_score=-85, score=-90)).reasons == ("threshold_cross",)


def test_strict_mode_preset():
    gate = EntryGate(GateConfig(strict_mode=True, min_confidence=50, threshold_cross_required=False))
    r = gate.evaluate(_ctx(prev_score=85, score=90, confidence=85))
    assert r.reasons == ("threshold_cross", "min_confidence")


def test_max_drawdown_needs_both_values():
    gate = EntryGate(GateConfig(max_drawdown_pct=10))
    assert gate.evaluate(_ctx(drawdown_pct=None)).passed is True
    assert gate.evaluate(_ctx(drawdown_pct=10)).passed is True
    assert gate.evaluate(_ctx(drawdown_pct=10.5)).reasons == ("max_drawdown",)


def test_disabled_gate():
    r = EntryGate(GateConfig(enabled=False)).evaluate(_ctx(score=0, confidence=0))
    assert r.passed is True
    assert r.reasons == ()
    assert r.applied is False
