"""
Signal normalizer: validates indicator signal shape, normalizes raw indicator output
into EnhancedReading | LegacyReading, ranks signals by priority tier, weights them
and classifies scores into tiers.
"""

from __future__ import annotations
import math
from typing import Any, Iterable, Mapping, Optional

from signal_engine.core.config import NEUTRAL_TIER, ScoringConfig
from signal_engine.core.errors import InvalidSignalShape
from signal_engine.core.types import (
    Direction,
    EnhancedReading,
    IndicatorReading,
    LegacyReading,
    Signal,
    SignalCategory,
    Strength,
)

REQUIRED_FIELDS = ("type", "direction", "strength", "message")


def finite_or_zero(value: Any) -> float:
    """Coerce to float; None, NaN, inf and non-numbers become 0.0."""
    try:
        f = float(value)
    except (TypeError, ValueError):
        return 0.0
    return f if math.isfinite(f) else 0.0


class SignalNormalizer:
    """Shape validation, priority resolution, weighting and tier classification."""

    def __init__(self, config: Optional[ScoringConfig] = None):
        self.config = config or ScoringConfig()

    def strength_multiplier(self, strength: Strength) -> float:
        return self.config.strength_multipliers[strength]

    def type_multiplier(self, category: SignalCategory) -> float:
        return self.config.type_multipliers.get(category, 1.0)

    def validate_signal(self, raw: Any, indicator: str) -> Signal:
        """Return a typed Signal or raise InvalidSignalShape naming the indicator and field."""
        if isinstance(raw, Signal):
            return raw
        if not isinstance(raw, Mapping):
            raise InvalidSignalShape(indicator, "signal", f"expected mapping, got {type(raw).__name__}")
        for name in REQUIRED_FIELDS:
            if raw.get(name) is None:
                raise InvalidSignalShape(indicator, name, "missing")
        if not isinstance(raw["type"], str) or not raw["type"]:
            raise InvalidSignalShape(indicator, "type", f"{raw['type']!r}")
        try:
            direction = Direction(raw["direction"])
        except ValueError:
            raise InvalidSignalShape(indicator, "direction", f"{raw['direction']!r}") from None
        try:
            strength = Strength(raw["strength"])
        except ValueError:
            raise InvalidSignalShape(indicator, "strength", f"{raw['strength']!r}") from None
        metadata = raw.get("metadata")
        if metadata is not None and not isinstance(metadata, Mapping):
            raise InvalidSignalShape(indicator, "metadata", f"expected mapping, got {type(metadata).__name__}")
        return Signal(
            type=raw["type"],
            direction=direction,
            strength=strength,
            message=str(raw["message"]),
            metadata=metadata or {},
        )

    def normalize(self, name: str, raw: Any) -> IndicatorReading:
        """
        Normalize one indicator output. A non-empty `signals` array makes an
        EnhancedReading; anything else is a LegacyReading. Any bad signal
        invalidates the whole reading.
        """
        if isinstance(raw, (EnhancedReading, LegacyReading)):
            if isinstance(raw, EnhancedReading):
                signals = tuple(self.validate_signal(s, name) for s in raw.signals)
                return EnhancedReading(name=raw.name, value=raw.value, signals=signals, trend=raw.trend)
            return raw
        if not isinstance(raw, Mapping):
            return LegacyReading(name=name, value=raw)
        signals = raw.get("signals")
        if signals is not None and not isinstance(signals, (list, tuple)):
            raise InvalidSignalShape(name, "signals", f"expected list, got {type(signals).__name__}")
        trend = raw.get("trend")
        if trend is not None and not isinstance(trend, str):
            raise InvalidSignalShape(name, "trend", f"{trend!r}")
        if signals:
            return EnhancedReading(
                name=name,
                value=raw.get("value"),
                signals=tuple(self.validate_signal(s, name) for s in signals),
                trend=trend,
            )
        return LegacyReading(
            name=name,
            value=raw.get("value"),
            score=finite_or_zero(raw.get("score")),
            label=str(raw.get("signal") or ""),
            trend=trend,
        )

    @staticmethod
    def highest_priority_signal(signals: Iterable[Signal]) -> Optional[Signal]:
        """Lowest tier number wins; ties keep the first emitted."""
        best: Optional[Signal] = None
        for signal in signals:
            if best is None or signal.priority < best.priority:
                best = signal
        return best

    def contribution(self, weight: float, signal: Signal) -> float:
        """weight x strength multiplier x type multiplier x direction sign."""
        return (
            weight
            * self.strength_multiplier(signal.strength)
            * self.type_multiplier(signal.category)
            * signal.direction.sign
        )

    def classify(self, score: float) -> str:
        """Map a score to its tier. Total: anything not in a directional band is NEUTRAL."""
        for threshold, buy_tier, sell_tier in self.config.tiers:
            if score >= threshold:
                return buy_tier
            if -score >= threshold:
                return sell_tier
        return NEUTRAL_TIER
