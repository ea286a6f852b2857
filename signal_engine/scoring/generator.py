"""
Composite signal generator: one scoring pass from raw indicator outputs and
order-flow inputs to an authorized (or blocked) CompositeSignal.

Pure: the same inputs, context and config always yield the same result.
"""

from __future__ import annotations
import logging
import math
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional, Tuple

from signal_engine.core.config import (
    NEUTRAL_TIER,
    ConfidenceConfig,
    EngineConfig,
    GateConfig,
    IndicatorKind,
    ScoringConfig,
)
from signal_engine.core.errors import InvalidSignalShape
from signal_engine.core.types import (
    CompositeSignal,
    Direction,
    EnhancedReading,
    GateContext,
    LegacyReading,
    Microstructure,
    ScoringContext,
    Side,
    Signal,
    SignalCategory,
    Strength,
)
from signal_engine.risk.leverage import recommended_leverage
from signal_engine.scoring.confidence import ConfidenceCalculator, clamp_confidence
from signal_engine.scoring.gates import EntryGate
from signal_engine.scoring.normalizer import SignalNormalizer

logger = logging.getLogger("signal_engine.scoring")

BULLISH_TRENDS = ("bullish", "up", "uptrend")
BEARISH_TRENDS = ("bearish", "down", "downtrend")

# (min |indicator score|, confidence bonus)
MAGNITUDE_BONUS = ((120.0, 20.0), (95.0, 15.0), (80.0, 10.0), (65.0, 5.0))

# (min |total score|, signal strength label)
STRENGTH_BANDS = ((130.0, "extreme"), (95.0, "strong"), (65.0, "moderate"), (40.0, "weak"))


def clamp(value: float, cap: float) -> float:
    return max(-cap, min(cap, value))


@dataclass
class _Contribution:
    name: str
    score: float
    signal: Signal
    trend: Optional[str]


class SignalGenerator:
    """Weights indicator signals into a composite score and applies the entry gate."""

    def __init__(
        self,
        scoring: Optional[ScoringConfig] = None,
        confidence: Optional[ConfidenceConfig] = None,
        gates: Optional[GateConfig] = None,
    ):
        self.scoring = scoring or ScoringConfig()
        self.normalizer = SignalNormalizer(self.scoring)
        self.confidence = ConfidenceCalculator(confidence)
        self.gate = EntryGate(gates)

    @classmethod
    def from_config(cls, config: EngineConfig) -> "SignalGenerator":
        return cls(config.scoring, config.confidence, config.gates)

    def generate(
        self,
        indicator_results: Mapping[str, Any],
        microstructure: Optional[Microstructure | Mapping[str, Any]] = None,
        context: Optional[ScoringContext] = None,
    ) -> CompositeSignal:
        ctx = context or ScoringContext()
        if not isinstance(microstructure, Microstructure):
            microstructure = Microstructure.from_mapping(microstructure)

        contributions, rejected = self._collect(indicator_results or {})
        if not contributions:
            return CompositeSignal(
                composite_score=0.0,
                authorized=False,
                side=None,
                confidence=0.0,
                tier=NEUTRAL_TIER,
                block_reasons=("no_indicators",),
                rejected=tuple(rejected),
                timestamp=ctx.timestamp,
            )

        cfg = self.scoring
        indicator_score = clamp(sum(c.score for c in contributions), cfg.indicator_score_cap)
        micro_score = clamp(self._microstructure_score(microstructure), cfg.microstructure_cap)
        total = clamp(indicator_score + micro_score, cfg.total_score_cap)

        bullish = sum(1 for c in contributions if c.score > 0)
        bearish = sum(1 for c in contributions if c.score < 0)
        base = self._base_confidence(bullish, bearish, indicator_score, len(contributions))
        confidence = self.confidence.adjust(
            base,
            is_choppy=ctx.is_choppy,
            atr_percent=ctx.atr_percent,
            conflicting_signals=min(bullish, bearish),
        )

        side: Optional[Side] = None
        if total > 0:
            side = Side.LONG
        elif total < 0:
            side = Side.SHORT
        agreeing = 0
        if side is Side.LONG:
            agreeing = bullish
        elif side is Side.SHORT:
            agreeing = bearish

        gate_result = self.gate.evaluate(GateContext(
            score=total,
            prev_score=ctx.prev_score,
            confidence=confidence,
            indicators_agreeing=agreeing,
            total_indicators=len(contributions),
            trend_aligned=self._trend_aligned(side, ctx, contributions),
            drawdown_pct=ctx.drawdown_pct,
            atr_percent=ctx.atr_percent,
        ))

        block_reasons = list(gate_result.reasons)
        if abs(total) < cfg.authorization_threshold:
            block_reasons.append("authorization_threshold")
        if side is None:
            block_reasons.append("no_direction")
        authorized = not block_reasons

        top = self._top_contribution(contributions)
        signal_type = None
        signal_source = "SignalGenerator"
        if top is not None:
            if top.signal.category is not SignalCategory.GENERIC:
                signal_type = top.signal.category.value
            signal_source = top.name

        result = CompositeSignal(
            composite_score=total,
            authorized=authorized,
            side=side,
            confidence=confidence,
            tier=self.normalizer.classify(total),
            indicator_score=indicator_score,
            microstructure_score=micro_score,
            indicator_scores=MappingProxyType({c.name: c.score for c in contributions}),
            block_reasons=tuple(block_reasons),
            confirmations=agreeing,
            signal_strength=self._signal_strength(total, contributions),
            signal_type=signal_type,
            signal_source=signal_source,
            recommended_leverage=recommended_leverage(total, confidence),
            gate=gate_result,
            rejected=tuple(rejected),
            trigger_candle=ctx.candle_index if authorized else None,
            timestamp=ctx.timestamp,
        )
        if authorized:
            logger.info(
                "Authorized %s | score=%.2f tier=%s confidence=%.1f source=%s",
                side.value, total, result.tier, confidence, signal_source,
            )
        return result

    def _collect(self, indicator_results: Mapping[str, Any]) -> Tuple[List[_Contribution], List[str]]:
        contributions: List[_Contribution] = []
        rejected: List[str] = []
        for name, raw in indicator_results.items():
            ind_cfg = self.scoring.indicator(name)
            if ind_cfg is None:
                logger.warning("Skipping unknown indicator '%s'", name)
                rejected.append(f"{name}:name")
                continue
            if not ind_cfg.enabled:
                continue
            try:
                reading = self.normalizer.normalize(name, raw)
            except InvalidSignalShape as e:
                logger.warning("Rejected indicator %s: %s", name, e)
                rejected.append(f"{e.indicator}:{e.field}")
                continue
            contribution = self._contribution(name, ind_cfg.weight, reading)
            if contribution is not None:
                contributions.append(contribution)
        return contributions, rejected

    def _contribution(self, name: str, weight: float, reading) -> Optional[_Contribution]:
        if isinstance(reading, EnhancedReading):
            top = self.normalizer.highest_priority_signal(reading.signals)
            if top is None:
                return None
            return _Contribution(name, self.normalizer.contribution(weight, top), top, reading.trend)
        if not _legacy_active(reading):
            return None
        direction = Direction.BULLISH if reading.score > 0 else Direction.BEARISH
        signal = Signal(
            type=reading.label or "generic",
            direction=direction,
            strength=Strength.MODERATE,
            message=f"{name} legacy score {reading.score:g}",
        )
        return _Contribution(name, direction.sign * weight, signal, reading.trend)

    def _microstructure_score(self, micro: Microstructure) -> float:
        cfg = self.scoring
        score = 0.0
        ratio = micro.buy_sell_ratio
        if micro.buy_sell_live and ratio is not None and math.isfinite(ratio):
            if ratio > cfg.buy_sell_upper:
                score += cfg.buy_sell_weight * (ratio - 0.5) * 2
            elif ratio < cfg.buy_sell_lower:
                score -= cfg.buy_sell_weight * (0.5 - ratio) * 2
        dom = micro.dom_imbalance
        if micro.dom_live and dom is not None and math.isfinite(dom):
            score += dom * cfg.dom_weight
        return score

    @staticmethod
    def _base_confidence(bullish: int, bearish: int, indicator_score: float, signal_count: int) -> float:
        agreement = max(bullish, bearish) / (bullish + bearish + 1)
        bonus = 0.0
        for min_score, value in MAGNITUDE_BONUS:
            if abs(indicator_score) >= min_score:
                bonus = value
                break
        return clamp_confidence(50.0 + agreement * 30.0 + bonus + min(1.0, signal_count / 10) * 20.0)

    @staticmethod
    def _trend_aligned(side: Optional[Side], ctx: ScoringContext, contributions: List[_Contribution]) -> bool:
        if side is None or not ctx.mtf_aligned:
            return False
        trend = ctx.trend
        if trend is None:
            trend = next(
                (c.trend for c in contributions if c.trend and IndicatorKind.lookup(c.name) is IndicatorKind.EMA_TREND),
                None,
            )
        if not isinstance(trend, str):
            return False
        trend = trend.lower()
        if side is Side.LONG:
            return trend in BULLISH_TRENDS
        return trend in BEARISH_TRENDS

    def _top_contribution(self, contributions: List[_Contribution]) -> Optional[_Contribution]:
        """Indicator whose resolved signal has the highest priority, ties by |score|."""
        best: Optional[_Contribution] = None
        for c in contributions:
            if best is None:
                best = c
                continue
            if c.signal.priority < best.signal.priority or (
                c.signal.priority == best.signal.priority and abs(c.score) > abs(best.score)
            ):
                best = c
        return best

    @staticmethod
    def _signal_strength(total: float, contributions: List[_Contribution]) -> Optional[str]:
        if any(c.signal.category is SignalCategory.DIVERGENCE for c in contributions):
            return "extreme"
        for min_score, label in STRENGTH_BANDS:
            if abs(total) >= min_score:
                return label
        return None


def _legacy_active(reading: LegacyReading) -> bool:
    value = reading.value
    if value is None or reading.score == 0:
        return False
    if isinstance(value, (int, float)):
        return math.isfinite(value) and value != 0
    return True


def indicator_scores_to_dict(signal: CompositeSignal) -> Dict[str, float]:
    """Plain dict copy of the per-indicator contributions, for printing or JSON."""
    return dict(signal.indicator_scores)
