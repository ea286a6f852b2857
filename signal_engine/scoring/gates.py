"""
Entry gate: stateless rule check before a composite score is allowed to open a position.
Every rule is evaluated so the caller sees all failing reasons, not just the first.
"""

from __future__ import annotations
import logging
from typing import List, Optional

from signal_engine.core.config import GateConfig
from signal_engine.core.types import GateContext, GateResult

logger = logging.getLogger("signal_engine.gates")


class EntryGate:
    def __init__(self, config: Optional[GateConfig] = None):
        self.config = config or GateConfig()

    def threshold_for(self, atr_percent: Optional[float]) -> float:
        """Minimum |score|, raised in volatile markets."""
        cfg = self.config.effective()
        threshold = cfg.threshold_score
        if atr_percent is not None:
            if atr_percent >= cfg.atr_high_threshold:
                threshold += cfg.atr_high_surcharge
            elif atr_percent >= cfg.atr_medium_threshold:
                threshold += cfg.atr_medium_surcharge
        return threshold

    def evaluate(self, ctx: GateContext) -> GateResult:
        if not self.config.enabled:
            return GateResult(passed=True, reasons=(), applied=False)

        cfg = self.config.effective()
        abs_score = abs(ctx.score)
        threshold = self.threshold_for(ctx.atr_percent)
        reasons: List[str] = []

        if abs_score < cfg.dead_zone_min:
            reasons.append("dead_zone")
        if abs_score < threshold:
            reasons.append("min_score")
        if cfg.threshold_cross_required and not _crossed(ctx.prev_score, ctx.score, threshold):
            reasons.append("threshold_cross")
        if ctx.confidence < cfg.min_confidence:
            reasons.append("min_confidence")
        if ctx.indicators_agreeing < cfg.min_indicators_agreeing:
            reasons.append("min_indicators")
        if ctx.total_indicators > 0 and ctx.indicators_agreeing / ctx.total_indicators < cfg.confluence_percent_min:
            reasons.append("confluence_percent")
        if cfg.require_trend_alignment and not ctx.trend_aligned:
            reasons.append("trend_alignment")
        if (
            cfg.max_drawdown_pct is not None
            and ctx.drawdown_pct is not None
            and ctx.drawdown_pct > cfg.max_drawdown_pct
        ):
            reasons.append("max_drawdown")

        if reasons:
            logger.debug("Gate blocked score %.2f: %s", ctx.score, ", ".join(reasons))
        return GateResult(passed=not reasons, reasons=tuple(reasons), applied=True, threshold_used=threshold)


def _crossed(prev_score: float, score: float, threshold: float) -> bool:
    """True only on the tick the score crosses the threshold, in either direction."""
    if prev_score < threshold <= score:
        return True
    return prev_score > -threshold >= score
