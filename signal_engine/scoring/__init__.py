"""Scoring: signal normalization, composite score, confidence and entry gate."""

from signal_engine.scoring.normalizer import SignalNormalizer
from signal_engine.scoring.confidence import ConfidenceCalculator, VolatilityRegime
from signal_engine.scoring.gates import EntryGate
from signal_engine.scoring.generator import SignalGenerator

__all__ = ["SignalNormalizer", "ConfidenceCalculator", "VolatilityRegime", "EntryGate", "SignalGenerator"]
