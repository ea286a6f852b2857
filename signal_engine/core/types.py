"""
Core data types: indicator signals, readings, composite decisions, bars, positions, trades.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from types import MappingProxyType
from typing import Any, Mapping, Optional, Tuple, Union


class Side(str, Enum):
    LONG = "long"
    SHORT = "short"

    @property
    def sign(self) -> int:
        return 1 if self is Side.LONG else -1


class Direction(str, Enum):
    BULLISH = "bullish"
    BEARISH = "bearish"

    @property
    def sign(self) -> int:
        return 1 if self is Direction.BULLISH else -1


class Strength(str, Enum):
    WEAK = "weak"
    MODERATE = "moderate"
    STRONG = "strong"
    VERY_STRONG = "very_strong"
    EXTREME = "extreme"


class SignalCategory(str, Enum):
    """Semantic category of a signal type, ranked by priority tier (1 = highest)."""
    DIVERGENCE = "divergence"
    CROSSOVER = "crossover"
    GOLDEN_DEATH_CROSS = "golden_death_cross"
    SQUEEZE = "squeeze"
    PATTERN = "pattern"
    BREAKOUT = "breakout"
    OVERSOLD = "oversold"
    OVERBOUGHT = "overbought"
    THRUST = "thrust"
    MOMENTUM = "momentum"
    HOOK = "hook"
    ZONE = "zone"
    LEVEL = "level"
    GENERIC = "generic"

    @property
    def tier(self) -> int:
        return _CATEGORY_TIERS[self]

    @classmethod
    def from_type(cls, signal_type: str) -> "SignalCategory":
        """Map a raw signal type such as 'bullish_crossover' to its category."""
        lowered = signal_type.lower()
        for needle, category in _TYPE_MATCHERS:
            if needle in lowered:
                return category
        return cls.GENERIC


_CATEGORY_TIERS = {
    SignalCategory.DIVERGENCE: 1,
    SignalCategory.CROSSOVER: 2,
    SignalCategory.GOLDEN_DEATH_CROSS: 2,
    SignalCategory.SQUEEZE: 2,
    SignalCategory.PATTERN: 2,
    SignalCategory.BREAKOUT: 2,
    SignalCategory.OVERSOLD: 3,
    SignalCategory.OVERBOUGHT: 3,
    SignalCategory.THRUST: 3,
    SignalCategory.MOMENTUM: 3,
    SignalCategory.HOOK: 3,
    SignalCategory.ZONE: 3,
    SignalCategory.LEVEL: 4,
    SignalCategory.GENERIC: 5,
}

# Order matters: "crossover" must win over the bare cross patterns below it.
_TYPE_MATCHERS = (
    ("divergence", SignalCategory.DIVERGENCE),
    ("crossover", SignalCategory.CROSSOVER),
    ("golden_death", SignalCategory.GOLDEN_DEATH_CROSS),
    ("golden_cross", SignalCategory.GOLDEN_DEATH_CROSS),
    ("death_cross", SignalCategory.GOLDEN_DEATH_CROSS),
    ("squeeze", SignalCategory.SQUEEZE),
    ("pattern", SignalCategory.PATTERN),
    ("breakout", SignalCategory.BREAKOUT),
    ("oversold", SignalCategory.OVERSOLD),
    ("overbought", SignalCategory.OVERBOUGHT),
    ("thrust", SignalCategory.THRUST),
    ("momentum", SignalCategory.MOMENTUM),
    ("hook", SignalCategory.HOOK),
    ("zone", SignalCategory.ZONE),
    ("level", SignalCategory.LEVEL),
)


@dataclass(frozen=True)
class Signal:
    """One signal emitted by an indicator. Immutable once produced."""
    type: str
    direction: Direction
    strength: Strength
    message: str
    metadata: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "metadata", MappingProxyType(dict(self.metadata)))

    @property
    def category(self) -> SignalCategory:
        return SignalCategory.from_type(self.type)

    @property
    def priority(self) -> int:
        return self.category.tier


@dataclass(frozen=True)
class EnhancedReading:
    """Indicator output carrying an explicit signals array."""
    name: str
    value: Any
    signals: Tuple[Signal, ...]
    trend: Optional[str] = None


@dataclass(frozen=True)
class LegacyReading:
    """Indicator output carrying only a value and a signed score."""
    name: str
    value: Any
    score: float = 0.0
    label: str = ""
    trend: Optional[str] = None


IndicatorReading = Union[EnhancedReading, LegacyReading]


@dataclass(frozen=True)
class Microstructure:
    """Order-flow inputs. A contribution only counts while its feed is live."""
    buy_sell_ratio: Optional[float] = None
    buy_sell_live: bool = True
    dom_imbalance: Optional[float] = None
    dom_live: bool = True

    @classmethod
    def from_mapping(cls, data: Optional[Mapping[str, Any]]) -> "Microstructure":
        if not data:
            return cls()
        bsr = data.get("buy_sell_ratio") or {}
        dom = data.get("dom_imbalance") or {}
        return cls(
            buy_sell_ratio=bsr.get("ratio"),
            buy_sell_live=bool(bsr.get("live", True)),
            dom_imbalance=dom.get("value"),
            dom_live=bool(dom.get("live", True)),
        )


@dataclass(frozen=True)
class ScoringContext:
    """Per-tick context threaded in by the caller."""
    prev_score: float = 0.0
    is_choppy: bool = False
    atr_percent: Optional[float] = None
    drawdown_pct: Optional[float] = None
    trend: Optional[str] = None
    mtf_aligned: bool = True
    candle_index: Optional[int] = None
    timestamp: Optional[datetime] = None


@dataclass(frozen=True)
class GateContext:
    score: float
    prev_score: float = 0.0
    confidence: float = 0.0
    indicators_agreeing: int = 0
    total_indicators: int = 0
    trend_aligned: bool = True
    drawdown_pct: Optional[float] = None
    atr_percent: Optional[float] = None


@dataclass(frozen=True)
class GateResult:
    passed: bool
    reasons: Tuple[str, ...] = ()
    applied: bool = True
    threshold_used: Optional[float] = None


@dataclass(frozen=True)
class CompositeSignal:
    """Output of one scoring pass."""
    composite_score: float
    authorized: bool
    side: Optional[Side]
    confidence: float
    tier: str
    indicator_score: float = 0.0
    microstructure_score: float = 0.0
    indicator_scores: Mapping[str, float] = field(default_factory=lambda: MappingProxyType({}))
    block_reasons: Tuple[str, ...] = ()
    confirmations: int = 0
    signal_strength: Optional[str] = None
    signal_type: Optional[str] = None
    signal_source: str = "SignalGenerator"
    recommended_leverage: int = 0
    gate: Optional[GateResult] = None
    rejected: Tuple[str, ...] = ()
    trigger_candle: Optional[int] = None
    timestamp: Optional[datetime] = None


@dataclass
class Bar:
    """OHLCV candle."""
    time: datetime
    open: float
    high: float
    low: float
    close: float
    volume: float = 0.0

    @property
    def typical_price(self) -> float:
        return (self.high + self.low + self.close) / 3.0


@dataclass
class Position:
    """Open position. Stop levels only ever move in the position's favor."""
    symbol: str
    side: Side
    entry_price: float
    size: float
    leverage: int
    stop_loss: float
    take_profit: float
    entry_time: datetime
    margin: float
    highest_roi: float = 0.0
    break_even_triggered: bool = False
    trailing_active: bool = False
    initial_stop_loss: Optional[float] = None

    def __post_init__(self) -> None:
        if self.initial_stop_loss is None:
            self.initial_stop_loss = self.stop_loss

    def is_better_stop(self, candidate: float) -> bool:
        """True if candidate is strictly more favorable than the current stop."""
        if self.side is Side.LONG:
            return candidate > self.stop_loss
        return candidate < self.stop_loss


@dataclass(frozen=True)
class Trade:
    """Closed position snapshot."""
    symbol: str
    side: Side
    size: float
    leverage: int
    entry_price: float
    exit_price: float
    stop_loss: float
    take_profit: float
    margin: float
    entry_time: datetime
    exit_time: datetime
    reason: str  # "stop_loss" | "break_even" | "trailing_stop" | "take_profit" | "end_of_backtest"
    pnl: float
    roi: float
    fees: float = 0.0
    highest_roi: float = 0.0


@dataclass(frozen=True)
class EquityPoint:
    timestamp: datetime
    value: float
