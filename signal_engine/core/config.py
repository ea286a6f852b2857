"""
Load configuration from config.yaml and .env. Every section is a frozen dataclass,
validated at construction so a misconfigured run fails before the first candle.
"""

from __future__ import annotations
import dataclasses
import logging
import os
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional, Tuple

import yaml
from dotenv import load_dotenv

from signal_engine.core.errors import ConfigError
from signal_engine.core.logger import module_logger_name, parse_level
from signal_engine.core.types import SignalCategory, Strength
from signal_engine.risk.decimal_math import break_even_roi

logger = logging.getLogger("signal_engine.config")


class IndicatorKind(str, Enum):
    """Closed set of indicators the scorer knows how to weight."""
    RSI = "rsi"
    STOCHASTIC = "stochastic"
    KDJ = "kdj"
    WILLIAMS_R = "williams_r"
    BOLLINGER = "bollinger"
    EMA_TREND = "ema_trend"
    KLINGER = "klinger"
    AO = "ao"
    ADX = "adx"
    MACD = "macd"
    OBV = "obv"
    STOCH_RSI = "stoch_rsi"
    CMF = "cmf"

    @classmethod
    def lookup(cls, name: str) -> Optional["IndicatorKind"]:
        """Resolve snake_case or camelCase names ('williams_r', 'williamsR')."""
        key = name.strip().lower().replace("_", "").replace("-", "")
        for kind in cls:
            if kind.value.replace("_", "") == key:
                return kind
        return None

    @classmethod
    def parse(cls, name: str) -> "IndicatorKind":
        kind = cls.lookup(name)
        if kind is None:
            raise ConfigError(f"Unknown indicator '{name}'")
        return kind


@dataclass(frozen=True)
class IndicatorConfig:
    weight: float
    enabled: bool = True
    period: Optional[int] = None
    params: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if self.weight < 0:
            raise ConfigError(f"Indicator weight must be >= 0, got {self.weight}")
        object.__setattr__(self, "params", MappingProxyType(dict(self.params)))


# Keys an indicator section may carry besides its default params
INDICATOR_KEYS = frozenset({"weight", "enabled", "period", "params"})

DEFAULT_INDICATORS: Dict[IndicatorKind, IndicatorConfig] = {
    IndicatorKind.RSI: IndicatorConfig(weight=40, period=21, params={"oversold": 30, "overbought": 70}),
    IndicatorKind.STOCHASTIC: IndicatorConfig(weight=35, period=14, params={"oversold": 20, "overbought": 80}),
    IndicatorKind.KDJ: IndicatorConfig(weight=35, period=9, params={"j_oversold": 0, "j_overbought": 100}),
    IndicatorKind.WILLIAMS_R: IndicatorConfig(weight=28, period=10, params={"oversold": -80, "overbought": -20}),
    IndicatorKind.BOLLINGER: IndicatorConfig(weight=30, period=20, params={"multiplier": 2.0}),
    IndicatorKind.EMA_TREND: IndicatorConfig(weight=25, params={"short": 9, "medium": 25, "long": 50}),
    IndicatorKind.KLINGER: IndicatorConfig(weight=25, params={"fast": 34, "slow": 55, "signal": 13}),
    IndicatorKind.AO: IndicatorConfig(weight=25, params={"fast": 5, "slow": 34}),
    IndicatorKind.ADX: IndicatorConfig(weight=20, period=14, params={"trend": 25, "strong_trend": 40}),
    IndicatorKind.MACD: IndicatorConfig(weight=18, params={"fast": 12, "slow": 26, "signal": 9}),
    IndicatorKind.OBV: IndicatorConfig(weight=18, params={"smoothing": 9}),
    IndicatorKind.STOCH_RSI: IndicatorConfig(weight=18, period=14, params={"oversold": 20, "overbought": 80}),
    IndicatorKind.CMF: IndicatorConfig(weight=15, period=20),
}

DEFAULT_STRENGTH_MULTIPLIERS: Dict[Strength, float] = {
    Strength.VERY_STRONG: 1.5,
    Strength.STRONG: 1.0,
    Strength.MODERATE: 0.6,
    Strength.WEAK: 0.3,
    Strength.EXTREME: 1.3,
}

DEFAULT_TYPE_MULTIPLIERS: Dict[SignalCategory, float] = {
    SignalCategory.DIVERGENCE: 1.5,
    SignalCategory.CROSSOVER: 1.3,
    SignalCategory.GOLDEN_DEATH_CROSS: 1.4,
    SignalCategory.SQUEEZE: 1.3,
    SignalCategory.PATTERN: 1.3,
    SignalCategory.BREAKOUT: 1.3,
    SignalCategory.OVERSOLD: 1.2,
    SignalCategory.OVERBOUGHT: 1.2,
    SignalCategory.THRUST: 1.0,
    SignalCategory.MOMENTUM: 1.0,
    SignalCategory.HOOK: 0.85,
    SignalCategory.ZONE: 0.85,
    SignalCategory.LEVEL: 0.7,
    SignalCategory.GENERIC: 1.0,
}

# (min |score|, positive tier, negative tier), strictly descending; below the last is NEUTRAL.
DEFAULT_TIERS: Tuple[Tuple[float, str, str], ...] = (
    (130.0, "EXTREME_BUY", "EXTREME_SELL"),
    (95.0, "STRONG_BUY", "STRONG_SELL"),
    (65.0, "BUY", "SELL"),
    (40.0, "BUY_WEAK", "SELL_WEAK"),
)
NEUTRAL_TIER = "NEUTRAL"


@dataclass(frozen=True)
class ScoringConfig:
    indicators: Mapping[IndicatorKind, IndicatorConfig] = field(default_factory=lambda: dict(DEFAULT_INDICATORS))
    strength_multipliers: Mapping[Strength, float] = field(default_factory=lambda: dict(DEFAULT_STRENGTH_MULTIPLIERS))
    type_multipliers: Mapping[SignalCategory, float] = field(default_factory=lambda: dict(DEFAULT_TYPE_MULTIPLIERS))
    indicator_score_cap: float = 200.0
    microstructure_cap: float = 35.0
    total_score_cap: float = 220.0
    tiers: Tuple[Tuple[float, str, str], ...] = DEFAULT_TIERS
    authorization_threshold: float = 75.0
    buy_sell_weight: float = 18.0
    buy_sell_upper: float = 0.7
    buy_sell_lower: float = 0.3
    dom_weight: float = 18.0

    def __post_init__(self) -> None:
        indicators = {IndicatorKind.parse(k) if isinstance(k, str) else k: v for k, v in self.indicators.items()}
        if not any(cfg.enabled for cfg in indicators.values()):
            raise ConfigError("At least one indicator must be enabled")
        missing = set(Strength) - set(self.strength_multipliers)
        if missing:
            raise ConfigError(f"Strength multipliers missing: {sorted(s.value for s in missing)}")
        for name, cap in (
            ("indicator_score_cap", self.indicator_score_cap),
            ("microstructure_cap", self.microstructure_cap),
            ("total_score_cap", self.total_score_cap),
        ):
            if cap <= 0:
                raise ConfigError(f"{name} must be > 0, got {cap}")
        _validate_tiers(self.tiers)
        if self.authorization_threshold < 0:
            raise ConfigError("authorization_threshold must be >= 0")
        if not 0.0 <= self.buy_sell_lower < self.buy_sell_upper <= 1.0:
            raise ConfigError("buy/sell ratio bands must satisfy 0 <= lower < upper <= 1")
        type_multipliers = dict(DEFAULT_TYPE_MULTIPLIERS)
        type_multipliers.update(self.type_multipliers)
        object.__setattr__(self, "indicators", MappingProxyType(indicators))
        object.__setattr__(self, "strength_multipliers", MappingProxyType(dict(self.strength_multipliers)))
        object.__setattr__(self, "type_multipliers", MappingProxyType(type_multipliers))
        object.__setattr__(self, "tiers", tuple(tuple(t) for t in self.tiers))

    def indicator(self, name: str) -> Optional[IndicatorConfig]:
        """Config for an indicator name, or None if the name is not a known kind."""
        kind = IndicatorKind.lookup(name)
        if kind is None:
            return None
        return self.indicators.get(kind)


def _validate_tiers(tiers: Tuple[Tuple[float, str, str], ...]) -> None:
    if not tiers:
        raise ConfigError("Tier table must not be empty")
    prev = float("inf")
    for entry in tiers:
        if len(entry) != 3:
            raise ConfigError(f"Tier entry must be (min, buy_tier, sell_tier), got {entry!r}")
        threshold = float(entry[0])
        if threshold <= 0 or threshold >= prev:
            raise ConfigError("Tier thresholds must be positive and strictly descending")
        prev = threshold


@dataclass(frozen=True)
class ConfidenceConfig:
    enabled: bool = True
    chop_penalty: float = 5.0
    vol_penalty_high: float = 6.0
    vol_penalty_medium: float = 3.0
    conflict_penalty_per_signal: float = 2.0
    vol_high_threshold: float = 6.0
    vol_medium_threshold: float = 4.0

    def __post_init__(self) -> None:
        if self.vol_high_threshold <= self.vol_medium_threshold:
            raise ConfigError("vol_high_threshold must be greater than vol_medium_threshold")
        if min(self.chop_penalty, self.vol_penalty_high, self.vol_penalty_medium, self.conflict_penalty_per_signal) < 0:
            raise ConfigError("Confidence penalties must be >= 0")


@dataclass(frozen=True)
class GateConfig:
    enabled: bool = True
    strict_mode: bool = False
    dead_zone_min: float = 20.0
    threshold_score: float = 80.0
    threshold_cross_required: bool = False
    min_confidence: float = 70.0
    min_indicators_agreeing: int = 4
    confluence_percent_min: float = 0.5
    require_trend_alignment: bool = True
    max_drawdown_pct: Optional[float] = None
    atr_medium_threshold: float = 4.0
    atr_high_threshold: float = 6.0
    atr_medium_surcharge: float = 5.0
    atr_high_surcharge: float = 10.0

    def __post_init__(self) -> None:
        if self.atr_high_threshold <= self.atr_medium_threshold:
            raise ConfigError("atr_high_threshold must be greater than atr_medium_threshold")
        if not 0.0 <= self.confluence_percent_min <= 1.0:
            raise ConfigError("confluence_percent_min must be within [0, 1]")

    def effective(self) -> "GateConfig":
        """Thresholds actually applied: the strict preset replaces the tunable ones."""
        if not self.strict_mode:
            return self
        return dataclasses.replace(self, strict_mode=False, **STRICT_GATE_THRESHOLDS)


STRICT_GATE_THRESHOLDS: Mapping[str, Any] = MappingProxyType({
    "dead_zone_min": 20.0,
    "threshold_score": 80.0,
    "threshold_cross_required": True,
    "min_confidence": 90.0,
    "min_indicators_agreeing": 4,
    "confluence_percent_min": 0.5,
})


@dataclass(frozen=True)
class RiskConfig:
    """Position risk parameters. ROI values are leveraged percentages."""
    leverage: int = 50
    risk_per_trade_pct: float = 2.0
    stop_loss_roi: float = 0.5
    take_profit_roi: float = 2.0
    break_even_enabled: bool = True
    break_even_activation_roi: float = 10.0
    break_even_buffer_roi: float = 2.0
    break_even_safety_buffer: float = 0.1
    trailing_enabled: bool = True
    trailing_activation_roi: float = 20.0
    trailing_distance_roi: float = 5.0
    entry_fee: float = 0.0006
    exit_fee: float = 0.0006
    slippage: float = 0.0005
    contract_multiplier: float = 1.0
    lot_size: float = 0.001
    maintenance_margin: float = 0.004

    def __post_init__(self) -> None:
        if self.leverage < 1:
            raise ConfigError(f"leverage must be >= 1, got {self.leverage}")
        if self.stop_loss_roi <= 0 or self.take_profit_roi <= 0:
            raise ConfigError("stop_loss_roi and take_profit_roi must be > 0")
        if self.risk_per_trade_pct <= 0:
            raise ConfigError("risk_per_trade_pct must be > 0")
        if self.entry_fee < 0 or self.exit_fee < 0:
            raise ConfigError("fees must be >= 0")
        if not 0.0 <= self.slippage < 1.0:
            raise ConfigError("slippage must be within [0, 1)")
        if self.lot_size <= 0 or self.contract_multiplier <= 0:
            raise ConfigError("lot_size and contract_multiplier must be > 0")
        if self.trailing_enabled and self.trailing_distance_roi <= 0:
            raise ConfigError("trailing_distance_roi must be > 0")
        if self.break_even_enabled and self.break_even_buffer_roi >= self.break_even_activation_roi:
            raise ConfigError(
                f"break_even_buffer_roi {self.break_even_buffer_roi} must be below "
                f"break_even_activation_roi {self.break_even_activation_roi}"
            )

    @property
    def break_even_roi(self) -> float:
        """ROI needed before a stop at entry is profitable net of round-trip fees."""
        return break_even_roi(
            self.leverage,
            buffer=self.break_even_safety_buffer,
            entry_fee=self.entry_fee,
            exit_fee=self.exit_fee,
        )

    def check_fee_floor(self) -> None:
        """Raise ConfigError if break-even promotion would fire before fees are covered."""
        if not self.break_even_enabled:
            return
        floor = self.break_even_roi
        if self.break_even_activation_roi < floor:
            raise ConfigError(
                f"break_even_activation_roi {self.break_even_activation_roi} is below the "
                f"fee-adjusted floor {floor} at {self.leverage}x"
            )


@dataclass(frozen=True)
class BacktestConfig:
    symbol: str = "BTCUSDT"
    timeframe: str = "5m"
    initial_balance: float = 10000.0
    warmup_period: int = 50

    def __post_init__(self) -> None:
        if self.initial_balance <= 0:
            raise ConfigError("initial_balance must be > 0")
        if self.warmup_period < 0:
            raise ConfigError("warmup_period must be >= 0")


@dataclass(frozen=True)
class EngineConfig:
    """Unified configuration. Immutable after load; swap only between runs."""
    scoring: ScoringConfig = field(default_factory=ScoringConfig)
    confidence: ConfidenceConfig = field(default_factory=ConfidenceConfig)
    gates: GateConfig = field(default_factory=GateConfig)
    risk: RiskConfig = field(default_factory=RiskConfig)
    backtest: BacktestConfig = field(default_factory=BacktestConfig)
    log_level: str = "INFO"
    log_dir: Optional[Path] = None
    log_file: str = "signal_engine.log"
    log_modules: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        self.risk.check_fee_floor()
        if not isinstance(self.log_modules, Mapping):
            raise ConfigError("logging.modules must map module names to levels")
        try:
            parse_level(self.log_level)
            for module, level in self.log_modules.items():
                module_logger_name(module)
                parse_level(level)
        except ValueError as e:
            raise ConfigError(str(e)) from e
        object.__setattr__(self, "log_modules", MappingProxyType(dict(self.log_modules)))


def _env_path(project_root: Optional[Path] = None) -> Path:
    root = project_root or Path(__file__).resolve().parents[2]
    return root / ".env"


def load_dotenv_if_exists(project_root: Optional[Path] = None) -> None:
    """Load .env from project root if present."""
    path = _env_path(project_root)
    if path.exists():
        load_dotenv(path)


def _section(cls, data: Mapping[str, Any], name: str, **overrides: Any):
    """Build a config dataclass from a YAML section, rejecting unknown keys."""
    known = {f.name for f in dataclasses.fields(cls)}
    unknown = set(data) - known
    if unknown:
        raise ConfigError(f"Unknown keys in '{name}': {sorted(unknown)}")
    kwargs = dict(data)
    kwargs.update({k: v for k, v in overrides.items() if v is not None})
    try:
        return cls(**kwargs)
    except TypeError as e:
        raise ConfigError(f"Invalid '{name}' section: {e}") from e


def _parse_indicators(data: Mapping[str, Any]) -> Dict[IndicatorKind, IndicatorConfig]:
    indicators = dict(DEFAULT_INDICATORS)
    for name, raw in (data or {}).items():
        kind = IndicatorKind.parse(name)
        raw = dict(raw or {})
        base = indicators[kind]
        unknown = set(raw) - INDICATOR_KEYS - set(base.params)
        if unknown:
            raise ConfigError(f"Unknown keys for indicator '{name}': {sorted(unknown)}")
        extra = raw.pop("params", None) or {}
        if not isinstance(extra, Mapping):
            raise ConfigError(f"Indicator '{name}' params must be a mapping")
        indicators[kind] = IndicatorConfig(
            weight=float(raw.pop("weight", base.weight)),
            enabled=bool(raw.pop("enabled", base.enabled)),
            period=raw.pop("period", base.period),
            params={**base.params, **extra, **raw},
        )
    return indicators


def _parse_enum_map(enum_cls, data: Mapping[str, Any], defaults: Mapping, label: str) -> Dict:
    out = dict(defaults)
    for key, value in (data or {}).items():
        try:
            out[enum_cls(key)] = float(value)
        except ValueError:
            raise ConfigError(f"Unknown {label} '{key}'") from None
    return out


def _parse_scoring(data: Mapping[str, Any], indicators: Dict[IndicatorKind, IndicatorConfig]) -> ScoringConfig:
    data = dict(data or {})
    strength = _parse_enum_map(Strength, data.pop("strength_multipliers", None), DEFAULT_STRENGTH_MULTIPLIERS, "strength")
    types = _parse_enum_map(SignalCategory, data.pop("type_multipliers", None), DEFAULT_TYPE_MULTIPLIERS, "signal category")
    tiers_raw = data.pop("tiers", None)
    tiers = DEFAULT_TIERS
    if tiers_raw is not None:
        try:
            tiers = tuple((float(t["min"]), str(t["buy"]), str(t["sell"])) for t in tiers_raw)
        except (KeyError, TypeError, ValueError) as e:
            raise ConfigError(f"Malformed tier table: {e}") from e
    return _section(
        ScoringConfig, data, "scoring",
        indicators=indicators, strength_multipliers=strength, type_multipliers=types, tiers=tiers,
    )


def load_config(config_path: Optional[Path] = None, project_root: Optional[Path] = None) -> EngineConfig:
    """Load config.yaml and overlay with env. Returns EngineConfig."""
    load_dotenv_if_exists(project_root)
    root = project_root or Path(__file__).resolve().parents[2]
    path = config_path or root / "config.yaml"
    data: Dict[str, Any] = {}
    if path.exists():
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}

    # Env overrides
    def env(key: str, default: Optional[str] = None) -> Optional[str]:
        value = os.getenv(key)
        return value.strip() if value else default

    def env_bool(key: str) -> Optional[bool]:
        value = os.getenv(key)
        if value is None:
            return None
        return value.lower() in ("true", "1", "yes")

    def env_int(key: str) -> Optional[int]:
        try:
            return int(os.environ[key])
        except (KeyError, ValueError):
            return None

    def env_float(key: str) -> Optional[float]:
        try:
            return float(os.environ[key])
        except (KeyError, ValueError):
            return None

    indicators = _parse_indicators(data.get("indicators", {}))
    symbol = env("SYMBOL")
    logging_section = data.get("logging", {}) or {}
    log_dir = logging_section.get("log_dir")

    config = EngineConfig(
        scoring=_parse_scoring(data.get("scoring", {}), indicators),
        confidence=_section(ConfidenceConfig, data.get("confidence", {}) or {}, "confidence"),
        gates=_section(GateConfig, data.get("entry_gates", {}) or {}, "entry_gates", strict_mode=env_bool("STRICT_MODE")),
        risk=_section(RiskConfig, data.get("risk", {}) or {}, "risk", leverage=env_int("LEVERAGE")),
        backtest=_section(
            BacktestConfig, data.get("backtest", {}) or {}, "backtest",
            symbol=symbol.upper() if symbol else None,
            timeframe=env("TIMEFRAME"),
            initial_balance=env_float("INITIAL_BALANCE"),
        ),
        log_level=env("LOG_LEVEL", logging_section.get("level", "INFO")),
        log_dir=Path(log_dir) if log_dir else None,
        log_file=logging_section.get("log_file", "signal_engine.log"),
        log_modules=logging_section.get("modules") or {},
    )
    logger.debug("Loaded config from %s (strict_mode=%s)", path, config.gates.strict_mode)
    return config
