"""Unit tests for core.config."""

import dataclasses
import os

import pytest
from signal_engine.core.config import (
    EngineConfig,
    GateConfig,
    IndicatorConfig,
    IndicatorKind,
    RiskConfig,
    ScoringConfig,
    load_config,
)
from signal_engine.core.errors import ConfigError
from signal_engine.core.types import SignalCategory, Strength

ENV_KEYS = ("SYMBOL", "TIMEFRAME", "LEVERAGE", "STRICT_MODE", "LOG_LEVEL", "INITIAL_BALANCE")


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for key in ENV_KEYS:
        monkeypatch.delenv(key, raising=False)


def _write(tmp_path, text):
    path = tmp_path / "config.yaml"
    path.write_text(text, encoding="utf-8")
    return path


def test_defaults_without_file(tmp_path):
    config = load_config(tmp_path / "missing.yaml", project_root=tmp_path)
    assert config.risk.leverage == 50
    assert config.scoring.authorization_threshold == 75
    assert config.scoring.indicators[IndicatorKind.RSI].weight == 40
    assert config.gates.threshold_score == 80


def test_yaml_sections(tmp_path):
    path = _write(tmp_path, """
indicators:
  williamsR: { weight: 30, period: 14 }
  macd: { enabled: false }
scoring:
  authorization_threshold: 60
  type_multipliers: { divergence: 2.0 }
  tiers:
    - { min: 100, buy: STRONG_BUY, sell: STRONG_SELL }
    - { min: 50, buy: BUY, sell: SELL }
entry_gates:
  dead_zone_min: 15
risk:
  leverage: 20
backtest:
  symbol: ETHUSDT
  timeframe: 15m
logging:
  level: DEBUG
""")
    config = load_config(path, project_root=tmp_path)
    wr = config.scoring.indicators[IndicatorKind.WILLIAMS_R]
    assert wr.weight == 30 and wr.period == 14
    assert wr.params["oversold"] == -80
    assert config.scoring.indicators[IndicatorKind.MACD].enabled is False
    assert config.scoring.type_multipliers[SignalCategory.DIVERGENCE] == 2.0
    assert config.scoring.type_multipliers[SignalCategory.CROSSOVER] == 1.3
    assert config.scoring.tiers[0] == (100.0, "STRONG_BUY", "STRONG_SELL")
    assert config.gates.dead_zone_min == 15
    assert config.risk.leverage == 20
    assert config.backtest.symbol == "ETHUSDT"
    assert config.log_level == "DEBUG"


def test_env_overrides(tmp_path, monkeypatch):
    monkeypatch.setenv("LEVERAGE", "10")
    monkeypatch.setenv("STRICT_MODE", "true")
    monkeypatch.setenv("SYMBOL", "solusdt")
    monkeypatch.setenv("INITIAL_BALANCE", "500")
    config = load_config(tmp_path / "missing.yaml", project_root=tmp_path)
    assert config.risk.leverage == 10
    assert config.gates.strict_mode is True
    assert config.gates.effective().min_confidence == 90
    assert config.gates.effective().threshold_cross_required is True
    assert config.backtest.symbol == "SOLUSDT"
    assert config.backtest.initial_balance == 500


def test_dotenv_loaded(tmp_path):
    (tmp_path / ".env").write_text("TIMEFRAME=1h\n", encoding="utf-8")
    try:
        config = load_config(tmp_path / "missing.yaml", project_root=tmp_path)
    finally:
        os.environ.pop("TIMEFRAME", None)
    assert config.backtest.timeframe == "1h"


@pytest.mark.parametrize("text", [
    "indicators:\n  vwap: { weight: 10 }\n",
    "risk:\n  levrage: 10\n",
    "scoring:\n  strength_multipliers: { huge: 2 }\n",
    "scoring:\n  tiers:\n    - { min: 40, buy: A, sell: B }\n    - { min: 65, buy: C, sell: D }\n",
    "scoring:\n  tiers:\n    - { min: 40 }\n",
    "scoring:\n  total_score_cap: 0\n",
    "risk:\n  leverage: 100\n  break_even_activation_roi: 10\n",
    "indicators:\n  rsi: { wieght: 30 }\n",
    "indicators:\n  rsi: { params: 5 }\n",
    "risk:\n  break_even_buffer_roi: 12\n",
])
def test_invalid_config_fails_fast(tmp_path, text):
    with pytest.raises(ConfigError):
        load_config(_write(tmp_path, text), project_root=tmp_path)


def test_at_least_one_indicator_enabled():
    with pytest.raises(ConfigError):
        ScoringConfig(indicators={IndicatorKind.RSI: IndicatorConfig(weight=40, enabled=False)})


def test_strength_multipliers_must_be_complete():
    with pytest.raises(ConfigError):
        ScoringConfig(strength_multipliers={Strength.STRONG: 1.0})


def test_indicator_lookup():
    assert IndicatorKind.lookup("williamsR") is IndicatorKind.WILLIAMS_R
    assert IndicatorKind.lookup("stoch-rsi") is IndicatorKind.STOCH_RSI
    assert IndicatorKind.lookup("vwap") is None
    with pytest.raises(ConfigError):
        IndicatorKind.parse("vwap")


def test_config_is_immutable():
    config = EngineConfig()
    with pytest.raises(dataclasses.FrozenInstanceError):
        config.risk = RiskConfig()
    with pytest.raises(TypeError):
        config.scoring.indicators[IndicatorKind.RSI] = IndicatorConfig(weight=1)


def test_fee_floor_property():
    assert RiskConfig(leverage=50).break_even_roi == pytest.approx(6.1)
    with pytest.raises(ConfigError):
        RiskConfig(leverage=50, break_even_activation_roi=6.0).check_fee_floor()


def test_gate_validation():
    with pytest.raises(ConfigError):
        GateConfig(atr_medium_threshold=6, atr_high_threshold=4)
    with pytest.raises(ConfigError):
        GateConfig(confluence_percent_min=1.5)


def test_indicator_params_override(tmp_path):
    path = _write(tmp_path, """
indicators:
  rsi: { oversold: 25, params: { overbought: 75 } }
""")
    rsi = load_config(path, project_root=tmp_path).scoring.indicators[IndicatorKind.RSI]
    assert rsi.weight == 40
    assert dict(rsi.params) == {"oversold": 25, "overbought": 75}


def test_break_even_buffer_below_activation():
    with pytest.raises(ConfigError):
        RiskConfig(break_even_activation_roi=10.0, break_even_buffer_roi=10.0)
    assert RiskConfig(break_even_enabled=False, break_even_buffer_roi=20.0).break_even_buffer_roi == 20.0
