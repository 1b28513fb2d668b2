"""Tests for trading_config.py and settings.py."""

import logging
import textwrap

import pytest
import yaml
from pydantic import ValidationError

from tickflow.models import EngineConfig
from tickflow.settings import LOG_FORMAT, Settings, configure_logging, get_settings
from tickflow.trading_config import load_engine_config


# ── load_engine_config tests ─────────────────────────────────────────────


class TestLoadEngineConfig:
    def test_missing_file_returns_defaults(self, tmp_path):
        config = load_engine_config(tmp_path / "missing.yaml")
        assert config == EngineConfig()

    def test_loads_engine_section(self, tmp_path):
        path = tmp_path / "tickflow.yaml"
        path.write_text(
            textwrap.dedent(
                """\
                engine:
                  eval_timeframe: 10s
                  trend_timeframe: 5m
                  ema_fast_period: 15
                  ema_slow_period: 30
                  sl_atr_mult: 3.5
                  tp_atr_mult: 7.5
                  spike_thresholds:
                    BOOM1000: 10
                """
            )
        )

        config = load_engine_config(path)

        assert config.trend_timeframe == "5m"
        assert config.ema_fast_period == 15
        assert config.ema_slow_period == 30
        assert config.sl_atr_mult == 3.5
        assert config.tp_atr_mult == 7.5
        assert config.spike_thresholds == {"BOOM1000": 10.0}
        # Untouched keys keep their defaults
        assert config.rsi_period == 14

    def test_null_trend_disables_filter(self, tmp_path):
        path = tmp_path / "tickflow.yaml"
        path.write_text(yaml.dump({"engine": {"trend_timeframe": None}}))
        assert load_engine_config(path).trend_timeframe is None

    def test_empty_file_returns_defaults(self, tmp_path):
        path = tmp_path / "tickflow.yaml"
        path.write_text("")
        assert load_engine_config(path) == EngineConfig()

    def test_invalid_value_raises(self, tmp_path):
        path = tmp_path / "tickflow.yaml"
        path.write_text(yaml.dump({"engine": {"ema_fast_period": 30, "ema_slow_period": 15}}))
        with pytest.raises(ValidationError):
            load_engine_config(path)

    def test_non_mapping_raises(self, tmp_path):
        path = tmp_path / "tickflow.yaml"
        path.write_text(yaml.dump(["a", "b"]))
        with pytest.raises(ValueError, match="mapping"):
            load_engine_config(path)

    def test_non_mapping_engine_raises(self, tmp_path):
        path = tmp_path / "tickflow.yaml"
        path.write_text(yaml.dump({"engine": 5}))
        with pytest.raises(ValueError, match="'engine' must be a mapping"):
            load_engine_config(path)

    def test_path_from_environment(self, tmp_path, monkeypatch):
        path = tmp_path / "custom.yaml"
        path.write_text(yaml.dump({"engine": {"confirm_set": 4}}))
        monkeypatch.setenv("TICKFLOW_CONFIG_PATH", str(path))
        get_settings.cache_clear()
        try:
            assert load_engine_config().confirm_set == 4
        finally:
            get_settings.cache_clear()


# ── Settings tests ───────────────────────────────────────────────────────


class TestSettings:
    def test_defaults(self, monkeypatch):
        monkeypatch.delenv("TICKFLOW_LOG_LEVEL", raising=False)
        settings = Settings(_env_file=None)
        assert settings.log_level == "INFO"
        assert settings.config_path is None
        assert "R_10" in settings.symbols

    def test_environment_override(self, monkeypatch):
        monkeypatch.setenv("TICKFLOW_LOG_LEVEL", "DEBUG")
        monkeypatch.setenv("TICKFLOW_SYMBOLS", '["R_25"]')
        settings = Settings(_env_file=None)
        assert settings.log_level == "DEBUG"
        assert settings.symbols == ["R_25"]

    def test_configure_logging(self, monkeypatch):
        calls = []
        monkeypatch.setattr(logging, "basicConfig", lambda **kw: calls.append(kw))
        configure_logging("debug")
        assert calls == [{"level": logging.DEBUG, "format": LOG_FORMAT}]
