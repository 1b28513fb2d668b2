"""Engine configuration loaded from YAML.

File layout:

    engine:
      eval_timeframe: 10s
      trend_timeframe: 1m
      ema_fast_period: 5
      ...

A missing file falls back to the defaults of EngineConfig.
"""

import logging
from pathlib import Path

import yaml

from tickflow.models import EngineConfig
from tickflow.settings import get_settings

logger = logging.getLogger(__name__)

_DEFAULT_PATH = Path("tickflow.yaml")


def load_engine_config(path: Path | None = None) -> EngineConfig:
    """Load the engine config from a YAML file.

    Resolution order: ``path`` argument, TICKFLOW_CONFIG_PATH, ./tickflow.yaml.

    Raises:
        ValueError: If the file is not a mapping or has no ``engine`` mapping.
        pydantic.ValidationError: If a value is invalid.
    """
    config_path = path or get_settings().config_path or _DEFAULT_PATH

    if not config_path.exists():
        logger.info("No engine config found at %s, using defaults", config_path)
        return EngineConfig()

    with open(config_path) as f:
        raw = yaml.safe_load(f) or {}

    if not isinstance(raw, dict):
        raise ValueError(f"{config_path}: expected a mapping at top level")
    section = raw.get("engine", {}) or {}
    if not isinstance(section, dict):
        raise ValueError(f"{config_path}: 'engine' must be a mapping")

    config = EngineConfig(**section)
    logger.info(
        "Loaded engine config from %s: eval=%s trend=%s EMA(%d,%d) confirm=%d/%d",
        config_path,
        config.eval_timeframe,
        config.trend_timeframe,
        config.ema_fast_period,
        config.ema_slow_period,
        config.confirm_set,
        config.confirm_flip,
    )
    return config
