"""Process-level settings and logging setup."""

import logging
from functools import lru_cache
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

LOG_FORMAT = "%(asctime)s - %(levelname)s - %(message)s"


class Settings(BaseSettings):
    """Settings loaded from TICKFLOW_* environment variables (and .env)."""

    model_config = SettingsConfigDict(
        env_prefix="TICKFLOW_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    log_level: str = "INFO"

    # YAML file holding the engine configuration (see trading_config)
    config_path: Path | None = None

    # Symbols the transport layer should subscribe to
    symbols: list[str] = ["R_10", "R_25", "R_50", "R_75", "R_100"]


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


def configure_logging(level: str | None = None) -> None:
    """Configure root logging for a process embedding the engine."""
    name = (level or get_settings().log_level).upper()
    logging.basicConfig(
        level=getattr(logging, name, logging.INFO),
        format=LOG_FORMAT,
    )
