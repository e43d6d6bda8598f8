from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path

DEFAULT_CONFIG_PATH = Path("config.toml")
ENV_PREFIX = "IMGPDF_"


@dataclass(frozen=True, slots=True)
class Settings:
    """Application runtime settings sourced from environment variables."""

    config_path: Path = DEFAULT_CONFIG_PATH
    temp_root: Path | None = None
    log_level: str = "INFO"


def _read_settings() -> Settings:
    config_env = os.getenv(f"{ENV_PREFIX}CONFIG_PATH")
    temp_env = os.getenv(f"{ENV_PREFIX}TEMP_ROOT")
    level_env = os.getenv(f"{ENV_PREFIX}LOG_LEVEL")
    config_path = Path(config_env) if config_env else DEFAULT_CONFIG_PATH
    temp_root = Path(temp_env) if temp_env else None
    log_level = level_env.strip().upper() if level_env else "INFO"
    return Settings(config_path=config_path, temp_root=temp_root, log_level=log_level)


@lru_cache
def get_settings() -> Settings:
    """Return cached settings instance."""

    return _read_settings()


__all__ = ["DEFAULT_CONFIG_PATH", "ENV_PREFIX", "Settings", "get_settings"]
