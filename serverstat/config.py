"""Configuration — process settings from env and probe settings from YAML.

Two layers:
  * ``AppSettings`` — process-level knobs (log level, bind address, cadence),
    read from environment / .env file.
  * ``Settings`` — the probe/store settings parsed from ``settings.yaml``.
    Re-read at the start of every probe cycle, never cached.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Literal

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic_settings import BaseSettings

logger = logging.getLogger(__name__)

REQUIRED_KEYS = ("host", "port", "database", "user", "pass", "httptimeout_ms", "servers")


class ConfigError(ValueError):
    """Raised when the settings file is missing, unparsable or incomplete."""


class AppSettings(BaseSettings):
    """Central process configuration loaded from environment / .env file."""

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}

    # YAML file with database credentials + target list
    settings_file: str = "settings.yaml"

    # Logging
    log_level: str = "INFO"

    # Status server
    api_host: str = "0.0.0.0"
    api_port: int = 8080
    refresh_window_minutes: int = 5

    # Prober
    cycle_interval_minutes: int = 60
    run_on_start: bool = False  # fire one cycle at launch instead of waiting a full tick
    store_pool_size: int = 10  # caps parallel inserts + DB connections


class Settings(BaseModel):
    """Typed view of settings.yaml. Immutable for the duration of a cycle."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    host: str
    port: int
    database: str
    user: str
    password: str = Field(alias="pass")
    httptimeout_ms: int = Field(gt=0)
    servers: list[str]
    driver: Literal["postgres", "sqlite"] = "postgres"

    @property
    def timeout_seconds(self) -> float:
        return self.httptimeout_ms / 1000


def load_settings(path: Path | str) -> Settings:
    """Parse a YAML settings file into ``Settings``.

    Raises ``ConfigError`` for a missing file, malformed YAML, or any
    missing / invalid key.
    """
    path = Path(path)
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"Cannot read settings file {path}: {e}") from e

    try:
        raw = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise ConfigError(f"Malformed YAML in {path}: {e}") from e

    if not isinstance(raw, dict):
        raise ConfigError(f"Settings file {path} must contain a mapping")

    missing = [k for k in REQUIRED_KEYS if k not in raw]
    if missing:
        raise ConfigError(f"Failed to read {', '.join(repr(k) for k in missing)} from {path}")

    try:
        settings = Settings.model_validate(raw)
    except ValidationError as e:
        raise ConfigError(f"Invalid settings in {path}: {e}") from e

    logger.debug("Loaded settings from %s: %d targets", path, len(settings.servers))
    return settings


app_settings = AppSettings()
