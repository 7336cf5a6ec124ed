from __future__ import annotations

import json
from pathlib import Path
from typing import List

from pydantic import BaseModel, Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env", env_prefix="SHELLY_LOGGER_", extra="ignore"
    )

    app_name: str = "shelly-logger"

    # Device + sink configuration file
    config_path: str = Field(default="config.json")

    # Mode: "shelly" polls real plugs; "sim" for development
    mode: str = Field(default="shelly")

    # Logging
    log_level: str = "INFO"
    log_file: str = "shelly-logger.log"  # empty disables the file handler
    log_max_bytes: int = 2_000_000
    log_backup_count: int = 5

    # Sink protections
    reconnect_delay_s: float = 5.0

    # Slack added after the device's minute rollover
    minute_slack_s: float = 10.0


settings = Settings()


class ConfigError(Exception):
    """The configuration file is missing or invalid."""


class PlugConfig(BaseModel):
    """One Shelly Plug (S) device."""

    model_config = {"frozen": True}

    name: str
    host: str
    # negative disables instantaneous metering
    instantaneous_meter_interval_in_s: int = -1

    @property
    def meter_endpoint_url(self) -> str:
        return f"http://{self.host}/meter/0"

    @property
    def instantaneous_meter_interval(self) -> float | None:
        if self.instantaneous_meter_interval_in_s < 0:
            return None
        return float(self.instantaneous_meter_interval_in_s)


class InfluxConfig(BaseModel):
    """InfluxDB 2 data-sink connection."""

    model_config = {"frozen": True}

    https: bool = False
    host: str
    port: int = 8086
    token: str
    org: str
    bucket: str

    @property
    def url(self) -> str:
        scheme = "https" if self.https else "http"
        return f"{scheme}://{self.host}:{self.port}"


class AppConfig(BaseModel):
    model_config = {"frozen": True}

    network_timeout_ms: int = Field(default=5000, gt=0)
    shelly_plugs: List[PlugConfig] = Field(default_factory=list)
    influxdb2: InfluxConfig

    @field_validator("shelly_plugs")
    @classmethod
    def _unique_names(cls, plugs: List[PlugConfig]) -> List[PlugConfig]:
        seen: set[str] = set()
        for p in plugs:
            if p.name in seen:
                raise ValueError(f"duplicate device name: {p.name}")
            seen.add(p.name)
        return plugs

    @property
    def network_timeout(self) -> float:
        """Network timeout in seconds."""
        return self.network_timeout_ms / 1000.0


def load_config(path: str | Path) -> AppConfig:
    path = Path(path)
    try:
        data = json.loads(path.read_text())
    except OSError as e:
        raise ConfigError(f"config file can not be read from '{path}': {e}") from e
    except json.JSONDecodeError as e:
        raise ConfigError(f"config file '{path}' is not valid JSON: {e}") from e

    try:
        return AppConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"config file '{path}' is invalid: {e}") from e
