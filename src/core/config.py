"""Pydantic settings loaded from YAML configuration."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel

from src.core.types import AlarmBackend

_settings: Settings | None = None

_DEFAULT_CONFIG_PATH = Path("config/settings.yaml")

# Environment variables the deployment stack injects into the Lambda.
_CONFIG_PATH_ENV = "AUTOALARM_CONFIG"
_ENV_OVERRIDES: dict[str, tuple[str, str]] = {
    "PROMETHEUS_WORKSPACE_ID": ("prometheus", "workspace_id"),
    "LOG_LEVEL": ("logging", "level"),
    "AWS_REGION": ("aws", "region"),
}


class AwsConfig(BaseModel):
    """boto3 client configuration shared by every backend wrapper."""

    region: str | None = None
    max_attempts: int = 5
    connect_timeout_secs: float = 5.0
    read_timeout_secs: float = 30.0


class CloudWatchConfig(BaseModel):
    """Metric-alarm backend configuration."""

    alarm_prefix: str = "AutoAlarm"
    actions_enabled: bool = False
    alarm_actions: list[str] = []
    ok_actions: list[str] = []
    delete_batch_size: int = 100


class PrometheusConfig(BaseModel):
    """Rule-store backend (Amazon Managed Prometheus) configuration."""

    workspace_id: str = ""
    namespace_capacity: int = 1000
    retry_attempts: int = 5
    retry_delay_secs: float = 2.0
    call_timeout_secs: float = 10.0
    placeholder_group: str = "autoalarm-placeholder"
    placeholder_rule: str = "AutoAlarmPlaceholder"

    @property
    def enabled(self) -> bool:
        return bool(self.workspace_id)


class EngineConfig(BaseModel):
    """Batch processing configuration."""

    default_backend: AlarmBackend = AlarmBackend.CLOUDWATCH
    max_concurrency: int = 10
    deadline_margin_secs: float = 2.0


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = "INFO"
    format: str = "json"


class Settings(BaseModel):
    """Root settings container."""

    aws: AwsConfig = AwsConfig()
    cloudwatch: CloudWatchConfig = CloudWatchConfig()
    prometheus: PrometheusConfig = PrometheusConfig()
    engine: EngineConfig = EngineConfig()
    logging: LoggingConfig = LoggingConfig()


def _apply_env_overrides(data: dict[str, Any]) -> dict[str, Any]:
    for env_name, (section, key) in _ENV_OVERRIDES.items():
        value = os.environ.get(env_name)
        if not value:
            continue
        current = data.get(section)
        section_data = dict(current) if isinstance(current, dict) else {}
        section_data[key] = value
        data[section] = section_data
    return data


def load_settings(path: str | Path | None = None) -> Settings:
    """Load settings from a YAML file and cache globally.

    Values from a handful of deployment environment variables
    (``PROMETHEUS_WORKSPACE_ID``, ``LOG_LEVEL``, ``AWS_REGION``) override
    whatever the file says.

    Args:
        path: Path to YAML config. Defaults to ``$AUTOALARM_CONFIG`` or
            config/settings.yaml.

    Returns:
        Parsed Settings instance.
    """
    global _settings  # noqa: PLW0603

    if path:
        config_path = Path(path)
    else:
        config_path = Path(os.environ.get(_CONFIG_PATH_ENV) or _DEFAULT_CONFIG_PATH)

    data: dict[str, Any] = {}
    if config_path.exists():
        with open(config_path) as f:
            raw = yaml.safe_load(f)
            if isinstance(raw, dict):
                data = raw

    _settings = Settings(**_apply_env_overrides(data))
    return _settings


def get_settings() -> Settings:
    """Return the cached settings, loading defaults if not yet loaded."""
    global _settings  # noqa: PLW0603
    if _settings is None:
        _settings = load_settings()
    return _settings


def reset_settings() -> None:
    """Reset the cached settings (useful for testing)."""
    global _settings  # noqa: PLW0603
    _settings = None
