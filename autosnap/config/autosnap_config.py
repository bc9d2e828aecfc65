"""
autosnap configuration loader.

Settings only cover how autosnap runs (which zfs binary, which property,
where logs and metrics go); retention decisions come from dataset
properties alone.
"""

import os
from pathlib import Path
from typing import Optional

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, ValidationError, field_validator

from autosnap.retention.errors import ConfigError
from autosnap.storage.zfs import PROPERTY_SNAPKEEP

DEFAULT_CONFIG_PATH = Path("/etc/autosnap.yaml")

ENV_OVERRIDES = {
    "zfs_binary": "AUTOSNAP_ZFS_BINARY",
    "property_key": "AUTOSNAP_PROPERTY_KEY",
    "log_level": "AUTOSNAP_LOG_LEVEL",
    "log_format": "AUTOSNAP_LOG_FORMAT",
    "audit_dir": "AUTOSNAP_AUDIT_DIR",
    "metrics_textfile": "AUTOSNAP_METRICS_TEXTFILE",
}


class AutosnapConfig(BaseModel):
    """autosnap runtime configuration."""
    zfs_binary: str = "zfs"
    property_key: str = PROPERTY_SNAPKEEP
    log_level: str = "INFO"
    log_format: str = "console"
    audit_dir: Optional[str] = None
    metrics_textfile: Optional[str] = None

    @field_validator("log_level")
    @classmethod
    def _check_log_level(cls, value: str) -> str:
        level = value.upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"unknown log level {value!r}")
        return level

    @field_validator("log_format")
    @classmethod
    def _check_log_format(cls, value: str) -> str:
        if value not in ("console", "json"):
            raise ValueError(f"log_format must be 'console' or 'json', got {value!r}")
        return value

    @field_validator("property_key")
    @classmethod
    def _check_property_key(cls, value: str) -> str:
        # zfs user properties must contain a colon.
        if ":" not in value:
            raise ValueError(f"{value!r} is not a zfs user property name")
        return value


def load_autosnap_config(config_path: Optional[Path] = None) -> AutosnapConfig:
    """
    Load configuration from a YAML file and the environment.

    Environment variables (and a .env file, if present) override values
    from the file. A missing file means defaults.

    Raises:
        ConfigError: If the file cannot be read or a value is invalid.
    """
    load_dotenv()

    path = Path(config_path) if config_path is not None else DEFAULT_CONFIG_PATH
    config_data = {}
    if path.exists():
        try:
            with open(path, 'r') as f:
                config_data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            raise ConfigError(f"Failed to read config {path}: {e}") from e
        if not isinstance(config_data, dict):
            raise ConfigError(f"Config must be a YAML mapping: {path}")
    elif config_path is not None:
        raise ConfigError(f"Configuration file not found: {path}")

    for field_name, env_var in ENV_OVERRIDES.items():
        value = os.getenv(env_var)
        if value:
            config_data[field_name] = value

    try:
        return AutosnapConfig(**config_data)
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration: {e}") from e
