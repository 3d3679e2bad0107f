"""Configuration loading for the panography pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml

from configs.validator import validate_config
from exceptions import ConfigError, InvalidConfigError
from log_config.logger import get_logger
from register.config import FallbackPolicy, RegistrationConfig

logger = get_logger(__name__)

DEFAULT_CONFIG_PATH = Path(__file__).with_name("default.yaml")


@dataclass(frozen=True)
class SyncConfig:
    output_buffer_size: int = 64
    feeder_join_timeout_s: float = 2.0


@dataclass(frozen=True)
class SourceConfig:
    width: int = 320
    height: int = 240
    pixfmt: str = "RGB"
    fps: int = 0


@dataclass(frozen=True)
class LoggingConfig:
    level: str = "INFO"
    log_dir: Optional[str] = None


@dataclass(frozen=True)
class AppConfig:
    registration: RegistrationConfig = field(default_factory=RegistrationConfig)
    sync: SyncConfig = field(default_factory=SyncConfig)
    source: SourceConfig = field(default_factory=SourceConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


def _section(cls, data: Dict[str, Any]):
    known = {f.name for f in fields(cls)}
    return cls(**{key: value for key, value in data.items() if key in known})


def build_config(data: Optional[Dict[str, Any]]) -> AppConfig:
    """Validate a configuration mapping and build an AppConfig.

    Missing sections and keys fall back to the dataclass defaults.
    """
    data = data or {}
    validate_config(data)

    try:
        registration_data = dict(data.get("registration", {}))
        if "fallback_policy" in registration_data:
            registration_data["fallback_policy"] = FallbackPolicy(registration_data["fallback_policy"])
        return AppConfig(
            registration=_section(RegistrationConfig, registration_data),
            sync=_section(SyncConfig, data.get("sync", {})),
            source=_section(SourceConfig, data.get("source", {})),
            logging=_section(LoggingConfig, data.get("logging", {})),
        )
    except (TypeError, ValueError) as e:
        logger.error(f"Failed to construct configuration objects: {e}")
        raise InvalidConfigError(f"Failed to construct configuration: {e}")


def load_config(path: Union[str, Path, None] = None) -> AppConfig:
    """Load and validate configuration from a YAML file.

    Args:
        path: Path to configuration file; None returns the built-in defaults

    Returns:
        Validated AppConfig instance

    Raises:
        ConfigError: If configuration is invalid or cannot be loaded
    """
    if path is None:
        return AppConfig()

    path = Path(path)
    try:
        logger.info(f"Loading configuration from {path}")
        if not path.exists():
            raise InvalidConfigError(f"Configuration file not found: {path}")
        data = yaml.safe_load(path.read_text())
    except yaml.YAMLError as e:
        logger.error(f"Failed to parse YAML configuration: {e}")
        raise InvalidConfigError(f"Failed to parse configuration file: {e}")

    if data is not None and not isinstance(data, dict):
        raise InvalidConfigError(f"Configuration root must be a mapping, got {type(data).__name__}")

    config = build_config(data)
    logger.info(
        f"Configuration loaded successfully: method={config.registration.method}, "
        f"fallback={config.registration.fallback_policy.value}"
    )
    return config


__all__ = [
    "AppConfig",
    "ConfigError",
    "DEFAULT_CONFIG_PATH",
    "LoggingConfig",
    "SourceConfig",
    "SyncConfig",
    "build_config",
    "load_config",
]
