"""
Configuration Loader Module

Loads EngineConfig from a YAML file and ALERTS_* environment variables
(environment variables take precedence over the file).
"""

import os
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml
from loguru import logger

from lendalert.config.engine_config import EngineConfig

logger = logger.bind(component="ConfigLoader")

ENV_MAPPING = {
    "ALERTS_DELTA_LAKE_PATH": "delta_lake_path",
    "ALERTS_POLL_INTERVAL": "poll_interval",
    "ALERTS_SERIALIZE_PER_ALERT": "serialize_per_alert",
    "ALERTS_LOG_LEVEL": "log_level",
    "ALERTS_LOG_FILE": "log_file",
    "ALERTS_LOG_ROTATION": "log_rotation",
}

BOOL_KEYS = {"serialize_per_alert"}
FLOAT_KEYS = {"poll_interval"}


def load_config(path: Optional[Union[str, Path]] = None) -> EngineConfig:
    """
    Load engine configuration.

    Args:
        path: YAML config file (None or a missing file means defaults)

    Returns:
        EngineConfig with file settings and environment overrides applied

    Raises:
        ValueError: If the file is not a mapping, has unknown keys, or a
            value is invalid
    """
    config_data: Dict[str, Any] = {}

    if path is not None:
        config_file = Path(path)
        if config_file.exists():
            with open(config_file, "r") as f:
                config_data = yaml.safe_load(f) or {}

            if not isinstance(config_data, dict):
                raise ValueError(f"Config file must contain a mapping: {config_file}")

            logger.info(f"Loaded config from {config_file}")
        else:
            logger.warning(f"Config file not found: {config_file}, using defaults")

    config_data = merge_config_with_env(config_data)

    unknown = set(config_data) - set(EngineConfig.__dataclass_fields__)
    if unknown:
        raise ValueError(f"Unknown config keys: {sorted(unknown)}")

    return EngineConfig(**config_data)


def merge_config_with_env(config_data: Dict[str, Any]) -> Dict[str, Any]:
    """
    Merge configuration with environment variables.

    Examples:
        ALERTS_DELTA_LAKE_PATH=/srv/lake/admin_alerts
        ALERTS_POLL_INTERVAL=5
        ALERTS_SERIALIZE_PER_ALERT=true
        ALERTS_LOG_LEVEL=DEBUG

    Args:
        config_data: Configuration data from file

    Returns:
        New dict with env vars applied

    Raises:
        ValueError: If a numeric env var cannot be parsed
    """
    merged = dict(config_data)

    for env_var, config_key in ENV_MAPPING.items():
        env_value = os.environ.get(env_var)
        if env_value is None:
            continue

        if config_key in BOOL_KEYS:
            merged[config_key] = env_value.lower() in ("true", "1", "yes", "on")
        elif config_key in FLOAT_KEYS:
            try:
                merged[config_key] = float(env_value)
            except ValueError:
                raise ValueError(f"{env_var} must be a number, got {env_value!r}") from None
        else:
            merged[config_key] = env_value

        logger.debug(f"Overriding {config_key} from env: {env_var}")

    return merged
