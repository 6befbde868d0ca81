"""
Alert Engine Configuration Module

Usage:
    from lendalert.config import EngineConfig, load_config
"""

from lendalert.config.engine_config import EngineConfig
from lendalert.config.loader import load_config, merge_config_with_env

__all__ = ["EngineConfig", "load_config", "merge_config_with_env"]
