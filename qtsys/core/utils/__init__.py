"""Utility functions for qtsys."""

from qtsys.core.utils.config import (
    ConfigError,
    load_and_resolve_config,
    load_config_from_module,
    load_config_with_fallback,
    resolve_config_inheritance,
)
from qtsys.core.utils.env import env_flag, load_env_file_if_present

__all__ = [
    "env_flag",
    "load_env_file_if_present",
    "load_config_from_module",
    "load_config_with_fallback",
    "load_and_resolve_config",
    "resolve_config_inheritance",
    "ConfigError",
]
