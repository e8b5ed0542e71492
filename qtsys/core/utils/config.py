"""Configuration loading utilities using importlib.

Endpoint profiles are plain dicts stored under a named attribute of a Python
module. Loading them through importlib lets a deployment point the client at
its own module (for example a staging login host) without code changes.

Profiles can extend each other using the "__inherits__" key.
"""

from __future__ import annotations

import importlib
import logging
from typing import Any

logger = logging.getLogger(__name__)


class ConfigError(Exception):
    """Raised when configuration loading or resolution fails."""

    pass


def load_config_from_module(
    module_path: str,
    config_name: str = "CONFIGURATION",
    default: Any | None = None,
) -> Any:
    """Load a configuration object from a Python module using importlib.

    Args:
        module_path: Dotted module path (e.g., "qtsys.endpoints")
        config_name: Name of the configuration object to retrieve (default: "CONFIGURATION")
        default: Default value to return if loading fails

    Returns:
        The configuration object from the module, or default if loading fails

    Examples:
        >>> config = load_config_from_module("qtsys.endpoints")
        >>> custom = load_config_from_module("myapp.questrade_endpoints", "PROFILES")
    """
    try:
        module = importlib.import_module(module_path)

        if not hasattr(module, config_name):
            logger.warning(f"Module '{module_path}' does not have attribute '{config_name}'")
            return default

        config = getattr(module, config_name)
        logger.debug(f"Loaded configuration from {module_path}.{config_name}")
        return config

    except ImportError as e:
        logger.warning(f"Could not import module '{module_path}': {e}")
        return default


def load_config_with_fallback(
    primary_module: str,
    fallback_modules: list[str] | None = None,
    config_name: str = "CONFIGURATION",
    default: Any | None = None,
) -> Any:
    """Load configuration with fallback to alternative modules.

    Attempts to load configuration from the primary module first, then tries
    fallback modules in order until one succeeds.

    Examples:
        >>> config = load_config_with_fallback(
        ...     "myapp.questrade_endpoints",
        ...     fallback_modules=["qtsys.endpoints"]
        ... )
    """
    config = load_config_from_module(primary_module, config_name, default=None)
    if config is not None:
        return config

    if fallback_modules:
        for fallback in fallback_modules:
            config = load_config_from_module(fallback, config_name, default=None)
            if config is not None:
                logger.info(f"Using fallback configuration from '{fallback}'")
                return config

    logger.warning(f"Could not load configuration from any module, using default: {default}")
    return default


def resolve_config_inheritance(config_dict: dict[str, dict[str, Any]]) -> dict[str, dict[str, Any]]:
    """Resolve inheritance in a configuration dictionary.

    Each entry may name a parent with "__inherits__"; the resolved entry is the
    parent's settings overlaid with its own.

    Raises:
        ConfigError: If circular inheritance detected or parent not found

    Examples:
        >>> config = {
        ...     "live": {"login_url": "https://login.questrade.com/oauth2/token", "timeout": 30.0},
        ...     "practice": {"__inherits__": "live",
        ...                  "login_url": "https://practicelogin.questrade.com/oauth2/token"},
        ... }
        >>> resolved = resolve_config_inheritance(config)
        >>> resolved["practice"]["timeout"]
        30.0
    """
    resolved_configs: dict[str, dict[str, Any]] = {}

    def _resolve_single(name: str, config: dict[str, Any], visited: list[str]) -> dict[str, Any]:
        if name in visited:
            chain = " -> ".join(visited + [name])
            raise ConfigError(f"Circular inheritance detected: {chain}")

        if name in resolved_configs:
            return resolved_configs[name]

        if "__inherits__" not in config:
            resolved = config.copy()
            resolved_configs[name] = resolved
            return resolved

        parent_name = config["__inherits__"]
        if parent_name not in config_dict:
            raise ConfigError(
                f"Configuration '{name}' inherits from '{parent_name}', "
                f"but '{parent_name}' not found"
            )

        resolved_parent = _resolve_single(parent_name, config_dict[parent_name], visited + [name])

        resolved = resolved_parent.copy()
        for key, value in config.items():
            if key != "__inherits__":
                resolved[key] = value

        logger.debug(f"Resolved inheritance for '{name}' from '{parent_name}'")
        resolved_configs[name] = resolved
        return resolved

    for name, config in config_dict.items():
        if name not in resolved_configs:
            _resolve_single(name, config, [])

    return resolved_configs


def load_and_resolve_config(
    module_path: str,
    config_name: str = "CONFIGURATION",
    default: dict[str, dict[str, Any]] | None = None,
    fallback_modules: list[str] | None = None,
) -> dict[str, dict[str, Any]]:
    """Load configuration from a module and resolve all inheritance relationships.

    This is the main entry point for loading endpoint profiles.

    Examples:
        >>> profiles = load_and_resolve_config("qtsys.endpoints")
        >>> profiles["practice"]["api_version"]  # inherited from "live"
        'v1'
    """
    raw_config = load_config_with_fallback(
        module_path, fallback_modules=fallback_modules, config_name=config_name, default=default
    )

    if raw_config is None or not isinstance(raw_config, dict):
        logger.warning(f"Invalid configuration loaded from {module_path}, using default")
        return default or {}

    try:
        resolved = resolve_config_inheritance(raw_config)
        logger.info(f"Loaded and resolved {len(resolved)} configurations from {module_path}")
        return resolved
    except ConfigError as e:
        logger.error(f"Failed to resolve configuration inheritance: {e}")
        raise
