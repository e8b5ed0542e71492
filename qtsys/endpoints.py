"""Questrade endpoint profiles.

CONFIGURATION maps a profile name to its connection settings. "practice"
inherits everything from "live" and only swaps the login host; the API server
itself is never configured here because the token exchange returns it.

Custom profiles:
    # myapp/questrade_endpoints.py
    CONFIGURATION = {
        "live": {"login_url": "https://login.example.test/oauth2/token", ...},
        "practice": {"__inherits__": "live", ...},
    }

    export QT_ENDPOINTS_MODULE=myapp.questrade_endpoints
"""

from __future__ import annotations

import os
from typing import Any

from qtsys.core.utils.config import ConfigError, load_and_resolve_config

DEFAULT_MODULE = "qtsys.endpoints"
LIVE = "live"
PRACTICE = "practice"

CONFIGURATION: dict[str, dict[str, Any]] = {
    LIVE: {
        "login_url": "https://login.questrade.com/oauth2/token",
        "api_version": "v1",
        "timeout": 30.0,
        # GET-only transport retries; the token exchange is never retried
        "retries": 3,
        "backoff": 0.5,
    },
    PRACTICE: {
        "__inherits__": LIVE,
        "login_url": "https://practicelogin.questrade.com/oauth2/token",
    },
}


def load_profiles(module_path: str | None = None) -> dict[str, dict[str, Any]]:
    """Load and resolve endpoint profiles, falling back to this module."""
    module_path = module_path or os.getenv("QT_ENDPOINTS_MODULE") or DEFAULT_MODULE
    return load_and_resolve_config(
        module_path,
        config_name="CONFIGURATION",
        fallback_modules=[DEFAULT_MODULE] if module_path != DEFAULT_MODULE else None,
    )


def endpoint_profile(use_practice: bool, module_path: str | None = None) -> dict[str, Any]:
    """Return the resolved settings for the live or practice profile.

    Raises:
        ConfigError: If the selected profile is missing or has no login_url
    """
    name = PRACTICE if use_practice else LIVE
    profiles = load_profiles(module_path)
    profile = profiles.get(name)
    if not profile:
        raise ConfigError(f"Endpoint profile '{name}' not found")
    if not profile.get("login_url"):
        raise ConfigError(f"Endpoint profile '{name}' has no login_url")
    return profile
