"""Configuration file loading and CLI overrides for runtime tunables.

Extracted from buildcheck.py to keep the entrypoint slim. Values from the
configuration file are applied first, CLI overrides last, both written into
``Constants``.
"""

from __future__ import annotations

import json
import logging
import os
from typing import Any, Dict, Optional

import yaml

from constants import Constants

logger = logging.getLogger(__name__)


class ConfigError(Exception):
    """Raised when a configuration file cannot be loaded."""


def load_config_file(config_path: Optional[str]) -> Dict[str, Any]:
    """Load a configuration file.

    YAML is used unless the file name ends with ``.json``.

    Args:
        config_path: Path to YAML/JSON config file.

    Returns:
        Configuration dict, empty when no path is given.

    Raises:
        ConfigError: If the file is missing or malformed.
    """
    if not config_path:
        return {}

    if not os.path.isfile(config_path):
        raise ConfigError(f"Config file not found: {config_path}")

    try:
        with open(config_path, "r", encoding="utf-8") as f:
            if config_path.lower().endswith(".json"):
                data = json.load(f)
            else:
                data = yaml.safe_load(f)
    except (OSError, ValueError, yaml.YAMLError) as e:
        raise ConfigError(f"Failed to load config {config_path}: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"Invalid config {config_path}: expected a mapping")
    return data


def apply_config_file(config: Dict[str, Any]) -> None:
    """Apply configuration file values to ``Constants``."""
    http = config.get("http") or {}
    if not isinstance(http, dict):
        raise ConfigError("Invalid config: 'http' must be a mapping")
    try:
        if http.get("timeout") is not None:
            Constants.REQUEST_TIMEOUT = float(http["timeout"])
        if http.get("retries") is not None:
            Constants.HTTP_RETRY_MAX = max(1, int(http["retries"]))
        if http.get("cache_ttl") is not None:
            Constants.HTTP_CACHE_TTL_SEC = int(http["cache_ttl"])
        if config.get("workers") is not None:
            workers = int(config["workers"])
            if workers < 1:
                raise ConfigError(f"Invalid config: workers must be >= 1, got {workers}")
            Constants.MAX_WORKERS = workers
    except (TypeError, ValueError) as e:
        raise ConfigError(f"Invalid config value: {e}") from e

    gradle = config.get("gradle") or {}
    if isinstance(gradle, dict) and gradle.get("command"):
        Constants.GRADLE_COMMAND = str(gradle["command"])
    maven = config.get("maven") or {}
    if not isinstance(maven, dict):
        raise ConfigError("Invalid config: 'maven' must be a mapping")
    if maven.get("settings"):
        Constants.MAVEN_SETTINGS_FILE = str(maven["settings"])
    if maven.get("global_settings"):
        Constants.MAVEN_GLOBAL_SETTINGS_FILE = str(maven["global_settings"])
    if config.get("ignore_file_name"):
        Constants.IGNORE_FILE_NAME = str(config["ignore_file_name"])
    logger.debug("Configuration applied: %s", sorted(config))


def apply_cli_overrides(args) -> None:
    """Apply CLI overrides, which take precedence over the configuration file."""
    if getattr(args, "WORKERS", None) is not None:
        Constants.MAX_WORKERS = int(args.WORKERS)
