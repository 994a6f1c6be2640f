"""
Loading and validation of the relay endpoint settings.

The config file is YAML with the keys ``network``, ``address``, ``timeout``
and ``grace``; anything not set falls back to the EndpointConfig defaults.
"""

from __future__ import annotations

import dataclasses
import logging
import os
import shutil
from pathlib import Path
from typing import Any, Optional

import yaml

from .exceptions import ConfigError
from .models import NETWORK_UNIX, SUPPORTED_NETWORKS, EndpointConfig

logger = logging.getLogger(__name__)

CONFIG_KEYS = ("network", "address", "timeout", "grace")


def default_config_path() -> Path:
    return Path.home() / ".config" / "cliprelay" / "config.yaml"


def load_config(config_path: Optional[str | Path] = None) -> EndpointConfig:
    """
    Build an EndpointConfig from defaults and an optional YAML file.

    A missing file at the default location is fine and yields the defaults,
    but a path given explicitly has to exist.
    """
    if config_path is None:
        path = default_config_path()
        if not path.exists():
            logger.debug("No config at %s, using defaults", path)
            return EndpointConfig()
    else:
        path = Path(config_path)
        if not path.exists():
            raise ConfigError(f"config file not found: {path}")

    logger.info("Loading config from %s", path)
    try:
        with open(path, "r", encoding="utf-8") as f:
            raw = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"invalid YAML in {path}: {e}") from e
    except OSError as e:
        raise ConfigError(f"could not read {path}: {e}") from e

    return config_from_mapping(raw, source=str(path))


def config_from_mapping(raw: Any, source: str = "<config>") -> EndpointConfig:
    """Merge a parsed mapping over the defaults."""
    if raw is None:
        return EndpointConfig()
    if not isinstance(raw, dict):
        raise ConfigError(f"{source}: expected a mapping, got {type(raw).__name__}")

    overrides = {}
    for key, value in raw.items():
        if key not in CONFIG_KEYS:
            logger.warning("%s: ignoring unknown key %r", source, key)
            continue
        overrides[key] = value

    for key in ("network", "address"):
        if key in overrides and not isinstance(overrides[key], str):
            raise ConfigError(f"{source}: {key} must be a string")
    for key in ("timeout", "grace"):
        # bool is an int subclass, reject it explicitly
        value = overrides.get(key)
        if key in overrides and (isinstance(value, bool) or not isinstance(value, int)):
            raise ConfigError(f"{source}: {key} must be an integer (milliseconds)")

    return dataclasses.replace(EndpointConfig(), **overrides)


def expand_address(address: str) -> str:
    """Expand a home-relative socket path into an absolute one."""
    expanded = os.path.expanduser(address)
    if expanded.startswith("~"):
        raise ConfigError(f"could not expand home directory in {address!r}")
    return os.path.abspath(expanded)


def delete_path(path: str) -> None:
    """Recursively delete a file or directory tree at *path*."""
    try:
        if os.path.isdir(path) and not os.path.islink(path):
            shutil.rmtree(path)
        elif os.path.lexists(path):
            os.remove(path)
    except FileNotFoundError:
        # If the path disappeared between checks, treat it as already deleted.
        pass


def validate_config(config: EndpointConfig) -> EndpointConfig:
    """Check the settings and prepare a unix socket path for binding.

    Returns a new EndpointConfig whose unix address is absolute. Any stale
    entry at that address is removed.
    """
    if config.network not in SUPPORTED_NETWORKS:
        raise ConfigError("allowed network are: " + ",".join(SUPPORTED_NETWORKS))
    if not config.address:
        raise ConfigError("address must not be empty")
    if config.timeout < 0:
        raise ConfigError("timeout must not be negative")
    if config.grace < 0:
        raise ConfigError("grace must not be negative")

    if config.network != NETWORK_UNIX:
        return config

    address = expand_address(config.address)
    try:
        delete_path(address)
    except OSError as e:
        raise ConfigError(f"could not remove stale socket at {address}: {e}") from e
    return dataclasses.replace(config, address=address)
