# SPDX-License-Identifier: BSD-2-Clause
# Copyright (c) deftio llc

"""Configuration loading with install-level -> file -> environment precedence."""

from __future__ import annotations

import dataclasses
import logging
import os
from pathlib import Path
from typing import Any

import yaml

_CONFIG_FILENAME = "dockwire.yaml"

_ENV_KEYS = {
    "DOCKER_HOST": "host",
    "DOCKER_TLS_VERIFY": "tls_verify",
    "DOCKER_CERT_PATH": "cert_path",
    "DOCKER_API_VERSION": "api_version",
}


@dataclasses.dataclass(frozen=True)
class DockwireConfig:
    """Resolved dockwire configuration."""

    host: str | None = None
    tls_verify: bool = False
    cert_path: str | None = None
    api_version: str | None = None
    user_agent: str = "dockwire"
    log_level: str = "warning"


def load_config(config_path: Path | None = None) -> DockwireConfig:
    """Load configuration with precedence: environment > file > install > defaults.

    1. Start with defaults
    2. Overlay install-level ``~/.dockwire/dockwire.yaml`` (if exists)
    3. Overlay ``config_path`` (if given and exists)
    4. Overlay ``DOCKER_HOST``, ``DOCKER_TLS_VERIFY``, ``DOCKER_CERT_PATH``
       and ``DOCKER_API_VERSION``
    """
    overrides: dict[str, Any] = {}

    install_config = Path.home() / ".dockwire" / _CONFIG_FILENAME
    if install_config.is_file():
        _merge_yaml(overrides, install_config)

    if config_path is not None and config_path.is_file():
        _merge_yaml(overrides, config_path)

    _merge_env(overrides)
    return _build_config(overrides)


def _merge_yaml(target: dict[str, Any], path: Path) -> None:
    """Parse a YAML file and merge its values into *target*."""
    try:
        data = yaml.safe_load(path.read_text())
    except yaml.YAMLError:
        return
    if not isinstance(data, dict):
        return

    for key, value in data.items():
        if key == "tls" and isinstance(value, dict):
            # tls: {verify: ..., cert_path: ...}
            if "verify" in value:
                target["tls_verify"] = value["verify"]
            if "cert_path" in value:
                target["cert_path"] = value["cert_path"]
        else:
            target[key] = value


def _merge_env(target: dict[str, Any]) -> None:
    """Overlay the Docker environment variables onto *target*."""
    for env_key, field in _ENV_KEYS.items():
        value = os.environ.get(env_key)
        if not value:
            continue
        if field == "tls_verify":
            target[field] = value.lower() not in ("0", "false", "no")
        else:
            target[field] = value


def _build_config(overrides: dict[str, Any]) -> DockwireConfig:
    """Build a ``DockwireConfig`` from a dict of overrides."""
    field_names = {f.name for f in dataclasses.fields(DockwireConfig)}
    filtered = {k: v for k, v in overrides.items() if k in field_names}
    if "api_version" in filtered and filtered["api_version"] is not None:
        filtered["api_version"] = str(filtered["api_version"]).lstrip("v")
    return DockwireConfig(**filtered)


def configure_logging(cfg: DockwireConfig) -> None:
    """Apply ``cfg.log_level`` to the ``dockwire`` logger namespace."""
    level = logging.getLevelName(cfg.log_level.upper())
    if not isinstance(level, int):
        msg = f"invalid log level: {cfg.log_level!r}"
        raise ValueError(msg)
    logging.getLogger("dockwire").setLevel(level)
