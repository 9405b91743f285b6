"""Unit tests for _config.py: configuration loading with precedence."""

from __future__ import annotations

import logging
import os
from typing import TYPE_CHECKING
from unittest.mock import patch

import pytest
from dockwire._config import DockwireConfig, _build_config, _merge_yaml, configure_logging, load_config

if TYPE_CHECKING:
    from pathlib import Path

_DOCKER_ENV = ("DOCKER_HOST", "DOCKER_TLS_VERIFY", "DOCKER_CERT_PATH", "DOCKER_API_VERSION")


@pytest.fixture(autouse=True)
def _isolated(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    """Point ``~`` at an empty directory and clear the Docker variables."""
    for key in _DOCKER_ENV:
        monkeypatch.delenv(key, raising=False)
    home = tmp_path / "home"
    home.mkdir()
    with patch("dockwire._config.Path.home", return_value=home):
        yield home


# --- Default config ---


def test_default_config_values() -> None:
    cfg = DockwireConfig()
    assert cfg.host is None
    assert cfg.tls_verify is False
    assert cfg.cert_path is None
    assert cfg.api_version is None
    assert cfg.user_agent == "dockwire"
    assert cfg.log_level == "warning"


def test_config_is_frozen() -> None:
    cfg = DockwireConfig()
    with pytest.raises(AttributeError):
        cfg.host = "changed"  # type: ignore[misc]


# --- load_config ---


def test_load_config_no_files_returns_defaults() -> None:
    assert load_config() == DockwireConfig()


def test_load_config_install_level_override(_isolated: Path) -> None:
    install_dir = _isolated / ".dockwire"
    install_dir.mkdir()
    (install_dir / "dockwire.yaml").write_text("host: unix:///custom/sock\nlog_level: debug\n")

    cfg = load_config()
    assert cfg.host == "unix:///custom/sock"
    assert cfg.log_level == "debug"


def test_load_config_file_overrides_install(_isolated: Path, tmp_path: Path) -> None:
    install_dir = _isolated / ".dockwire"
    install_dir.mkdir()
    (install_dir / "dockwire.yaml").write_text("user_agent: install\nlog_level: debug\n")

    explicit = tmp_path / "explicit.yaml"
    explicit.write_text("user_agent: explicit\n")

    cfg = load_config(explicit)
    assert cfg.user_agent == "explicit"  # explicit file wins
    assert cfg.log_level == "debug"  # install-level inherited


def test_load_config_tls_section(tmp_path: Path) -> None:
    path = tmp_path / "dockwire.yaml"
    path.write_text("host: tcp://10.0.0.5:2376\ntls:\n  verify: true\n  cert_path: /certs\n")

    cfg = load_config(path)
    assert cfg.host == "tcp://10.0.0.5:2376"
    assert cfg.tls_verify is True
    assert cfg.cert_path == "/certs"


def test_load_config_missing_file(tmp_path: Path) -> None:
    assert load_config(tmp_path / "nope.yaml") == DockwireConfig()


def test_env_overrides_file(tmp_path: Path) -> None:
    path = tmp_path / "dockwire.yaml"
    path.write_text("host: unix:///from/file\napi_version: '1.40'\n")

    env = {"DOCKER_HOST": "tcp://build:2375", "DOCKER_API_VERSION": "v1.43"}
    with patch.dict(os.environ, env):
        cfg = load_config(path)

    assert cfg.host == "tcp://build:2375"
    assert cfg.api_version == "1.43"


@pytest.mark.parametrize(
    ("value", "expected"),
    [("1", True), ("yes", True), ("0", False), ("false", False), ("No", False)],
)
def test_env_tls_verify(value: str, expected: bool) -> None:
    with patch.dict(os.environ, {"DOCKER_TLS_VERIFY": value}):
        assert load_config().tls_verify is expected


def test_empty_env_value_is_ignored(tmp_path: Path) -> None:
    path = tmp_path / "dockwire.yaml"
    path.write_text("host: unix:///from/file\n")
    with patch.dict(os.environ, {"DOCKER_HOST": ""}):
        assert load_config(path).host == "unix:///from/file"


# --- _merge_yaml ---


def test_merge_yaml_invalid_yaml(tmp_path: Path) -> None:
    path = tmp_path / "bad.yaml"
    path.write_text(": invalid: yaml: {[")

    target: dict[str, object] = {}
    _merge_yaml(target, path)
    assert target == {}


def test_merge_yaml_non_dict(tmp_path: Path) -> None:
    path = tmp_path / "list.yaml"
    path.write_text("- one\n- two\n")

    target: dict[str, object] = {}
    _merge_yaml(target, path)
    assert target == {}


# --- _build_config ---


def test_build_config_ignores_unknown_keys() -> None:
    cfg = _build_config({"host": "unix:///x", "unknown": 1})
    assert cfg == DockwireConfig(host="unix:///x")


def test_build_config_numeric_api_version() -> None:
    assert _build_config({"api_version": 1.41}).api_version == "1.41"


# --- configure_logging ---


def test_configure_logging_sets_level() -> None:
    logger = logging.getLogger("dockwire")
    previous = logger.level
    try:
        configure_logging(DockwireConfig(log_level="debug"))
        assert logger.level == logging.DEBUG
    finally:
        logger.setLevel(previous)


def test_configure_logging_rejects_unknown_level() -> None:
    with pytest.raises(ValueError, match="invalid log level"):
        configure_logging(DockwireConfig(log_level="chatty"))
