"""Tests for dockwire data types."""

from __future__ import annotations

import dataclasses

import dockwire
import pytest
from dockwire.types import ExecResult


def test_exec_result_defaults() -> None:
    result = ExecResult(exit_code=0)
    assert result.exit_code == 0
    assert result.stdout == ""
    assert result.stderr == ""
    assert result.duration_ms == 0.0
    assert result.truncated is False


def test_exec_result_ok_true() -> None:
    assert ExecResult(exit_code=0, stdout="hello\n").ok is True


def test_exec_result_ok_false() -> None:
    assert ExecResult(exit_code=1, stderr="error\n").ok is False


def test_exec_result_ok_false_negative_exit() -> None:
    assert ExecResult(exit_code=-1).ok is False


def test_exec_result_is_frozen() -> None:
    result = ExecResult(exit_code=0)
    with pytest.raises(dataclasses.FrozenInstanceError):
        result.exit_code = 1  # type: ignore[misc]


def test_exec_result_exported_from_package() -> None:
    assert dockwire.ExecResult is ExecResult
