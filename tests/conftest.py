"""Shared fixtures for dockwire tests."""

from __future__ import annotations

import pytest
from dockwire import detect_socket

# Probed once at collection; integration tests skip when nothing answers here.
SOCKET_PATH = detect_socket()

requires_engine = pytest.mark.skipif(
    SOCKET_PATH is None,
    reason="No container engine socket found (set DOCKWIRE_SOCKET, or run Docker or Podman)",
)


@pytest.fixture
def socket_path() -> str:
    """Return the detected socket path, or skip the test."""
    if SOCKET_PATH is None:
        pytest.skip("No container engine socket found")
    return SOCKET_PATH
