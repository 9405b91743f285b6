# SPDX-License-Identifier: BSD-2-Clause
# Copyright (c) deftio llc

"""Daemon endpoints: a Unix socket path or a TCP host with optional TLS."""

from __future__ import annotations

import dataclasses
import os
import pathlib
import urllib.parse
from typing import TYPE_CHECKING, Union

if TYPE_CHECKING:
    from dockwire._config import DockwireConfig

DEFAULT_SOCKET = "/var/run/docker.sock"
DEFAULT_TLS_PORT = 2376
DEFAULT_TCP_PORT = 2375


@dataclasses.dataclass(frozen=True)
class TlsConfig:
    """Client certificate, private key and CA bundle for a TLS endpoint."""

    cert: str
    key: str
    ca: str | None = None
    verify: bool = True

    @classmethod
    def from_cert_path(cls, cert_path: str | os.PathLike[str], *, verify: bool = True) -> TlsConfig:
        """Build from a directory holding ``cert.pem``, ``key.pem`` and ``ca.pem``."""
        base = pathlib.Path(cert_path).expanduser()
        ca = base / "ca.pem"
        return cls(
            cert=str(base / "cert.pem"),
            key=str(base / "key.pem"),
            ca=str(ca) if ca.exists() else None,
            verify=verify,
        )


@dataclasses.dataclass(frozen=True)
class UnixEndpoint:
    """Unix domain socket endpoint."""

    path: str

    def __str__(self) -> str:
        return f"unix://{self.path}"


@dataclasses.dataclass(frozen=True)
class TcpEndpoint:
    """TCP endpoint, TLS-wrapped when ``tls`` is set."""

    host: str
    port: int
    tls: TlsConfig | None = None

    @property
    def scheme(self) -> str:
        return "https" if self.tls is not None else "http"

    def __str__(self) -> str:
        return f"{self.scheme}://{self.host}:{self.port}"


Endpoint = Union[UnixEndpoint, TcpEndpoint]


def _path_exists(path: pathlib.Path) -> bool:
    """Check if *path* exists, returning ``False`` on ``PermissionError``."""
    try:
        return path.exists()
    except PermissionError:
        return False


def detect_socket() -> str | None:
    """Auto-detect an available container engine socket.

    Detection order:
    1. ``DOCKWIRE_SOCKET`` env var
    2. Docker: ``/var/run/docker.sock``
    3. Podman rootless: ``$XDG_RUNTIME_DIR/podman/podman.sock``
    4. Podman system: ``/run/podman/podman.sock``

    Returns:
        The path to the first socket found, or ``None``.

    """
    explicit = os.environ.get("DOCKWIRE_SOCKET")
    if explicit and _path_exists(pathlib.Path(explicit)):
        return explicit

    xdg = os.environ.get("XDG_RUNTIME_DIR", f"/run/user/{os.getuid()}")
    candidates = [
        pathlib.Path(DEFAULT_SOCKET),
        pathlib.Path(xdg) / "podman" / "podman.sock",
        pathlib.Path("/run/podman/podman.sock"),
    ]
    for candidate in candidates:
        if _path_exists(candidate):
            return str(candidate)
    return None


def parse_host(host: str, tls: TlsConfig | None = None) -> Endpoint:
    """Parse a ``DOCKER_HOST``-style address into an endpoint.

    Accepts ``unix:///path``, a bare filesystem path, ``tcp://host:port``,
    ``http://host:port`` and ``https://host:port``.  ``tcp://`` uses TLS only
    when ``tls`` is given; ``https://`` requires it.
    """
    if host.startswith("/"):
        return UnixEndpoint(host)

    parsed = urllib.parse.urlsplit(host)
    scheme = parsed.scheme.lower()
    if scheme == "unix":
        path = parsed.path or parsed.netloc
        if not path:
            msg = f"missing socket path in {host!r}"
            raise ValueError(msg)
        return UnixEndpoint(path)

    if scheme not in ("tcp", "http", "https"):
        msg = f"unsupported host scheme: {host!r}"
        raise ValueError(msg)
    if not parsed.hostname:
        msg = f"missing host name in {host!r}"
        raise ValueError(msg)

    if scheme == "http":
        tls = None
    elif scheme == "https" and tls is None:
        msg = f"TLS material required for {host!r}"
        raise ValueError(msg)

    default_port = DEFAULT_TLS_PORT if tls is not None else DEFAULT_TCP_PORT
    return TcpEndpoint(parsed.hostname, parsed.port or default_port, tls)


def endpoint_from_config(cfg: DockwireConfig) -> Endpoint:
    """Resolve the endpoint described by a loaded configuration."""
    tls: TlsConfig | None = None
    wants_tls = cfg.tls_verify or (cfg.host or "").startswith("https://")
    if wants_tls:
        cert_path = cfg.cert_path or str(pathlib.Path.home() / ".docker")
        tls = TlsConfig.from_cert_path(cert_path, verify=cfg.tls_verify)

    if cfg.host:
        return parse_host(cfg.host, tls)

    return UnixEndpoint(detect_socket() or DEFAULT_SOCKET)
