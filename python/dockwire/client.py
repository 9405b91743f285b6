# SPDX-License-Identifier: BSD-2-Clause
# Copyright (c) deftio llc

"""Top-level client handle."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from dockwire._config import DockwireConfig, load_config
from dockwire._endpoint import endpoint_from_config, parse_host
from dockwire._transport import Transport
from dockwire.containers import Containers
from dockwire.errors import SocketCommunicationError
from dockwire.images import Images

if TYPE_CHECKING:
    from pathlib import Path

    from typing_extensions import Self

    from dockwire._endpoint import Endpoint

logger = logging.getLogger(__name__)


class Docker:
    """Handle to one Docker daemon.

    Owns the endpoint for its whole lifetime.  Requests use a fresh
    connection each, so the handle can be shared across tasks and there is
    nothing to release; ``close`` and ``async with`` exist for symmetry.
    """

    def __init__(
        self,
        endpoint: Endpoint | str | None = None,
        *,
        api_version: str | None = None,
        user_agent: str = "dockwire",
    ) -> None:
        if endpoint is None:
            endpoint = endpoint_from_config(DockwireConfig())
        elif isinstance(endpoint, str):
            endpoint = parse_host(endpoint)
        self.endpoint: Endpoint = endpoint
        self.transport = Transport(endpoint, api_version=api_version, user_agent=user_agent)
        self.images = Images(self.transport)
        self.containers = Containers(self.transport)

    @classmethod
    def from_config(cls, cfg: DockwireConfig) -> Docker:
        return cls(
            endpoint_from_config(cfg),
            api_version=cfg.api_version,
            user_agent=cfg.user_agent,
        )

    @classmethod
    def from_env(cls, config_path: Path | None = None) -> Docker:
        """Build a client from ``~/.dockwire/dockwire.yaml`` and ``DOCKER_*`` variables."""
        cfg = load_config(config_path)
        logger.debug("using endpoint %s", cfg.host or "<auto-detected socket>")
        return cls.from_config(cfg)

    def __repr__(self) -> str:
        return f"Docker({str(self.endpoint)!r})"

    async def ping(self) -> str:
        """Ping the daemon.

        Returns:
            ``"OK"`` on success.

        """
        body = await self.transport.send_raw("GET", "/_ping")
        text = body.decode("ascii", errors="replace").strip()
        if text != "OK":
            msg = f"unexpected ping response: {text!r}"
            raise SocketCommunicationError(msg)
        return text

    async def version(self) -> dict[str, Any]:
        """Return the daemon's version information."""
        return await self.transport.send_json("GET", "/version")  # type: ignore[no-any-return]

    async def info(self) -> dict[str, Any]:
        """Return system-wide daemon information."""
        return await self.transport.send_json("GET", "/info")  # type: ignore[no-any-return]

    async def close(self) -> None:
        pass

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()
