# SPDX-License-Identifier: BSD-2-Clause
# Copyright (c) deftio llc

"""Open connections to a daemon endpoint.

One connection per request: Unix sockets are free, and isolation prevents a
long-running stream from blocking other operations.  No retry happens here.
"""

from __future__ import annotations

import asyncio
import logging
import os
import ssl
import stat

from dockwire._endpoint import TcpEndpoint, TlsConfig, UnixEndpoint
from dockwire.errors import SocketConnectionError, TlsError

logger = logging.getLogger(__name__)


class Connection:
    """A live reader/writer pair held by exactly one in-flight request."""

    def __init__(
        self,
        reader: asyncio.StreamReader,
        writer: asyncio.StreamWriter,
        label: str = "",
    ) -> None:
        self.reader = reader
        self.writer = writer
        self.label = label
        self._claimed = False
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def claim(self) -> asyncio.StreamReader:
        """Hand out the reader to the single response body that may consume it."""
        if self._claimed:
            msg = f"connection to {self.label} is already being read"
            raise RuntimeError(msg)
        self._claimed = True
        return self.reader

    async def close(self) -> None:
        """Close the socket.  Safe to call more than once."""
        if self._closed:
            return
        self._closed = True
        self.writer.close()
        try:
            await self.writer.wait_closed()
        except (OSError, ssl.SSLError) as exc:
            # Peer already gone; the socket is closed either way.
            logger.debug("error while closing %s: %s", self.label, exc)


def build_ssl_context(tls: TlsConfig) -> ssl.SSLContext:
    """Create a client TLS context from certificate, key and CA bundle."""
    context = ssl.create_default_context(ssl.Purpose.SERVER_AUTH, cafile=tls.ca)
    if not tls.verify:
        context.check_hostname = False
        context.verify_mode = ssl.CERT_NONE
    context.load_cert_chain(certfile=tls.cert, keyfile=tls.key)
    return context


async def open_connection(
    endpoint: UnixEndpoint | TcpEndpoint,
    ssl_context: ssl.SSLContext | None = None,
) -> Connection:
    """Connect to ``endpoint`` and return a ready-to-write connection.

    Raises:
        SocketConnectionError: The socket path is missing or the peer refused.
        TlsError: Bad key material, handshake or certificate verification failure.

    """
    if isinstance(endpoint, UnixEndpoint):
        return await _open_unix(endpoint)
    return await _open_tcp(endpoint, ssl_context)


async def _open_unix(endpoint: UnixEndpoint) -> Connection:
    label = str(endpoint)
    try:
        mode = os.stat(endpoint.path).st_mode
    except OSError as exc:
        raise SocketConnectionError(label, exc.strerror or str(exc)) from exc
    if not stat.S_ISSOCK(mode):
        raise SocketConnectionError(label, "not a socket")

    try:
        reader, writer = await asyncio.open_unix_connection(endpoint.path)
    except OSError as exc:
        raise SocketConnectionError(label, str(exc)) from exc
    logger.debug("connected to %s", label)
    return Connection(reader, writer, label)


async def _open_tcp(endpoint: TcpEndpoint, ssl_context: ssl.SSLContext | None) -> Connection:
    label = str(endpoint)
    if endpoint.tls is not None and ssl_context is None:
        try:
            ssl_context = build_ssl_context(endpoint.tls)
        except (ssl.SSLError, OSError) as exc:
            raise TlsError(label, str(exc)) from exc

    try:
        reader, writer = await asyncio.open_connection(
            endpoint.host,
            endpoint.port,
            ssl=ssl_context if endpoint.tls is not None else None,
        )
    # SSLError subclasses OSError, so it must be caught first.
    except ssl.SSLError as exc:
        raise TlsError(label, str(exc)) from exc
    except OSError as exc:
        raise SocketConnectionError(label, str(exc)) from exc
    logger.debug("connected to %s", label)
    return Connection(reader, writer, label)
