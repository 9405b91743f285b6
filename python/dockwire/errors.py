# SPDX-License-Identifier: BSD-2-Clause
# Copyright (c) deftio llc

from __future__ import annotations

import json


class DockwireError(Exception):
    """Base exception for all dockwire errors."""


class SocketError(DockwireError):
    """Error related to the connection with the Docker daemon."""


class SocketConnectionError(SocketError):
    """Cannot connect to the daemon endpoint."""

    def __init__(self, endpoint: str, detail: str = "") -> None:
        self.endpoint = endpoint
        self.detail = detail
        msg = f"Cannot connect to {endpoint}"
        if detail:
            msg = f"{msg}: {detail}"
        super().__init__(msg)


class TlsError(SocketConnectionError):
    """TLS handshake or server certificate verification failed."""

    def __init__(self, endpoint: str, detail: str = "") -> None:
        super().__init__(endpoint, f"TLS failure: {detail}" if detail else "TLS failure")


class SocketCommunicationError(SocketError):
    """Error during communication over an established connection."""

    def __init__(self, detail: str = "") -> None:
        self.detail = detail
        msg = "Socket communication error"
        if detail:
            msg = f"{msg}: {detail}"
        super().__init__(msg)


class ApiError(DockwireError):
    """The daemon answered with a non-2xx status.

    ``body`` is the response payload exactly as received.
    """

    def __init__(self, status: int, body: bytes = b"") -> None:
        self.status = status
        self.body = body
        super().__init__(f"HTTP {status}: {self.message}")

    @property
    def text(self) -> str:
        """The body decoded as UTF-8."""
        return self.body.decode("utf-8", errors="replace")

    @property
    def message(self) -> str:
        """The daemon's ``message`` field, or the raw body text."""
        try:
            data = json.loads(self.body)
        except ValueError:
            return self.text.strip()
        if isinstance(data, dict) and isinstance(data.get("message"), str):
            return data["message"]
        return self.text.strip()


class NotFound(ApiError):
    """Resource does not exist (HTTP 404)."""


class Conflict(ApiError):
    """Request conflicts with the resource state (HTTP 409)."""


class StreamError(DockwireError):
    """Error while decoding a streamed response body."""


class DecodeError(StreamError):
    """A streamed JSON frame is malformed or has an unknown shape."""

    def __init__(self, detail: str, data: bytes = b"") -> None:
        self.detail = detail
        self.data = data
        super().__init__(f"Cannot decode frame: {detail}")


class ProtocolError(StreamError):
    """A multiplexed frame header carries an invalid stream selector."""

    def __init__(self, selector: int) -> None:
        self.selector = selector
        super().__init__(f"Invalid stream selector {selector} in multiplexed frame header")


class TruncatedStreamError(StreamError):
    """The stream ended in the middle of a frame."""

    def __init__(self, expected: int, received: int, what: str = "frame") -> None:
        self.expected = expected
        self.received = received
        super().__init__(f"Stream ended mid-{what}: expected {expected} bytes, got {received}")


class LocalIOError(DockwireError):
    """Local filesystem failure (build context, tarball source or destination)."""

    def __init__(self, path: str, detail: str = "") -> None:
        self.path = path
        msg = f"I/O error on {path}"
        if detail:
            msg = f"{msg}: {detail}"
        super().__init__(msg)


class ProgressError(DockwireError):
    """A progress stream reported an error event."""

    def __init__(self, error: str, detail: str | None = None) -> None:
        self.error = error
        self.detail = detail
        super().__init__(detail or error)
