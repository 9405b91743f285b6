# SPDX-License-Identifier: BSD-2-Clause
# Copyright (c) deftio llc

"""Async HTTP transport to the Docker Engine API.

Every request opens its own connection (``Connection: close``), so independent
requests share no mutable state and can run concurrently from any number of
tasks.  A successful response hands back a ``StreamingResponse`` that owns the
connection; closing it, exhausting it, or failing while reading it closes the
socket, which the daemon treats as the client aborting the operation.
"""

from __future__ import annotations

import json
import logging
import urllib.parse
from typing import TYPE_CHECKING, Any, Callable, Generic, TypeVar

from dockwire._connector import Connection, build_ssl_context, open_connection
from dockwire._endpoint import TcpEndpoint
from dockwire._framer import iter_json
from dockwire._http import iter_body, read_body, read_headers, read_status_line, write_request
from dockwire._stream import demux_frames, tty_frames
from dockwire.errors import (
    ApiError,
    Conflict,
    DecodeError,
    NotFound,
    SocketCommunicationError,
    TlsError,
)

if TYPE_CHECKING:
    import asyncio
    import ssl
    from collections.abc import AsyncIterable, AsyncIterator, Awaitable, Mapping

    from typing_extensions import Self

    from dockwire._endpoint import Endpoint
    from dockwire._http import Body
    from dockwire._stream import MuxFrame

logger = logging.getLogger(__name__)

T = TypeVar("T")


def encode_query(query: Mapping[str, Any] | None) -> str:
    """Encode query parameters the way the daemon expects them.

    ``None`` values are dropped, booleans become ``true``/``false``, dicts are
    JSON-encoded and lists repeat the key.
    """
    if not query:
        return ""
    pairs: list[tuple[str, str]] = []
    for key, value in query.items():
        if value is None:
            continue
        if isinstance(value, bool):
            pairs.append((key, "true" if value else "false"))
        elif isinstance(value, dict):
            pairs.append((key, json.dumps(value, separators=(",", ":"))))
        elif isinstance(value, (list, tuple)):
            pairs.extend((key, str(item)) for item in value)
        else:
            pairs.append((key, str(value)))
    return urllib.parse.urlencode(pairs)


def _raise_for_status(status: int, body: bytes) -> None:
    """Raise the ``ApiError`` matching a non-2xx status."""
    if 200 <= status < 300:  # noqa: PLR2004
        return
    if status == 404:  # noqa: PLR2004
        raise NotFound(status, body)
    if status == 409:  # noqa: PLR2004
        raise Conflict(status, body)
    raise ApiError(status, body)


class StreamingResponse:
    """A 2xx response whose body is read lazily from its connection.

    Iterate with ``async for`` to receive raw body chunks in wire order.  The
    body can be iterated once; a second iteration is a programming error.
    """

    def __init__(self, connection: Connection, status: int, headers: dict[str, str]) -> None:
        self._connection = connection
        self.status = status
        self.headers = headers

    @property
    def closed(self) -> bool:
        return self._connection.closed

    def __aiter__(self) -> AsyncIterator[bytes]:
        reader = self._connection.claim()
        return self._iter_chunks(reader)

    async def _iter_chunks(self, reader: asyncio.StreamReader) -> AsyncIterator[bytes]:
        try:
            async for chunk in iter_body(reader, self.headers):
                yield chunk
        except OSError as exc:
            raise SocketCommunicationError(str(exc)) from exc
        finally:
            await self.aclose()

    async def read(self) -> bytes:
        """Drain the whole body and close the connection."""
        return b"".join([chunk async for chunk in self])

    async def json(self) -> Any:
        """Drain the body and decode it as a single JSON value."""
        raw = await self.read()
        return _loads(raw)

    async def aclose(self) -> None:
        """Close the connection, abandoning any unread body."""
        await self._connection.close()

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()


class ResponseStream(Generic[T]):
    """A lazily-opened, single-use async sequence decoded from one response.

    The request is sent when iteration starts (or on ``async with``).  Errors
    such as ``ApiError`` therefore surface from the first ``__anext__``.
    ``aclose`` closes the underlying connection at any point.
    """

    def __init__(
        self,
        opener: Callable[[], Awaitable[StreamingResponse]],
        transform: Callable[[StreamingResponse], AsyncIterator[T]],
    ) -> None:
        self._opener = opener
        self._transform = transform
        self._response: StreamingResponse | None = None
        self._started = False
        self._closed = False

    async def _open(self) -> StreamingResponse:
        if self._closed:
            msg = "stream is closed"
            raise RuntimeError(msg)
        if self._response is None:
            self._response = await self._opener()
        return self._response

    def __aiter__(self) -> AsyncIterator[T]:
        if self._started:
            msg = "stream can only be iterated once"
            raise RuntimeError(msg)
        self._started = True
        return self._iterate()

    async def _iterate(self) -> AsyncIterator[T]:
        response = await self._open()
        try:
            async for item in self._transform(response):
                yield item
        finally:
            await self.aclose()

    async def collect(self) -> list[T]:
        """Drain the stream into a list."""
        return [item async for item in self]

    async def aclose(self) -> None:
        self._closed = True
        if self._response is not None:
            await self._response.aclose()

    async def __aenter__(self) -> Self:
        await self._open()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()


def _loads(raw: bytes) -> Any:
    if not raw.strip():
        return None
    try:
        return json.loads(raw)
    except ValueError as exc:
        raise DecodeError(str(exc), raw) from exc


async def _decode_each(
    values: AsyncIterable[Any],
    decode: Callable[[Any], T] | None,
) -> AsyncIterator[T]:
    async for value in values:
        yield decode(value) if decode is not None else value


class Transport:
    """Issues requests to one endpoint.

    Holds only immutable configuration, so one instance can be shared by any
    number of concurrent tasks.
    """

    def __init__(
        self,
        endpoint: Endpoint,
        *,
        api_version: str | None = None,
        user_agent: str = "dockwire",
        ssl_context: ssl.SSLContext | None = None,
    ) -> None:
        self.endpoint = endpoint
        self.api_version = api_version
        self.user_agent = user_agent
        self._ssl_context = ssl_context

    def _host_header(self) -> str:
        if isinstance(self.endpoint, TcpEndpoint):
            return f"{self.endpoint.host}:{self.endpoint.port}"
        return "localhost"

    def _target(self, path: str, query: Mapping[str, Any] | None) -> str:
        if self.api_version:
            path = f"/v{self.api_version}{path}"
        encoded = encode_query(query)
        return f"{path}?{encoded}" if encoded else path

    def _get_ssl_context(self) -> ssl.SSLContext | None:
        endpoint = self.endpoint
        if not isinstance(endpoint, TcpEndpoint) or endpoint.tls is None:
            return None
        if self._ssl_context is None:
            try:
                self._ssl_context = build_ssl_context(endpoint.tls)
            except OSError as exc:
                raise TlsError(str(endpoint), str(exc)) from exc
        return self._ssl_context

    async def send(
        self,
        method: str,
        path: str,
        *,
        query: Mapping[str, Any] | None = None,
        body: Body = None,
        headers: Mapping[str, str] | None = None,
        content_type: str | None = None,
    ) -> StreamingResponse:
        """Send a request and return the live response.

        Raises:
            SocketConnectionError: The endpoint cannot be reached.
            ApiError: The daemon answered non-2xx; the body is read in full.
            SocketCommunicationError: The connection failed mid-request.

        """
        target = self._target(path, query)
        connection = await open_connection(self.endpoint, self._get_ssl_context())

        request_headers = {"Host": self._host_header(), "User-Agent": self.user_agent}
        if body is not None:
            request_headers["Content-Type"] = content_type or "application/json"
        if headers:
            request_headers.update(headers)

        try:
            await write_request(connection.writer, method, target, request_headers, body)
            status = await read_status_line(connection.reader)
            response_headers = await read_headers(connection.reader)
        except BaseException as exc:
            await connection.close()
            if isinstance(exc, OSError):
                raise SocketCommunicationError(str(exc)) from exc
            raise

        logger.debug("%s %s -> %d", method, target, status)
        if not 200 <= status < 300:  # noqa: PLR2004
            try:
                error_body = await read_body(connection.reader, response_headers)
            except OSError as exc:
                raise SocketCommunicationError(str(exc)) from exc
            finally:
                await connection.close()
            _raise_for_status(status, error_body)

        return StreamingResponse(connection, status, response_headers)

    async def send_raw(self, method: str, path: str, **kwargs: Any) -> bytes:
        """Send a request and return the whole response body."""
        response = await self.send(method, path, **kwargs)
        return await response.read()

    async def send_json(self, method: str, path: str, *, json_body: Any = None, **kwargs: Any) -> Any:
        """Send a request and decode the whole response body as one JSON value.

        ``json_body`` is serialised as the request body.  An empty response
        body decodes to ``None``.
        """
        if json_body is not None:
            kwargs["body"] = json.dumps(json_body).encode("utf-8")
            kwargs.setdefault("content_type", "application/json")
        raw = await self.send_raw(method, path, **kwargs)
        return _loads(raw)

    def send_stream_json(
        self,
        method: str,
        path: str,
        *,
        decode: Callable[[Any], T] | None = None,
        **kwargs: Any,
    ) -> ResponseStream[T]:
        """Stream concatenated JSON values, each passed through ``decode``."""

        def transform(response: StreamingResponse) -> AsyncIterator[T]:
            return _decode_each(iter_json(response), decode)

        return ResponseStream(self._opener(method, path, kwargs), transform)

    def stream_raw(self, method: str, path: str, **kwargs: Any) -> ResponseStream[bytes]:
        """Stream the response body untouched (tar exports)."""
        return ResponseStream(self._opener(method, path, kwargs), _identity)

    def stream_mux(
        self,
        method: str,
        path: str,
        *,
        tty: bool = False,
        **kwargs: Any,
    ) -> ResponseStream[MuxFrame]:
        """Stream attach/logs/exec output as frames.

        When ``tty`` is set the body is unframed and each chunk is reported
        as stdout.
        """
        transform = tty_frames if tty else demux_frames
        return ResponseStream(self._opener(method, path, kwargs), transform)

    def _opener(
        self,
        method: str,
        path: str,
        kwargs: dict[str, Any],
    ) -> Callable[[], Awaitable[StreamingResponse]]:
        async def opener() -> StreamingResponse:
            return await self.send(method, path, **kwargs)

        return opener


def _identity(response: StreamingResponse) -> AsyncIterator[bytes]:
    return response.__aiter__()
