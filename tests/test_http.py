"""Unit tests for HTTP/1.1 framing and connection handling.

These tests don't require a running container engine. They test the parsing
logic directly using in-memory asyncio.StreamReader instances.
"""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest
from dockwire._connector import Connection
from dockwire._http import (
    build_request_head,
    iter_body,
    read_body,
    read_headers,
    read_status_line,
    write_request,
)
from dockwire.errors import SocketCommunicationError


def _reader(data: bytes) -> asyncio.StreamReader:
    reader = asyncio.StreamReader()
    reader.feed_data(data)
    reader.feed_eof()
    return reader


# -- read_status_line --


async def test_read_status_line_200() -> None:
    assert await read_status_line(_reader(b"HTTP/1.1 200 OK\r\n")) == 200


async def test_read_status_line_404() -> None:
    assert await read_status_line(_reader(b"HTTP/1.1 404 Not Found\r\n")) == 404


async def test_read_status_line_empty() -> None:
    with pytest.raises(SocketCommunicationError, match="empty response"):
        await read_status_line(_reader(b""))


async def test_read_status_line_malformed() -> None:
    with pytest.raises(SocketCommunicationError, match="malformed"):
        await read_status_line(_reader(b"GARBAGE\r\n"))


async def test_read_status_line_non_numeric() -> None:
    with pytest.raises(SocketCommunicationError, match="malformed"):
        await read_status_line(_reader(b"HTTP/1.1 abc OK\r\n"))


# -- read_headers --


async def test_read_headers_simple() -> None:
    headers = await read_headers(_reader(b"Content-Type: application/json\r\nContent-Length: 42\r\n\r\n"))
    assert headers["content-type"] == "application/json"
    assert headers["content-length"] == "42"


async def test_read_headers_empty() -> None:
    assert await read_headers(_reader(b"\r\n")) == {}


async def test_read_headers_line_without_colon() -> None:
    headers = await read_headers(_reader(b"Good: yes\r\nbogus line\r\n\r\n"))
    assert headers == {"good": "yes"}


async def test_read_headers_eof() -> None:
    with pytest.raises(SocketCommunicationError):
        await read_headers(_reader(b"Content-Type: text/plain\r\n"))


# -- read_body / iter_body --


async def test_read_body_content_length() -> None:
    assert await read_body(_reader(b"hello world"), {"content-length": "11"}) == b"hello world"


async def test_read_body_content_length_short() -> None:
    with pytest.raises(SocketCommunicationError, match="outstanding"):
        await read_body(_reader(b"short"), {"content-length": "100"})


@pytest.mark.parametrize("value", ["eleven", "-1", ""])
async def test_read_body_bad_content_length(value: str) -> None:
    with pytest.raises(SocketCommunicationError, match="Content-Length"):
        await read_body(_reader(b"hello"), {"content-length": value})


async def test_read_body_chunked() -> None:
    body = await read_body(_reader(b"5\r\nhello\r\n6\r\n world\r\n0\r\n\r\n"), {"transfer-encoding": "chunked"})
    assert body == b"hello world"


async def test_read_body_until_eof() -> None:
    assert await read_body(_reader(b"some data until eof"), {}) == b"some data until eof"


async def test_chunked_with_extension_and_trailer() -> None:
    data = b"3;name=value\r\nabc\r\n0\r\nX-Trailer: 1\r\n\r\n"
    assert await read_body(_reader(data), {"transfer-encoding": "chunked"}) == b"abc"


async def test_chunked_with_empty_line() -> None:
    data = b"\r\n3\r\nabc\r\n0\r\n\r\n"
    assert await read_body(_reader(data), {"transfer-encoding": "chunked"}) == b"abc"


async def test_chunked_malformed_size() -> None:
    with pytest.raises(SocketCommunicationError, match="chunk size"):
        await read_body(_reader(b"zz\r\nabc\r\n"), {"transfer-encoding": "chunked"})


async def test_chunked_eof_inside_chunk() -> None:
    with pytest.raises(SocketCommunicationError):
        await read_body(_reader(b"a\r\nabc"), {"transfer-encoding": "chunked"})


async def test_iter_body_yields_partial_chunks() -> None:
    reader = asyncio.StreamReader()
    reader.feed_data(b"a\r\n01234")
    body = iter_body(reader, {"transfer-encoding": "chunked"})
    # The first half of the chunk is delivered before the rest arrives
    assert await body.__anext__() == b"01234"
    reader.feed_data(b"56789\r\n0\r\n\r\n")
    reader.feed_eof()
    assert [c async for c in body] == [b"56789"]


# -- build_request_head / write_request --


def test_build_request_head() -> None:
    head = build_request_head("GET", "/_ping", {"Host": "localhost"})
    assert head == b"GET /_ping HTTP/1.1\r\nHost: localhost\r\n\r\n"


def _writer() -> tuple[asyncio.StreamWriter, _MockTransport]:
    transport = _MockTransport()
    loop = asyncio.get_running_loop()
    protocol = asyncio.StreamReaderProtocol(asyncio.StreamReader())
    writer = asyncio.StreamWriter(transport, protocol, reader=asyncio.StreamReader(), loop=loop)
    return writer, transport


async def test_write_request_with_body() -> None:
    writer, transport = _writer()
    await write_request(writer, "POST", "/test", {"Host": "localhost"}, b'{"key":"value"}')

    written = transport.data
    assert written.startswith(b"POST /test HTTP/1.1\r\n")
    assert b"Host: localhost\r\n" in written
    assert b"Content-Length: 15\r\n" in written
    assert b"Connection: close\r\n" in written
    assert written.endswith(b'\r\n\r\n{"key":"value"}')


async def test_write_request_without_body() -> None:
    writer, transport = _writer()
    await write_request(writer, "GET", "/_ping", {"Host": "localhost"})

    written = transport.data
    assert b"GET /_ping HTTP/1.1\r\n" in written
    assert b"Content-Length" not in written
    assert b"Transfer-Encoding" not in written


async def test_write_request_chunked_generator() -> None:
    def produce():
        yield b"abc"
        yield b""
        yield b"0123456789abcdef"

    writer, transport = _writer()
    await write_request(writer, "POST", "/build", {"Host": "localhost"}, produce())

    head, _, body = transport.data.partition(b"\r\n\r\n")
    assert b"Transfer-Encoding: chunked" in head
    assert b"Content-Length" not in head
    assert body == b"3\r\nabc\r\n10\r\n0123456789abcdef\r\n0\r\n\r\n"


async def test_write_request_async_iterable() -> None:
    async def produce():
        yield b"xy"

    writer, transport = _writer()
    await write_request(writer, "POST", "/images/load", {}, produce())
    assert transport.data.endswith(b"\r\n\r\n2\r\nxy\r\n0\r\n\r\n")


async def test_write_request_generator_error_propagates() -> None:
    closed = []

    def produce():
        try:
            yield b"ok"
            msg = "disk gone"
            raise OSError(msg)
        finally:
            closed.append(True)

    writer, _ = _writer()
    with pytest.raises(OSError, match="disk gone"):
        await write_request(writer, "POST", "/build", {}, produce())
    assert closed == [True]


# -- Connection --


def _make_mock_writer() -> MagicMock:
    """Create a mock writer with close() and wait_closed()."""
    writer = MagicMock()
    writer.wait_closed = AsyncMock()
    return writer


async def test_connection_claim_once() -> None:
    conn = Connection(asyncio.StreamReader(), _make_mock_writer(), "unix:///x")
    conn.claim()
    with pytest.raises(RuntimeError, match="already being read"):
        conn.claim()


async def test_connection_close_is_idempotent() -> None:
    writer = _make_mock_writer()
    conn = Connection(asyncio.StreamReader(), writer, "unix:///x")
    await conn.close()
    await conn.close()
    assert conn.closed is True
    writer.close.assert_called_once()


async def test_connection_close_tolerates_reset() -> None:
    writer = _make_mock_writer()
    writer.wait_closed.side_effect = ConnectionResetError("reset")
    conn = Connection(asyncio.StreamReader(), writer, "unix:///x")
    await conn.close()
    assert conn.closed is True


# -- Helpers --


class _MockTransport(asyncio.Transport):
    """Minimal transport that captures written bytes."""

    def __init__(self) -> None:
        super().__init__()
        self.data = b""
        self._closing = False

    def write(self, data: bytes) -> None:  # type: ignore[override]
        self.data += data

    def close(self) -> None:
        self._closing = True

    def is_closing(self) -> bool:
        return self._closing

    def get_extra_info(  # type: ignore[override]
        self, _name: str, default: object = None
    ) -> object:
        return default
