# SPDX-License-Identifier: BSD-2-Clause
# Copyright (c) deftio llc

"""Minimal HTTP/1.1 framing over an asyncio stream pair.

Requests always carry ``Connection: close``; a response body is framed by
``Content-Length``, chunked transfer encoding, or the peer closing the socket.
"""

from __future__ import annotations

import asyncio
import contextlib
from collections.abc import AsyncIterable, Iterable
from typing import TYPE_CHECKING, Union

from dockwire.errors import SocketCommunicationError

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Iterator, Mapping

READ_SIZE = 65536

Body = Union[bytes, Iterable[bytes], AsyncIterable[bytes], None]


def build_request_head(method: str, target: str, headers: Mapping[str, str]) -> bytes:
    """Serialise the request line and headers, including the blank line."""
    lines = [f"{method} {target} HTTP/1.1"]
    lines.extend(f"{name}: {value}" for name, value in headers.items())
    lines.append("")
    lines.append("")
    return "\r\n".join(lines).encode("latin-1")


async def write_request(
    writer: asyncio.StreamWriter,
    method: str,
    target: str,
    headers: Mapping[str, str],
    body: Body = None,
) -> None:
    """Write an HTTP/1.1 request; iterable bodies go out chunked as they are produced."""
    out = dict(headers)
    if body is None:
        pass
    elif isinstance(body, (bytes, bytearray, memoryview)):
        out["Content-Length"] = str(len(body))
    else:
        out["Transfer-Encoding"] = "chunked"
    out["Connection"] = "close"

    writer.write(build_request_head(method, target, out))
    if body is None:
        await writer.drain()
        return
    if isinstance(body, (bytes, bytearray, memoryview)):
        writer.write(body)
        await writer.drain()
        return

    async for chunk in _iter_body_source(body):
        if not chunk:
            continue
        writer.write(f"{len(chunk):x}\r\n".encode("ascii"))
        writer.write(chunk)
        writer.write(b"\r\n")
        await writer.drain()
    writer.write(b"0\r\n\r\n")
    await writer.drain()


async def _iter_body_source(body: Iterable[bytes] | AsyncIterable[bytes]) -> AsyncIterator[bytes]:
    """Yield outbound chunks; sync iterables are advanced on a worker thread."""
    if isinstance(body, AsyncIterable):
        async for chunk in body:
            yield chunk
        return

    iterator: Iterator[bytes] = iter(body)
    try:
        while True:
            chunk = await asyncio.to_thread(next, iterator, None)
            if chunk is None:
                return
            yield chunk
    finally:
        close = getattr(iterator, "close", None)
        if close is not None:
            # A cancelled to_thread call may still be running the generator;
            # it is then closed when collected.
            with contextlib.suppress(ValueError):
                close()


async def read_status_line(reader: asyncio.StreamReader) -> int:
    """Read the HTTP status line and return the status code."""
    line = await reader.readline()
    if not line:
        msg = "empty response"
        raise SocketCommunicationError(msg)
    parts = line.decode("ascii", errors="replace").split(None, 2)
    if len(parts) < 2 or not parts[0].startswith("HTTP/"):  # noqa: PLR2004
        msg = f"malformed status line: {line!r}"
        raise SocketCommunicationError(msg)
    try:
        return int(parts[1])
    except ValueError as exc:
        msg = f"malformed status line: {line!r}"
        raise SocketCommunicationError(msg) from exc


async def read_headers(reader: asyncio.StreamReader) -> dict[str, str]:
    """Read HTTP headers until the blank line.  Keys are lower-cased."""
    headers: dict[str, str] = {}
    while True:
        line = await reader.readline()
        if not line:
            msg = "connection closed while reading headers"
            raise SocketCommunicationError(msg)
        stripped = line.strip()
        if not stripped:
            break
        decoded = stripped.decode("latin-1")
        if ":" in decoded:
            key, value = decoded.split(":", 1)
            headers[key.strip().lower()] = value.strip()
    return headers


async def iter_body(
    reader: asyncio.StreamReader,
    headers: Mapping[str, str],
) -> AsyncIterator[bytes]:
    """Yield the response body in wire order as chunks arrive."""
    if headers.get("transfer-encoding", "").lower() == "chunked":
        async for chunk in _iter_chunked(reader):
            yield chunk
        return

    content_length = headers.get("content-length")
    if content_length is not None:
        try:
            remaining = int(content_length)
        except ValueError as exc:
            msg = f"malformed Content-Length: {content_length!r}"
            raise SocketCommunicationError(msg) from exc
        if remaining < 0:
            msg = f"malformed Content-Length: {content_length!r}"
            raise SocketCommunicationError(msg)
        while remaining > 0:
            chunk = await reader.read(min(remaining, READ_SIZE))
            if not chunk:
                msg = f"connection closed with {remaining} body bytes outstanding"
                raise SocketCommunicationError(msg)
            remaining -= len(chunk)
            yield chunk
        return

    # No Content-Length, no chunked: read until EOF
    while True:
        chunk = await reader.read(READ_SIZE)
        if not chunk:
            return
        yield chunk


async def _iter_chunked(reader: asyncio.StreamReader) -> AsyncIterator[bytes]:
    """Decode a chunked transfer-encoded body without waiting for whole chunks."""
    while True:
        size_line = await reader.readline()
        if not size_line:
            msg = "connection closed inside chunked body"
            raise SocketCommunicationError(msg)
        size_str = size_line.split(b";", 1)[0].strip().decode("ascii", errors="replace")
        if not size_str:
            continue
        try:
            chunk_size = int(size_str, 16)
        except ValueError as exc:
            msg = f"malformed chunk size: {size_line!r}"
            raise SocketCommunicationError(msg) from exc
        if chunk_size == 0:
            # Trailers, then the final blank line
            while (await reader.readline()).strip():
                pass
            return

        remaining = chunk_size
        while remaining > 0:
            data = await reader.read(min(remaining, READ_SIZE))
            if not data:
                msg = "connection closed inside chunked body"
                raise SocketCommunicationError(msg)
            remaining -= len(data)
            yield data
        await reader.readline()  # trailing \r\n after chunk


async def read_body(reader: asyncio.StreamReader, headers: Mapping[str, str]) -> bytes:
    """Read the whole response body."""
    return b"".join([chunk async for chunk in iter_body(reader, headers)])
