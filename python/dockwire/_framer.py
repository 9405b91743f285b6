# SPDX-License-Identifier: BSD-2-Clause
# Copyright (c) deftio llc

"""Split a byte stream into concatenated JSON values.

Progress endpoints (pull, build, push, load) emit one JSON object per event,
with no enclosing array.  Values may be newline-separated or simply
concatenated, and one value may span any number of network reads.  The framer
buffers bytes and scans for the end of each top-level value, tracking string
and escape state so that brackets or newlines inside strings are ignored.
Structural characters are ASCII, so scanning raw UTF-8 bytes is safe even when
a multi-byte character is split across reads.
"""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

from dockwire.errors import DecodeError

if TYPE_CHECKING:
    from collections.abc import AsyncIterable, AsyncIterator

_WHITESPACE = frozenset(b" \t\r\n")
_OPEN = frozenset(b"{[")
_CLOSE = frozenset(b"}]")
_QUOTE = ord('"')
_BACKSLASH = ord("\\")
# A bare scalar (number, true, false, null) ends at whitespace or the next value.
_SCALAR_END = _WHITESPACE | _OPEN | _CLOSE | {_QUOTE}


class JsonFramer:
    """Incremental splitter for a stream of concatenated JSON values.

    ``feed`` returns every value completed by the new bytes, in order.
    ``close`` flushes a trailing bare scalar and rejects an unterminated value.
    When a malformed value follows good ones in the same ``feed``, the good
    values are returned and the ``DecodeError`` is raised by the next ``feed``
    or ``close``.  After a ``DecodeError`` the framer is unusable.
    """

    def __init__(self) -> None:
        self._buf = bytearray()
        self._pos = 0
        self._start = -1
        self._depth = 0
        self._in_string = False
        self._escape = False
        self._scalar = False
        self._failed = False
        self._error: DecodeError | None = None

    def feed(self, data: bytes) -> list[Any]:
        if self._failed:
            msg = "framer already failed"
            raise RuntimeError(msg)
        self._raise_pending()
        self._buf += data
        values: list[Any] = []
        while True:
            frame = self._next_frame(eof=False)
            if frame is None:
                break
            try:
                values.append(self._decode(frame))
            except DecodeError as exc:
                if not values:
                    self._failed = True
                    raise
                self._error = exc
                return values
        self._compact()
        return values

    def close(self) -> list[Any]:
        """Signal end of input and return any final value."""
        if self._failed:
            return []
        self._raise_pending()
        values: list[Any] = []
        frame = self._next_frame(eof=True)
        if frame is not None:
            try:
                values.append(self._decode(frame))
            except DecodeError:
                self._failed = True
                raise
        if self._start >= 0:
            self._failed = True
            raise DecodeError("stream ended inside a JSON value", bytes(self._buf[self._start :]))
        return values

    @property
    def pending(self) -> int:
        """Number of buffered bytes not yet emitted as a value."""
        return len(self._buf) - (self._start if self._start >= 0 else self._pos)

    def _next_frame(self, *, eof: bool) -> bytes | None:
        buf = self._buf
        end = len(buf)
        pos = self._pos

        if self._start < 0:
            while pos < end and buf[pos] in _WHITESPACE:
                pos += 1
            if pos == end:
                self._pos = pos
                return None
            self._start = pos
            self._scalar = buf[pos] not in _OPEN and buf[pos] != _QUOTE

        if self._scalar:
            while pos < end and (pos == self._start or buf[pos] not in _SCALAR_END):
                pos += 1
            if pos == end and not eof:
                self._pos = pos
                return None
            return self._take(pos)

        while pos < end:
            byte = buf[pos]
            pos += 1
            if self._in_string:
                if self._escape:
                    self._escape = False
                elif byte == _BACKSLASH:
                    self._escape = True
                elif byte == _QUOTE:
                    self._in_string = False
                    if self._depth == 0:
                        return self._take(pos)
            elif byte == _QUOTE:
                self._in_string = True
            elif byte in _OPEN:
                self._depth += 1
            elif byte in _CLOSE:
                self._depth -= 1
                if self._depth == 0:
                    return self._take(pos)

        self._pos = pos
        return None

    def _take(self, end: int) -> bytes:
        frame = bytes(self._buf[self._start : end])
        self._pos = end
        self._start = -1
        self._depth = 0
        self._in_string = False
        self._escape = False
        self._scalar = False
        return frame

    def _compact(self) -> None:
        cut = self._start if self._start >= 0 else self._pos
        if cut:
            del self._buf[:cut]
            self._pos -= cut
            if self._start >= 0:
                self._start = 0

    def _raise_pending(self) -> None:
        if self._error is not None:
            error, self._error = self._error, None
            self._failed = True
            raise error

    @staticmethod
    def _decode(frame: bytes) -> Any:
        try:
            return json.loads(frame)
        except ValueError as exc:
            raise DecodeError(str(exc), frame) from exc


async def iter_json(chunks: AsyncIterable[bytes]) -> AsyncIterator[Any]:
    """Yield decoded JSON values from an async stream of byte chunks."""
    framer = JsonFramer()
    async for chunk in chunks:
        for value in framer.feed(chunk):
            yield value
    for value in framer.close():
        yield value
