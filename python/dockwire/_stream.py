# SPDX-License-Identifier: BSD-2-Clause
# Copyright (c) deftio llc

"""Stream demultiplexing for Docker attach, logs and exec output.

Without a TTY the daemon multiplexes stdin/stdout/stderr over one connection.
Each frame has an 8-byte header:
  - byte 0: stream type (0 = stdin, 1 = stdout, 2 = stderr)
  - bytes 1-3: padding (zero)
  - bytes 4-7: payload length (big-endian uint32)

With a TTY there is no framing at all, so callers only demultiplex when they
know framing is in effect.  HTTP chunk boundaries need not line up with frame
boundaries; frames are assembled from a byte buffer.
"""

from __future__ import annotations

import dataclasses
import struct
from typing import TYPE_CHECKING

from dockwire.errors import ProtocolError, TruncatedStreamError

if TYPE_CHECKING:
    from collections.abc import AsyncIterable, AsyncIterator

STREAM_STDIN = 0
STREAM_STDOUT = 1
STREAM_STDERR = 2
HEADER_SIZE = 8
_HEADER_FORMAT = ">BxxxI"  # 1 byte type, 3 padding, 4 byte length

_STREAM_NAMES = {STREAM_STDIN: "stdin", STREAM_STDOUT: "stdout", STREAM_STDERR: "stderr"}


def parse_stream_header(header: bytes) -> tuple[int, int]:
    """Parse an 8-byte Docker stream frame header.

    Returns:
        Tuple of (stream_type, payload_length).

    Raises:
        ProtocolError: The stream type is not stdin, stdout or stderr.

    """
    stream_type, payload_length = struct.unpack(_HEADER_FORMAT, header)
    if stream_type not in _STREAM_NAMES:
        raise ProtocolError(stream_type)
    return stream_type, payload_length


def encode_frame(stream_type: int, payload: bytes) -> bytes:
    """Build one multiplexed frame."""
    if stream_type not in _STREAM_NAMES:
        raise ProtocolError(stream_type)
    return struct.pack(_HEADER_FORMAT, stream_type, len(payload)) + payload


@dataclasses.dataclass(frozen=True)
class MuxFrame:
    """One demultiplexed payload and the stream it belongs to."""

    stream: int
    payload: bytes

    @property
    def stream_name(self) -> str:
        return _STREAM_NAMES[self.stream]

    def text(self) -> str:
        return self.payload.decode("utf-8", errors="replace")


class MuxFramer:
    """Incremental frame parser; ``feed`` returns every frame completed so far.

    A bad header after complete frames in the same ``feed`` is held back: the
    frames are returned and the ``ProtocolError`` is raised by the next
    ``feed`` or ``close``.
    """

    def __init__(self) -> None:
        self._buf = bytearray()
        self._header: tuple[int, int] | None = None
        self._error: ProtocolError | None = None

    def feed(self, data: bytes) -> list[MuxFrame]:
        if self._error is not None:
            raise self._error
        self._buf += data
        frames: list[MuxFrame] = []
        offset = 0
        while True:
            if self._header is None:
                if len(self._buf) - offset < HEADER_SIZE:
                    break
                try:
                    self._header = parse_stream_header(bytes(self._buf[offset : offset + HEADER_SIZE]))
                except ProtocolError as exc:
                    self._error = exc
                    if not frames:
                        raise
                    break
                offset += HEADER_SIZE
            stream_type, payload_length = self._header
            if len(self._buf) - offset < payload_length:
                break
            frames.append(MuxFrame(stream_type, bytes(self._buf[offset : offset + payload_length])))
            offset += payload_length
            self._header = None
        del self._buf[:offset]
        return frames

    def close(self) -> None:
        """Signal end of input; raise unless it fell on a frame boundary."""
        if self._error is not None:
            raise self._error
        if self._header is not None:
            raise TruncatedStreamError(self._header[1], len(self._buf), "payload")
        if self._buf:
            raise TruncatedStreamError(HEADER_SIZE, len(self._buf), "header")


async def demux_frames(chunks: AsyncIterable[bytes]) -> AsyncIterator[MuxFrame]:
    """Yield frames, zero-length ones included, in the order received."""
    framer = MuxFramer()
    async for chunk in chunks:
        for frame in framer.feed(chunk):
            yield frame
    framer.close()


async def tty_frames(chunks: AsyncIterable[bytes]) -> AsyncIterator[MuxFrame]:
    """Wrap an unframed TTY stream; every chunk is reported as stdout."""
    async for chunk in chunks:
        yield MuxFrame(STREAM_STDOUT, chunk)


@dataclasses.dataclass
class DemuxResult:
    """Result of demultiplexing a Docker exec stream."""

    stdout_bytes: bytes = b""
    stderr_bytes: bytes = b""
    truncated: bool = False

    def stdout_text(self) -> str:
        """Decode stdout bytes to string."""
        return self.stdout_bytes.decode("utf-8", errors="replace")

    def stderr_text(self) -> str:
        """Decode stderr bytes to string."""
        return self.stderr_bytes.decode("utf-8", errors="replace")


async def demux_stream(
    frames: AsyncIterable[MuxFrame],
    max_output: int = 10 * 1024 * 1024,
) -> DemuxResult:
    """Collect a multiplexed stream into separate stdout/stderr buffers.

    Args:
        frames: Demultiplexed frames, e.g. from ``demux_frames``.
        max_output: Maximum total bytes to accumulate before truncating.

    Returns:
        DemuxResult with stdout and stderr bytes.

    """
    stdout_parts: list[bytes] = []
    stderr_parts: list[bytes] = []
    total_bytes = 0
    truncated = False

    async for frame in frames:
        payload = frame.payload
        if not payload or frame.stream == STREAM_STDIN:
            continue

        if total_bytes + len(payload) > max_output:
            remaining = max_output - total_bytes
            truncated = True
            if remaining <= 0:
                break
            payload = payload[:remaining]

        total_bytes += len(payload)

        if frame.stream == STREAM_STDOUT:
            stdout_parts.append(payload)
        else:
            stderr_parts.append(payload)

        if truncated:
            break

    return DemuxResult(
        stdout_bytes=b"".join(stdout_parts),
        stderr_bytes=b"".join(stderr_parts),
        truncated=truncated,
    )
