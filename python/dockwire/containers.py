# SPDX-License-Identifier: BSD-2-Clause
# Copyright (c) deftio llc

"""Container endpoints that carry multiplexed output or tar archives.

``logs``, ``attach`` and ``exec`` return frame streams.  Unless the container
or exec session was created with a TTY, the body uses the 8-byte frame
header protocol; with a TTY it is raw bytes, reported as stdout frames.
"""

from __future__ import annotations

import json
import logging
import time
from typing import TYPE_CHECKING, Any

from dockwire._stream import demux_frames, demux_stream, tty_frames
from dockwire._transport import ResponseStream
from dockwire.options import LogsOptions
from dockwire.types import ExecResult

if TYPE_CHECKING:
    from collections.abc import AsyncIterable, Iterable, Mapping

    from dockwire._stream import MuxFrame
    from dockwire._transport import StreamingResponse, Transport

logger = logging.getLogger(__name__)


class Containers:
    """Streaming container operations."""

    def __init__(self, transport: Transport) -> None:
        self._transport = transport

    async def inspect(self, container_id: str) -> dict[str, Any]:
        """Inspect a container, returning its full JSON state."""
        return await self._transport.send_json(  # type: ignore[no-any-return]
            "GET", f"/containers/{container_id}/json"
        )

    async def is_tty(self, container_id: str) -> bool:
        """Whether the container was created with a TTY (and so sends unframed output)."""
        info = await self.inspect(container_id)
        return bool(info.get("Config", {}).get("Tty", False))

    def logs(
        self,
        container_id: str,
        opts: LogsOptions | None = None,
        *,
        tty: bool = False,
    ) -> ResponseStream[MuxFrame]:
        """Stream a container's logs (``GET /containers/{id}/logs``)."""
        opts = opts or LogsOptions()
        return self._transport.stream_mux(
            "GET",
            f"/containers/{container_id}/logs",
            tty=tty,
            query=opts.to_query(),
        )

    def attach(
        self,
        container_id: str,
        *,
        tty: bool = False,
        logs: bool = False,
    ) -> ResponseStream[MuxFrame]:
        """Attach to a container's stdout/stderr until it exits."""
        return self._transport.stream_mux(
            "POST",
            f"/containers/{container_id}/attach",
            tty=tty,
            query={"stdout": True, "stderr": True, "logs": logs, "stream": True},
        )

    async def create_exec(
        self,
        container_id: str,
        command: list[str],
        *,
        tty: bool = False,
        env: Mapping[str, str] | None = None,
        workdir: str | None = None,
    ) -> str:
        """Create an exec instance and return its ID."""
        payload: dict[str, Any] = {
            "AttachStdout": True,
            "AttachStderr": True,
            "Tty": tty,
            "Cmd": command,
        }
        if env:
            payload["Env"] = [f"{k}={v}" for k, v in env.items()]
        if workdir:
            payload["WorkingDir"] = workdir
        data = await self._transport.send_json(
            "POST", f"/containers/{container_id}/exec", json_body=payload
        )
        return str(data["Id"])

    async def _start_exec(self, exec_id: str, *, tty: bool) -> StreamingResponse:
        body = json.dumps({"Detach": False, "Tty": tty}).encode("utf-8")
        return await self._transport.send(
            "POST", f"/exec/{exec_id}/start", body=body, content_type="application/json"
        )

    def exec(self, container_id: str, command: list[str], *, tty: bool = False) -> ResponseStream[MuxFrame]:
        """Run a command in a running container, streaming its output frames.

        The exec instance is created when iteration starts.
        """

        async def opener() -> StreamingResponse:
            exec_id = await self.create_exec(container_id, command, tty=tty)
            logger.debug("started exec %s in %s: %s", exec_id, container_id, command)
            return await self._start_exec(exec_id, tty=tty)

        return ResponseStream(opener, tty_frames if tty else demux_frames)

    async def exec_exit_code(self, exec_id: str) -> int | None:
        """Return the exec's exit code, or ``None`` while it is still running."""
        data = await self._transport.send_json("GET", f"/exec/{exec_id}/json")
        code = data.get("ExitCode")
        return None if code is None else int(code)

    async def exec_output(
        self,
        container_id: str,
        command: list[str],
        *,
        tty: bool = False,
        max_output: int = 10 * 1024 * 1024,
    ) -> ExecResult:
        """Run a command to completion and collect its output.

        This performs three HTTP calls:
        1. Create exec instance (``POST /containers/{id}/exec``)
        2. Start exec and read the frame stream (``POST /exec/{id}/start``)
        3. Inspect exec to get exit code (``GET /exec/{id}/json``)
        """
        start_time = time.monotonic()
        exec_id = await self.create_exec(container_id, command, tty=tty)

        async def opener() -> StreamingResponse:
            return await self._start_exec(exec_id, tty=tty)

        async with ResponseStream(opener, tty_frames if tty else demux_frames) as frames:
            result = await demux_stream(frames, max_output)

        exit_code = await self.exec_exit_code(exec_id)
        duration_ms = (time.monotonic() - start_time) * 1000
        return ExecResult(
            exit_code=-1 if exit_code is None else exit_code,
            stdout=result.stdout_text(),
            stderr=result.stderr_text(),
            duration_ms=duration_ms,
            truncated=result.truncated,
        )

    def export(self, container_id: str) -> ResponseStream[bytes]:
        """Stream the container filesystem as a tarball."""
        return self._transport.stream_raw("GET", f"/containers/{container_id}/export")

    def copy_from(self, container_id: str, path: str) -> ResponseStream[bytes]:
        """Stream a path inside the container as a tarball."""
        return self._transport.stream_raw(
            "GET", f"/containers/{container_id}/archive", query={"path": path}
        )

    async def copy_to(
        self,
        container_id: str,
        path: str,
        tarball: bytes | Iterable[bytes] | AsyncIterable[bytes],
    ) -> None:
        """Extract a tarball into a directory inside the container."""
        await self._transport.send_raw(
            "PUT",
            f"/containers/{container_id}/archive",
            query={"path": path},
            body=tarball,
            content_type="application/x-tar",
        )
