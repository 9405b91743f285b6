# SPDX-License-Identifier: BSD-2-Clause
# Copyright (c) deftio llc

from __future__ import annotations

from importlib.metadata import version

from dockwire._config import DockwireConfig, configure_logging, load_config
from dockwire._endpoint import (
    TcpEndpoint,
    TlsConfig,
    UnixEndpoint,
    detect_socket,
    endpoint_from_config,
    parse_host,
)
from dockwire._framer import JsonFramer, iter_json
from dockwire._stream import (
    STREAM_STDERR,
    STREAM_STDIN,
    STREAM_STDOUT,
    DemuxResult,
    MuxFrame,
    MuxFramer,
    demux_frames,
    encode_frame,
)
from dockwire._tar import IgnoreRules, TarEntry, build_context, iter_tar, tar_bytes
from dockwire._transport import ResponseStream, StreamingResponse, Transport
from dockwire.auth import IdentityToken, RegistryAuth
from dockwire.client import Docker
from dockwire.errors import (
    ApiError,
    Conflict,
    DecodeError,
    DockwireError,
    LocalIOError,
    NotFound,
    ProgressError,
    ProtocolError,
    SocketCommunicationError,
    SocketConnectionError,
    SocketError,
    StreamError,
    TlsError,
    TruncatedStreamError,
)
from dockwire.options import (
    BuildOptions,
    ImageListOptions,
    LogsOptions,
    PruneOptions,
    PullOptions,
    PushOptions,
    RemoveImageOptions,
    TagOptions,
)
from dockwire.progress import (
    BuildDigest,
    BuildError,
    BuildStream,
    ProgressDetail,
    ProgressEvent,
    PullStatus,
    PushDigest,
    layer_totals,
    wait_for_progress,
)
from dockwire.types import ExecResult

__version__ = version("dockwire")


def get_version() -> str:
    """Return the dockwire package version string."""
    return __version__


__all__ = [
    "STREAM_STDERR",
    "STREAM_STDIN",
    "STREAM_STDOUT",
    "ApiError",
    "BuildDigest",
    "BuildError",
    "BuildOptions",
    "BuildStream",
    "Conflict",
    "DecodeError",
    "DemuxResult",
    "Docker",
    "DockwireConfig",
    "DockwireError",
    "ExecResult",
    "IdentityToken",
    "IgnoreRules",
    "ImageListOptions",
    "JsonFramer",
    "LocalIOError",
    "LogsOptions",
    "MuxFrame",
    "MuxFramer",
    "NotFound",
    "ProgressDetail",
    "ProgressError",
    "ProgressEvent",
    "ProtocolError",
    "PruneOptions",
    "PullOptions",
    "PullStatus",
    "PushDigest",
    "PushOptions",
    "RegistryAuth",
    "RemoveImageOptions",
    "ResponseStream",
    "SocketCommunicationError",
    "SocketConnectionError",
    "SocketError",
    "StreamError",
    "StreamingResponse",
    "TagOptions",
    "TarEntry",
    "TcpEndpoint",
    "TlsConfig",
    "TlsError",
    "Transport",
    "TruncatedStreamError",
    "UnixEndpoint",
    "__version__",
    "build_context",
    "configure_logging",
    "demux_frames",
    "detect_socket",
    "encode_frame",
    "endpoint_from_config",
    "get_version",
    "iter_json",
    "iter_tar",
    "load_config",
    "parse_host",
    "tar_bytes",
    "wait_for_progress",
]
