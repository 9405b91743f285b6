# SPDX-License-Identifier: BSD-2-Clause
# Copyright (c) deftio llc

"""Image endpoints: pull, build, push, prune, export, load and inspection."""

from __future__ import annotations

import logging
import os
import urllib.parse
from typing import TYPE_CHECKING, Any, Union

from dockwire._tar import build_context, iter_file
from dockwire.auth import AUTH_HEADER, auth_headers
from dockwire.options import (
    BuildOptions,
    ImageListOptions,
    PruneOptions,
    PullOptions,
    PushOptions,
    RemoveImageOptions,
    TagOptions,
)
from dockwire.progress import decode_event, wait_for_progress

if TYPE_CHECKING:
    from collections.abc import AsyncIterable, Iterable

    from dockwire._transport import ResponseStream, Transport
    from dockwire.progress import ProgressEvent

logger = logging.getLogger(__name__)

_TAR = "application/x-tar"
# The daemon rejects a push without the header, even for anonymous registries.
_EMPTY_AUTH = "e30="  # base64 of "{}"

TarballSource = Union[bytes, str, "os.PathLike[str]", "Iterable[bytes]", "AsyncIterable[bytes]"]


def _quote_name(name: str) -> str:
    return urllib.parse.quote(name, safe="/:@")


class Image:
    """Operations on one named image."""

    def __init__(self, transport: Transport, name: str) -> None:
        self._transport = transport
        self.name = name

    def __repr__(self) -> str:
        return f"Image({self.name!r})"

    async def inspect(self) -> dict[str, Any]:
        """Return the image's details (``GET /images/{name}/json``)."""
        return await self._transport.send_json(  # type: ignore[no-any-return]
            "GET", f"/images/{_quote_name(self.name)}/json"
        )

    async def history(self) -> list[dict[str, Any]]:
        """Return the image's layer history."""
        return await self._transport.send_json(  # type: ignore[no-any-return]
            "GET", f"/images/{_quote_name(self.name)}/history"
        )

    async def delete(self, opts: RemoveImageOptions | None = None) -> list[dict[str, Any]]:
        """Remove the image, returning the untagged/deleted records."""
        query = opts.to_query() if opts is not None else None
        result = await self._transport.send_json(
            "DELETE", f"/images/{_quote_name(self.name)}", query=query
        )
        return result or []

    async def tag(self, opts: TagOptions) -> None:
        """Add a repository/tag to the image."""
        await self._transport.send_raw(
            "POST", f"/images/{_quote_name(self.name)}/tag", query=opts.to_query()
        )

    def export(self) -> ResponseStream[bytes]:
        """Stream the image as a tarball (``GET /images/{name}/get``)."""
        return self._transport.stream_raw("GET", f"/images/{_quote_name(self.name)}/get")


class Images:
    """Image collection endpoints."""

    def __init__(self, transport: Transport) -> None:
        self._transport = transport

    def get(self, name: str) -> Image:
        return Image(self._transport, name)

    def build(self, opts: BuildOptions) -> ResponseStream[ProgressEvent]:
        """Build an image from a local directory.

        The context is tarred (gzip-compressed unless ``skip_gzip``) and
        uploaded while it is produced.  An unreadable file in the context
        aborts the request with ``LocalIOError``.
        """
        context = build_context(opts.path, gzip=not opts.skip_gzip, dockerfile=opts.dockerfile)
        logger.debug("building %s from %s", opts.tag or "<untagged>", opts.path)
        return self.build_from_stream(opts, context)

    def build_from_stream(
        self,
        opts: BuildOptions,
        context: bytes | Iterable[bytes] | AsyncIterable[bytes],
    ) -> ResponseStream[ProgressEvent]:
        """Build an image from an already-archived context."""
        return self._transport.send_stream_json(
            "POST",
            "/build",
            decode=decode_event,
            query=opts.to_query(),
            body=context,
            content_type=_TAR,
        )

    def pull(self, opts: PullOptions) -> ResponseStream[ProgressEvent]:
        """Pull (or import with ``src``) an image, streaming progress events."""
        return self._transport.send_stream_json(
            "POST",
            "/images/create",
            decode=decode_event,
            query=opts.to_query(),
            headers=auth_headers(opts.auth),
        )

    async def push(self, name: str, opts: PushOptions | None = None) -> list[ProgressEvent]:
        """Push an image and wait for completion.

        Raises:
            ProgressError: The registry push failed mid-stream.

        """
        opts = opts or PushOptions()
        headers = auth_headers(opts.auth) or {AUTH_HEADER: _EMPTY_AUTH}
        stream = self._transport.send_stream_json(
            "POST",
            f"/images/{_quote_name(name)}/push",
            decode=decode_event,
            query=opts.to_query(),
            headers=headers,
        )
        return await wait_for_progress(stream)

    async def list(self, opts: ImageListOptions | None = None) -> list[dict[str, Any]]:
        """List images on the daemon."""
        query = opts.to_query() if opts is not None else None
        return await self._transport.send_json(  # type: ignore[no-any-return]
            "GET", "/images/json", query=query
        )

    async def prune(self, opts: PruneOptions | None = None) -> dict[str, Any]:
        """Delete unused images; returns the deleted entries and reclaimed space."""
        query = opts.to_query() if opts is not None else None
        return await self._transport.send_json(  # type: ignore[no-any-return]
            "POST", "/images/prune", query=query
        )

    async def search(self, term: str) -> list[dict[str, Any]]:
        """Search the registry for images matching ``term``."""
        return await self._transport.send_json(  # type: ignore[no-any-return]
            "GET", "/images/search", query={"term": term}
        )

    def export(self, names: Iterable[str]) -> ResponseStream[bytes]:
        """Stream several images as one tarball."""
        return self._transport.stream_raw("GET", "/images/get", query={"names": list(names)})

    def load(self, tarball: TarballSource, *, quiet: bool = False) -> ResponseStream[ProgressEvent]:
        """Load images from a tarball (bytes, a file path, or a chunk iterable)."""
        body: Any = tarball
        if isinstance(tarball, (str, os.PathLike)):
            body = iter_file(tarball)
        return self._transport.send_stream_json(
            "POST",
            "/images/load",
            decode=decode_event,
            query={"quiet": quiet} if quiet else None,
            body=body,
            content_type=_TAR,
        )
