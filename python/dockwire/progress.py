# SPDX-License-Identifier: BSD-2-Clause
# Copyright (c) deftio llc

"""Progress events streamed by pull, build, push and load.

Each JSON object on the stream has one of five shapes.  Shapes are checked in
a fixed priority order and a value matching none of them is a ``DecodeError``:

1. ``{"error": ..., "errorDetail": {"message": ...}}``  -> ``BuildError``
2. ``{"stream": ...}``                                 -> ``BuildStream``
3. ``{"aux": {"ID": ...}}``                            -> ``BuildDigest``
4. ``{"status": ..., "id": ..., "progress": ..., "progressDetail": {...}}``
                                                       -> ``PullStatus``
5. ``{"aux": {...}}`` without ``ID``, e.g. ``{"Tag", "Digest", "Size"}``
                                                       -> ``PushDigest``
"""

from __future__ import annotations

import dataclasses
import json
from typing import TYPE_CHECKING, Any, Union

from dockwire.errors import DecodeError, ProgressError

if TYPE_CHECKING:
    from collections.abc import AsyncIterable, Iterable


@dataclasses.dataclass(frozen=True)
class ProgressDetail:
    """Byte counters attached to a pull/push status event."""

    current: int | None = None
    total: int | None = None


@dataclasses.dataclass(frozen=True)
class BuildError:
    """The daemon reported a failure."""

    error: str
    detail: str | None = None


@dataclasses.dataclass(frozen=True)
class BuildStream:
    """A line of build output."""

    stream: str


@dataclasses.dataclass(frozen=True)
class BuildDigest:
    """Auxiliary payload carrying the resulting image ID."""

    id: str


@dataclasses.dataclass(frozen=True)
class PushDigest:
    """Auxiliary payload closing a push: the pushed tag and its manifest digest."""

    tag: str | None = None
    digest: str | None = None
    size: int | None = None


@dataclasses.dataclass(frozen=True)
class PullStatus:
    """Status of one layer (or of the whole image) during pull or push."""

    status: str
    id: str | None = None
    progress: str | None = None
    progress_detail: ProgressDetail | None = None

    def layer_bytes(self) -> tuple[str, int] | None:
        """Return ``(layer_id, total_bytes)`` when the event carries both."""
        if self.id is None or self.progress_detail is None:
            return None
        if self.progress_detail.total is None:
            return None
        return self.id, self.progress_detail.total


ProgressEvent = Union[BuildError, BuildStream, BuildDigest, PushDigest, PullStatus]


def _opt_str(data: dict[str, Any], key: str) -> str | None:
    value = data.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        msg = f"{key!r} is not a string"
        raise DecodeError(msg, json.dumps(data).encode())
    return value


def _opt_int(detail: dict[str, Any], key: str) -> int | None:
    value = detail.get(key)
    if isinstance(value, bool) or not isinstance(value, (int, type(None))):
        msg = f"progressDetail.{key} is not an integer"
        raise DecodeError(msg, json.dumps(detail).encode())
    return value


def decode_event(value: Any) -> ProgressEvent:
    """Decode one JSON value into a progress event.

    Raises:
        DecodeError: The value is not an object or matches no known shape.

    """
    if not isinstance(value, dict):
        raise DecodeError("progress event is not an object", json.dumps(value).encode())

    if "error" in value:
        detail = value.get("errorDetail")
        message = detail.get("message") if isinstance(detail, dict) else None
        return BuildError(error=str(value["error"]), detail=message if isinstance(message, str) else None)

    if "stream" in value:
        stream = _opt_str(value, "stream")
        return BuildStream(stream=stream or "")

    aux = value.get("aux")
    if isinstance(aux, dict) and isinstance(aux.get("ID"), str):
        return BuildDigest(id=aux["ID"])

    if "status" in value:
        raw_detail = value.get("progressDetail")
        detail_obj: ProgressDetail | None = None
        if isinstance(raw_detail, dict) and raw_detail:
            detail_obj = ProgressDetail(
                current=_opt_int(raw_detail, "current"),
                total=_opt_int(raw_detail, "total"),
            )
        return PullStatus(
            status=_opt_str(value, "status") or "",
            id=_opt_str(value, "id"),
            progress=_opt_str(value, "progress"),
            progress_detail=detail_obj,
        )

    if isinstance(aux, dict):
        size = aux.get("Size")
        return PushDigest(
            tag=_opt_str(aux, "Tag"),
            digest=_opt_str(aux, "Digest"),
            size=size if isinstance(size, int) and not isinstance(size, bool) else None,
        )

    raise DecodeError("unrecognised progress event", json.dumps(value).encode())


def total_image_bytes(event: ProgressEvent) -> int | None:
    """Return the total byte count an event reports, if any."""
    if isinstance(event, PullStatus) and event.progress_detail is not None:
        return event.progress_detail.total
    return None


def layer_totals(events: Iterable[ProgressEvent]) -> dict[str, int]:
    """Map each layer ID to its reported size, in first-seen order.

    A layer appears once, at the first event carrying a total byte count for
    it; later events for the same layer update the size to the latest total.
    """
    totals: dict[str, int] = {}
    for event in events:
        if isinstance(event, PullStatus):
            layer = event.layer_bytes()
            if layer is not None:
                totals[layer[0]] = layer[1]
    return totals


async def wait_for_progress(events: AsyncIterable[ProgressEvent]) -> list[ProgressEvent]:
    """Drain a progress stream, raising on the first error event.

    Raises:
        ProgressError: The daemon reported an error mid-stream.

    """
    seen: list[ProgressEvent] = []
    try:
        async for event in events:
            if isinstance(event, BuildError):
                raise ProgressError(event.error, event.detail)
            seen.append(event)
    finally:
        aclose = getattr(events, "aclose", None)
        if aclose is not None:
            await aclose()
    return seen
