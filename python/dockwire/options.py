# SPDX-License-Identifier: BSD-2-Clause
# Copyright (c) deftio llc

"""Immutable request options, each mapped onto query parameters.

Options are built in one step from keyword arguments; ``to_query`` returns
only the parameters that differ from the daemon's defaults.
"""

from __future__ import annotations

import dataclasses
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Mapping

    from dockwire.auth import Auth


def _split_image(image: str) -> tuple[str, str | None]:
    """Split ``repo:tag`` without mistaking a registry port for a tag."""
    if "@" in image:
        return image, None
    name, sep, tag = image.rpartition(":")
    if not sep or "/" in tag:
        return image, None
    return name, tag


@dataclasses.dataclass(frozen=True)
class BuildOptions:
    """Options for ``POST /build``.  ``path`` is the local context directory."""

    path: str
    tag: str | None = None
    dockerfile: str = "Dockerfile"
    remote: str | None = None
    nocache: bool = False
    rm: bool = True
    forcerm: bool = False
    pull: bool = False
    network_mode: str | None = None
    memory: int | None = None
    memswap: int | None = None
    cpu_shares: int | None = None
    cpu_set_cpus: str | None = None
    cpu_period: int | None = None
    cpu_quota: int | None = None
    build_args: Mapping[str, str] | None = None
    labels: Mapping[str, str] | None = None
    platform: str | None = None
    skip_gzip: bool = False

    def to_query(self) -> dict[str, Any]:
        query: dict[str, Any] = {
            "t": self.tag,
            "remote": self.remote,
            "networkmode": self.network_mode,
            "memory": self.memory,
            "memswap": self.memswap,
            "cpushares": self.cpu_shares,
            "cpusetcpus": self.cpu_set_cpus,
            "cpuperiod": self.cpu_period,
            "cpuquota": self.cpu_quota,
            "platform": self.platform,
        }
        if self.dockerfile != "Dockerfile":
            query["dockerfile"] = self.dockerfile
        if self.nocache:
            query["nocache"] = True
        if not self.rm:
            query["rm"] = False
        if self.forcerm:
            query["forcerm"] = True
        if self.pull:
            query["pull"] = True
        if self.build_args:
            query["buildargs"] = dict(self.build_args)
        if self.labels:
            query["labels"] = dict(self.labels)
        return {k: v for k, v in query.items() if v is not None}


@dataclasses.dataclass(frozen=True)
class PullOptions:
    """Options for ``POST /images/create``.

    ``image`` may carry a tag (``busybox:latest``); an explicit ``tag`` wins.
    ``src`` imports from a URL or ``-`` instead of pulling.
    """

    image: str | None = None
    tag: str | None = None
    src: str | None = None
    repo: str | None = None
    platform: str | None = None
    auth: Auth | None = None

    def to_query(self) -> dict[str, Any]:
        query: dict[str, Any] = {}
        if self.image is not None:
            name, tag = _split_image(self.image)
            query["fromImage"] = name
            query["tag"] = self.tag or tag
        else:
            query["tag"] = self.tag
        query["fromSrc"] = self.src
        query["repo"] = self.repo
        query["platform"] = self.platform
        return {k: v for k, v in query.items() if v is not None}


@dataclasses.dataclass(frozen=True)
class PushOptions:
    """Options for ``POST /images/{name}/push``."""

    tag: str | None = None
    auth: Auth | None = None

    def to_query(self) -> dict[str, Any]:
        return {"tag": self.tag} if self.tag else {}


@dataclasses.dataclass(frozen=True)
class TagOptions:
    """Options for ``POST /images/{name}/tag``."""

    repo: str
    tag: str | None = None

    def to_query(self) -> dict[str, Any]:
        query: dict[str, Any] = {"repo": self.repo}
        if self.tag:
            query["tag"] = self.tag
        return query


@dataclasses.dataclass(frozen=True)
class ImageListOptions:
    """Options for ``GET /images/json``.  ``filters`` maps a filter name to values."""

    all: bool = False
    digests: bool = False
    filters: Mapping[str, tuple[str, ...]] | None = None

    def to_query(self) -> dict[str, Any]:
        query: dict[str, Any] = {}
        if self.all:
            query["all"] = True
        if self.digests:
            query["digests"] = True
        if self.filters:
            query["filters"] = {k: list(v) for k, v in self.filters.items()}
        return query


@dataclasses.dataclass(frozen=True)
class RemoveImageOptions:
    """Options for ``DELETE /images/{name}``."""

    force: bool = False
    noprune: bool = False

    def to_query(self) -> dict[str, Any]:
        query: dict[str, Any] = {}
        if self.force:
            query["force"] = True
        if self.noprune:
            query["noprune"] = True
        return query


@dataclasses.dataclass(frozen=True)
class PruneOptions:
    """Filters for ``POST /images/prune``.

    ``dangling=True`` prunes only untagged images, ``False`` every unused one.
    ``until`` is a timestamp or duration; ``labels`` take the daemon's
    ``key``, ``key=value`` and ``key!=value`` forms.
    """

    dangling: bool | None = None
    until: str | None = None
    labels: tuple[str, ...] = ()

    def to_query(self) -> dict[str, Any]:
        filters: dict[str, list[str]] = {}
        if self.dangling is not None:
            filters["dangling"] = ["true" if self.dangling else "false"]
        if self.until:
            filters["until"] = [self.until]
        if self.labels:
            filters["label"] = list(self.labels)
        return {"filters": filters} if filters else {}


@dataclasses.dataclass(frozen=True)
class LogsOptions:
    """Options for ``GET /containers/{id}/logs``."""

    follow: bool = False
    stdout: bool = True
    stderr: bool = True
    timestamps: bool = False
    since: int | None = None
    until: int | None = None
    tail: str | int | None = None

    def to_query(self) -> dict[str, Any]:
        query: dict[str, Any] = {
            "stdout": self.stdout,
            "stderr": self.stderr,
            "since": self.since,
            "until": self.until,
            "tail": self.tail,
        }
        if self.follow:
            query["follow"] = True
        if self.timestamps:
            query["timestamps"] = True
        return {k: v for k, v in query.items() if v is not None}
