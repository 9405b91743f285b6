# SPDX-License-Identifier: BSD-2-Clause
# Copyright (c) deftio llc

"""Build-context tarballs produced incrementally.

The archive is generated entry by entry so an upload can interleave file reads
with socket writes instead of materialising the whole context first.  Entries
are sorted by archive path, and owner fields are zeroed, so identical trees
yield identical archives.

Symlinks are stored as symlink entries and never followed.  A link whose
target resolves outside the context root is stored verbatim as well (with a
warning logged); the daemon decides what it means at build time.
"""

from __future__ import annotations

import dataclasses
import gzip as gzip_module
import logging
import os
import posixpath
import re
import stat
import tarfile
from typing import TYPE_CHECKING

from dockwire.errors import LocalIOError

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator

logger = logging.getLogger(__name__)

CHUNK_SIZE = 64 * 1024
IGNORE_FILENAME = ".dockerignore"

# ---------------------------------------------------------------------------
# .dockerignore rules
# ---------------------------------------------------------------------------


def _translate(pattern: str) -> str:
    """Translate a ``.dockerignore`` glob into a regular expression."""
    out: list[str] = []
    i = 0
    n = len(pattern)
    while i < n:
        c = pattern[i]
        i += 1
        if c == "*":
            if i < n and pattern[i] == "*":
                i += 1
                if i < n and pattern[i] == "/":
                    i += 1
                    out.append("(?:.*/)?")
                else:
                    out.append(".*")
            else:
                out.append("[^/]*")
        elif c == "?":
            out.append("[^/]")
        elif c == "[":
            end = pattern.find("]", i + 1 if i < n and pattern[i] in "!^" else i)
            if end < 0:
                out.append(re.escape(c))
                continue
            body = pattern[i:end]
            if body[:1] in ("!", "^"):
                body = "^" + body[1:]
            out.append(f"[{body.replace(chr(92), chr(92) * 2)}]")
            i = end + 1
        elif c == "\\" and i < n:
            out.append(re.escape(pattern[i]))
            i += 1
        else:
            out.append(re.escape(c))
    return "".join(out)


@dataclasses.dataclass(frozen=True)
class _Rule:
    pattern: str
    regex: re.Pattern[str]
    exclusion: bool


class IgnoreRules:
    """Ordered ``.dockerignore`` patterns; the last matching pattern wins.

    A pattern also matches every path below a matched directory.  Patterns
    prefixed with ``!`` re-include paths excluded by earlier patterns.
    """

    def __init__(self, patterns: Iterable[str] = ()) -> None:
        self._rules: list[_Rule] = []
        for raw in patterns:
            line = raw.strip()
            if not line or line.startswith("#"):
                continue
            exclusion = line.startswith("!")
            if exclusion:
                line = line[1:].strip()
            cleaned = posixpath.normpath(line.replace(os.sep, "/")).lstrip("/")
            if cleaned in ("", "."):
                continue
            regex = re.compile(_translate(cleaned), re.DOTALL)
            self._rules.append(_Rule(cleaned, regex, exclusion))

    @classmethod
    def parse(cls, text: str) -> IgnoreRules:
        return cls(text.splitlines())

    @classmethod
    def from_file(cls, path: str | os.PathLike[str]) -> IgnoreRules:
        """Load rules from a ``.dockerignore`` file."""
        try:
            with open(path, encoding="utf-8") as f:
                return cls.parse(f.read())
        except OSError as exc:
            raise LocalIOError(os.fspath(path), exc.strerror or str(exc)) from exc

    @property
    def patterns(self) -> list[str]:
        return [("!" if r.exclusion else "") + r.pattern for r in self._rules]

    @property
    def has_exclusions(self) -> bool:
        """Whether any ``!`` pattern could re-include a path below an ignored directory."""
        return any(r.exclusion for r in self._rules)

    def __bool__(self) -> bool:
        return bool(self._rules)

    def matches(self, path: str) -> bool:
        """Return True if the slash-separated relative ``path`` is ignored."""
        parts = path.split("/")
        parents = ["/".join(parts[:i]) for i in range(1, len(parts))]
        ignored = False
        for rule in self._rules:
            if rule.regex.fullmatch(path) or any(rule.regex.fullmatch(p) for p in parents):
                ignored = not rule.exclusion
        return ignored

    __call__ = matches


# ---------------------------------------------------------------------------
# Entry collection
# ---------------------------------------------------------------------------


@dataclasses.dataclass(frozen=True)
class TarEntry:
    """One archive member: a regular file, directory or symlink."""

    path: str
    type: bytes
    mode: int
    size: int = 0
    linkname: str = ""
    source: str = ""

    @property
    def is_file(self) -> bool:
        return self.type == tarfile.REGTYPE

    def tarinfo(self) -> tarfile.TarInfo:
        info = tarfile.TarInfo(self.path + ("/" if self.type == tarfile.DIRTYPE else ""))
        info.type = self.type
        info.mode = self.mode
        info.size = self.size if self.is_file else 0
        # Timestamps and owners are dropped so identical trees archive identically.
        info.mtime = 0
        info.linkname = self.linkname
        info.uid = info.gid = 0
        info.uname = info.gname = ""
        return info


def _lstat(path: str) -> os.stat_result:
    try:
        return os.lstat(path)
    except OSError as exc:
        raise LocalIOError(path, exc.strerror or str(exc)) from exc


def _entry_for(root: str, full: str, rel: str, st: os.stat_result) -> TarEntry | None:
    mode = stat.S_IMODE(st.st_mode)
    if stat.S_ISLNK(st.st_mode):
        try:
            target = os.readlink(full)
        except OSError as exc:
            raise LocalIOError(full, exc.strerror or str(exc)) from exc
        resolved = posixpath.normpath(posixpath.join(posixpath.dirname(rel), target.replace(os.sep, "/")))
        if posixpath.isabs(target) or resolved == ".." or resolved.startswith("../"):
            logger.warning("symlink %s points outside the build context: %s", rel, target)
        return TarEntry(rel, tarfile.SYMTYPE, mode, linkname=target, source=full)
    if stat.S_ISDIR(st.st_mode):
        return TarEntry(rel, tarfile.DIRTYPE, mode, source=full)
    if stat.S_ISREG(st.st_mode):
        return TarEntry(rel, tarfile.REGTYPE, mode, size=st.st_size, source=full)
    logger.debug("skipping special file %s", os.path.join(root, rel))
    return None


def collect_entries(
    root: str | os.PathLike[str],
    ignore: IgnoreRules | None = None,
    *,
    dockerfile: str = "Dockerfile",
) -> list[TarEntry]:
    """Walk ``root`` and return every non-ignored entry, sorted by path.

    The Dockerfile and ``.dockerignore`` are always included, even when a
    pattern matches them, because the daemon needs both.
    """
    root_path = os.fspath(root)
    st = _lstat(root_path)
    if not stat.S_ISDIR(st.st_mode):
        raise LocalIOError(root_path, "not a directory")

    always = {posixpath.normpath(dockerfile.replace(os.sep, "/")), IGNORE_FILENAME}
    entries: list[TarEntry] = []

    def on_error(exc: OSError) -> None:
        raise LocalIOError(exc.filename or root_path, exc.strerror or str(exc)) from exc

    for dirpath, dirnames, filenames in os.walk(root_path, onerror=on_error):
        rel_dir = os.path.relpath(dirpath, root_path)
        rel_dir = "" if rel_dir == "." else rel_dir.replace(os.sep, "/")

        keep_dirs: list[str] = []
        for name in sorted(dirnames + filenames):
            full = os.path.join(dirpath, name)
            rel = f"{rel_dir}/{name}" if rel_dir else name
            item_st = _lstat(full)
            is_real_dir = stat.S_ISDIR(item_st.st_mode)
            ignored = ignore is not None and rel not in always and ignore.matches(rel)

            if ignored:
                logger.debug("ignoring %s", rel)
                # Still descend when something below may be re-included.
                if is_real_dir and (ignore.has_exclusions or any(a.startswith(rel + "/") for a in always)):
                    keep_dirs.append(name)
                continue

            entry = _entry_for(root_path, full, rel, item_st)
            if entry is not None:
                entries.append(entry)
            if is_real_dir:
                keep_dirs.append(name)
        dirnames[:] = keep_dirs

    entries.sort(key=lambda e: e.path)
    return entries


# ---------------------------------------------------------------------------
# Archive stream
# ---------------------------------------------------------------------------


class _ChunkSink:
    """Write-only file object that hands its contents back in pieces."""

    def __init__(self) -> None:
        self._parts: list[bytes] = []
        self._size = 0

    def write(self, data: bytes) -> int:
        if data:
            self._parts.append(bytes(data))
            self._size += len(data)
        return len(data)

    def flush(self) -> None:
        pass

    def __len__(self) -> int:
        return self._size

    def drain(self) -> bytes:
        data = b"".join(self._parts)
        self._parts.clear()
        self._size = 0
        return data


def _copy_file(entry: TarEntry, out: _ChunkSink | gzip_module.GzipFile, sink: _ChunkSink) -> Iterator[bytes]:
    copied = 0
    try:
        with open(entry.source, "rb") as f:
            while copied < entry.size:
                block = f.read(min(CHUNK_SIZE, entry.size - copied))
                if not block:
                    break
                out.write(block)
                copied += len(block)
                if len(sink) >= CHUNK_SIZE:
                    yield sink.drain()
    except OSError as exc:
        raise LocalIOError(entry.source, exc.strerror or str(exc)) from exc
    if copied != entry.size:
        raise LocalIOError(entry.source, "file changed size while archiving")


def iter_tar(
    root: str | os.PathLike[str],
    ignore: IgnoreRules | None = None,
    *,
    gzip: bool = False,
    dockerfile: str = "Dockerfile",
) -> Iterator[bytes]:
    """Yield a POSIX tar archive of ``root`` as a sequence of byte chunks.

    Raises:
        LocalIOError: A file or directory cannot be read.  The archive emitted
            so far must be discarded.

    """
    entries = collect_entries(root, ignore, dockerfile=dockerfile)
    sink = _ChunkSink()
    out: _ChunkSink | gzip_module.GzipFile = (
        gzip_module.GzipFile(fileobj=sink, mode="wb", mtime=0) if gzip else sink  # type: ignore[arg-type]
    )
    offset = 0

    for entry in entries:
        header = entry.tarinfo().tobuf(tarfile.PAX_FORMAT, "utf-8", "surrogateescape")
        out.write(header)
        offset += len(header)
        if entry.is_file:
            yield from _copy_file(entry, out, sink)
            offset += entry.size
            remainder = entry.size % tarfile.BLOCKSIZE
            if remainder:
                out.write(tarfile.NUL * (tarfile.BLOCKSIZE - remainder))
                offset += tarfile.BLOCKSIZE - remainder
        logger.debug("added %s (%d bytes)", entry.path, entry.size)
        if len(sink) >= CHUNK_SIZE:
            yield sink.drain()

    # End-of-archive marker, then pad to a full record like tarfile does.
    out.write(tarfile.NUL * (tarfile.BLOCKSIZE * 2))
    offset += tarfile.BLOCKSIZE * 2
    remainder = offset % tarfile.RECORDSIZE
    if remainder:
        out.write(tarfile.NUL * (tarfile.RECORDSIZE - remainder))
    if isinstance(out, gzip_module.GzipFile):
        out.close()
    tail = sink.drain()
    if tail:
        yield tail


def build_context(
    root: str | os.PathLike[str],
    *,
    gzip: bool = False,
    dockerfile: str = "Dockerfile",
) -> Iterator[bytes]:
    """Archive a build context, honouring its ``.dockerignore`` if present."""
    ignore_path = os.path.join(os.fspath(root), IGNORE_FILENAME)
    ignore = IgnoreRules.from_file(ignore_path) if os.path.isfile(ignore_path) else None
    yield from iter_tar(root, ignore, gzip=gzip, dockerfile=dockerfile)


def tar_bytes(
    root: str | os.PathLike[str],
    ignore: IgnoreRules | None = None,
    *,
    gzip: bool = False,
) -> bytes:
    """Return the whole archive of ``root`` in memory."""
    return b"".join(iter_tar(root, ignore, gzip=gzip))


def iter_file(path: str | os.PathLike[str], chunk_size: int = CHUNK_SIZE) -> Iterator[bytes]:
    """Yield an existing tarball from disk in chunks (image load)."""
    try:
        with open(path, "rb") as f:
            while True:
                block = f.read(chunk_size)
                if not block:
                    return
                yield block
    except OSError as exc:
        raise LocalIOError(os.fspath(path), exc.strerror or str(exc)) from exc
