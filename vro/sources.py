"""Source tree implementations for vro.

The renderer never touches the filesystem directly; it reads through a
SourceTree so the same pipeline runs against a directory on disk or a
mapping held in memory.

Key classes:
- DirectoryTree: A SourceTree backed by a directory.
- MemoryTree: A SourceTree backed by a mapping of paths to bytes.
"""

from __future__ import annotations

import errno
import io
import os
from collections.abc import Callable, Iterator, Mapping
from datetime import datetime, timezone
from pathlib import Path
from typing import BinaryIO

from .protocols import Entry, EntryStat


class InvalidPathError(ValueError):
    """Raised for paths that could escape or misaddress a source tree."""


def check_path(path: str) -> str:
    """Validate a slash-separated tree path.

    The empty string names the root. Otherwise every segment must be
    non-empty and neither ``.`` nor ``..``; absolute paths and backslashes
    are rejected.

    Args:
        path: Path relative to a tree root.

    Returns:
        The path unchanged.

    Raises:
        InvalidPathError: If the path is not a valid tree path.
    """
    if path == "":
        return path
    if "\\" in path or "\x00" in path:
        raise InvalidPathError(f"Invalid path: {path!r}")
    for segment in path.split("/"):
        if segment in ("", ".", ".."):
            raise InvalidPathError(f"Invalid path: {path!r}")
    return path


def join_path(parent: str, name: str) -> str:
    """Join a tree path and a child name."""
    return f"{parent}/{name}" if parent else name


def _missing(path: str) -> FileNotFoundError:
    return FileNotFoundError(errno.ENOENT, os.strerror(errno.ENOENT), path)


class DirectoryTree:
    """SourceTree over a directory on disk.

    Attributes:
        root: Directory all paths are resolved against.
    """

    def __init__(self, root: Path | str):
        self.root = Path(root)

    def __repr__(self) -> str:
        return f"DirectoryTree({str(self.root)!r})"

    def _resolve(self, path: str) -> Path:
        check_path(path)
        return self.root / path if path else self.root

    def walk(
        self, path: str = "", prune: Callable[[Entry], bool] | None = None
    ) -> Iterator[Entry]:
        base = self._resolve(path)
        if not base.exists():
            raise _missing(str(base))
        if not base.is_dir():
            raise NotADirectoryError(errno.ENOTDIR, os.strerror(errno.ENOTDIR), str(base))
        yield from self._walk_dir(path, prune)

    def _walk_dir(
        self, rel: str, prune: Callable[[Entry], bool] | None
    ) -> Iterator[Entry]:
        with os.scandir(self._resolve(rel)) as it:
            items = sorted(it, key=lambda item: item.name)
        for item in items:
            entry = Entry(path=join_path(rel, item.name), name=item.name, is_dir=item.is_dir())
            if prune is not None and prune(entry):
                continue
            yield entry
            if entry.is_dir:
                yield from self._walk_dir(entry.path, prune)

    def open(self, path: str) -> BinaryIO:
        return open(self._resolve(path), "rb")

    def read_bytes(self, path: str) -> bytes:
        return self._resolve(path).read_bytes()

    def stat(self, path: str) -> EntryStat:
        target = self._resolve(path)
        st = target.stat()
        return EntryStat(
            name=target.name,
            mtime=datetime.fromtimestamp(st.st_mtime, tz=timezone.utc),
            size=st.st_size,
        )

    def is_file(self, path: str) -> bool:
        try:
            return self._resolve(path).is_file()
        except (InvalidPathError, OSError):
            return False

    def is_dir(self, path: str) -> bool:
        try:
            return self._resolve(path).is_dir()
        except (InvalidPathError, OSError):
            return False

    def sub(self, name: str) -> DirectoryTree:
        return DirectoryTree(self._resolve(name))


class MemoryTree:
    """SourceTree over an in-memory mapping of file paths to contents.

    Directories are implied by the file paths. Every entry reports the same
    modification time.

    Attributes:
        files: Mapping of tree path to file bytes.
        mtime: Modification time reported by ``stat``.
    """

    def __init__(
        self,
        files: Mapping[str, bytes | str] | None = None,
        mtime: datetime | None = None,
        exists: bool = True,
    ):
        self.files: dict[str, bytes] = {}
        for path, data in (files or {}).items():
            if not path:
                raise InvalidPathError("File paths must not be empty")
            check_path(path)
            self.files[path] = data.encode("utf-8") if isinstance(data, str) else bytes(data)
        self.mtime = mtime or datetime.now(timezone.utc)
        self._exists = exists
        self._dirs: set[str] = {""} if exists else set()
        for path in self.files:
            parts = path.split("/")
            for i in range(1, len(parts)):
                self._dirs.add("/".join(parts[:i]))
        overlap = self._dirs & set(self.files)
        if overlap:
            raise InvalidPathError(f"Paths used as both file and directory: {sorted(overlap)}")

    def __repr__(self) -> str:
        return f"MemoryTree({len(self.files)} files)"

    def _children(self, directory: str) -> list[Entry]:
        prefix = f"{directory}/" if directory else ""
        names: dict[str, bool] = {}
        for path in list(self.files) + list(self._dirs):
            if not path or not path.startswith(prefix):
                continue
            rest = path[len(prefix):]
            if "/" in rest:
                continue
            names[rest] = path in self._dirs
        return [
            Entry(path=join_path(directory, name), name=name, is_dir=names[name])
            for name in sorted(names)
        ]

    def walk(
        self, path: str = "", prune: Callable[[Entry], bool] | None = None
    ) -> Iterator[Entry]:
        check_path(path)
        if path in self.files:
            raise NotADirectoryError(errno.ENOTDIR, os.strerror(errno.ENOTDIR), path)
        if path not in self._dirs:
            raise _missing(path)
        yield from self._walk_dir(path, prune)

    def _walk_dir(
        self, directory: str, prune: Callable[[Entry], bool] | None
    ) -> Iterator[Entry]:
        for entry in self._children(directory):
            if prune is not None and prune(entry):
                continue
            yield entry
            if entry.is_dir:
                yield from self._walk_dir(entry.path, prune)

    def open(self, path: str) -> BinaryIO:
        return io.BytesIO(self.read_bytes(path))

    def read_bytes(self, path: str) -> bytes:
        check_path(path)
        if path in self.files:
            return self.files[path]
        if path in self._dirs:
            raise IsADirectoryError(errno.EISDIR, os.strerror(errno.EISDIR), path)
        raise _missing(path)

    def stat(self, path: str) -> EntryStat:
        check_path(path)
        name = path.rsplit("/", 1)[-1]
        if path in self.files:
            return EntryStat(name=name, mtime=self.mtime, size=len(self.files[path]))
        if path in self._dirs:
            return EntryStat(name=name, mtime=self.mtime, size=0)
        raise _missing(path)

    def is_file(self, path: str) -> bool:
        return path in self.files

    def is_dir(self, path: str) -> bool:
        return path in self._dirs

    def sub(self, name: str) -> MemoryTree:
        check_path(name)
        prefix = f"{name}/" if name else ""
        files = {
            path[len(prefix):]: data
            for path, data in self.files.items()
            if path.startswith(prefix)
        }
        return MemoryTree(files, mtime=self.mtime, exists=name in self._dirs)
