"""Stream wrappers used by the put/copy paths."""

from __future__ import annotations

import sys
from typing import BinaryIO, Protocol

CHUNK_SIZE = 1024 * 1024

_STD_NAMES = {"/dev/stdin", "/dev/stdout", "/dev/stderr", "<stdin>", "<stdout>", "<stderr>"}


class Progress(Protocol):
    """Progress sink.  Same shape as the minio SDK's progress hook."""

    def set_meta(self, object_name: str, total_length: int) -> None: ...

    def update(self, length: int) -> None: ...


class ProgressReader:
    """Read-through wrapper reporting every chunk to a progress sink."""

    def __init__(self, reader: BinaryIO, progress: Progress | None):
        self._reader = reader
        self._progress = progress
        self.count = 0

    def read(self, size: int = -1) -> bytes:
        data = self._reader.read(size)
        self.count += len(data)
        if data and self._progress is not None:
            self._progress.update(len(data))
        return data

    def close(self) -> None:
        self._reader.close()


class LimitedReader:
    """Return at most *limit* bytes from *reader*, then EOF."""

    def __init__(self, reader: BinaryIO, limit: int):
        self._reader = reader
        self._remaining = max(limit, 0)

    def read(self, size: int = -1) -> bytes:
        if self._remaining <= 0:
            return b""
        if size is None or size < 0 or size > self._remaining:
            size = self._remaining
        data = self._reader.read(size)
        self._remaining -= len(data)
        return data

    def seekable(self) -> bool:
        return False

    def close(self) -> None:
        self._reader.close()


def is_std_stream(reader) -> bool:
    """True for the process's own stdin/stdout/stderr, by identity or name."""
    for std in (sys.stdin, sys.stdout, sys.stderr):
        if std is None:
            continue
        if reader is std or reader is getattr(std, "buffer", None):
            return True
    try:
        if reader.fileno() in (0, 1, 2):
            return True
    except (AttributeError, OSError, ValueError):
        pass
    name = getattr(reader, "name", None)
    return isinstance(name, str) and name in _STD_NAMES


def is_random_access(reader) -> bool:
    """True if *reader* can be re-read via seek, excluding standard streams."""
    seekable = getattr(reader, "seekable", None)
    if seekable is None:
        return False
    try:
        if not seekable():
            return False
    except (OSError, ValueError):
        return False
    return not is_std_stream(reader)


def copy_stream(reader, writer, size: int = -1, progress: Progress | None = None) -> int:
    """Copy *reader* to *writer* in chunks; stop after *size* bytes if >= 0."""
    written = 0
    while size < 0 or written < size:
        want = CHUNK_SIZE if size < 0 else min(CHUNK_SIZE, size - written)
        chunk = reader.read(want)
        if not chunk:
            break
        writer.write(chunk)
        written += len(chunk)
        if progress is not None:
            progress.update(len(chunk))
    return written
