"""Local filesystem backend."""

from __future__ import annotations

import logging
import mimetypes
import os
import stat as _stat
from datetime import datetime, timezone
from typing import TYPE_CHECKING, BinaryIO, Iterator

from .._headers import ATTRS_KEY, CONTENT_TYPE, DEFAULT_CONTENT_TYPE
from ..exceptions import (
    BackendError,
    InvalidArgumentError,
    MCXError,
    NotFoundError,
    NotSupportedError,
    PermissionDeniedError,
)
from ._io import copy_stream
from ._types import ContentDescriptor, DirOpt
from .base import Client

if TYPE_CHECKING:
    from .._context import Context
    from ..encryption import EncryptionKeyEntry
    from ._io import Progress

logger = logging.getLogger(__name__)

# Suffix of in-progress (incomplete) uploads.
PART_SUFFIX = ".part.mcx"


def _fs_error(exc: OSError, path: str) -> MCXError:
    """Map an OSError onto the mcx taxonomy."""
    msg = exc.strerror or str(exc)
    if isinstance(exc, (FileNotFoundError, NotADirectoryError)):
        return NotFoundError(f"Path not found: {msg}", path=path)
    if isinstance(exc, PermissionError):
        return PermissionDeniedError(f"Insufficient permission: {msg}", path=path)
    return BackendError(msg, path=path)


def _guess_content_type(path: str) -> str:
    ctype, _ = mimetypes.guess_type(path)
    return ctype or DEFAULT_CONTENT_TYPE


def _format_attrs(st: os.stat_result) -> str:
    return "#".join([
        f"atime:{int(st.st_atime)}",
        f"ctime:{int(st.st_ctime)}",
        f"gid:{st.st_gid}",
        f"mode:{_stat.S_IMODE(st.st_mode):o}",
        f"mtime:{int(st.st_mtime)}",
        f"uid:{st.st_uid}",
    ])


def parse_attrs(value: str) -> dict[str, str]:
    """Parse an ``X-Amz-Meta-Mcx-Attrs`` value into a dict."""
    attrs = {}
    for part in value.split("#"):
        key, sep, val = part.partition(":")
        if sep:
            attrs[key.strip()] = val.strip()
    return attrs


def _apply_attrs(path: str, value: str) -> None:
    """Restore mode and timestamps recorded by a preserving stat."""
    attrs = parse_attrs(value)
    try:
        if "mode" in attrs:
            os.chmod(path, int(attrs["mode"], 8))
        if "mtime" in attrs:
            mtime = int(attrs["mtime"])
            atime = int(attrs.get("atime", mtime))
            os.utime(path, (atime, mtime))
    except ValueError:
        raise InvalidArgumentError(f"Invalid attributes {value!r}", path=path)


class FSClient(Client):
    """Filesystem paths addressed with standard I/O.

    SSE parameters are accepted and ignored.  Object locking is not
    available.
    """

    separator = os.sep

    def __init__(self, url: str, alias: str = ""):
        super().__init__(alias, url)

    def _descriptor(self, path: str, st: os.stat_result, *, preserve: bool = False) -> ContentDescriptor:
        is_dir = _stat.S_ISDIR(st.st_mode)
        metadata = {}
        if not is_dir:
            metadata[CONTENT_TYPE] = _guess_content_type(path)
        if preserve:
            metadata[ATTRS_KEY] = _format_attrs(st)
        return ContentDescriptor(
            url=path,
            time=datetime.fromtimestamp(st.st_mtime, tz=timezone.utc),
            size=0 if is_dir else st.st_size,
            is_dir=is_dir,
            metadata=metadata,
        )

    # --- Metadata ---

    def stat(self, ctx, *, incomplete=False, preserve=False, sse=None) -> ContentDescriptor:
        path = self.url
        if incomplete and not path.endswith(PART_SUFFIX):
            path += PART_SUFFIX
        try:
            st = os.stat(path)
        except OSError as exc:
            raise _fs_error(exc, path).trace(self.alias)
        return self._descriptor(path, st, preserve=preserve)

    def _include(self, name: str, incomplete: bool) -> bool:
        return name.endswith(PART_SUFFIX) == incomplete

    def list(self, ctx, *, recursive=False, incomplete=False, fetch_meta=False,
             dir_opt=DirOpt.NONE) -> Iterator[ContentDescriptor]:
        root = self.url
        try:
            st = os.stat(root)
        except OSError as exc:
            yield ContentDescriptor.failure(root, _fs_error(exc, root).trace(self.alias))
            return

        if not _stat.S_ISDIR(st.st_mode):
            if self._include(root, incomplete):
                yield self._descriptor(root, st, preserve=fetch_meta)
            return

        if recursive:
            yield from self._walk(ctx, root, incomplete, fetch_meta, dir_opt)
            return

        try:
            entries = sorted(os.scandir(root), key=lambda e: e.name)
        except OSError as exc:
            yield ContentDescriptor.failure(root, _fs_error(exc, root).trace(self.alias))
            return
        for entry in entries:
            if ctx.cancelled:
                return
            try:
                is_dir = entry.is_dir()
                if not is_dir and not self._include(entry.name, incomplete):
                    continue
                yield self._descriptor(entry.path, entry.stat(), preserve=fetch_meta)
            except OSError as exc:
                yield ContentDescriptor.failure(entry.path, _fs_error(exc, entry.path).trace(self.alias))

    def _walk(self, ctx, dirpath, incomplete, fetch_meta, dir_opt) -> Iterator[ContentDescriptor]:
        try:
            entries = sorted(os.scandir(dirpath), key=lambda e: e.name)
        except OSError as exc:
            yield ContentDescriptor.failure(dirpath, _fs_error(exc, dirpath).trace(self.alias))
            return
        for entry in entries:
            if ctx.cancelled:
                return
            try:
                if entry.is_dir(follow_symlinks=False):
                    desc = self._descriptor(entry.path, entry.stat(follow_symlinks=False),
                                            preserve=fetch_meta)
                    if dir_opt == DirOpt.FIRST:
                        yield desc
                    yield from self._walk(ctx, entry.path, incomplete, fetch_meta, dir_opt)
                    if dir_opt == DirOpt.LAST and not ctx.cancelled:
                        yield desc
                    continue
                if not self._include(entry.name, incomplete):
                    continue
                yield self._descriptor(entry.path, entry.stat(), preserve=fetch_meta)
            except OSError as exc:
                yield ContentDescriptor.failure(entry.path, _fs_error(exc, entry.path).trace(self.alias))

    # --- I/O ---

    def get(self, ctx, sse=None) -> BinaryIO:
        try:
            return open(self.url, "rb")
        except OSError as exc:
            raise _fs_error(exc, self.url).trace(self.alias)

    def put(self, ctx, reader, size, metadata, *, progress=None, sse=None,
            md5=False, disable_multipart=False) -> int:
        path = self.url
        if path.endswith(("/", os.sep)):
            raise InvalidArgumentError("Target is a directory", alias=self.alias, path=path)
        part = path + PART_SUFFIX
        try:
            parent = os.path.dirname(path)
            if parent:
                os.makedirs(parent, exist_ok=True)
            with open(part, "wb") as f:
                written = copy_stream(reader, f, size, progress)
            if size >= 0 and written < size:
                raise BackendError(
                    f"Unexpected EOF: wrote {written} of {size} bytes",
                    alias=self.alias, path=path,
                )
            os.replace(part, path)
        except OSError as exc:
            raise _fs_error(exc, path).trace(self.alias)
        attrs = (metadata or {}).get(ATTRS_KEY)
        if attrs:
            _apply_attrs(path, attrs)
        logger.debug("wrote %d bytes to %s", written, path)
        return written

    def copy(self, ctx, source, size, *, progress=None, src_sse=None, tgt_sse=None,
             metadata=None, disable_multipart=False) -> None:
        try:
            reader = open(source, "rb")
        except OSError as exc:
            raise _fs_error(exc, source).trace(self.alias)
        with reader:
            self.put(ctx, reader, size, metadata or {}, progress=progress)

    # --- Object locking ---

    def put_retention(self, ctx, mode, until, bypass_governance=False) -> None:
        raise NotSupportedError("Retention is not supported on filesystem paths",
                                alias=self.alias, path=self.url)

    def put_legal_hold(self, ctx, hold) -> None:
        raise NotSupportedError("Legal hold is not supported on filesystem paths",
                                alias=self.alias, path=self.url)

    # --- Removal ---

    def _prune_empty_parents(self, path: str) -> None:
        """Remove now-empty directories between *path* and the client root."""
        root = os.path.abspath(self.url)
        parent = os.path.dirname(os.path.abspath(path))
        while parent.startswith(root + os.sep) and parent != root:
            try:
                os.rmdir(parent)
            except OSError:
                return
            parent = os.path.dirname(parent)

    def _remove(self, ctx, contents, *, incomplete, is_bucket, bypass_governance) -> Iterator[MCXError]:
        for content in contents:
            path = content.url.rstrip("/" + os.sep) or content.url
            if incomplete and not path.endswith(PART_SUFFIX):
                path += PART_SUFFIX
            try:
                if os.path.isdir(path) and not os.path.islink(path):
                    os.rmdir(path)
                else:
                    os.remove(path)
            except OSError as exc:
                yield _fs_error(exc, path)
                continue
            logger.debug("removed %s", path)
            self._prune_empty_parents(path)
        if is_bucket and not ctx.cancelled:
            try:
                os.rmdir(self.url)
            except OSError as exc:
                yield _fs_error(exc, self.url)
