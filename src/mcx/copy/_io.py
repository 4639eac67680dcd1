"""Source streams and content-type detection."""

from __future__ import annotations

from typing import TYPE_CHECKING, BinaryIO

import filetype

from .._headers import CONTENT_TYPE, DEFAULT_CONTENT_TYPE, valid_header_name, valid_header_value
from ..client import is_random_access
from ..exceptions import BackendError

if TYPE_CHECKING:
    from .._context import Context
    from ..client import Client
    from ..encryption import EncryptionKeyEntry

# Bytes inspected when sniffing a content type.
SNIFF_SIZE = 512


def probe_content_type(reader) -> str:
    """Guess a MIME type from the head of a seekable *reader* and rewind it.

    Non-seekable readers are left untouched and reported as
    ``application/octet-stream``.
    """
    if not is_random_access(reader):
        return DEFAULT_CONTENT_TYPE
    head = reader.read(SNIFF_SIZE)
    try:
        reader.seek(0)
    except OSError as exc:
        raise BackendError(f"Cannot rewind after probing content type: {exc}") from exc
    if not head:
        return DEFAULT_CONTENT_TYPE
    return filetype.guess_mime(head) or DEFAULT_CONTENT_TYPE


def get_source_stream(ctx: Context, client: Client, *, sse: EncryptionKeyEntry | None = None,
                      fetch_stat: bool = True,
                      preserve: bool = False) -> tuple[BinaryIO, dict[str, str]]:
    """Open *client*'s object and collect its stored metadata.

    Object-store readers describe themselves from the GET response;
    anything else is stat'ed.  A generic content type on a local stream is
    refined by sniffing.  The caller closes the returned reader.
    """
    reader = client.get(ctx, sse)
    metadata: dict[str, str] = {}
    if not fetch_stat:
        return reader, metadata
    try:
        describe = getattr(reader, "descriptor", None)
        if describe is not None:
            st = describe()
        else:
            st = client.stat(ctx, preserve=preserve, sse=sse)
        for k, v in st.metadata.items():
            if valid_header_name(k) and valid_header_value(v):
                metadata[k] = v
        if describe is None and metadata.get(CONTENT_TYPE) == DEFAULT_CONTENT_TYPE:
            metadata[CONTENT_TYPE] = probe_content_type(reader)
    except Exception:
        reader.close()
        raise
    return reader, metadata
