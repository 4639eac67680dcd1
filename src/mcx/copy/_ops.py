"""Upload one source object to its target.

Same-alias transfers use the backend's server-side copy; everything else
streams bytes from a ``get`` into a ``put``.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from .._headers import LOCK_LEGAL_HOLD, LOCK_MODE, LOCK_RETAIN_UNTIL
from ..client import LimitedReader, is_random_access
from ..exceptions import MCXError, RetentionConflictError
from ..retention import format_rfc3339, parse_rfc3339, retain_until, validate_legal_hold, validate_mode
from ._io import get_source_stream
from ._metadata import filter_metadata, merge_metadata
from ._types import TransferRequest, TransferResult

if TYPE_CHECKING:
    from .._context import Context
    from ..client import Client, Progress
    from ..encryption import EncryptionKeyEntry, KeyRegistry
    from ..location import AliasRegistry

logger = logging.getLogger(__name__)


def _lock_headers(mode: str, until: str, legal_hold: str) -> dict[str, str]:
    headers = {}
    if mode:
        headers[LOCK_MODE] = mode
    if until:
        headers[LOCK_RETAIN_UNTIL] = until
    if legal_hold:
        headers[LOCK_LEGAL_HOLD] = legal_hold
    return headers


def put_target_stream(ctx: Context, client: Client, reader, size: int,
                      metadata: dict[str, str], *, mode: str = "", until: str = "",
                      legal_hold: str = "", progress: Progress | None = None,
                      sse: EncryptionKeyEntry | None = None, md5: bool = False,
                      disable_multipart: bool = False) -> int:
    """Write *reader* to *client*'s path with lock headers injected."""
    meta = dict(metadata)
    meta.update(_lock_headers(mode, until, legal_hold))
    return client.put(ctx, reader, size, meta, progress=progress, sse=sse,
                      md5=md5, disable_multipart=disable_multipart)


def copy_source_to_target(ctx: Context, client: Client, source_path: str, size: int, *,
                          mode: str = "", until: str = "", legal_hold: str = "",
                          progress: Progress | None = None,
                          src_sse: EncryptionKeyEntry | None = None,
                          tgt_sse: EncryptionKeyEntry | None = None,
                          metadata: dict[str, str] | None = None,
                          disable_multipart: bool = False) -> None:
    """Server-side copy of *source_path* onto *client*'s path."""
    meta = dict(metadata or {})
    meta.update(_lock_headers(mode, until, legal_hold))
    client.copy(ctx, source_path, size, progress=progress, src_sse=src_sse,
                tgt_sse=tgt_sse, metadata=meta, disable_multipart=disable_multipart)


def put_target_retention(ctx: Context, client: Client, metadata: dict[str, str],
                         bypass_governance: bool = False) -> None:
    """Apply the retention named by lock headers in *metadata*, metadata only."""
    mode = metadata.get(LOCK_MODE, "")
    until_str = metadata.get(LOCK_RETAIN_UNTIL, "")
    until = parse_rfc3339(until_str) if until_str else None
    client.put_retention(ctx, mode, until, bypass_governance)


def get_all_metadata(ctx: Context, client: Client, request: TransferRequest, *,
                     sse: EncryptionKeyEntry | None = None,
                     preserve: bool = False) -> dict[str, str]:
    """Stat the source and layer the target's user metadata over it."""
    st = client.stat(ctx, preserve=preserve, sse=sse)
    return filter_metadata(merge_metadata(st.metadata, request.target.user_metadata))


def _lock_overrides(request: TransferRequest) -> tuple[str, str, str]:
    target = request.target
    mode = until = legal_hold = ""
    if target.retention_enabled:
        mode = validate_mode(target.retention_mode)
        until = format_rfc3339(retain_until(target.retention_duration))
    if target.legal_hold_enabled:
        legal_hold = validate_legal_hold(target.legal_hold)
    return mode, until, legal_hold


def upload_source_to_target(ctx: Context, request: TransferRequest, *,
                            registry: AliasRegistry, keys: KeyRegistry | None = None,
                            preserve: bool = False) -> TransferResult:
    """Carry out one transfer; failures are returned, never raised."""
    result = TransferResult(request)
    source, target = request.source, request.target
    try:
        _upload(ctx, request, result, registry, keys, preserve)
    except MCXError as exc:
        if exc.path is None:
            exc.trace(request.target_alias, target.url)
        logger.debug("copy %s -> %s failed: %s", source.url, target.url, exc)
        result.error = exc
    return result


def _upload(ctx, request, result, registry, keys, preserve) -> None:
    source, target = request.source, request.target
    src_sse = keys.resolve(source.url) if keys is not None else None
    tgt_sse = keys.resolve(target.url) if keys is not None else None

    mode, until, legal_hold = _lock_overrides(request)

    _, source_client = registry.client_for(source.url)
    _, target_client = registry.client_for(target.url)

    metadata = merge_metadata(source.metadata, source.user_metadata)

    if source.retention_enabled:
        # Retention-only change: no content is copied.
        if not metadata:
            metadata = get_all_metadata(ctx, source_client, request, sse=src_sse, preserve=preserve)
        metadata = merge_metadata(metadata, target.metadata, target.user_metadata,
                                  _lock_headers(mode, until, ""))
        put_target_retention(ctx, target_client, metadata, source.bypass_governance)
        return

    if request.same_backend:
        if not metadata:
            metadata = get_all_metadata(ctx, source_client, request, sse=src_sse, preserve=preserve)
        metadata = merge_metadata(metadata, target.metadata, target.user_metadata)
        try:
            copy_source_to_target(
                ctx, target_client, source_client.path, source.size,
                mode=mode, until=until, legal_hold=legal_hold, progress=request.progress,
                src_sse=src_sse, tgt_sse=tgt_sse, metadata=filter_metadata(metadata),
                disable_multipart=request.disable_multipart,
            )
        except RetentionConflictError:
            if not mode:
                raise
            put_target_retention(ctx, target_client, _lock_headers(mode, until, ""),
                                 target.bypass_governance)
        result.size = source.size
        return

    reader, stored = get_source_stream(ctx, source_client, sse=src_sse, preserve=preserve)
    with reader:
        # The GET headers, with any sniffed Content-Type, supersede the planned stat.
        metadata = merge_metadata(source.metadata, stored, source.user_metadata,
                                  target.metadata, target.user_metadata)
        if is_random_access(reader) or source.size < 0:
            data = reader
        else:
            data = LimitedReader(reader, source.size)
        result.size = put_target_stream(
            ctx, target_client, data, source.size, filter_metadata(metadata),
            mode=mode, until=until, legal_hold=legal_hold, progress=request.progress,
            sse=tgt_sse, md5=request.md5, disable_multipart=request.disable_multipart,
        )
