"""Turn command-line sources and a target into transfer requests."""

from __future__ import annotations

import posixpath
from typing import TYPE_CHECKING, Iterator

from .._exclude import relative_key
from ..client import ContentDescriptor, DirOpt
from ..exceptions import InvalidArgumentError, MCXError, NotFoundError
from ..location import is_container_like
from ._types import CopyType, TransferRequest

if TYPE_CHECKING:
    from .._context import Context
    from .._exclude import ExcludeFilter
    from ..encryption import KeyRegistry
    from ..location import AliasRegistry


def _join(base: str, rel: str) -> str:
    if base.endswith(("/", "\\")):
        return base + rel
    return f"{base}/{rel}"


def _basename(url: str) -> str:
    return posixpath.basename(url.replace("\\", "/").rstrip("/"))


def guess_copy_type(ctx: Context, sources: list[str], target: str, *, recursive: bool,
                    registry: AliasRegistry, keys: KeyRegistry | None = None) -> CopyType:
    """Classify a copy by its arguments.

    Raises:
        InvalidArgumentError: For several sources into a non-container target.
    """
    if recursive:
        return CopyType.RECURSIVE
    target_dir = is_container_like(ctx, target, registry, keys)
    if len(sources) > 1 and not target_dir:
        raise InvalidArgumentError(f"Target {target!r} must be a directory or bucket "
                                   "when copying several sources")
    return CopyType.INTO_DIR if target_dir else CopyType.FILE


def _stat_source(ctx, url, registry, keys, preserve) -> tuple[str, ContentDescriptor]:
    location, client = registry.client_for(url)
    sse = keys.resolve(url) if keys is not None else None
    return location.alias, client.stat(ctx, preserve=preserve, sse=sse)


def _request(source_alias: str, source: ContentDescriptor, source_url: str,
             target_alias: str, target_url: str, template: ContentDescriptor,
             **options) -> TransferRequest:
    src = ContentDescriptor(
        url=source_url, time=source.time, size=source.size,
        storage_class=source.storage_class, metadata=source.metadata, etag=source.etag,
    )
    tgt = ContentDescriptor(
        url=target_url,
        user_metadata=dict(template.user_metadata),
        retention_enabled=template.retention_enabled,
        retention_mode=template.retention_mode,
        retention_duration=template.retention_duration,
        legal_hold_enabled=template.legal_hold_enabled,
        legal_hold=template.legal_hold,
    )
    return TransferRequest(source_alias, src, target_alias, tgt, **options)


def _failed(source_url: str, target_url: str, err: MCXError) -> TransferRequest:
    return TransferRequest("", ContentDescriptor(url=source_url), "",
                           ContentDescriptor(url=target_url), error=err)


def prepare_copy_urls(ctx: Context, sources: list[str], target: str, *, recursive: bool = False,
                      registry: AliasRegistry, keys: KeyRegistry | None = None,
                      template: ContentDescriptor | None = None,
                      exclude: ExcludeFilter | None = None, preserve: bool = False,
                      disable_multipart: bool = False,
                      md5: bool = False) -> Iterator[TransferRequest]:
    """Yield one :class:`TransferRequest` per object to copy.

    *template* carries the per-target overrides (user metadata, retention,
    legal hold) applied to every request.  Sources that cannot be copied
    are yielded as requests with ``error`` set.

    A recursive source ending in ``/`` copies its contents; otherwise its
    last path segment is kept under the target.
    """
    template = template or ContentDescriptor(url=target)
    options = {"disable_multipart": disable_multipart, "md5": md5}
    kind = guess_copy_type(ctx, sources, target, recursive=recursive,
                           registry=registry, keys=keys)
    target_alias = registry.resolve(target).alias

    for source in sources:
        if ctx.cancelled:
            return
        if kind == CopyType.RECURSIVE:
            yield from _expand_recursive(ctx, source, target, target_alias, registry,
                                         template, exclude, preserve, options)
            continue

        dest = target if kind == CopyType.FILE else _join(target, _basename(source))
        try:
            alias, st = _stat_source(ctx, source, registry, keys, preserve)
        except NotFoundError as exc:
            yield _failed(source, dest, exc.trace(path=source))
            continue
        except MCXError as exc:
            yield _failed(source, dest, exc)
            continue
        if st.is_dir:
            yield _failed(source, dest, InvalidArgumentError(
                "Folder cannot be copied without --recursive", path=source))
            continue
        yield _request(alias, st, source, target_alias, dest, template, **options)


def _expand_recursive(ctx, source, target, target_alias, registry, template, exclude, preserve,
                      options) -> Iterator[TransferRequest]:
    try:
        location, client = registry.client_for(source)
    except MCXError as exc:
        yield _failed(source, target, exc)
        return

    contents_only = source.endswith(("/", "\\"))
    base = target if contents_only else _join(target, _basename(source))

    for content in client.list(ctx, recursive=True, fetch_meta=preserve, dir_opt=DirOpt.NONE):
        if not content.ok:
            yield _failed(location.aliased(content.url), target,
                          content.error.trace(location.alias, content.url))
            continue
        if content.is_dir:
            continue
        rel = relative_key(client.path, content.url)
        if exclude is not None and exclude.is_excluded(rel):
            continue
        if rel:
            dest = _join(base, rel)
        else:
            dest = _join(target, _basename(content.url)) if contents_only else base
        yield _request(location.alias, content, location.aliased(content.url),
                       target_alias, dest, template, **options)
