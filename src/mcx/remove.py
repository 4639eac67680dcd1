"""Bulk remove pipeline.

Recursive removal runs two tasks: this module lists the target and feeds
surviving descriptors into a bounded channel, while the backend's
``Client.remove`` worker deletes them and reports failures on a second
channel.  Permission failures are logged and skipped; any other failure
aborts the target.  Both channels are always closed and the failure
channel is always drained before returning.
"""

from __future__ import annotations

import logging
import posixpath
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from ._age import AgeFilter
from ._channel import POLL_INTERVAL, Channel, ChannelClosed, Empty
from ._exclude import relative_key
from .client import ContentDescriptor, DirOpt
from .exceptions import (
    BackendError,
    MCXError,
    NotFoundError,
    PermissionDeniedError,
    PreconditionError,
)
from .location import is_container_like, location_is_fs

if TYPE_CHECKING:
    from ._context import Context
    from ._exclude import ExcludeFilter
    from .client import Client
    from .encryption import KeyRegistry
    from .location import AliasRegistry, Location

logger = logging.getLogger(__name__)

# Capacity of the descriptor channel between the lister and the remover.
FEED_SIZE = 1

_FORCE_MSG = ("Removal requires --force flag. This operation is *IRREVERSIBLE*. "
              "Please review carefully before performing this *DANGEROUS* operation.")
_RECURSIVE_MSG = ("Removal requires --recursive flag. This operation is *IRREVERSIBLE*. "
                  "Please review carefully before performing this *DANGEROUS* operation.")
_DANGEROUS_MSG = ("This operation results in site-wide removal of objects. If you are "
                  "really sure, retry this command with '--dangerous' and '--force' flags.")

OnRemove = Callable[[str, ContentDescriptor], None]


@dataclass
class RemoveResult:
    """Outcome of removing one top-level target.

    Attributes:
        url: The target as given by the user.
        removed: Descriptors selected for removal (in fake mode, the
            candidates that would have been removed).
        errors: Every failure, including skipped permission failures.
        aborted: A non-permission failure stopped the target early.
    """
    url: str
    removed: list[ContentDescriptor] = field(default_factory=list)
    errors: list[MCXError] = field(default_factory=list)
    aborted: bool = False

    @property
    def ok(self) -> bool:
        return not self.errors and not self.aborted

    def record(self, err: MCXError) -> bool:
        """Record *err*; return True if processing may continue."""
        self.errors.append(err)
        if isinstance(err, PermissionDeniedError):
            logger.warning("skipping %s", err)
            return True
        logger.error("removal failed: %s", err)
        self.aborted = True
        return False


# ---------------------------------------------------------------------------
# Safety gating
# ---------------------------------------------------------------------------

def _clean(url: str) -> str:
    cleaned = posixpath.normpath(url.replace("\\", "/"))
    if url.startswith("//"):
        cleaned = "/" + cleaned.lstrip("/")
    return cleaned


def check_rm_syntax(ctx: Context, urls, *, recursive: bool = False, force: bool = False,
                    dangerous: bool = False, stdin: bool = False,
                    registry: AliasRegistry, keys: KeyRegistry | None = None) -> None:
    """Validate removal flags before any listing starts.

    Raises:
        PreconditionError: When ``--recursive``/``--force``/``--dangerous``
            acknowledgments are missing, or no target is given.
    """
    namespace_removal = False
    for url in urls:
        url = _clean(url)
        if not is_container_like(ctx, url, registry, keys):
            if not location_is_fs(url, registry):
                _, _, path = url.partition("/")
                namespace_removal = path == ""
            break
        if not recursive:
            raise PreconditionError(_RECURSIVE_MSG, path=url)
        if not force:
            raise PreconditionError(_FORCE_MSG, path=url)

    if not urls and not stdin:
        raise PreconditionError("No removal target given")

    if (recursive or stdin) and not force:
        raise PreconditionError(_DANGEROUS_MSG if namespace_removal else _FORCE_MSG)
    if (recursive or stdin) and namespace_removal and not dangerous:
        raise PreconditionError(_DANGEROUS_MSG)


# ---------------------------------------------------------------------------
# Removal
# ---------------------------------------------------------------------------

def remove_single(ctx: Context, url: str, *, registry: AliasRegistry,
                  keys: KeyRegistry | None = None, incomplete: bool = False,
                  fake: bool = False, force: bool = False, bypass: bool = False,
                  age: AgeFilter | None = None,
                  on_remove: OnRemove | None = None) -> RemoveResult:
    """Remove one object (or empty directory / prefix marker).

    A missing target is an error unless *force* is set.  Age-filtered
    targets are skipped without error.
    """
    result = RemoveResult(url)
    age = age or AgeFilter()
    with ctx.child() as rctx:
        try:
            location, client = registry.client_for(url)
            sse = keys.resolve(url) if keys is not None else None
            content = client.stat(rctx, incomplete=incomplete, sse=sse)
        except NotFoundError as exc:
            if force:
                logger.debug("%s does not exist; nothing to remove", url)
                return result
            result.record(exc.trace(path=url))
            return result
        except MCXError as exc:
            result.record(exc.trace(path=url))
            return result

        if not age.matches(content.time):
            logger.debug("skipping %s: outside age filter", url)
            return result

        result.removed.append(content)
        if on_remove is not None:
            on_remove(url, content)
        if fake:
            return result

        path = client.path
        if content.is_dir and not path.endswith(client.separator):
            path += client.separator
        contents: Channel[ContentDescriptor] = Channel(maxsize=1)
        contents.send(ContentDescriptor(url=path, is_dir=content.is_dir))
        contents.close()
        errors = client.remove(rctx, contents, incomplete=incomplete,
                               is_bucket=False, bypass_governance=bypass)
        for err in errors:
            result.record(err)
    return result


def _feed(ctx: Context, content: ContentDescriptor, contents: Channel,
          errors: Channel, result: RemoveResult) -> bool:
    """Send *content* to the remover while watching for its failures.

    Returns False if the target must be aborted.
    """
    while not ctx.cancelled:
        try:
            err, ok = errors.recv(timeout=0)
        except Empty:
            pass
        else:
            if not ok:
                result.record(BackendError("remover stopped before the listing ended",
                                           path=result.url))
                return False
            if not result.record(err):
                return False
            continue
        try:
            if contents.send(content, timeout=POLL_INTERVAL):
                return True
        except ChannelClosed:
            return False
    result.aborted = True
    return False


def _select(content: ContentDescriptor, root: str, age: AgeFilter,
            exclude: ExcludeFilter | None) -> bool:
    # Prefix levels carry no timestamp.
    if content.time is None:
        return False
    if not age.matches(content.time):
        return False
    if exclude is not None and exclude.is_excluded(relative_key(root, content.url),
                                                   is_dir=content.is_dir):
        return False
    return True


def remove_recursive(ctx: Context, url: str, *, registry: AliasRegistry,
                     keys: KeyRegistry | None = None, incomplete: bool = False,
                     fake: bool = False, bypass: bool = False,
                     age: AgeFilter | None = None, exclude: ExcludeFilter | None = None,
                     on_remove: OnRemove | None = None) -> RemoveResult:
    """List *url* recursively and remove every selected entry.

    Objects are removed in listing order.  In fake mode nothing is sent to
    the backend but the same candidates are reported.
    """
    result = RemoveResult(url)
    age = age or AgeFilter()
    try:
        location, client = registry.client_for(url)
    except MCXError as exc:
        result.record(exc.trace(path=url))
        return result

    with ctx.child() as rctx:
        contents: Channel[ContentDescriptor] = Channel(maxsize=FEED_SIZE)
        errors: Channel[MCXError] | None = None
        if not fake:
            errors = client.remove(rctx, contents, incomplete=incomplete,
                                   is_bucket=False, bypass_governance=bypass)
        try:
            _produce(rctx, client, location, result, contents, errors,
                     incomplete=incomplete, age=age, exclude=exclude, on_remove=on_remove)
        finally:
            contents.close()
            if errors is not None:
                for err in errors:
                    result.record(err)
    return result


def _produce(ctx: Context, client: Client, location: Location, result: RemoveResult,
             contents: Channel, errors: Channel | None, *, incomplete: bool,
             age: AgeFilter, exclude: ExcludeFilter | None,
             on_remove: OnRemove | None) -> None:
    root = client.path
    for content in client.list(ctx, recursive=True, incomplete=incomplete, dir_opt=DirOpt.NONE):
        if not content.ok:
            if not result.record(content.error.trace(location.alias, content.url)):
                return
            continue
        if not _select(content, root, age, exclude):
            continue

        result.removed.append(content)
        if on_remove is not None:
            on_remove(location.aliased(content.url), content)
        if errors is None:
            continue
        if not _feed(ctx, content, contents, errors, result):
            return
    if ctx.cancelled:
        result.aborted = True
