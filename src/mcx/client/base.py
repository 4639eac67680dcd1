"""The capability contract every backend implements."""

from __future__ import annotations

import logging
import threading
from abc import ABC, abstractmethod
from datetime import datetime
from typing import TYPE_CHECKING, BinaryIO, Iterator

from .._channel import Channel
from ..exceptions import BackendError, MCXError
from ._types import ContentDescriptor, DirOpt

if TYPE_CHECKING:
    from .._context import Context
    from ..encryption import EncryptionKeyEntry
    from ._io import Progress

logger = logging.getLogger(__name__)


class Client(ABC):
    """A backend handle bound to one target path.

    Instances are created once per resolved location (see
    :func:`~mcx.client.new_client_from_alias`) and are safe to share
    between the listing and removal tasks of a bulk operation.
    """

    separator = "/"

    def __init__(self, alias: str, url: str):
        self.alias = alias
        self.url = url

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.alias!r}, {self.url!r})"

    @property
    def path(self) -> str:
        """Backend-native path of this client's target."""
        return self.url

    # --- Metadata ---

    @abstractmethod
    def stat(self, ctx: Context, *, incomplete: bool = False, preserve: bool = False,
             sse: EncryptionKeyEntry | None = None) -> ContentDescriptor:
        """Return the descriptor for this client's path.

        Raises:
            NotFoundError: If nothing exists at the path.
            PermissionDeniedError: If the path cannot be inspected.
        """

    @abstractmethod
    def list(self, ctx: Context, *, recursive: bool = False, incomplete: bool = False,
             fetch_meta: bool = False, dir_opt: DirOpt = DirOpt.NONE) -> Iterator[ContentDescriptor]:
        """Lazily yield descriptors under this client's path.

        Stops promptly once *ctx* is cancelled.  Per-path failures are
        yielded in-band as descriptors with ``error`` set.
        """

    # --- I/O ---

    @abstractmethod
    def get(self, ctx: Context, sse: EncryptionKeyEntry | None = None) -> BinaryIO:
        """Open a read stream; the caller closes it."""

    @abstractmethod
    def put(self, ctx: Context, reader: BinaryIO, size: int, metadata: dict[str, str], *,
            progress: Progress | None = None, sse: EncryptionKeyEntry | None = None,
            md5: bool = False, disable_multipart: bool = False) -> int:
        """Write *reader* to this client's path; returns bytes written.

        ``size < 0`` means read until EOF.
        """

    @abstractmethod
    def copy(self, ctx: Context, source: str, size: int, *, progress: Progress | None = None,
             src_sse: EncryptionKeyEntry | None = None, tgt_sse: EncryptionKeyEntry | None = None,
             metadata: dict[str, str] | None = None, disable_multipart: bool = False) -> None:
        """Copy *source* (a path on this same backend) to this client's path."""

    # --- Object locking ---

    @abstractmethod
    def put_retention(self, ctx: Context, mode: str, until: datetime | None,
                      bypass_governance: bool = False) -> None:
        """Set retention *mode* until *until* on this object.

        Both are required; object stores reject an empty *mode* with
        :class:`InvalidArgumentError`.
        """

    @abstractmethod
    def put_legal_hold(self, ctx: Context, hold: str) -> None:
        """Set legal hold ``ON`` or ``OFF`` on this object."""

    # --- Removal ---

    def remove(self, ctx: Context, contents: Channel[ContentDescriptor], *,
               incomplete: bool = False, is_bucket: bool = False,
               bypass_governance: bool = False) -> Channel[MCXError]:
        """Remove every descriptor received on *contents*.

        Runs on a worker thread and returns an unbounded channel carrying
        per-object failures only; it is closed once *contents* is closed
        and drained, or *ctx* is cancelled.
        """
        errors: Channel[MCXError] = Channel()
        worker = threading.Thread(
            target=self._remove_worker,
            args=(ctx, contents, errors, incomplete, is_bucket, bypass_governance),
            name=f"mcx-remove-{self.alias or 'fs'}",
            daemon=True,
        )
        worker.start()
        return errors

    def _remove_worker(self, ctx, contents, errors, incomplete, is_bucket, bypass_governance):
        try:
            for err in self._remove(ctx, contents.iter(ctx), incomplete=incomplete,
                                    is_bucket=is_bucket, bypass_governance=bypass_governance):
                errors.send(err.trace(self.alias))
        except MCXError as exc:
            errors.send(exc.trace(self.alias, self.url))
        except Exception as exc:
            logger.exception("remove worker failed")
            errors.send(BackendError(str(exc), alias=self.alias, path=self.url))
        finally:
            errors.close()

    @abstractmethod
    def _remove(self, ctx: Context, contents: Iterator[ContentDescriptor], *,
                incomplete: bool, is_bucket: bool, bypass_governance: bool) -> Iterator[MCXError]:
        """Delete each descriptor, yielding failures; success is silent."""
