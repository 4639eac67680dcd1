"""Data structures for the copy pipeline."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

from ..client import ContentDescriptor

if TYPE_CHECKING:
    from ..client import Progress
    from ..exceptions import MCXError


class CopyType(str, Enum):
    """How command-line sources map onto the target.

    Members: ``FILE`` (one file to a file path), ``INTO_DIR`` (files into a
    container), ``RECURSIVE`` (directory trees into a container).
    """
    FILE = "file"
    INTO_DIR = "into-dir"
    RECURSIVE = "recursive"

    def __str__(self) -> str:          # noqa: D105
        return self.value


@dataclass
class TransferRequest:
    """One object to transfer.  Built fresh per object, never reused.

    ``source.url`` and ``target.url`` are aliased URLs (``s3/bucket/key``
    or a filesystem path).  Retention and legal hold overrides travel on
    ``target``; ``source.retention_enabled`` requests a retention-only
    update with no content copy.

    Attributes:
        source_alias: Alias of the source location.
        source: Source descriptor (size, stored and user metadata).
        target_alias: Alias of the target location.
        target: Target descriptor (user metadata, lock overrides).
        progress: Optional progress sink.
        disable_multipart: Force a single-part upload.
        md5: Require an MD5 checksum on upload.
        error: Set by planning when the request cannot be carried out.
    """
    source_alias: str
    source: ContentDescriptor
    target_alias: str
    target: ContentDescriptor
    progress: Progress | None = None
    disable_multipart: bool = False
    md5: bool = False
    error: MCXError | None = None

    @property
    def same_backend(self) -> bool:
        return self.source_alias == self.target_alias


@dataclass
class TransferResult:
    """Outcome of one :class:`TransferRequest`.

    Attributes:
        request: The request carried out.
        size: Bytes transferred (``0`` for retention-only updates).
        error: The failure, annotated with source/target context.
    """
    request: TransferRequest
    size: int = 0
    error: MCXError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None
