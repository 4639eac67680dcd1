"""Data structures shared by all backend clients."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING

from .._headers import canonical_metadata

if TYPE_CHECKING:
    from ..exceptions import MCXError


class DirOpt(str, Enum):
    """Where directory-like entries appear in a listing.

    Members: ``NONE`` (suppressed), ``FIRST`` (before their children),
    ``LAST`` (after their children).
    """
    NONE = "none"
    FIRST = "first"
    LAST = "last"

    def __str__(self) -> str:          # noqa: D105
        return self.value


@dataclass
class ContentDescriptor:
    """One object or directory entry.

    Produced by ``stat`` and ``list``; owned by whichever task received it.
    A listing failure is delivered in-band as a descriptor with ``error``
    set and ``url`` naming the path that failed.

    Attributes:
        url: Backend-native path (filesystem path or ``/bucket/key``).
        time: Last-modified time (tz-aware), ``None`` for prefix levels.
        size: Size in bytes.
        is_dir: Directory, bucket or common prefix.
        storage_class: Backend storage class.
        metadata: Stored metadata with canonical header keys.
        user_metadata: Caller-supplied metadata (e.g. ``cp --attr``).
        etag: Entity tag without quotes.
        expires: Expiry time, if any.
        error: In-band listing failure.
    """
    url: str
    time: datetime | None = None
    size: int = 0
    is_dir: bool = False
    storage_class: str = ""
    metadata: dict[str, str] = field(default_factory=dict)
    user_metadata: dict[str, str] = field(default_factory=dict)
    etag: str = ""
    expires: datetime | None = None
    retention_enabled: bool = False
    retention_mode: str = ""
    retention_duration: str = ""
    bypass_governance: bool = False
    legal_hold_enabled: bool = False
    legal_hold: str = ""
    error: MCXError | None = None

    def __post_init__(self):
        self.metadata = canonical_metadata(self.metadata)
        self.user_metadata = canonical_metadata(self.user_metadata)

    @classmethod
    def failure(cls, url: str, error: MCXError) -> ContentDescriptor:
        """Create an in-band error entry for *url*."""
        return cls(url=url, error=error)

    @property
    def ok(self) -> bool:
        return self.error is None
