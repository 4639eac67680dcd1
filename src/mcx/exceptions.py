"""Exceptions for mcx.

Every backend call raises a subclass of :class:`MCXError`.  Bulk pipelines
classify failures by type: :class:`PermissionDeniedError` is skipped and
logged, everything else aborts the current target.
"""

from __future__ import annotations


class MCXError(Exception):
    """Base class for all mcx failures.

    Attributes:
        alias: Alias of the backend involved, if known.
        path: Backend-native path involved, if known.
    """

    def __init__(self, message: str = "", *, alias: str | None = None, path: str | None = None):
        super().__init__(message)
        self.message = message
        self.alias = alias
        self.path = path

    def trace(self, alias: str | None = None, path: str | None = None) -> MCXError:
        """Annotate with *alias* and *path* unless already set; returns self."""
        if self.alias is None and alias is not None:
            self.alias = alias
        if self.path is None and path is not None:
            self.path = path
        return self

    @property
    def location(self) -> str | None:
        if self.path is None:
            return self.alias
        if self.alias:
            return f"{self.alias}:{self.path}"
        return self.path

    def __str__(self) -> str:
        loc = self.location
        if loc and loc not in self.message:
            return f"{self.message} ({loc})"
        return self.message


class NotFoundError(MCXError):
    """The object, bucket or path does not exist."""


class PermissionDeniedError(MCXError):
    """Insufficient permission; bulk operations skip and continue."""


class InvalidArgumentError(MCXError):
    """Malformed key, legal hold, duration or conflicting SSE configuration."""


class PreconditionError(MCXError):
    """A required --force / --dangerous acknowledgment is missing."""


class BackendError(MCXError):
    """Network or filesystem I/O failure."""


class RetentionConflictError(MCXError):
    """Retention cannot change through a content copy; use the retention path."""


class NotSupportedError(MCXError):
    """The backend does not implement the requested operation."""
