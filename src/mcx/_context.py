"""Cancellation handle passed explicitly through every layer."""

from __future__ import annotations

import threading


class Context:
    """A cancellation token scoped to one command invocation.

    Cancelling a context cancels all of its children.  Children never
    cancel their parent, so a per-target child can be torn down without
    affecting the next target.
    """

    def __init__(self, parent: Context | None = None):
        self._event = threading.Event()
        self._children: list[Context] = []
        self._lock = threading.Lock()
        self._parent = parent
        if parent is not None:
            parent._adopt(self)

    def _adopt(self, child: Context) -> None:
        with self._lock:
            self._children.append(child)
            cancelled = self._event.is_set()
        if cancelled:
            child.cancel()

    def _release(self, child: Context) -> None:
        with self._lock:
            try:
                self._children.remove(child)
            except ValueError:
                pass

    def child(self) -> Context:
        """Return a new context cancelled together with this one."""
        return Context(self)

    def cancel(self) -> None:
        self._event.set()
        with self._lock:
            children = list(self._children)
        for c in children:
            c.cancel()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def wait(self, timeout: float | None = None) -> bool:
        """Block until cancelled or *timeout* elapses; returns ``cancelled``."""
        return self._event.wait(timeout)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.cancel()
        if self._parent is not None:
            self._parent._release(self)
        return False


def background() -> Context:
    """Return a fresh root context."""
    return Context()
