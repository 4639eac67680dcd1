"""Closable FIFO channel for producer/consumer pipelines."""

from __future__ import annotations

import threading
from collections import deque
from typing import Generic, Iterator, TypeVar

from ._context import Context

T = TypeVar("T")

# How often blocked operations re-check the cancellation context.
POLL_INTERVAL = 0.05


class ChannelClosed(Exception):
    """Raised when sending on a closed channel."""


class Empty(Exception):
    """Raised by :meth:`Channel.recv` when the timeout elapses."""


class Channel(Generic[T]):
    """A thread-safe channel with Go-like close semantics.

    ``maxsize <= 0`` means unbounded.  After :meth:`close`, buffered items
    can still be received; once drained, :meth:`recv` reports ``ok=False``.
    """

    def __init__(self, maxsize: int = 0):
        self._items: deque[T] = deque()
        self._maxsize = maxsize
        self._closed = False
        self._cond = threading.Condition()

    def _full(self) -> bool:
        return self._maxsize > 0 and len(self._items) >= self._maxsize

    @property
    def closed(self) -> bool:
        with self._cond:
            return self._closed

    def send(self, item: T, timeout: float | None = None) -> bool:
        """Append *item*, blocking while full.

        Returns ``False`` if *timeout* elapsed before space was available.

        Raises:
            ChannelClosed: If the channel is (or becomes) closed.
        """
        with self._cond:
            ready = self._cond.wait_for(
                lambda: self._closed or not self._full(), timeout)
            if self._closed:
                raise ChannelClosed()
            if not ready:
                return False
            self._items.append(item)
            self._cond.notify_all()
            return True

    def recv(self, timeout: float | None = None) -> tuple[T | None, bool]:
        """Pop the next item as ``(item, True)``, or ``(None, False)`` once
        closed and drained.

        Raises:
            Empty: If *timeout* elapsed with nothing to receive.
        """
        with self._cond:
            ready = self._cond.wait_for(
                lambda: self._items or self._closed, timeout)
            if not ready:
                raise Empty()
            if self._items:
                item = self._items.popleft()
                self._cond.notify_all()
                return item, True
            return None, False

    def close(self) -> bool:
        """Close the channel.  Returns ``False`` if it was already closed."""
        with self._cond:
            if self._closed:
                return False
            self._closed = True
            self._cond.notify_all()
            return True

    def __iter__(self) -> Iterator[T]:
        while True:
            item, ok = self.recv()
            if not ok:
                return
            yield item

    def iter(self, ctx: Context) -> Iterator[T]:
        """Iterate until closed and drained, or until *ctx* is cancelled."""
        while not ctx.cancelled:
            try:
                item, ok = self.recv(timeout=POLL_INTERVAL)
            except Empty:
                continue
            if not ok:
                return
            yield item
