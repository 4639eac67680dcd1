"""Tests for the closable channel and cancellation contexts."""

import threading
import time

import pytest

from mcx._channel import Channel, ChannelClosed, Empty
from mcx._context import Context, background


class TestContext:
    def test_cancel(self):
        ctx = background()
        assert not ctx.cancelled
        ctx.cancel()
        assert ctx.cancelled
        assert ctx.wait(0)

    def test_child_cancelled_with_parent(self):
        parent = background()
        child = parent.child()
        grandchild = child.child()
        parent.cancel()
        assert child.cancelled
        assert grandchild.cancelled

    def test_child_does_not_cancel_parent(self):
        parent = background()
        child = parent.child()
        child.cancel()
        assert not parent.cancelled

    def test_child_of_cancelled_parent(self):
        parent = background()
        parent.cancel()
        assert parent.child().cancelled

    def test_context_manager_cancels(self):
        parent = background()
        with parent.child() as child:
            assert not child.cancelled
        assert child.cancelled
        assert not parent.cancelled

    def test_wait_timeout(self):
        assert Context().wait(0.01) is False


class TestChannel:
    def test_fifo(self):
        ch = Channel()
        for i in range(3):
            assert ch.send(i)
        ch.close()
        assert list(ch) == [0, 1, 2]

    def test_recv_after_close_drained(self):
        ch = Channel()
        ch.send("x")
        ch.close()
        assert ch.recv() == ("x", True)
        assert ch.recv() == (None, False)

    def test_send_on_closed(self):
        ch = Channel()
        ch.close()
        with pytest.raises(ChannelClosed):
            ch.send(1)

    def test_close_twice(self):
        ch = Channel()
        assert ch.close() is True
        assert ch.close() is False
        assert ch.closed

    def test_recv_poll_empty(self):
        with pytest.raises(Empty):
            Channel().recv(timeout=0)

    def test_bounded_send_times_out(self):
        ch = Channel(maxsize=1)
        assert ch.send(1, timeout=0)
        assert ch.send(2, timeout=0.01) is False

    def test_bounded_blocks_until_received(self):
        ch = Channel(maxsize=1)
        ch.send(1)
        received = []

        def consumer():
            time.sleep(0.05)
            received.append(ch.recv())

        t = threading.Thread(target=consumer)
        t.start()
        assert ch.send(2, timeout=2)
        t.join()
        assert received == [(1, True)]
        assert ch.recv(timeout=0) == (2, True)

    def test_close_wakes_blocked_sender(self):
        ch = Channel(maxsize=1)
        ch.send(1)
        threading.Timer(0.05, ch.close).start()
        with pytest.raises(ChannelClosed):
            ch.send(2, timeout=2)

    def test_iter_stops_on_cancel(self):
        ch = Channel()
        ctx = background()
        ch.send("a")
        items = []
        for item in ch.iter(ctx):
            items.append(item)
            ctx.cancel()
        assert items == ["a"]

    def test_iter_until_closed(self):
        ch = Channel()
        ctx = background()

        def producer():
            for i in range(5):
                ch.send(i)
            ch.close()

        threading.Thread(target=producer).start()
        assert list(ch.iter(ctx)) == [0, 1, 2, 3, 4]
