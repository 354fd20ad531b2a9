"""Tests for TimeoutStream, the per-call deadline wrapper."""

from __future__ import annotations

import socket
import threading
import time

import pytest

from resp_transport.conn.base import Stream
from resp_transport.conn.timeout import TimeoutStream


class TestTimeoutStreamDeadlines:
    """Deadline refresh on each read and write."""

    def test_positive_timeout_set_before_each_read(self, make_stream) -> None:
        """Every recv_into should re-arm the deadline."""
        stub = make_stream(b"abcdef")
        stream = TimeoutStream(stub, timeout=2.5)
        buffer = bytearray(3)

        stream.recv_into(buffer)
        stream.recv_into(buffer)

        assert stub.timeouts == [2.5, 2.5]
        assert bytes(buffer) == b"def"

    def test_positive_timeout_set_before_each_write(self, make_stream) -> None:
        """Every sendall should re-arm the deadline."""
        stub = make_stream()
        stream = TimeoutStream(stub, timeout=1.0)

        stream.sendall(b"one")
        stream.sendall(b"two")

        assert stub.timeouts == [1.0, 1.0]
        assert bytes(stub.sent) == b"onetwo"

    @pytest.mark.parametrize("timeout", [0, 0.0, -1.0])
    def test_non_positive_timeout_never_touches_stream(self, make_stream, timeout) -> None:
        """Zero or negative timeouts should disable deadline enforcement."""
        stub = make_stream(b"x")
        stream = TimeoutStream(stub, timeout=timeout)

        stream.recv_into(bytearray(1))
        stream.sendall(b"y")

        assert stub.timeouts == []

    def test_errors_pass_through_uninterpreted(self, make_stream) -> None:
        """A timeout raised by the wrapped stream should surface unchanged."""
        error = TimeoutError("timed out")
        stub = make_stream(recv_error=error)
        stream = TimeoutStream(stub, timeout=1.0)

        with pytest.raises(TimeoutError) as exc_info:
            stream.recv_into(bytearray(1))

        assert exc_info.value is error
        assert stub.recv_calls == 1


class TestTimeoutStreamDelegation:
    """Attribute and lifecycle delegation."""

    def test_satisfies_stream_protocol(self, make_stream) -> None:
        """TimeoutStream should itself be usable as a Stream."""
        assert isinstance(TimeoutStream(make_stream(), 1.0), Stream)

    def test_close_delegates(self, make_stream) -> None:
        """close() should close the wrapped stream."""
        stub = make_stream()
        TimeoutStream(stub, 1.0).close()
        assert stub.closed

    def test_unknown_attributes_delegate(self, make_stream) -> None:
        """Attributes not defined by the wrapper come from the wrapped stream."""
        stub = make_stream()
        stub.peer = "127.0.0.1:6379"
        stream = TimeoutStream(stub, 1.0)

        assert stream.peer == "127.0.0.1:6379"
        assert stream.wrapped is stub
        assert stream.timeout == 1.0

    def test_missing_attribute_raises(self, make_stream) -> None:
        """Missing attributes should raise AttributeError, not recurse."""
        with pytest.raises(AttributeError):
            getattr(TimeoutStream(make_stream(), 1.0), "does_not_exist")


class TestTimeoutStreamOverSockets:
    """Behavior against a real blocking socket pair."""

    def test_stalled_read_is_bounded_by_timeout(self) -> None:
        """A read with no data should fail after roughly the timeout."""
        left, right = socket.socketpair()
        try:
            stream = TimeoutStream(left, timeout=0.1)
            start = time.monotonic()
            with pytest.raises(TimeoutError):
                stream.recv_into(bytearray(16))
            elapsed = time.monotonic() - start
            assert 0.05 <= elapsed < 2.0
        finally:
            left.close()
            right.close()

    def test_zero_timeout_blocks_until_data_arrives(self) -> None:
        """Without a deadline, a read should stay blocked until the peer writes."""
        left, right = socket.socketpair()
        received: list[bytes] = []

        def reader() -> None:
            buffer = bytearray(16)
            n = TimeoutStream(left, timeout=0).recv_into(buffer)
            received.append(bytes(buffer[:n]))

        thread = threading.Thread(target=reader, daemon=True)
        try:
            thread.start()
            thread.join(timeout=0.3)
            assert thread.is_alive(), "read returned without data or deadline"

            right.sendall(b"late")
            thread.join(timeout=2.0)
            assert not thread.is_alive()
            assert received == [b"late"]
        finally:
            left.close()
            right.close()

    def test_idle_time_between_calls_does_not_expire(self) -> None:
        """Only individual calls are bounded, not the time between them."""
        left, right = socket.socketpair()
        try:
            stream = TimeoutStream(left, timeout=0.1)
            right.sendall(b"a")
            assert stream.recv_into(bytearray(1)) == 1
            time.sleep(0.2)
            right.sendall(b"b")
            assert stream.recv_into(bytearray(1)) == 1
        finally:
            left.close()
            right.close()
