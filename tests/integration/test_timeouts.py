"""Integration tests for per-operation deadlines on dialed connections."""

from __future__ import annotations

import time

import pytest

from benchmarks.mock_server import MockServerFixture
from resp_transport import Cmd, ConnectionClosedError, dial_timeout

pytestmark = pytest.mark.integration


class TestDeadlines:
    """Deadlines bound each read and write, not the connection lifetime."""

    def test_slow_reply_times_out_and_closes(self, mock_server: MockServerFixture) -> None:
        conn = dial_timeout("tcp", mock_server.address, 0.2)

        start = time.monotonic()
        with pytest.raises(TimeoutError):
            conn.do(Cmd("DEBUG", "SLEEP", 1))
        elapsed = time.monotonic() - start

        assert elapsed < 1.0
        assert conn.closed
        with pytest.raises(ConnectionClosedError):
            conn.do(Cmd("PING"))

    def test_fast_replies_within_deadline(self, mock_server: MockServerFixture) -> None:
        with dial_timeout("tcp", mock_server.address, 1.0) as conn:
            cmd = Cmd("DEBUG", "SLEEP", 0.05)
            conn.do(cmd)

        assert cmd.reply is not None
        assert cmd.reply.as_str() == "OK"

    def test_idle_connection_does_not_expire(self, mock_server: MockServerFixture) -> None:
        """Time spent between operations does not count against the deadline."""
        with dial_timeout("tcp", mock_server.address, 0.2) as conn:
            conn.do(Cmd("PING"))
            time.sleep(0.4)
            cmd = Cmd("PING")
            conn.do(cmd)

        assert cmd.reply is not None
        assert cmd.reply.as_str() == "PONG"
