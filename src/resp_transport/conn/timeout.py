"""Deadline-enforcing stream wrapper."""

from __future__ import annotations

from typing import Any

from resp_transport.conn.base import Stream


class TimeoutStream:
    """Wraps a stream so every read and write gets a fresh deadline.

    Before each ``recv_into`` and ``sendall`` the wrapped stream's timeout is
    set to ``timeout`` seconds. Python socket timeouts apply per call, so each
    call is bounded by ``now + timeout`` while an idle connection between
    calls never expires. A timeout of zero or less disables enforcement and
    the wrapped stream's timeout is left untouched.

    Expiry surfaces as ``TimeoutError`` from the wrapped call. This class does
    not interpret or retry it.

    Args:
        stream: The stream to wrap.
        timeout: Per-call timeout in seconds.

    Example:
        ```python
        sock = socket.create_connection(("127.0.0.1", 6379))
        conn = Connection(TimeoutStream(sock, timeout=5.0))
        ```
    """

    def __init__(self, stream: Stream, timeout: float) -> None:
        self._stream = stream
        self._timeout = timeout

    @property
    def timeout(self) -> float:
        """Per-call timeout in seconds."""
        return self._timeout

    @property
    def wrapped(self) -> Stream:
        """The stream this wrapper delegates to."""
        return self._stream

    def _set_deadline(self) -> None:
        if self._timeout > 0:
            self._stream.settimeout(self._timeout)

    def recv_into(self, buffer: Any) -> int:
        self._set_deadline()
        return self._stream.recv_into(buffer)

    def sendall(self, data: bytes) -> None:
        self._set_deadline()
        self._stream.sendall(data)

    def settimeout(self, value: float | None) -> None:
        self._stream.settimeout(value)

    def close(self) -> None:
        self._stream.close()

    def __getattr__(self, name: str) -> Any:
        # fileno, getpeername, setsockopt, ...
        if name == "_stream":
            raise AttributeError(name)
        return getattr(self._stream, name)

    def __repr__(self) -> str:
        return f"TimeoutStream({self._stream!r}, timeout={self._timeout})"
