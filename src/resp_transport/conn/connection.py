"""Protocol connection over a single byte stream, plus dial helpers.

A ``Connection`` gives serialized access to one stream's protocol-level input
and output. Any transport error observed while encoding or decoding closes the
connection, after which every call raises ``ConnectionClosedError``.
"""

from __future__ import annotations

import io
import json
import logging
import socket
from contextlib import suppress
from datetime import UTC, datetime
from typing import Any, Self

from resp_transport.conn.base import (
    Action,
    ConnectionClosedError,
    Marshaler,
    Stream,
    Unmarshaler,
)
from resp_transport.conn.models import DEFAULT_READ_BUFFER_SIZE, ConnectionConfig
from resp_transport.conn.timeout import TimeoutStream

logger = logging.getLogger(__name__)

_TCP_FAMILIES = {
    "tcp": socket.AF_UNSPEC,
    "tcp4": socket.AF_INET,
    "tcp6": socket.AF_INET6,
}


class _StreamReader(io.RawIOBase):
    """Raw read-only view of a Stream, for wrapping in io.BufferedReader."""

    def __init__(self, stream: Stream) -> None:
        super().__init__()
        self._stream = stream

    def readable(self) -> bool:
        return True

    def readinto(self, buffer: Any) -> int:
        return self._stream.recv_into(buffer)


class Connection:
    """Conn implementation wrapping a stream with buffered reads and writes.

    The stream's own read and write methods must not be used after wrapping.

    Encoding and decoding use separate buffers, so one writer thread and one
    reader thread may use the connection at the same time. Two concurrent
    ``encode`` calls (or two concurrent ``decode`` calls) race and are not
    allowed; callers serialize same-direction calls themselves.

    Args:
        stream: The stream to wrap, e.g. a connected socket or a TimeoutStream.
        read_buffer_size: Size of the buffered reader in bytes.

    Example:
        ```python
        with dial("tcp", "127.0.0.1:6379") as conn:
            cmd = Cmd("PING")
            conn.do(cmd)
            print(cmd.reply.as_str())
        ```
    """

    def __init__(
        self,
        stream: Stream,
        read_buffer_size: int = DEFAULT_READ_BUFFER_SIZE,
    ) -> None:
        self._stream = stream
        self._reader = io.BufferedReader(_StreamReader(stream), buffer_size=read_buffer_size)
        self._write_buffer = io.BytesIO()
        self._closed = False
        self._in_sync = True

    @property
    def net_conn(self) -> Stream:
        """The wrapped stream, as-is. Do not read, write or close it."""
        return self._stream

    @property
    def closed(self) -> bool:
        """True once close() was called or a transport error closed the connection."""
        return self._closed

    @property
    def in_sync(self) -> bool:
        """False while the reader may sit in the middle of a message.

        Cleared when ``decode`` raises a non-transport error, restored by the
        next successful ``decode``. The connection stays open either way; close
        it if the stream position cannot be trusted.
        """
        return self._in_sync

    def _check_open(self) -> None:
        if self._closed:
            raise ConnectionClosedError("connection is closed")

    def do(self, action: Action) -> None:
        """Run ``action`` against this connection."""
        self._check_open()
        action.run(self)

    def encode(self, marshaler: Marshaler) -> None:
        """Marshal into the write buffer and flush it to the stream.

        Raises:
            ConnectionClosedError: If the connection is already closed.
            OSError: On a transport failure; the connection is closed first.
        """
        self._check_open()
        try:
            marshaler.marshal_resp(self._write_buffer)
            self._stream.sendall(self._write_buffer.getvalue())
        except OSError as exc:
            self._close_on_error("encode", exc)
            raise
        finally:
            self._write_buffer.seek(0)
            self._write_buffer.truncate()

    def decode(self, unmarshaler: Unmarshaler) -> None:
        """Unmarshal one message from the buffered reader.

        Raises:
            ConnectionClosedError: If the connection is already closed.
            OSError: On a transport failure; the connection is closed first.
        """
        self._check_open()
        try:
            unmarshaler.unmarshal_resp(self._reader)
        except OSError as exc:
            self._close_on_error("decode", exc)
            raise
        except Exception:
            self._in_sync = False
            raise
        self._in_sync = True

    def close(self) -> None:
        """Close the underlying stream.

        Calling it twice calls the stream's close twice; sockets tolerate
        that, other streams may not.
        """
        self._closed = True
        self._stream.close()

    def _close_on_error(self, operation: str, exc: OSError) -> None:
        log_entry = {
            "event": "connection_closed",
            "operation": operation,
            "error_type": type(exc).__name__,
            "error": str(exc),
            "timestamp": datetime.now(UTC).isoformat(),
        }
        logger.warning(json.dumps(log_entry))
        self._closed = True
        # the caller re-raises the transport error
        with suppress(OSError):
            self._stream.close()

    def __enter__(self) -> Self:
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        if not self._closed:
            self.close()

    def __repr__(self) -> str:
        state = "closed" if self._closed else "open"
        return f"<Connection {state} stream={self._stream!r}>"


def _split_host_port(address: str) -> tuple[str, int]:
    host, sep, port = address.rpartition(":")
    if not sep or not port:
        raise ValueError(f"address {address!r} is missing a port")
    if host.startswith("[") and host.endswith("]"):
        host = host[1:-1]
    try:
        return host, int(port)
    except ValueError:
        raise ValueError(f"address {address!r} has an invalid port") from None


def _connect_tcp(network: str, address: str, timeout: float | None) -> socket.socket:
    host, port = _split_host_port(address)
    last_error: OSError | None = None

    for family, socktype, proto, _, sockaddr in socket.getaddrinfo(
        host or None, port, _TCP_FAMILIES[network], socket.SOCK_STREAM
    ):
        sock = socket.socket(family, socktype, proto)
        try:
            sock.settimeout(timeout)
            sock.connect(sockaddr)
        except OSError as exc:
            sock.close()
            last_error = exc
            continue
        sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)
        return sock

    if last_error is not None:
        raise last_error
    raise OSError(f"no addresses found for {address!r}")


def _connect_unix(address: str, timeout: float | None) -> socket.socket:
    sock = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
    try:
        sock.settimeout(timeout)
        sock.connect(address)
    except OSError:
        sock.close()
        raise
    return sock


def _open_stream(network: str, address: str, timeout: float | None) -> socket.socket:
    if network in _TCP_FAMILIES:
        sock = _connect_tcp(network, address, timeout)
    elif network == "unix":
        sock = _connect_unix(address, timeout)
    else:
        raise ValueError(f"unknown network {network!r}")

    logger.debug(
        json.dumps(
            {
                "event": "dial",
                "network": network,
                "address": address,
                "timeout": timeout,
                "timestamp": datetime.now(UTC).isoformat(),
            }
        )
    )
    return sock


def dial(
    network: str,
    address: str,
    *,
    read_buffer_size: int = DEFAULT_READ_BUFFER_SIZE,
) -> Connection:
    """Open a blocking stream to ``address`` and wrap it in a Connection.

    Satisfies ``DialFunc``.

    Args:
        network: "tcp", "tcp4", "tcp6" or "unix".
        address: "host:port" for TCP networks, a socket path for "unix".
        read_buffer_size: Size of the buffered reader in bytes.

    Returns:
        A ready-to-use Connection.

    Raises:
        OSError: If the stream cannot be opened.
        ValueError: If the network or address is malformed.
    """
    return Connection(_open_stream(network, address, None), read_buffer_size=read_buffer_size)


def dial_timeout(
    network: str,
    address: str,
    timeout: float,
    *,
    read_buffer_size: int = DEFAULT_READ_BUFFER_SIZE,
) -> Connection:
    """Like dial, but ``timeout`` bounds the connect and every read and write.

    The socket is wrapped in a TimeoutStream, so every encode and decode
    re-arms the deadline on each underlying read or write. A timeout of zero
    or less means no deadlines at all.
    """
    connect_timeout = timeout if timeout > 0 else None
    sock = _open_stream(network, address, connect_timeout)
    return Connection(TimeoutStream(sock, timeout), read_buffer_size=read_buffer_size)


def dial_config(config: ConnectionConfig) -> Connection:
    """Dial using the settings in ``config``."""
    if config.timeout > 0:
        return dial_timeout(
            config.network,
            config.address,
            config.timeout,
            read_buffer_size=config.read_buffer_size,
        )
    return dial(config.network, config.address, read_buffer_size=config.read_buffer_size)
