"""Capability protocols shared by connections, actions and raw streams.

The connection layer only knows about these contracts. It never inspects the
commands an action sends or the wire grammar a marshaler produces, which lets
arbitrary command protocols be layered on top of a single ``Conn``.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any, BinaryIO, Protocol, runtime_checkable


class ConnectionClosedError(ConnectionError):
    """Raised when a closed connection is used or the peer closes the stream.

    Derives from ``ConnectionError`` so it is an ``OSError`` and therefore
    counts as a transport error everywhere in this package.
    """

    pass


@runtime_checkable
class Stream(Protocol):
    """Byte-stream surface a connection can be built on.

    ``socket.socket`` satisfies this protocol, as does ``TimeoutStream``.
    """

    def recv_into(self, buffer: Any) -> int:
        """Read available bytes into ``buffer``, returning the count (0 at EOF)."""
        ...

    def sendall(self, data: bytes) -> None:
        """Write all of ``data`` to the stream."""
        ...

    def settimeout(self, value: float | None) -> None:
        """Set the timeout applied to each subsequent blocking call."""
        ...

    def close(self) -> None:
        """Close the stream."""
        ...


@runtime_checkable
class Marshaler(Protocol):
    """A value that can serialize itself into a byte sink."""

    def marshal_resp(self, writer: BinaryIO) -> None:
        """Write the wire representation of this value to ``writer``."""
        ...


@runtime_checkable
class Unmarshaler(Protocol):
    """A value that can populate itself from a byte source."""

    def unmarshal_resp(self, reader: BinaryIO) -> None:
        """Read exactly one wire message from ``reader`` into this value."""
        ...


@runtime_checkable
class Client(Protocol):
    """An entity which can carry out Actions.

    Examples are a single connection, or a pool or cluster client layered on
    top of ``DialFunc``. Once ``close()`` is called every further call on the
    client raises.
    """

    def do(self, action: Action) -> None:
        """Run ``action`` against this client."""
        ...

    def close(self) -> None:
        """Tear the client down."""
        ...


@runtime_checkable
class Conn(Client, Protocol):
    """A Client which synchronously reads and writes protocol messages.

    ``encode`` and ``decode`` may be called at the same time from two
    different threads, but each must only be called by one thread at a time.

    If either ``encode`` or ``decode`` hits a transport error (``OSError``)
    the connection closes itself before re-raising.
    """

    def encode(self, marshaler: Marshaler) -> None:
        """Serialize ``marshaler`` and flush it to the stream."""
        ...

    def decode(self, unmarshaler: Unmarshaler) -> None:
        """Read one message from the stream into ``unmarshaler``."""
        ...

    @property
    def net_conn(self) -> Stream:
        """The underlying stream, for identity and inspection only.

        Reading, writing or closing it directly desynchronizes the connection.
        """
        ...


@runtime_checkable
class Action(Protocol):
    """A unit of work that knows how to drive a connection.

    Actions own their own command and reply state. Results are exposed as
    attributes of the action once ``run`` returns.
    """

    def run(self, conn: Conn) -> None:
        """Execute against ``conn``, raising on transport or protocol failure."""
        ...


# Returns an initialized, ready-to-use Conn. Pools and cluster clients take a
# DialFunc so callers can inject AUTH calls, timeouts or custom Conn types.
DialFunc = Callable[[str, str], Conn]
