"""RESP2 encoding of commands and decoding of replies.

Commands go out as arrays of bulk strings::

    *3\\r\\n$3\\r\\nSET\\r\\n$1\\r\\nk\\r\\n$1\\r\\nv\\r\\n

Replies come back as one of five types, told apart by the first byte:
``+`` status, ``-`` error, ``:`` integer, ``$`` bulk string, ``*`` array.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import BinaryIO

from resp_transport.conn.base import ConnectionClosedError
from resp_transport.resp.types import ProtocolError, Reply, ReplyError, ReplyType

CRLF = b"\r\n"

# Upper bound for a single header line; bulk payloads are read by length.
MAX_LINE_LENGTH = 64 * 1024

# Largest bulk length or array count accepted, as Redis's proto-max-bulk-len.
MAX_BULK_LENGTH = 512 * 1024 * 1024

# Deepest array nesting accepted in one reply.
MAX_NESTING = 128

READ_CHUNK_SIZE = 64 * 1024


def _to_bytes(arg: object) -> bytes:
    if isinstance(arg, bytes):
        return arg
    if isinstance(arg, (bytearray, memoryview)):
        return bytes(arg)
    if isinstance(arg, str):
        return arg.encode("utf-8")
    # bool before int: bool is an int subclass
    if isinstance(arg, bool):
        return b"1" if arg else b"0"
    if isinstance(arg, (int, float)):
        return str(arg).encode("ascii")
    if arg is None:
        return b""
    raise TypeError(f"cannot encode argument of type {type(arg).__name__}")


def flatten_args(args: Iterable[object]) -> list[bytes]:
    """Convert command arguments to bulk-string payloads.

    Lists and tuples are flattened one level and mappings become alternating
    key, value pairs, so ``("HSET", "h", {"a": 1})`` sends ``HSET h a 1``.

    Raises:
        TypeError: If an argument has no wire representation.
    """
    flat: list[bytes] = []
    for arg in args:
        if isinstance(arg, Mapping):
            for key, value in arg.items():
                flat.append(_to_bytes(key))
                flat.append(_to_bytes(value))
        elif isinstance(arg, (list, tuple)):
            flat.extend(_to_bytes(item) for item in arg)
        else:
            flat.append(_to_bytes(arg))
    return flat


def encode_command(name: str, args: Iterable[object] = ()) -> bytes:
    """Encode a command and its arguments as a RESP array of bulk strings."""
    parts = [name.encode("utf-8"), *flatten_args(args)]
    out = bytearray(b"*%d\r\n" % len(parts))
    for part in parts:
        out += b"$%d\r\n" % len(part)
        out += part
        out += CRLF
    return bytes(out)


def _read_line(reader: BinaryIO) -> bytes:
    line = reader.readline(MAX_LINE_LENGTH)
    if not line.endswith(b"\n"):
        if len(line) >= MAX_LINE_LENGTH:
            raise ProtocolError(f"reply line longer than {MAX_LINE_LENGTH} bytes")
        raise ConnectionClosedError("stream closed while reading reply")
    if not line.endswith(CRLF):
        raise ProtocolError(f"reply line not terminated by CRLF: {line!r}")
    return line[:-2]


def _read_exact(reader: BinaryIO, size: int) -> bytes:
    # bounded chunks; the declared length is never allocated up front
    chunks: list[bytes] = []
    remaining = size
    while remaining:
        chunk = reader.read(min(remaining, READ_CHUNK_SIZE))
        if not chunk:
            raise ConnectionClosedError("stream closed while reading reply")
        chunks.append(chunk)
        remaining -= len(chunk)
    return b"".join(chunks)


def _parse_int(payload: bytes) -> int:
    try:
        return int(payload)
    except ValueError:
        raise ProtocolError(f"invalid integer in reply: {payload!r}") from None


def _parse_length(payload: bytes) -> int:
    length = _parse_int(payload)
    if length < -1:
        raise ProtocolError(f"invalid length in reply: {length}")
    if length > MAX_BULK_LENGTH:
        raise ProtocolError(f"length {length} exceeds limit of {MAX_BULK_LENGTH}")
    return length


def read_reply(reader: BinaryIO) -> Reply:
    """Read one complete reply, including every nested array element.

    Raises:
        ProtocolError: If the bytes do not form a valid reply, a length
            exceeds MAX_BULK_LENGTH or arrays nest deeper than MAX_NESTING.
        ConnectionClosedError: If the stream ends in the middle of a reply.
        OSError: Any transport error raised by the reader.
    """
    return _read_reply(reader, 0)


def _read_reply(reader: BinaryIO, depth: int) -> Reply:
    line = _read_line(reader)
    if not line:
        raise ProtocolError("empty reply line")

    prefix, payload = line[:1], line[1:]

    if prefix == b"+":
        return Reply(ReplyType.STATUS, value=payload)

    if prefix == b"-":
        return Reply(ReplyType.ERROR, error=ReplyError(payload.decode("utf-8", "replace")))

    if prefix == b":":
        return Reply(ReplyType.INTEGER, value=_parse_int(payload))

    if prefix == b"$":
        length = _parse_length(payload)
        if length == -1:
            return Reply(ReplyType.NIL)
        data = _read_exact(reader, length + 2)
        if data[-2:] != CRLF:
            raise ProtocolError("bulk string not terminated by CRLF")
        return Reply(ReplyType.BULK, value=data[:-2])

    if prefix == b"*":
        count = _parse_length(payload)
        if count == -1:
            return Reply(ReplyType.NIL)
        if depth >= MAX_NESTING:
            raise ProtocolError(f"arrays nested deeper than {MAX_NESTING} levels")
        return Reply(
            ReplyType.MULTI,
            elems=[_read_reply(reader, depth + 1) for _ in range(count)],
        )

    raise ProtocolError(f"unknown reply type byte {prefix!r}")
