"""Reply model for the RESP protocol.

A ``Reply`` is a tagged variant: exactly one of its arms is meaningful,
selected by ``type``. Scalar arms use ``value``, the ERROR arm uses ``error``
and the MULTI arm uses ``elems``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import BinaryIO, cast


class ProtocolError(Exception):
    """Raised when the byte stream violates the RESP grammar.

    Not a transport error: the connection stays open, but the reader may be
    positioned in the middle of a message afterwards.
    """

    pass


class ReplyError(Exception):
    """Error reported by the server inside a reply (``-ERR ...``).

    Carried as a value in ``Reply.error`` rather than raised by decode.
    """

    @property
    def prefix(self) -> str:
        """Leading error word, e.g. "ERR", "WRONGTYPE" or "EXECABORT"."""
        message = str(self)
        return message.split(" ", 1)[0] if message else ""


class ReplyType(str, Enum):
    """Arm of the Reply variant.

    Attributes:
        STATUS: Simple string such as "OK".
        ERROR: Server-reported or synthetic error.
        INTEGER: Signed 64-bit integer.
        BULK: Binary-safe string.
        NIL: Null bulk string or null array.
        MULTI: Array of nested replies.
    """

    STATUS = "status"
    ERROR = "error"
    INTEGER = "integer"
    BULK = "bulk"
    NIL = "nil"
    MULTI = "multi"


@dataclass(frozen=True, slots=True)
class Command:
    """A command name with its ordered arguments.

    This dataclass is immutable (frozen=True). Arguments are converted to
    bulk strings only when the command is marshaled.

    Attributes:
        name: Command name, e.g. "SET".
        args: Positional arguments in wire order.
    """

    name: str
    args: tuple[object, ...] = ()

    def marshal_resp(self, writer: BinaryIO) -> None:
        """Write this command as a RESP array of bulk strings."""
        from resp_transport.resp.codec import encode_command

        writer.write(encode_command(self.name, self.args))


@dataclass(slots=True)
class Reply:
    """A decoded server reply.

    An empty ``Reply()`` can be passed to ``Conn.decode`` and is filled in
    place, which makes it an Unmarshaler.

    Attributes:
        type: Which arm of the variant is populated.
        value: Payload for STATUS, BULK (bytes) and INTEGER (int) replies.
        error: Payload for ERROR replies.
        elems: Nested replies for MULTI replies.
    """

    type: ReplyType = ReplyType.NIL
    value: bytes | int | None = None
    error: Exception | None = None
    elems: list[Reply] = field(default_factory=list)

    def unmarshal_resp(self, reader: BinaryIO) -> None:
        """Read one reply from ``reader`` into this instance."""
        from resp_transport.resp.codec import read_reply

        parsed = read_reply(reader)
        self.type = parsed.type
        self.value = parsed.value
        self.error = parsed.error
        self.elems = parsed.elems

    @property
    def is_error(self) -> bool:
        return self.type is ReplyType.ERROR

    def _check(self, *allowed: ReplyType) -> None:
        if self.type is ReplyType.ERROR and self.error is not None:
            raise self.error
        if self.type not in allowed:
            raise TypeError(f"{self.type.value} reply cannot be read as {allowed[0].value}")

    def as_bytes(self) -> bytes | None:
        """Payload of a STATUS or BULK reply, None for NIL.

        Raises:
            Exception: The carried error, for ERROR replies.
            TypeError: For INTEGER and MULTI replies.
        """
        self._check(ReplyType.BULK, ReplyType.STATUS, ReplyType.NIL)
        if self.type is ReplyType.NIL:
            return None
        return cast(bytes, self.value)

    def as_str(self, encoding: str = "utf-8") -> str | None:
        """Payload of a STATUS or BULK reply decoded as text, None for NIL."""
        data = self.as_bytes()
        return None if data is None else data.decode(encoding)

    def as_int(self) -> int:
        """Integer value of an INTEGER reply, or of a BULK reply holding digits."""
        self._check(ReplyType.INTEGER, ReplyType.BULK, ReplyType.STATUS)
        if self.type is ReplyType.INTEGER:
            return cast(int, self.value)
        try:
            return int(self.value)  # type: ignore[arg-type]
        except ValueError:
            raise TypeError(f"{self.value!r} is not an integer") from None

    def as_list(self) -> list[str | None]:
        """Elements of a MULTI reply of strings, decoded as text."""
        self._check(ReplyType.MULTI, ReplyType.NIL)
        return [elem.as_str() for elem in self.elems]

    def at(self, index: int) -> Reply:
        """Nested reply at ``index`` of a MULTI reply."""
        self._check(ReplyType.MULTI)
        return self.elems[index]
