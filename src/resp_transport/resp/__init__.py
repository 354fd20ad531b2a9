"""RESP wire codec and reply model."""

from resp_transport.resp.codec import encode_command, flatten_args, read_reply
from resp_transport.resp.types import (
    Command,
    ProtocolError,
    Reply,
    ReplyError,
    ReplyType,
)

__all__ = [
    "Command",
    "ProtocolError",
    "Reply",
    "ReplyError",
    "ReplyType",
    "encode_command",
    "flatten_args",
    "read_reply",
]
