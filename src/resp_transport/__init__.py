"""RESP transport layer.

Connections over a byte stream, an action dispatch contract, dialing with
per-operation deadlines, and pipelined or transactional command batches.
"""

from resp_transport.batch import (
    Cmd,
    MultiCommand,
    Pipeline,
    Transaction,
    TransactionError,
)
from resp_transport.conn import (
    Action,
    Client,
    Conn,
    Connection,
    ConnectionClosedError,
    ConnectionConfig,
    DialFunc,
    TimeoutStream,
    dial,
    dial_config,
    dial_timeout,
)
from resp_transport.resp import Command, ProtocolError, Reply, ReplyError, ReplyType

__version__ = "0.1.0"

__all__ = [
    "Action",
    "Client",
    "Cmd",
    "Command",
    "Conn",
    "Connection",
    "ConnectionClosedError",
    "ConnectionConfig",
    "DialFunc",
    "MultiCommand",
    "Pipeline",
    "ProtocolError",
    "Reply",
    "ReplyError",
    "ReplyType",
    "TimeoutStream",
    "Transaction",
    "TransactionError",
    "dial",
    "dial_config",
    "dial_timeout",
]
