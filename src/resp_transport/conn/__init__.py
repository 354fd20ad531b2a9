"""Connections, dialing and the action dispatch contract."""

from resp_transport.conn.base import (
    Action,
    Client,
    Conn,
    ConnectionClosedError,
    DialFunc,
    Marshaler,
    Stream,
    Unmarshaler,
)
from resp_transport.conn.connection import Connection, dial, dial_config, dial_timeout
from resp_transport.conn.models import ConnectionConfig
from resp_transport.conn.timeout import TimeoutStream

__all__ = [
    "Action",
    "Client",
    "Conn",
    "Connection",
    "ConnectionClosedError",
    "ConnectionConfig",
    "DialFunc",
    "Marshaler",
    "Stream",
    "TimeoutStream",
    "Unmarshaler",
    "dial",
    "dial_config",
    "dial_timeout",
]
