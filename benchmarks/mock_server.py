#!/usr/bin/env python3
"""Mock RESP server for deterministic tests and benchmarks.

This module provides a small threaded server that speaks RESP2 and keeps an
in-memory keyspace shared by all connections. It supports:
- PING, ECHO, SET, GET, DEL, INCR, QUIT
- MULTI / EXEC / DISCARD with command queueing
- DEBUG SLEEP <seconds> for exercising client timeouts
- Error injection: abort every EXEC with EXECABORT, or answer EXEC with a
  null array as a WATCH-aborted transaction would

Usage:
    server = MockServer(MockServerConfig())
    server.start()
    conn = dial("tcp", server.address)
    ...
    server.stop()
"""

from __future__ import annotations

import socketserver
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any, cast

from resp_transport.resp.codec import read_reply
from resp_transport.resp.types import ProtocolError, Reply, ReplyError, ReplyType

OK = Reply(ReplyType.STATUS, value=b"OK")
QUEUED = Reply(ReplyType.STATUS, value=b"QUEUED")
NIL = Reply(ReplyType.NIL)


def _error(message: str) -> Reply:
    return Reply(ReplyType.ERROR, error=ReplyError(message))


def encode_reply(reply: Reply) -> bytes:
    """Encode a reply the way a server writes it."""
    if reply.type is ReplyType.STATUS:
        return b"+" + cast(bytes, reply.value) + b"\r\n"
    if reply.type is ReplyType.ERROR:
        return b"-" + str(reply.error).encode("utf-8") + b"\r\n"
    if reply.type is ReplyType.INTEGER:
        return b":%d\r\n" % reply.value
    if reply.type is ReplyType.BULK:
        value = cast(bytes, reply.value)
        return b"$%d\r\n" % len(value) + value + b"\r\n"
    if reply.type is ReplyType.MULTI:
        return b"*%d\r\n" % len(reply.elems) + b"".join(encode_reply(e) for e in reply.elems)
    return b"$-1\r\n"


@dataclass(frozen=True, slots=True)
class MockServerConfig:
    """Configuration for the mock RESP server.

    Attributes:
        host: Host address to bind to (default: 127.0.0.1)
        port: Port number to listen on, 0 picks a free port (default: 0)
        exec_abort: Answer every EXEC with an EXECABORT error
        exec_nil: Answer every EXEC with a null array
    """

    host: str = "127.0.0.1"
    port: int = 0
    exec_abort: bool = False
    exec_nil: bool = False


@dataclass
class _Session:
    """Per-connection transaction state."""

    in_multi: bool = False
    dirty: bool = False
    queued: list[list[bytes]] = field(default_factory=list)


class _ThreadingServer(socketserver.ThreadingTCPServer):
    allow_reuse_address = True
    daemon_threads = True

    def __init__(self, address: tuple[str, int], mock: MockServer) -> None:
        self.mock = mock
        super().__init__(address, _RequestHandler)


class _RequestHandler(socketserver.StreamRequestHandler):
    server: _ThreadingServer

    def handle(self) -> None:
        session = _Session()
        while True:
            try:
                request = read_reply(self.rfile)
            except (ProtocolError, OSError):
                return

            args = [elem.value for elem in request.elems]
            if request.type is not ReplyType.MULTI or not args:
                reply = _error("ERR Protocol error")
            elif not all(isinstance(arg, bytes) for arg in args):
                reply = _error("ERR Protocol error")
            else:
                reply = self.server.mock.execute(session, args)

            try:
                self.wfile.write(encode_reply(reply))
            except OSError:
                # client gave up, e.g. after its read deadline passed
                return
            if args and isinstance(args[0], bytes) and args[0].upper() == b"QUIT":
                return


@dataclass
class MockServer:
    """Threaded RESP mock server for deterministic tests and benchmarks.

    Example:
        ```python
        with MockServer(MockServerConfig()) as server:
            conn = dial("tcp", server.address)
            cmd = Cmd("PING")
            conn.do(cmd)
        ```
    """

    config: MockServerConfig
    _data: dict[bytes, bytes] = field(default_factory=dict, init=False)
    _lock: threading.Lock = field(default_factory=threading.Lock, init=False)
    _server: _ThreadingServer | None = field(default=None, init=False)
    _thread: threading.Thread | None = field(default=None, init=False)
    _command_count: int = field(default=0, init=False)

    @property
    def address(self) -> str:
        """Get the "host:port" address of the running server."""
        if self._server is None:
            raise RuntimeError("Server is not running")
        host, port = self._server.server_address[:2]
        return f"{host}:{port}"

    @property
    def command_count(self) -> int:
        """Get the number of commands handled so far."""
        return self._command_count

    def _commands(self) -> dict[bytes, Callable[[list[bytes]], Reply]]:
        return {
            b"PING": self._ping,
            b"ECHO": self._echo,
            b"SET": self._set,
            b"GET": self._get,
            b"DEL": self._del,
            b"INCR": self._incr,
            b"DEBUG": self._debug,
            b"QUIT": lambda args: OK,
        }

    def execute(self, session: _Session, args: list[bytes]) -> Reply:
        """Execute one command for a connection's session."""
        with self._lock:
            self._command_count += 1
        name = args[0].upper()

        if name == b"MULTI":
            if session.in_multi:
                return _error("ERR MULTI calls can not be nested")
            session.in_multi = True
            return OK
        if name == b"DISCARD":
            if not session.in_multi:
                return _error("ERR DISCARD without MULTI")
            session.in_multi, session.dirty, session.queued = False, False, []
            return OK
        if name == b"EXEC":
            return self._exec(session)

        handler = self._commands().get(name)
        if session.in_multi:
            if handler is None:
                session.dirty = True
                return _error(f"ERR unknown command '{name.decode(errors='replace')}'")
            session.queued.append(args)
            return QUEUED

        if handler is None:
            return _error(f"ERR unknown command '{name.decode(errors='replace')}'")
        if name == b"DEBUG":
            return handler(args)
        with self._lock:
            return handler(args)

    def _exec(self, session: _Session) -> Reply:
        if not session.in_multi:
            return _error("ERR EXEC without MULTI")
        queued, dirty = session.queued, session.dirty
        session.in_multi, session.dirty, session.queued = False, False, []

        if dirty or self.config.exec_abort:
            return _error("EXECABORT Transaction discarded because of previous errors.")
        if self.config.exec_nil:
            return NIL

        commands = self._commands()
        with self._lock:
            replies = [commands[args[0].upper()](args) for args in queued]
        return Reply(ReplyType.MULTI, elems=replies)

    def _ping(self, args: list[bytes]) -> Reply:
        if len(args) > 1:
            return Reply(ReplyType.BULK, value=args[1])
        return Reply(ReplyType.STATUS, value=b"PONG")

    def _echo(self, args: list[bytes]) -> Reply:
        if len(args) != 2:
            return _error("ERR wrong number of arguments for 'echo' command")
        return Reply(ReplyType.BULK, value=args[1])

    def _set(self, args: list[bytes]) -> Reply:
        if len(args) != 3:
            return _error("ERR wrong number of arguments for 'set' command")
        self._data[args[1]] = args[2]
        return OK

    def _get(self, args: list[bytes]) -> Reply:
        if len(args) != 2:
            return _error("ERR wrong number of arguments for 'get' command")
        value = self._data.get(args[1])
        return NIL if value is None else Reply(ReplyType.BULK, value=value)

    def _del(self, args: list[bytes]) -> Reply:
        removed = sum(1 for key in args[1:] if self._data.pop(key, None) is not None)
        return Reply(ReplyType.INTEGER, value=removed)

    def _incr(self, args: list[bytes]) -> Reply:
        if len(args) != 2:
            return _error("ERR wrong number of arguments for 'incr' command")
        try:
            value = int(self._data.get(args[1], b"0")) + 1
        except ValueError:
            return _error("ERR value is not an integer or out of range")
        self._data[args[1]] = str(value).encode("ascii")
        return Reply(ReplyType.INTEGER, value=value)

    def _debug(self, args: list[bytes]) -> Reply:
        if len(args) == 3 and args[1].upper() == b"SLEEP":
            try:
                seconds = float(args[2])
            except ValueError:
                return _error("ERR value is not a valid float")
            time.sleep(seconds)
            return OK
        return _error("ERR DEBUG subcommand not supported")

    def start(self) -> None:
        """Start serving in a background thread.

        Raises:
            RuntimeError: If the server is already running.
        """
        if self._server is not None:
            raise RuntimeError("Server is already running")

        self._server = _ThreadingServer((self.config.host, self.config.port), self)
        self._thread = threading.Thread(
            target=self._server.serve_forever,
            name="mock-resp-server",
            daemon=True,
        )
        self._thread.start()
        self._command_count = 0

    def stop(self) -> None:
        """Stop the server and wait for the serving thread.

        Raises:
            RuntimeError: If the server is not running.
        """
        if self._server is None:
            raise RuntimeError("Server is not running")

        self._server.shutdown()
        self._server.server_close()
        if self._thread is not None:
            self._thread.join()
        self._server = None
        self._thread = None

    def __enter__(self) -> MockServer:
        self.start()
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.stop()


@dataclass
class MockServerFixture:
    """Fixture for pytest integration providing mock server access.

    Attributes:
        address: "host:port" of the mock server.
        config: Configuration used to create the server.
        server: The running server.
    """

    address: str
    config: MockServerConfig
    server: MockServer
