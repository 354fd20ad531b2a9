"""Actions that run commands against a connection via ``Conn.do``."""

from __future__ import annotations

from collections.abc import Callable

from resp_transport.batch.multi import MultiCommand
from resp_transport.conn.base import Conn
from resp_transport.resp.types import Command, Reply


class Cmd:
    """Action that sends a single command and reads its reply.

    Example:
        >>> cmd = Cmd("GET", "k")
        >>> conn.do(cmd)
        >>> cmd.reply.as_str()
        'v'
    """

    def __init__(self, name: str, *args: object) -> None:
        self.command = Command(name, args)
        self.reply: Reply | None = None

    def run(self, conn: Conn) -> None:
        conn.encode(self.command)
        reply = Reply()
        conn.decode(reply)
        self.reply = reply

    def __repr__(self) -> str:
        return f"Cmd({self.command.name!r}, args={self.command.args!r})"


class Pipeline:
    """Action that runs a batch of commands in one round trip.

    Args:
        user_commands: Callback that queues commands on the MultiCommand.
    """

    transactional = False

    def __init__(self, user_commands: Callable[[MultiCommand], None]) -> None:
        self._user_commands = user_commands
        self.reply: Reply | None = None

    def run(self, conn: Conn) -> None:
        batch = MultiCommand(conn, transactional=self.transactional)
        self.reply = batch.process(self._user_commands)


class Transaction(Pipeline):
    """Like Pipeline, but the batch executes atomically inside MULTI/EXEC."""

    transactional = True
