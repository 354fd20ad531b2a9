"""Command batching: pipelines and MULTI/EXEC transactions."""

from __future__ import annotations

import json
import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import BinaryIO

from resp_transport.conn.base import Conn
from resp_transport.resp.types import Command, Reply, ReplyType

logger = logging.getLogger(__name__)

UNKNOWN_TRANSACTION_ERROR = "unknown transaction error"

TRANSACTION_BEGIN = "MULTI"
TRANSACTION_COMMIT = "EXEC"


class TransactionError(Exception):
    """The commit reply was not an error or a sequence of one reply per command."""

    pass


@dataclass(frozen=True, slots=True)
class _CommandSequence:
    """Marshals a run of commands in one write."""

    commands: tuple[Command, ...]

    def marshal_resp(self, writer: BinaryIO) -> None:
        for command in self.commands:
            command.marshal_resp(writer)


class MultiCommand:
    """
    Queue of commands executed against a borrowed connection in one round trip.

    In pipeline mode the queued commands are written back to back and one
    reply per command is read afterwards. In transactional mode ``process``
    brackets the user's commands with MULTI and EXEC and unwraps the EXEC
    reply, so the bracket commands never show up in the result.

    The connection is not owned: it is only used during ``flush`` and
    ``process``. A MultiCommand is meant for a single owner and is not safe
    for concurrent use.

    Args:
        conn: Connection the commands are executed against.
        transactional: Bracket ``process`` with MULTI/EXEC. Default False.

    Example:
        ```python
        def queue(mc: MultiCommand) -> None:
            mc.command("SET", "k", "v")
            mc.command("GET", "k")

        reply = MultiCommand(conn, transactional=True).process(queue)
        if reply.is_error:
            raise reply.error
        print(reply.as_list())  # ["OK", "v"]
        ```
    """

    def __init__(self, conn: Conn, transactional: bool = False) -> None:
        self._conn = conn
        self._transactional = transactional
        self._commands: list[Command] = []

    @classmethod
    def pipeline(cls, conn: Conn) -> MultiCommand:
        """Create a non-transactional batch."""
        return cls(conn, transactional=False)

    @classmethod
    def transaction(cls, conn: Conn) -> MultiCommand:
        """Create a MULTI/EXEC batch."""
        return cls(conn, transactional=True)

    @property
    def transactional(self) -> bool:
        """Whether ``process`` brackets the batch with MULTI/EXEC."""
        return self._transactional

    @property
    def queued(self) -> tuple[Command, ...]:
        """Snapshot of the commands waiting for the next flush."""
        return tuple(self._commands)

    def command(self, name: str, *args: object) -> None:
        """Queue a command for later execution."""
        self._commands.append(Command(name, args))

    def flush(self) -> Reply:
        """Send the queued commands and collect their replies.

        All commands are written before any reply is read. The queue is
        cleared even when an exception escapes.

        Returns:
            A MULTI reply holding one reply per queued command, in order.
            Server-reported errors appear as ERROR elements.

        Raises:
            OSError: On a transport failure; remaining replies are not read.
            ProtocolError: If a reply violates the wire grammar.
        """
        commands, self._commands = self._commands, []
        if not commands:
            return Reply(ReplyType.MULTI)

        self._conn.encode(_CommandSequence(tuple(commands)))

        replies: list[Reply] = []
        for _ in commands:
            reply = Reply()
            self._conn.decode(reply)
            replies.append(reply)
        return Reply(ReplyType.MULTI, elems=replies)

    def process(self, user_commands: Callable[[MultiCommand], None]) -> Reply:
        """Call ``user_commands`` to fill the batch, then flush it.

        Args:
            user_commands: Callback that queues commands via ``command``.

        Returns:
            Pipeline mode: the plain aggregate from ``flush``.
            Transactional mode: a MULTI reply with one element per user
            command on success; an ERROR reply carrying the server's error
            when EXEC failed; an ERROR reply carrying TransactionError when
            the EXEC reply is neither, or holds a different number of replies
            than commands were queued.
        """
        if not self._transactional:
            self._queue_user_commands(user_commands)
            return self.flush()

        self.command(TRANSACTION_BEGIN)
        self._queue_user_commands(user_commands)
        self.command(TRANSACTION_COMMIT)
        return self._unwrap_commit(self.flush())

    def _queue_user_commands(self, user_commands: Callable[[MultiCommand], None]) -> None:
        try:
            user_commands(self)
        except BaseException:
            self._commands.clear()
            raise

    def _unwrap_commit(self, aggregate: Reply) -> Reply:
        commit = aggregate.elems[-1] if aggregate.elems else None

        if commit is not None and commit.type is ReplyType.ERROR and commit.error is not None:
            self._log_transaction_failure("server_error", commit)
            return Reply(ReplyType.ERROR, error=commit.error)

        # the aggregate also holds the MULTI and EXEC replies
        user_count = len(aggregate.elems) - 2
        if (
            commit is not None
            and commit.type is ReplyType.MULTI
            and len(commit.elems) == user_count
        ):
            return Reply(ReplyType.MULTI, elems=commit.elems)

        self._log_transaction_failure("unknown", commit)
        return Reply(ReplyType.ERROR, error=TransactionError(UNKNOWN_TRANSACTION_ERROR))

    def _log_transaction_failure(self, reason: str, commit: Reply | None) -> None:
        log_entry = {
            "event": "transaction_failed",
            "reason": reason,
            "commit_reply_type": commit.type.value if commit is not None else None,
            "error": str(commit.error) if commit is not None and commit.error else None,
            "timestamp": datetime.now(UTC).isoformat(),
        }
        if reason == "unknown":
            logger.warning(json.dumps(log_entry))
        else:
            logger.info(json.dumps(log_entry))
