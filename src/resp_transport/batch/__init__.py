"""Command batching and command actions."""

from resp_transport.batch.actions import Cmd, Pipeline, Transaction
from resp_transport.batch.multi import (
    UNKNOWN_TRANSACTION_ERROR,
    MultiCommand,
    TransactionError,
)

__all__ = [
    "UNKNOWN_TRANSACTION_ERROR",
    "Cmd",
    "MultiCommand",
    "Pipeline",
    "Transaction",
    "TransactionError",
]
