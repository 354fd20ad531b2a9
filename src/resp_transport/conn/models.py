"""Configuration models for dialing connections."""

from __future__ import annotations

import os
from dataclasses import dataclass

DEFAULT_READ_BUFFER_SIZE = 64 * 1024

NETWORKS = frozenset({"tcp", "tcp4", "tcp6", "unix"})


@dataclass(frozen=True, slots=True)
class ConnectionConfig:
    """Configuration for dialing a single connection.

    This dataclass is immutable (frozen=True) and uses slots for memory efficiency.

    Attributes:
        network: One of "tcp", "tcp4", "tcp6" or "unix" (default: "tcp").
        address: "host:port" for TCP networks, a socket path for "unix"
            (default: "127.0.0.1:6379").
        timeout: Connect and per-read/write timeout in seconds. Zero or less
            disables deadlines (default: 0.0).
        read_buffer_size: Size of the buffered reader in bytes (default: 65536).
    """

    network: str = "tcp"
    address: str = "127.0.0.1:6379"
    timeout: float = 0.0
    read_buffer_size: int = DEFAULT_READ_BUFFER_SIZE

    def __post_init__(self) -> None:
        """Validate field values.

        Raises:
            ValueError: If network is unknown or read_buffer_size is less than 1.
        """
        if self.network not in NETWORKS:
            raise ValueError(f"unknown network {self.network!r}")
        if self.read_buffer_size < 1:
            raise ValueError("read_buffer_size must be at least 1")

    @classmethod
    def from_env(cls, prefix: str = "RESP") -> ConnectionConfig:
        """Build a config from environment variables.

        Reads ``{prefix}_NETWORK``, ``{prefix}_ADDRESS``, ``{prefix}_TIMEOUT`` and
        ``{prefix}_READ_BUFFER_SIZE``, falling back to the field defaults.

        Args:
            prefix: Environment variable prefix (default: "RESP").

        Returns:
            A validated ConnectionConfig.

        Raises:
            ValueError: If a variable holds a value of the wrong type or range.
        """
        return cls(
            network=os.getenv(f"{prefix}_NETWORK", "tcp"),
            address=os.getenv(f"{prefix}_ADDRESS", "127.0.0.1:6379"),
            timeout=float(os.getenv(f"{prefix}_TIMEOUT", "0.0")),
            read_buffer_size=int(
                os.getenv(f"{prefix}_READ_BUFFER_SIZE", str(DEFAULT_READ_BUFFER_SIZE))
            ),
        )
