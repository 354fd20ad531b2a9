"""Pytest configuration and fixtures for resp-transport tests."""

from __future__ import annotations

from collections.abc import Callable, Iterator
from typing import Any

import pytest

from benchmarks.mock_server import MockServer, MockServerConfig, MockServerFixture


class StubStream:
    """In-memory Stream with scripted input that records everything sent."""

    def __init__(
        self,
        incoming: bytes = b"",
        *,
        recv_error: BaseException | None = None,
        send_error: BaseException | None = None,
    ) -> None:
        self.incoming = bytearray(incoming)
        self.sent = bytearray()
        self.timeouts: list[float | None] = []
        self.recv_error = recv_error
        self.send_error = send_error
        self.closed = False
        self.close_count = 0
        self.recv_calls = 0
        self.send_calls = 0

    def feed(self, data: bytes) -> None:
        self.incoming += data

    def recv_into(self, buffer: Any) -> int:
        self.recv_calls += 1
        if self.recv_error is not None:
            raise self.recv_error
        n = min(len(buffer), len(self.incoming))
        buffer[:n] = self.incoming[:n]
        del self.incoming[:n]
        return n

    def sendall(self, data: bytes) -> None:
        self.send_calls += 1
        if self.send_error is not None:
            raise self.send_error
        self.sent += data

    def settimeout(self, value: float | None) -> None:
        self.timeouts.append(value)

    def close(self) -> None:
        self.closed = True
        self.close_count += 1


@pytest.fixture()
def make_stream() -> type[StubStream]:
    """Provide the StubStream class for building scripted streams."""
    return StubStream


@pytest.fixture()
def mock_server() -> Iterator[MockServerFixture]:
    """Run a mock RESP server for the duration of a test."""
    config = MockServerConfig()
    server = MockServer(config)
    server.start()
    try:
        yield MockServerFixture(address=server.address, config=config, server=server)
    finally:
        server.stop()


@pytest.fixture()
def mock_server_factory() -> Iterator[Callable[..., MockServerFixture]]:
    """Start mock RESP servers with custom config; all are stopped at teardown."""
    servers: list[MockServer] = []

    def start(**overrides: Any) -> MockServerFixture:
        config = MockServerConfig(**overrides)
        server = MockServer(config)
        server.start()
        servers.append(server)
        return MockServerFixture(address=server.address, config=config, server=server)

    yield start

    for server in servers:
        server.stop()
