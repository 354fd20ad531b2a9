"""Integration tests for the mock server pytest fixtures.

These tests verify that the mock_server fixtures work correctly over real
sockets and provide reliable test infrastructure.
"""

from __future__ import annotations

import socket

import pytest

from benchmarks.mock_server import MockServerFixture

pytestmark = pytest.mark.integration


def _roundtrip(address: str, payload: bytes) -> bytes:
    host, port = address.rsplit(":", 1)
    with socket.create_connection((host, int(port)), timeout=2.0) as sock:
        sock.sendall(payload)
        return sock.recv(1024)


class TestMockServerFixtureIntegration:
    """Integration tests for mock_server fixture."""

    def test_mock_server_fixture_starts(self, mock_server: MockServerFixture) -> None:
        """Mock server fixture should start the server and provide its address."""
        assert mock_server.address.startswith("127.0.0.1:")
        assert _roundtrip(mock_server.address, b"*1\r\n$4\r\nPING\r\n") == b"+PONG\r\n"

    def test_mock_server_counts_commands(self, mock_server: MockServerFixture) -> None:
        _roundtrip(mock_server.address, b"*1\r\n$4\r\nPING\r\n")
        assert mock_server.server.command_count == 1

    def test_keyspace_is_shared_between_connections(
        self, mock_server: MockServerFixture
    ) -> None:
        _roundtrip(mock_server.address, b"*3\r\n$3\r\nSET\r\n$1\r\nk\r\n$1\r\nv\r\n")
        assert _roundtrip(mock_server.address, b"*2\r\n$3\r\nGET\r\n$1\r\nk\r\n") == (
            b"$1\r\nv\r\n"
        )

    def test_factory_applies_overrides(self, mock_server_factory) -> None:
        fixture = mock_server_factory(exec_nil=True)
        assert fixture.config.exec_nil is True
        reply = _roundtrip(fixture.address, b"*1\r\n$5\r\nMULTI\r\n")
        assert reply == b"+OK\r\n"

    def test_factory_servers_are_independent(self, mock_server_factory) -> None:
        first = mock_server_factory()
        second = mock_server_factory()
        assert first.address != second.address
