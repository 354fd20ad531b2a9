"""Integration tests for the benchmark runner against the mock server."""

from __future__ import annotations

import json

import pytest

from benchmarks import runner
from benchmarks.mock_server import MockServerFixture
from resp_transport import dial

pytestmark = pytest.mark.integration


class TestBenchmarkRunner:
    """Each mode should complete the same workload."""

    @pytest.mark.parametrize("mode", runner.MODES)
    def test_modes_receive_one_reply_per_command(
        self, mock_server: MockServerFixture, mode: str
    ) -> None:
        with dial("tcp", mock_server.address) as conn:
            assert runner.RUNNERS[mode](conn, 10) == 20

    def test_run_benchmark_result_shape(self, mock_server: MockServerFixture) -> None:
        with dial("tcp", mock_server.address) as conn:
            result = runner.run_benchmark("pipeline", conn, count=5, runs=2)

        assert result["mode"] == "pipeline"
        assert result["commands_per_run"] == 10
        assert result["replies_per_run"] == 10
        assert result["average_time_sec"] > 0

    def test_transaction_failure_raises(self, mock_server_factory) -> None:
        fixture = mock_server_factory(exec_abort=True)
        with dial("tcp", fixture.address) as conn:
            with pytest.raises(RuntimeError, match="EXECABORT"):
                runner.run_transaction(conn, 1)

    def test_main_writes_json(self, tmp_path, monkeypatch: pytest.MonkeyPatch) -> None:
        """Without --address, main starts its own mock server."""
        output = tmp_path / "out.json"
        monkeypatch.setattr(
            "sys.argv",
            ["runner", "--count", "3", "--runs", "1", "--output", str(output)],
        )

        assert runner.main() == 0

        data = json.loads(output.read_text())
        assert set(data["modes"]) == set(runner.MODES)
        assert "pipeline_speedup" in data["comparison"]
