#!/usr/bin/env python3
"""Benchmark Runner comparing round-trip strategies.

This script sends the same SET/GET workload three ways over one connection:
one round trip per command, one pipeline, and one MULTI/EXEC transaction.
Results are written as JSON.

Usage:
    python -m benchmarks.runner [--address HOST:PORT] [--count N] [--runs N] [--output FILE]

Options:
    --address HOST:PORT   Server to benchmark (default: start a local mock server)
    --count N             Number of SET/GET pairs per run (default: 1000)
    --runs N              Number of runs per mode (default: 3)
    --output FILE         Output JSON file (default: benchmark_output.json)
"""

from __future__ import annotations

import argparse
import json
import sys
import time
from collections.abc import Callable
from datetime import UTC, datetime
from pathlib import Path
from statistics import mean, stdev

from benchmarks.mock_server import MockServer, MockServerConfig
from resp_transport import Cmd, Connection, MultiCommand, dial

MODES = ("sequential", "pipeline", "transaction")


def _queue_workload(count: int) -> Callable[[MultiCommand], None]:
    def queue(mc: MultiCommand) -> None:
        for i in range(count):
            mc.command("SET", f"key:{i}", i)
            mc.command("GET", f"key:{i}")

    return queue


def run_sequential(conn: Connection, count: int) -> int:
    """Send each command in its own round trip. Returns replies received."""
    replies = 0
    for i in range(count):
        for cmd in (Cmd("SET", f"key:{i}", i), Cmd("GET", f"key:{i}")):
            conn.do(cmd)
            replies += 1
    return replies


def run_pipeline(conn: Connection, count: int) -> int:
    """Send all commands as one pipeline. Returns replies received."""
    reply = MultiCommand.pipeline(conn).process(_queue_workload(count))
    return len(reply.elems)


def run_transaction(conn: Connection, count: int) -> int:
    """Send all commands inside MULTI/EXEC. Returns replies received."""
    reply = MultiCommand.transaction(conn).process(_queue_workload(count))
    if reply.is_error:
        raise RuntimeError(f"transaction failed: {reply.error}")
    return len(reply.elems)


RUNNERS: dict[str, Callable[[Connection, int], int]] = {
    "sequential": run_sequential,
    "pipeline": run_pipeline,
    "transaction": run_transaction,
}


def run_benchmark(mode: str, conn: Connection, count: int, runs: int = 3) -> dict:
    """Run benchmark for a specific mode.

    Args:
        mode: One of MODES.
        conn: Connection to run against.
        count: Number of SET/GET pairs per run.
        runs: Number of benchmark runs.

    Returns:
        Dictionary with benchmark results.
    """
    print(f"Running {mode} benchmark ({runs} runs)...")
    timings: list[float] = []
    replies = 0

    for i in range(runs):
        print(f"  Run {i + 1}/{runs}...", end=" ", flush=True)
        start = time.perf_counter()
        replies = RUNNERS[mode](conn, count)
        elapsed = time.perf_counter() - start
        timings.append(elapsed)
        print(f"{elapsed:.3f}s")

    average = mean(timings)
    return {
        "mode": mode,
        "runs": runs,
        "commands_per_run": count * 2,
        "replies_per_run": replies,
        "average_time_sec": average,
        "std_dev_sec": stdev(timings) if len(timings) > 1 else 0,
        "commands_per_sec": (count * 2) / average if average > 0 else 0,
    }


def format_results(results: dict[str, dict]) -> dict:
    """Format final benchmark results with speedups relative to sequential."""
    baseline = results["sequential"]["average_time_sec"]
    return {
        "timestamp": datetime.now(UTC).isoformat(),
        "modes": results,
        "comparison": {
            f"{mode}_speedup": (baseline / result["average_time_sec"])
            if result["average_time_sec"] > 0
            else 0
            for mode, result in results.items()
            if mode != "sequential"
        },
    }


def main() -> int:
    """Main entry point for benchmark runner.

    Returns:
        Exit code (0 for success, 1 for error).
    """
    parser = argparse.ArgumentParser(
        description="Benchmark runner comparing sequential, pipelined and transactional commands"
    )
    parser.add_argument("--address", type=str, help="Server address as HOST:PORT")
    parser.add_argument(
        "--count",
        type=int,
        default=1000,
        help="Number of SET/GET pairs per run (default: 1000)",
    )
    parser.add_argument(
        "--runs",
        type=int,
        default=3,
        help="Number of benchmark runs per mode (default: 3)",
    )
    parser.add_argument(
        "--output",
        type=str,
        default="benchmark_output.json",
        help="Output JSON file (default: benchmark_output.json)",
    )
    args = parser.parse_args()

    server: MockServer | None = None
    address = args.address
    if address is None:
        server = MockServer(MockServerConfig())
        server.start()
        address = server.address

    try:
        with dial("tcp", address) as conn:
            results = {mode: run_benchmark(mode, conn, args.count, args.runs) for mode in MODES}
    except OSError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    finally:
        if server is not None:
            server.stop()

    output = format_results(results)
    output_path = Path(args.output)
    with open(output_path, "w", encoding="utf-8") as f:
        json.dump(output, f, indent=2)

    print()
    print(json.dumps(output["comparison"], indent=2))
    print(f"Results written to {output_path}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
