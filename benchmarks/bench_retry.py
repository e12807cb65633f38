#!/usr/bin/env python3
"""
Retry executor performance benchmarks.

Measures overhead of the retry loop and cancellation checks.
"""

import asyncio
import time
from typing import Any

from gemini_ai.client import CancelToken
from gemini_ai.errors import HttpStatusFailure
from gemini_ai.resilience import RetryExecutor, RetryPolicy


async def noop_operation() -> str:
    """No-op operation for overhead measurement."""
    return "result"


async def no_sleep(delay: float) -> None:
    return None


def _result(name: str, iterations: int, elapsed: float) -> dict[str, Any]:
    return {
        "name": name,
        "iterations": iterations,
        "elapsed_seconds": elapsed,
        "throughput_ops": iterations / elapsed,
        "latency_us": (elapsed / iterations) * 1_000_000,
    }


async def benchmark_baseline(iterations: int = 10000) -> dict[str, Any]:
    """Benchmark baseline async operation."""
    start = time.perf_counter()
    for _ in range(iterations):
        await noop_operation()
    return _result("Baseline (no retry)", iterations, time.perf_counter() - start)


async def benchmark_executor_success(iterations: int = 10000) -> dict[str, Any]:
    """Benchmark executor overhead when the first attempt succeeds."""
    executor = RetryExecutor(RetryPolicy())

    start = time.perf_counter()
    for _ in range(iterations):
        await executor.execute(noop_operation)
    return _result("RetryExecutor (first attempt)", iterations, time.perf_counter() - start)


async def benchmark_executor_with_token(iterations: int = 10000) -> dict[str, Any]:
    """Benchmark executor overhead with a cancel token attached."""
    executor = RetryExecutor(RetryPolicy())
    token = CancelToken()

    start = time.perf_counter()
    for _ in range(iterations):
        await executor.execute(noop_operation, cancel_token=token)
    return _result("RetryExecutor (cancel token)", iterations, time.perf_counter() - start)


async def benchmark_executor_retries(iterations: int = 2000) -> dict[str, Any]:
    """Benchmark two failed attempts before success, without real waits."""
    executor = RetryExecutor(RetryPolicy(max_attempts=3), sleep=no_sleep)

    start = time.perf_counter()
    for _ in range(iterations):
        failures = [
            HttpStatusFailure("unavailable", status_code=503),
            HttpStatusFailure("unavailable", status_code=503),
        ]

        async def flaky() -> str:
            if failures:
                raise failures.pop()
            return "result"

        await executor.execute(flaky)
    return _result("RetryExecutor (2 retries)", iterations, time.perf_counter() - start)


async def run_benchmarks() -> None:
    """Run all benchmarks and print results."""
    print("=" * 60)
    print("Retry Benchmarks")
    print("=" * 60)
    print()

    benchmarks = [
        benchmark_baseline,
        benchmark_executor_success,
        benchmark_executor_with_token,
        benchmark_executor_retries,
    ]

    for bench in benchmarks:
        result = await bench()
        print(f"{result['name']}:")
        print(f"  Iterations: {result['iterations']}")
        print(f"  Elapsed: {result['elapsed_seconds']:.4f}s")
        print(f"  Throughput: {result['throughput_ops']:.0f} ops/sec")
        print(f"  Latency: {result['latency_us']:.2f} µs/op")
        print()


if __name__ == "__main__":
    asyncio.run(run_benchmarks())
