#!/usr/bin/env python3
"""
Streaming decode performance benchmarks.

Measures throughput and latency of frame decoding and event mapping.
"""

import asyncio
import json
import time
from typing import Any

from gemini_ai.pipeline import FrameDecoder, FramingMode, GeminiEventMapper


def _frame(i: int, final: bool = False) -> dict[str, Any]:
    candidate: dict[str, Any] = {
        "content": {"role": "model", "parts": [{"text": f"Token{i} "}]},
    }
    if final:
        candidate["finishReason"] = "STOP"
    return {"candidates": [candidate]}


def generate_sse_body(count: int) -> bytes:
    """Generate an ``alt=sse`` body of ``count`` frames."""
    return b"".join(
        f"data: {json.dumps(_frame(i, i == count - 1))}\r\n\r\n".encode() for i in range(count)
    )


def generate_array_body(count: int) -> bytes:
    """Generate a JSON array body of ``count`` frames."""
    return json.dumps([_frame(i, i == count - 1) for i in range(count)]).encode()


def split_reads(body: bytes, size: int = 512) -> list[bytes]:
    """Cut a body into network-sized reads that ignore frame boundaries."""
    return [body[i : i + size] for i in range(0, len(body), size)]


async def _bench_decoder(name: str, mode: FramingMode, body: bytes, iterations: int) -> dict[str, Any]:
    reads = split_reads(body)
    decoder = FrameDecoder(mode)

    async def byte_stream():
        for chunk in reads:
            yield chunk

    start = time.perf_counter()
    frames = [frame async for frame in decoder.decode(byte_stream())]
    elapsed = time.perf_counter() - start

    return {
        "name": name,
        "iterations": iterations,
        "frames_decoded": len(frames),
        "elapsed_seconds": elapsed,
        "throughput_fps": len(frames) / elapsed,
        "latency_us": (elapsed / len(frames)) * 1_000_000,
    }


async def benchmark_sse_decoder(iterations: int = 5000) -> dict[str, Any]:
    """Benchmark SSE framing throughput."""
    return await _bench_decoder(
        "FrameDecoder(SSE)", FramingMode.SSE, generate_sse_body(iterations), iterations
    )


async def benchmark_array_decoder(iterations: int = 5000) -> dict[str, Any]:
    """Benchmark JSON array framing throughput."""
    return await _bench_decoder(
        "FrameDecoder(JSON)", FramingMode.JSON, generate_array_body(iterations), iterations
    )


async def benchmark_event_mapper(iterations: int = 5000) -> dict[str, Any]:
    """Benchmark event mapper throughput."""
    mapper = GeminiEventMapper()
    frames = [_frame(i, i == iterations - 1) for i in range(iterations)]

    async def frame_stream():
        for frame in frames:
            yield frame

    start = time.perf_counter()
    chunks = [chunk async for chunk in mapper.map_events(frame_stream())]
    elapsed = time.perf_counter() - start

    return {
        "name": "GeminiEventMapper",
        "iterations": iterations,
        "chunks_mapped": len(chunks),
        "elapsed_seconds": elapsed,
        "throughput_cps": len(chunks) / elapsed,
        "latency_us": (elapsed / len(chunks)) * 1_000_000 if chunks else 0,
    }


async def benchmark_decode_and_map(iterations: int = 5000) -> dict[str, Any]:
    """Benchmark decoding and mapping together, as a stream does."""
    reads = split_reads(generate_sse_body(iterations))
    decoder = FrameDecoder(FramingMode.SSE)
    mapper = GeminiEventMapper()

    async def byte_stream():
        for chunk in reads:
            yield chunk

    start = time.perf_counter()
    chunks = [chunk async for chunk in mapper.map_events(decoder.decode(byte_stream()))]
    elapsed = time.perf_counter() - start

    return {
        "name": "Decode+Map",
        "iterations": iterations,
        "chunks_mapped": len(chunks),
        "elapsed_seconds": elapsed,
        "throughput_cps": len(chunks) / elapsed if chunks else 0,
        "latency_us": (elapsed / len(chunks)) * 1_000_000 if chunks else 0,
    }


async def run_benchmarks() -> None:
    """Run all benchmarks and print results."""
    print("=" * 60)
    print("Decode Benchmarks")
    print("=" * 60)
    print()

    benchmarks = [
        benchmark_sse_decoder,
        benchmark_array_decoder,
        benchmark_event_mapper,
        benchmark_decode_and_map,
    ]

    for bench in benchmarks:
        result = await bench()
        print(f"{result['name']}:")
        print(f"  Iterations: {result['iterations']}")
        print(f"  Elapsed: {result['elapsed_seconds']:.4f}s")
        if "throughput_fps" in result:
            print(f"  Throughput: {result['throughput_fps']:.0f} frames/sec")
        if "throughput_cps" in result:
            print(f"  Throughput: {result['throughput_cps']:.0f} chunks/sec")
        print(f"  Latency: {result['latency_us']:.2f} µs/item")
        print()


if __name__ == "__main__":
    asyncio.run(run_benchmarks())
