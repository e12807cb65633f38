#!/usr/bin/env python3
"""
Streaming response example.

This example demonstrates how to stream a generation chunk by chunk
for real-time output, and how to cancel a stream early.

Usage:
    export GEMINI_API_KEY="your-api-key"
    python examples/streaming.py
"""

import asyncio

from gemini_ai import CancelToken, GenerationError, GenerativeModel


async def main() -> None:
    """Run streaming example."""
    model = GenerativeModel(
        "gemini-1.5-flash",
        system_instruction="You are a creative storyteller.",
    )

    try:
        print("Streaming response:\n")
        print("-" * 50)

        # Items are chunks, then at most one terminal error
        async with model.stream_generate_content(
            "Tell me a very short story about a robot learning to paint."
        ) as stream:
            async for item in stream:
                if isinstance(item, GenerationError):
                    print(f"\n\n[Error: {item.kind.value}: {item.message}]")
                    break
                print(item.text, end="", flush=True)
                if item.is_final:
                    print(f"\n\n[Stream ended: {item.finish_reason.value}]")

        print("-" * 50)
        print(f"Attempts: {stream.stats.attempts}")
        if stream.stats.time_to_first_chunk_ms is not None:
            print(f"Time to first chunk: {stream.stats.time_to_first_chunk_ms:.0f}ms")
        print(f"Total latency: {stream.stats.latency_ms:.0f}ms")

        # Cancel after a short time budget
        print("\n\nStreaming with a 2 second budget:")
        print("-" * 50)

        token = CancelToken(timeout=2.0)
        async for item in model.stream_generate_content(
            "Count slowly from 1 to 200, one number per line.", cancel_token=token
        ):
            if isinstance(item, GenerationError):
                print(f"\n[Stopped: {item.kind.value}]")
                break
            print(item.text, end="", flush=True)

    finally:
        await model.aclose()


if __name__ == "__main__":
    asyncio.run(main())
