#!/usr/bin/env python3
"""
Retry and cancellation example.

This example demonstrates:
- Configuring the retry policy used for every call
- Observing retries of an arbitrary operation
- Cancelling a stream from another task

Usage:
    export GEMINI_API_KEY="your-api-key"
    python examples/resilience.py
"""

import asyncio

from gemini_ai import (
    CancelToken,
    GenerationError,
    GenerativeModel,
    RetryPolicy,
    with_retry,
)


async def configured_policy() -> None:
    """Use a custom policy for every call of a model."""
    policy = RetryPolicy(max_attempts=5, base_delay=0.5, max_delay=8.0)
    model = GenerativeModel.builder().model("gemini-1.5-flash").retry(policy).build()

    try:
        reply = await model.generate_content("Explain exponential backoff in one sentence.")
        print(f"Response: {reply.text}")
        if model.last_stats is not None:
            print(f"Retries needed: {model.last_stats.retry_count}")
    except GenerationError as e:
        print(f"Failed after retries: {e.kind.value}: {e.message}")
    finally:
        await model.aclose()


async def observed_retries() -> None:
    """Retry any operation and report each backoff."""
    model = GenerativeModel("gemini-1.5-flash")

    def report(attempt: int, error: GenerationError, delay: float) -> None:
        print(f"  Attempt {attempt} failed ({error.kind.value}); retrying in {delay:.1f}s")

    try:
        count = await with_retry(
            lambda: model.count_tokens("How many tokens is this sentence?"),
            RetryPolicy(max_attempts=3),
            on_retry=report,
        )
        print(f"Token count: {count}")
    except GenerationError as e:
        print(f"Gave up: {e.kind.value}: {e.message}")
    finally:
        await model.aclose()


async def cancelled_stream() -> None:
    """Cancel a long streamed generation from another task."""
    model = GenerativeModel("gemini-1.5-flash")
    token = CancelToken()

    async def cancel_soon() -> None:
        await asyncio.sleep(0.5)
        token.cancel()

    try:
        canceller = asyncio.create_task(cancel_soon())
        received = 0
        async for item in model.stream_generate_content(
            "Write a 2000 word essay.", cancel_token=token
        ):
            if isinstance(item, GenerationError):
                print(f"Stream ended: {item.kind.value} after {received} chunk(s)")
                break
            received += 1
        await canceller
    finally:
        await model.aclose()


async def main() -> None:
    print("Configured policy:")
    await configured_policy()
    print("\nObserved retries:")
    await observed_retries()
    print("\nCancellation:")
    await cancelled_stream()


if __name__ == "__main__":
    asyncio.run(main())
