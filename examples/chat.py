#!/usr/bin/env python3
"""
Multi-turn chat example.

This example demonstrates single calls, a chat session that keeps its
history, and a streamed chat turn.

Usage:
    export GEMINI_API_KEY="your-api-key"
    python examples/chat.py
"""

import asyncio

from gemini_ai import GenerationConfig, GenerativeModel


async def main() -> None:
    """Run chat example."""
    model = (
        GenerativeModel.builder()
        .model("gemini-1.5-flash")
        .generation_config(GenerationConfig(temperature=0.7, max_output_tokens=256))
        .system_instruction("You are a helpful travel assistant.")
        .build()
    )

    try:
        # Single call
        reply = await model.generate_content("What is the capital of France?")
        print(f"Response: {reply.text}")
        print(f"Finish reason: {reply.finish_reason.value}")
        if model.last_stats is not None:
            print(f"Tokens used: {model.last_stats.total_tokens}")
        print()

        # Chat session
        chat = model.start_chat()
        reply = await chat.send_message("I'm visiting Oslo in March.")
        print(f"Model: {reply.text}\n")
        reply = await chat.send_message("What should I pack?")
        print(f"Model: {reply.text}\n")

        # Streamed turn, appended to the history once finished
        print("Model: ", end="")
        async with chat.send_message_stream("Summarize that as three bullets.") as stream:
            async for chunk in stream.chunks():
                print(chunk.text, end="", flush=True)
        print(f"\n\nHistory has {len(chat.history)} turns")

    finally:
        await model.aclose()


if __name__ == "__main__":
    asyncio.run(main())
