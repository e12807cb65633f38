#!/usr/bin/env python3
"""
Cached content example.

This example demonstrates caching a large document once and reusing it
across requests, extending its lifetime and deleting it.

Usage:
    export GEMINI_API_KEY="your-api-key"
    python examples/cache.py path/to/large_document.txt
"""

import asyncio
import sys

from gemini_ai import Content, GenerativeModel, ValidationError

MODEL = "gemini-1.5-flash-001"


async def main(path: str) -> None:
    """Run cached content example."""
    model = GenerativeModel(MODEL)

    try:
        with open(path, encoding="utf-8") as f:
            document = f.read()

        handle = await model.caches.create(
            MODEL,
            [Content.user(document)],
            ttl=300,
            system_instruction="Answer questions about the document.",
            display_name="example-document",
        )
        print(f"Created {handle.name}")
        print(f"  Cached tokens: {handle.total_token_count}")
        print(f"  Expires: {handle.expire_time}")
        print()

        try:
            for question in ("Summarize the document.", "List three key terms."):
                reply = await model.generate_content(question, cached_content=handle)
                print(f"Q: {question}\nA: {reply.text}\n")
        except ValidationError as e:
            # Raised locally when the handle has clearly expired
            print(f"Cache unusable: {e}")

        handle = await model.caches.update_ttl(handle, 3600)
        print(f"Extended until {handle.expire_time}")

        await model.caches.delete(handle)
        print(f"Deleted {handle.name}")

    finally:
        await model.aclose()


if __name__ == "__main__":
    if len(sys.argv) != 2:
        print(__doc__)
        sys.exit(1)
    asyncio.run(main(sys.argv[1]))
