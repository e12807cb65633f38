#!/usr/bin/env python3
"""
File upload example.

This example demonstrates uploading a file with progress reporting,
waiting for server-side processing and referencing the file from a
request.

Usage:
    export GEMINI_API_KEY="your-api-key"
    python examples/file_upload.py path/to/report.pdf
"""

import asyncio
import sys

from gemini_ai import Content, GenerativeModel, UploadProgress


def show_progress(progress: UploadProgress) -> None:
    if progress.fraction is not None:
        print(f"\r  Uploaded {progress.fraction:6.1%}", end="", flush=True)
    if progress.done:
        print()


async def main(path: str) -> None:
    """Run file upload example."""
    model = GenerativeModel("gemini-1.5-flash")

    try:
        print(f"Uploading {path}")
        info = await model.files.upload_file(path, on_progress=show_progress)
        print(f"Uploaded as {info.name} ({info.state.value})")

        info = await model.files.wait_for_processing(info.name, poll_interval=2.0)
        print(f"Ready: {info.uri}")
        print()

        reply = await model.generate_content(
            [Content.user(info.to_part(), "Summarize this file in three sentences.")]
        )
        print(reply.text)

        await model.files.delete_file(info.name)
        print(f"\nDeleted {info.name}")

    finally:
        await model.aclose()


if __name__ == "__main__":
    if len(sys.argv) != 2:
        print(__doc__)
        sys.exit(1)
    asyncio.run(main(sys.argv[1]))
