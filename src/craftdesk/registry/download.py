"""
Network-to-disk pipe for craft archives.

The network reader and the disk writer run concurrently, joined by a
bounded asyncio.Queue. A slow disk fills the queue and suspends the reader
(backpressure); file writes run in a worker thread so the event loop keeps
serving other registry calls.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, BinaryIO

if TYPE_CHECKING:
    from collections.abc import AsyncIterable
    from pathlib import Path

logger = logging.getLogger(__name__)

DEFAULT_BUFFER_CHUNKS = 8


async def _write_chunks(
    queue: asyncio.Queue[bytes | None],
    fh: BinaryIO,
    failed: asyncio.Event,
) -> int:
    """Drain the queue into fh until the None sentinel; flush and close.

    After a write error the queue is still drained (without writing) so the
    reader can never block on a full queue.
    """
    written = 0
    error: OSError | None = None
    try:
        while True:
            chunk = await queue.get()
            if chunk is None:
                break
            if error is not None:
                continue
            try:
                await asyncio.to_thread(fh.write, chunk)
            except OSError as e:
                error = e
                failed.set()
                continue
            written += len(chunk)
        if error is None:
            await asyncio.to_thread(fh.flush)
    finally:
        await asyncio.to_thread(fh.close)

    if error is not None:
        raise error
    return written


async def stream_to_file(
    chunks: AsyncIterable[bytes],
    output_path: Path,
    buffer_chunks: int = DEFAULT_BUFFER_CHUNKS,
) -> int:
    """Write an async byte stream to output_path.

    Returns only after the file has been flushed and closed.

    Args:
        chunks: Async iterable of body chunks (e.g. response.content.iter_chunked()).
        output_path: Destination file; its parent directory must exist.
        buffer_chunks: Max chunks held in memory between reader and writer.

    Returns:
        Number of bytes written.

    Raises:
        OSError: If the file cannot be opened, written, or closed.
        Any error raised by `chunks` (after the file is closed).
    """
    queue: asyncio.Queue[bytes | None] = asyncio.Queue(maxsize=buffer_chunks)
    failed = asyncio.Event()
    fh = await asyncio.to_thread(output_path.open, "wb")
    writer = asyncio.create_task(_write_chunks(queue, fh, failed))

    try:
        async for chunk in chunks:
            if failed.is_set():
                break
            if chunk:
                await queue.put(chunk)
    finally:
        await queue.put(None)
        written = await writer

    logger.debug("Stream written to disk", extra={"size_bytes": written})
    return written
