"""Bounded hand-off of encoded chunks from the audio thread to the event loop."""

import asyncio
import logging
from typing import AsyncIterator, Optional

from ..models.audio import EncodedChunk

logger = logging.getLogger(__name__)

_CLOSED = object()


class ChunkChannel:
    """Bounded, ordered, best-effort channel between threads and an asyncio loop.

    ``put_threadsafe`` may be called from any thread. When the queue is full
    the newest chunk is dropped with a warning. Iterating the channel on the
    loop yields chunks in the order they were put until ``close`` is called.
    """

    def __init__(self, loop: asyncio.AbstractEventLoop, maxsize: int = 64):
        self.loop = loop
        self.queue: asyncio.Queue = asyncio.Queue(maxsize=maxsize)
        self.closed = False
        self.dropped = 0

    def put_threadsafe(self, chunk: EncodedChunk) -> None:
        """Schedule a chunk for delivery on the loop."""
        if self.closed:
            return
        try:
            self.loop.call_soon_threadsafe(self._put, chunk)
        except RuntimeError:
            # Loop already closed
            logger.debug(f"Event loop closed, dropping chunk {chunk.sequence_number}")

    def _put(self, chunk: EncodedChunk) -> None:
        if self.closed:
            return
        try:
            self.queue.put_nowait(chunk)
        except asyncio.QueueFull:
            self.dropped += 1
            logger.warning(f"Chunk channel full, dropping chunk {chunk.sequence_number} "
                           f"({self.dropped} dropped so far)")

    async def get(self) -> Optional[EncodedChunk]:
        """Next chunk, or None once the channel is closed."""
        if self.closed and self.queue.empty():
            return None
        item = await self.queue.get()
        if item is _CLOSED:
            return None
        return item

    def close(self) -> None:
        """Stop accepting chunks and wake any waiting reader. Loop thread only."""
        if self.closed:
            return
        self.closed = True
        while not self.queue.empty():
            self.queue.get_nowait()
        self.queue.put_nowait(_CLOSED)

    async def __aiter__(self) -> AsyncIterator[EncodedChunk]:
        while True:
            chunk = await self.get()
            if chunk is None:
                return
            yield chunk
