"""Single-producer, single-consumer byte channel.

The relay pump task writes into the channel while the HTTP transport
iterates over it as the response body. This decouples sending the
response headers from producing the body.
"""

import asyncio
import logging
from collections.abc import AsyncIterator

logger = logging.getLogger(__name__)

_EOF = object()


class ChannelClosedError(Exception):
    """Raised when writing to a channel that was closed or abandoned."""

    pass


class ByteChannel:
    """Bounded async byte channel with one writer and one reader.

    ``send`` suspends while the channel is full. ``close`` marks the end of
    the body. ``abort`` is called when either side stops early; after that
    every ``send`` raises ``ChannelClosedError``.
    """

    def __init__(self, max_chunks: int = 0) -> None:
        self._queue: asyncio.Queue[object] = asyncio.Queue(maxsize=max_chunks)
        self._closed = False
        self._aborted = False

    @property
    def closed(self) -> bool:
        return self._closed or self._aborted

    @property
    def aborted(self) -> bool:
        return self._aborted

    async def send(self, data: bytes) -> None:
        if self._aborted:
            raise ChannelClosedError("Downstream reader went away")
        if self._closed:
            raise ChannelClosedError("Channel already closed")
        if not data:
            return
        await self._queue.put(data)

    async def close(self) -> None:
        """Mark the end of the body. Safe to call more than once."""
        if self._closed or self._aborted:
            return
        self._closed = True
        await self._queue.put(_EOF)

    def abort(self) -> None:
        """Stop accepting data and discard anything still queued.

        A reader still iterating sees the end of the body.
        """
        if self._aborted:
            return
        self._aborted = True
        while not self._queue.empty():
            self._queue.get_nowait()
        self._queue.put_nowait(_EOF)
        logger.debug("Byte channel aborted")

    async def __aiter__(self) -> AsyncIterator[bytes]:
        while True:
            item = await self._queue.get()
            if item is _EOF:
                return
            yield item
