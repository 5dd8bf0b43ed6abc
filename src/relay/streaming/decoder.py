"""Event-frame decoder for line-delimited upstream event streams.

Upstream chunks arrive in arbitrary sizes and do not line up with the
logical lines of the stream. The decoder carries partial lines (and
partial UTF-8 sequences) across chunks and yields only complete lines
that carry the ``data:`` event prefix.
"""

import codecs
import logging
from collections.abc import AsyncIterable, AsyncIterator, Iterable
from dataclasses import dataclass

logger = logging.getLogger(__name__)

EVENT_PREFIX = "data:"
LINE_SEPARATOR = "\n"


@dataclass(frozen=True)
class Event:
    """A single decoded line carrying the event prefix."""

    line: str


class PendingBuffer:
    """Text received but not yet terminated by a line break."""

    def __init__(self) -> None:
        self._text = ""

    def __len__(self) -> int:
        return len(self._text)

    @property
    def text(self) -> str:
        return self._text

    def append(self, text: str) -> None:
        self._text += text

    def drain_lines(self) -> list[str]:
        """Remove and return every complete line, keeping the trailing fragment."""
        if LINE_SEPARATOR not in self._text:
            return []
        *lines, self._text = self._text.split(LINE_SEPARATOR)
        return lines

    def flush(self) -> str | None:
        """Remove and return whatever is left, or None when empty."""
        if not self._text:
            return None
        residual, self._text = self._text, ""
        return residual


def is_event_line(line: str) -> bool:
    return line.startswith(EVENT_PREFIX)


class EventFrameDecoder:
    """Incremental decoder from raw byte chunks to events.

    One decoder belongs to one upstream connection. ``feed`` may be called
    any number of times followed by a single ``finish``.
    """

    def __init__(self, encoding: str = "utf-8") -> None:
        self._decoder = codecs.getincrementaldecoder(encoding)(errors="replace")
        self._buffer = PendingBuffer()
        self._finished = False

    @property
    def pending(self) -> str:
        """Text held back until its line break arrives."""
        return self._buffer.text

    def feed_lines(self, chunk: bytes) -> list[str]:
        """Decode one raw chunk and return the candidate lines it completes."""
        if self._finished:
            raise RuntimeError("Decoder already finished")
        self._buffer.append(self._decoder.decode(chunk))
        return self._buffer.drain_lines()

    def finish_lines(self) -> list[str]:
        """Flush the decoder at end of stream, including an unterminated last line."""
        if self._finished:
            return []
        self._finished = True
        self._buffer.append(self._decoder.decode(b"", final=True))
        lines = self._buffer.drain_lines()
        residual = self._buffer.flush()
        if residual is not None:
            logger.debug("Flushing unterminated trailing line (%d chars)", len(residual))
            lines.append(residual)
        return lines

    def feed(self, chunk: bytes) -> list[Event]:
        return _events(self.feed_lines(chunk))

    def finish(self) -> list[Event]:
        return _events(self.finish_lines())

    async def decode(self, chunks: AsyncIterable[bytes]) -> AsyncIterator[Event]:
        """Lazily yield events from an async byte stream."""
        async for chunk in chunks:
            for event in self.feed(chunk):
                yield event
        for event in self.finish():
            yield event


def _events(lines: Iterable[str]) -> list[Event]:
    return [Event(line=line) for line in lines if is_event_line(line)]


def decode_lines(chunks: Iterable[bytes]) -> list[str]:
    """Decode a complete sequence of chunks into candidate lines."""
    decoder = EventFrameDecoder()
    lines: list[str] = []
    for chunk in chunks:
        lines.extend(decoder.feed_lines(chunk))
    lines.extend(decoder.finish_lines())
    return lines
