"""Latency instrumentation for relayed token streams.

The instrumentor sits between token extraction and the downstream writer.
It records time-to-first-token (TTFT) once per operation and, depending on
the relay mode, turns fragments into the exact bytes written downstream.
"""

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field

from relay.streaming.models import RelayMode

logger = logging.getLogger(__name__)

Clock = Callable[[], float]


def format_ttft_report(ttft_ms: int) -> str:
    return f"TTFT: {ttft_ms}ms"


def format_ttft_annotation(ttft_ms: int) -> str:
    return f"[TTFT: {ttft_ms}ms]\n\n"


def format_total_annotation(total_ms: int) -> str:
    return f"\n\n[Total Response Time: {total_ms}ms]"


def format_error_annotation(message: str) -> str:
    return f"\n\n[Error: {message}]"


@dataclass
class TimingState:
    """Timing of one relay operation. Never shared across operations."""

    start_time: float
    first_token_time: float | None = None
    first_token_recorded: bool = False
    metrics_emitted: bool = False


@dataclass(frozen=True)
class Delivery:
    """Bytes to write for one fragment, and whether the stream ends after them."""

    chunks: tuple[bytes, ...] = field(default_factory=tuple)
    terminate: bool = False


class LatencyInstrumentor:
    """Wraps fragment delivery with TTFT and total-time measurement.

    Elapsed times are whole milliseconds, truncated, measured from the
    instant the instrumentor was created.
    """

    def __init__(self, mode: RelayMode, clock: Clock = time.monotonic) -> None:
        self._mode = mode
        self._clock = clock
        self._state = TimingState(start_time=clock())
        self._total_ms: int | None = None

    @property
    def mode(self) -> RelayMode:
        return self._mode

    @property
    def state(self) -> TimingState:
        return self._state

    @property
    def ttft_ms(self) -> int | None:
        if self._state.first_token_time is None:
            return None
        return self._to_ms(self._state.first_token_time)

    @property
    def total_ms(self) -> int | None:
        return self._total_ms

    def elapsed_ms(self) -> int:
        return self._to_ms(self._clock())

    def _to_ms(self, instant: float) -> int:
        return max(int((instant - self._state.start_time) * 1000), 0)

    def deliver(self, fragment: str) -> Delivery:
        """Turn one fragment into downstream bytes.

        Empty fragments produce nothing and never count as the first token.
        """
        if not fragment:
            return Delivery()

        chunks: list[bytes] = []
        if not self._state.first_token_recorded:
            self._state.first_token_time = self._clock()
            self._state.first_token_recorded = True
            ttft_ms = self._to_ms(self._state.first_token_time)
            logger.debug("First token after %dms", ttft_ms)

            if self._mode == RelayMode.FIRST_TOKEN_ONLY:
                return Delivery(
                    chunks=(format_ttft_report(ttft_ms).encode("utf-8"),),
                    terminate=True,
                )

            if self._mode == RelayMode.METRICS_ANNOTATED and not self._state.metrics_emitted:
                chunks.append(format_ttft_annotation(ttft_ms).encode("utf-8"))
                self._state.metrics_emitted = True

        chunks.append(fragment.encode("utf-8"))
        return Delivery(chunks=tuple(chunks))

    def finish(self) -> tuple[bytes, ...]:
        """Bytes to write once the upstream stream is exhausted."""
        self._total_ms = self.elapsed_ms()
        if self._mode != RelayMode.METRICS_ANNOTATED:
            return ()
        return (format_total_annotation(self._total_ms).encode("utf-8"),)

    def fail(self, error: BaseException) -> tuple[bytes, ...]:
        """Bytes to write when the pump fails mid-stream."""
        if self._mode != RelayMode.METRICS_ANNOTATED:
            return ()
        return (format_error_annotation(str(error)).encode("utf-8"),)
