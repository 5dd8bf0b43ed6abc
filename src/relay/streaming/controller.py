"""Relay controller driving one upstream stream to one downstream body.

This module provides the RelayController, which opens upstream streams,
and RelayOperation, which owns one relayed request: its lifecycle state,
its background pump task and the byte channel feeding the response body.
"""

import asyncio
import logging
import time
from collections.abc import AsyncIterator
from contextlib import aclosing

import httpx

from relay.observability import AuditLogger
from relay.streaming.channel import ByteChannel
from relay.streaming.decoder import EventFrameDecoder
from relay.streaming.extractor import Malformed, Skipped, extract_token
from relay.streaming.models import RelayMode, RelayState, UpstreamRequest
from relay.streaming.timing import Clock, LatencyInstrumentor
from relay.upstream import UpstreamClient, UpstreamClientError

logger = logging.getLogger(__name__)

_TRANSITIONS: dict[RelayState, frozenset[RelayState]] = {
    RelayState.IDLE: frozenset({RelayState.AWAITING_UPSTREAM}),
    RelayState.AWAITING_UPSTREAM: frozenset({RelayState.STREAMING, RelayState.FAILED}),
    RelayState.STREAMING: frozenset(
        {RelayState.FIRST_TOKEN_TERMINATED, RelayState.DRAINING, RelayState.FAILED}
    ),
    RelayState.DRAINING: frozenset({RelayState.FAILED, RelayState.CLOSED}),
    RelayState.FIRST_TOKEN_TERMINATED: frozenset({RelayState.CLOSED}),
    RelayState.FAILED: frozenset({RelayState.CLOSED}),
    RelayState.CLOSED: frozenset(),
}


class RelayOperation:
    """One relayed request from upstream call to closed downstream body.

    Usage:
        operation = RelayOperation(upstream, request, RelayMode.NORMAL, ByteChannel())
        await operation.start()      # raises UpstreamClientError before streaming
        operation.spawn()            # pump runs in the background
        async for chunk in operation.body():
            ...
    """

    def __init__(
        self,
        upstream: UpstreamClient,
        request: UpstreamRequest,
        mode: RelayMode,
        channel: ByteChannel,
        audit: AuditLogger | None = None,
        clock: Clock = time.monotonic,
    ) -> None:
        self._upstream = upstream
        self._request = request
        self._mode = mode
        self._channel = channel
        self._audit = audit
        self._clock = clock
        self._state = RelayState.IDLE
        self._instrumentor: LatencyInstrumentor | None = None
        self._response: httpx.Response | None = None
        self._task: asyncio.Task[None] | None = None
        self.fragment_count = 0
        self.malformed_count = 0

    @property
    def state(self) -> RelayState:
        return self._state

    @property
    def mode(self) -> RelayMode:
        return self._mode

    @property
    def instrumentor(self) -> LatencyInstrumentor | None:
        return self._instrumentor

    @property
    def task(self) -> asyncio.Task[None] | None:
        return self._task

    @property
    def upstream_closed(self) -> bool:
        return self._response is None or self._response.is_closed

    def _transition(self, new_state: RelayState) -> None:
        if new_state not in _TRANSITIONS[self._state]:
            raise RuntimeError(
                f"Invalid relay transition {self._state.value} -> {new_state.value}"
            )
        logger.debug("Relay state %s -> %s", self._state.value, new_state.value)
        self._state = new_state

    async def start(self) -> None:
        """Issue the upstream call.

        Timing starts before the request is sent, so TTFT includes the
        upstream connection and queueing time.

        Raises:
            UpstreamClientError: If the upstream call fails. The operation
                is closed and nothing is written downstream. Any other
                error or a cancellation closes the operation the same way.
        """
        self._transition(RelayState.AWAITING_UPSTREAM)
        self._instrumentor = LatencyInstrumentor(self._mode, clock=self._clock)

        try:
            self._response = await self._upstream.open_stream(self._request)
        except UpstreamClientError as e:
            self._transition(RelayState.FAILED)
            if self._audit:
                self._audit.log_upstream_rejected(e.status_code, str(e))
            self._close_unstarted()
            raise
        except (Exception, asyncio.CancelledError) as e:
            logger.error("Upstream call aborted before streaming: %r", e)
            self._transition(RelayState.FAILED)
            self._close_unstarted()
            raise

        if self._audit:
            self._audit.log_stream_started(upstream_status=self._response.status_code)

    def _close_unstarted(self) -> None:
        # Nothing was written yet, so there is no reader to wait for.
        self._channel.abort()
        self._transition(RelayState.CLOSED)

    def spawn(self) -> asyncio.Task[None]:
        """Run the pump as a background task."""
        if self._task is not None:
            raise RuntimeError("Relay pump already started")
        self._task = asyncio.create_task(self.pump())
        return self._task

    async def pump(self) -> None:
        """Relay upstream events downstream until termination.

        Never raises for mid-stream faults: they end the operation in the
        FAILED state. The channel and the upstream response are closed on
        every exit path.
        """
        self._transition(RelayState.STREAMING)
        response = self._response
        instrumentor = self._instrumentor
        decoder = EventFrameDecoder()

        try:
            async with aclosing(decoder.decode(response.aiter_bytes())) as events:
                async for event in events:
                    result = extract_token(event)
                    if isinstance(result, Malformed):
                        self.malformed_count += 1
                        continue
                    if isinstance(result, Skipped) or not result.text:
                        continue

                    is_first = not instrumentor.state.first_token_recorded
                    delivery = instrumentor.deliver(result.text)
                    for chunk in delivery.chunks:
                        await self._channel.send(chunk)
                    if is_first and self._audit:
                        self._audit.log_first_token(ttft_ms=instrumentor.ttft_ms)

                    if delivery.terminate:
                        self._transition(RelayState.FIRST_TOKEN_TERMINATED)
                        await self._channel.close()
                        await self._cancel_upstream("first token received")
                        break
                    self.fragment_count += 1

            if self._state == RelayState.STREAMING:
                self._transition(RelayState.DRAINING)
                for chunk in instrumentor.finish():
                    await self._channel.send(chunk)

            if self._audit:
                self._audit.log_stream_completed(
                    state=self._state.value,
                    fragment_count=self.fragment_count,
                    malformed_count=self.malformed_count,
                    ttft_ms=instrumentor.ttft_ms,
                    total_ms=instrumentor.total_ms,
                )
        except asyncio.CancelledError:
            logger.info("Relay pump cancelled in state %s", self._state.value)
            if self._state in (RelayState.STREAMING, RelayState.DRAINING):
                self._transition(RelayState.FAILED)
            self._channel.abort()
            raise
        except Exception as e:
            logger.error("Error relaying stream: %s", e)
            if self._state in (RelayState.STREAMING, RelayState.DRAINING):
                self._transition(RelayState.FAILED)
            await self._write_error(e)
            if self._audit:
                self._audit.log_stream_failed(str(e), fragment_count=self.fragment_count)
        finally:
            try:
                await self._cancel_upstream("relay finished")
                await self._channel.close()
            except asyncio.CancelledError:
                self._channel.abort()
                raise
            finally:
                self._transition(RelayState.CLOSED)

    async def _write_error(self, error: Exception) -> None:
        if self._channel.closed:
            return
        try:
            for chunk in self._instrumentor.fail(error):
                await self._channel.send(chunk)
        except Exception as e:
            logger.debug("Could not write error annotation: %s", e)

    async def _cancel_upstream(self, reason: str) -> None:
        """Close the upstream response. Advisory: failures are only logged."""
        if self._response is None or self._response.is_closed:
            return
        try:
            await self._response.aclose()
            logger.debug("Upstream stream closed (%s)", reason)
        except Exception as e:
            logger.debug("Ignoring error while cancelling upstream stream: %s", e)

    async def body(self) -> AsyncIterator[bytes]:
        """Iterate the downstream body.

        If iteration stops before the channel is closed (client went away),
        the channel is aborted and the pump task cancelled.
        """
        completed = False
        try:
            async for chunk in self._channel:
                yield chunk
            completed = True
        finally:
            if not completed:
                self._channel.abort()
                if self._task is not None and not self._task.done():
                    self._task.cancel()


class RelayController:
    """Opens relay operations against the upstream API.

    Holds strong references to running pump tasks so that they survive
    after the response object has been handed to the transport.
    """

    def __init__(
        self,
        upstream: UpstreamClient,
        channel_max_chunks: int = 64,
        clock: Clock = time.monotonic,
    ) -> None:
        self._upstream = upstream
        self._channel_max_chunks = channel_max_chunks
        self._clock = clock
        self._pumps: set[asyncio.Task[None]] = set()

    @property
    def active_pumps(self) -> int:
        return len(self._pumps)

    async def open(
        self,
        request: UpstreamRequest,
        mode: RelayMode,
        audit: AuditLogger | None = None,
    ) -> RelayOperation:
        """Start a relay operation and its background pump.

        Raises:
            UpstreamClientError: If the upstream call fails before streaming.
        """
        operation = RelayOperation(
            upstream=self._upstream,
            request=request,
            mode=mode,
            channel=ByteChannel(max_chunks=self._channel_max_chunks),
            audit=audit,
            clock=self._clock,
        )
        await operation.start()
        task = operation.spawn()
        self._pumps.add(task)
        task.add_done_callback(self._pumps.discard)
        return operation

    async def close(self) -> None:
        """Cancel pumps that are still running."""
        pumps = list(self._pumps)
        for task in pumps:
            task.cancel()
        if pumps:
            await asyncio.gather(*pumps, return_exceptions=True)
        self._pumps.clear()
