"""Streaming relay pipeline: decode, extract, instrument, write.

Note: RelayController is imported from relay.streaming.controller directly to
avoid circular imports with relay.upstream.
"""

from relay.streaming.channel import ByteChannel, ChannelClosedError
from relay.streaming.decoder import Event, EventFrameDecoder, PendingBuffer
from relay.streaming.extractor import Fragment, Malformed, Skipped, extract_token
from relay.streaming.models import RelayMode, RelayState, UpstreamRequest
from relay.streaming.timing import Delivery, LatencyInstrumentor, TimingState

__all__ = [
    "ByteChannel",
    "ChannelClosedError",
    "Delivery",
    "Event",
    "EventFrameDecoder",
    "Fragment",
    "LatencyInstrumentor",
    "Malformed",
    "PendingBuffer",
    "RelayMode",
    "RelayState",
    "Skipped",
    "TimingState",
    "UpstreamRequest",
    "extract_token",
]
