"""Data models shared by the relay streaming pipeline."""

from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field


class RelayMode(str, Enum):
    """How the relay shapes the outgoing stream."""

    NORMAL = "normal"
    METRICS_ANNOTATED = "metrics"
    FIRST_TOKEN_ONLY = "ttft"

    @classmethod
    def from_flags(cls, metrics: bool, ttft: bool) -> "RelayMode":
        """Derive the mode from inbound flags. First-token-only wins over metrics."""
        if ttft:
            return cls.FIRST_TOKEN_ONLY
        if metrics:
            return cls.METRICS_ANNOTATED
        return cls.NORMAL


class RelayState(str, Enum):
    """Lifecycle states of one relay operation."""

    IDLE = "idle"
    AWAITING_UPSTREAM = "awaiting_upstream"
    STREAMING = "streaming"
    FIRST_TOKEN_TERMINATED = "first_token_terminated"
    DRAINING = "draining"
    FAILED = "failed"
    CLOSED = "closed"


class UpstreamRequest(BaseModel):
    """A chat-completion request for the upstream streaming API."""

    model_config = ConfigDict(frozen=True)

    prompt: str = Field(min_length=1)
    model: str
    stream: Literal[True] = True

    def to_payload(self) -> dict[str, Any]:
        """Build the JSON body sent upstream."""
        return {
            "messages": [{"role": "user", "content": self.prompt}],
            "stream": self.stream,
            "model": self.model,
        }
