"""Upstream LLM API client."""

from relay.upstream.client import (
    UpstreamClient,
    UpstreamClientError,
    UpstreamRejectedError,
    UpstreamUnavailableError,
)

__all__ = [
    "UpstreamClient",
    "UpstreamClientError",
    "UpstreamRejectedError",
    "UpstreamUnavailableError",
]
