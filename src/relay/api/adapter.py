"""Mapping from inbound relay requests to upstream requests and modes."""

from relay.streaming.models import RelayMode, UpstreamRequest

FLAG_TRUE = "true"
MISSING_PROMPT_MESSAGE = "No prompt provided in the pathname"


class MissingPromptError(ValueError):
    """Raised when the inbound request carries no prompt."""

    def __init__(self, message: str = MISSING_PROMPT_MESSAGE):
        super().__init__(message)


def parse_flag(value: str | None) -> bool:
    """A query flag is set only by the literal value ``true``."""
    return value == FLAG_TRUE


def resolve_mode(metrics: str | None, ttft: str | None) -> RelayMode:
    """Derive the relay mode from the ``metrics`` and ``ttft`` query flags."""
    return RelayMode.from_flags(metrics=parse_flag(metrics), ttft=parse_flag(ttft))


def build_upstream_request(prompt: str | None, model: str) -> UpstreamRequest:
    """Build the upstream request for a prompt taken from the request path.

    Raises:
        MissingPromptError: If the prompt is empty.
    """
    if not prompt:
        raise MissingPromptError()
    return UpstreamRequest(prompt=prompt, model=model)
