"""Token extraction from decoded upstream events."""

import json
import logging
from dataclasses import dataclass
from typing import Any

from relay.streaming.decoder import EVENT_PREFIX, Event

logger = logging.getLogger(__name__)

DONE_SENTINEL = "[DONE]"


@dataclass(frozen=True)
class Fragment:
    """Incremental text carried by one event. May be empty."""

    text: str


@dataclass(frozen=True)
class Skipped:
    """An event that carries no fragment (sentinel or empty payload)."""

    reason: str


@dataclass(frozen=True)
class Malformed:
    """An event whose payload is not valid JSON."""

    payload: str
    error: str


ExtractionResult = Fragment | Skipped | Malformed


def extract_payload(event: Event) -> str:
    """Strip the event prefix and surrounding whitespace."""
    return event.line[len(EVENT_PREFIX) :].strip()


def extract_token(event: Event) -> ExtractionResult:
    """Extract the incremental text fragment from one event.

    Never raises: the sentinel and empty payloads are ``Skipped``, invalid
    JSON is ``Malformed``, anything else is a ``Fragment``.
    """
    payload = extract_payload(event)

    if not payload:
        return Skipped(reason="empty")
    if payload == DONE_SENTINEL:
        return Skipped(reason="done")

    try:
        parsed = json.loads(payload)
    except json.JSONDecodeError as e:
        logger.warning("Failed to parse stream event JSON: %s", e)
        return Malformed(payload=payload, error=str(e))

    return Fragment(text=_delta_content(parsed))


def _delta_content(parsed: Any) -> str:
    """Read ``choices[0].delta.content`` without trusting the payload shape."""
    if not isinstance(parsed, dict):
        return ""
    choices = parsed.get("choices")
    if not isinstance(choices, list) or not choices:
        return ""
    first_choice = choices[0]
    if not isinstance(first_choice, dict):
        return ""
    delta = first_choice.get("delta")
    if not isinstance(delta, dict):
        return ""
    content = delta.get("content")
    return content if isinstance(content, str) else ""
