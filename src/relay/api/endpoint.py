"""Relay endpoint for the streaming TTFT relay.

This module provides the FastAPI router that takes the request path as a
prompt, forwards it to the upstream LLM API and streams the response back
as plain text, optionally annotated with latency measurements.
"""

import logging
import uuid
from typing import Annotated

import httpx
from fastapi import APIRouter, Header, Request
from fastapi.responses import PlainTextResponse, Response, StreamingResponse

from relay.api.adapter import MissingPromptError, build_upstream_request, resolve_mode
from relay.config.settings import get_settings
from relay.observability import AuditLogger, configure_audit_logging
from relay.streaming.controller import RelayController
from relay.upstream import UpstreamClient, UpstreamRejectedError, UpstreamUnavailableError

logger = logging.getLogger(__name__)

RELAY_MEDIA_TYPE = "text/plain; charset=utf-8"

# Create the FastAPI router for the relay. Registered last: it matches every path.
relay_router = APIRouter(tags=["Relay"])


def get_http_client(request: Request) -> httpx.AsyncClient:
    """Get or create the shared HTTP client from app state.

    Args:
        request: The FastAPI request object.

    Returns:
        The shared async HTTP client.
    """
    client = getattr(request.app.state, "http_client", None)
    if client is None:
        client = httpx.AsyncClient()
        request.app.state.http_client = client
    return client


def get_relay_controller(request: Request) -> RelayController:
    """Get or create the relay controller from app state.

    Args:
        request: The FastAPI request object.

    Returns:
        The relay controller instance.
    """
    controller = getattr(request.app.state, "relay_controller", None)
    if controller is None:
        settings = get_settings()
        upstream = UpstreamClient(
            http_client=get_http_client(request),
            endpoint=settings.llm_endpoint,
            token=settings.llm_token,
            timeout=settings.upstream_timeout,
        )
        controller = RelayController(
            upstream=upstream,
            channel_max_chunks=settings.channel_max_chunks,
        )
        request.app.state.relay_controller = controller
    return controller


@relay_router.get("/{prompt:path}", response_model=None)
async def relay(
    request: Request,
    prompt: str,
    metrics: str | None = None,
    ttft: str | None = None,
    x_request_id: Annotated[str | None, Header(alias="X-Request-ID")] = None,
) -> Response:
    """Relay a prompt to the upstream LLM API and stream the answer back.

    The response headers are sent as soon as the upstream accepts the
    call; the body is written by a background pump as tokens arrive.

    Args:
        request: The FastAPI request object.
        prompt: The prompt, taken from the URL-decoded request path.
        metrics: ``true`` to annotate the stream with TTFT and total time.
        ttft: ``true`` to answer with the time to first token only.
        x_request_id: Optional request ID for tracing.

    Returns:
        StreamingResponse on success, PlainTextResponse on failure.
    """
    request_id = x_request_id or str(uuid.uuid4())
    settings = get_settings()
    mode = resolve_mode(metrics, ttft)

    configure_audit_logging(settings.audit_log_level)
    audit = AuditLogger(request_id=request_id, enabled=settings.audit_enabled)

    try:
        upstream_request = build_upstream_request(prompt, settings.llm_model)
    except MissingPromptError as e:
        logger.warning("Rejected relay request without prompt (request_id=%s)", request_id)
        return PlainTextResponse(str(e), status_code=400)
    except Exception as e:
        logger.exception("Failed to build upstream request: %s", e)
        return PlainTextResponse(f"Error: {e}", status_code=500)

    logger.info(
        "Received relay request (request_id=%s, mode=%s, prompt_length=%d)",
        request_id,
        mode.value,
        len(prompt),
    )
    audit.log_request_received(mode=mode.value, prompt_preview=prompt)

    controller = get_relay_controller(request)

    try:
        operation = await controller.open(upstream_request, mode, audit=audit)
    except UpstreamRejectedError as e:
        return PlainTextResponse(str(e), status_code=e.status_code)
    except UpstreamUnavailableError as e:
        return PlainTextResponse(str(e), status_code=500)
    except Exception as e:
        logger.exception("Relay request failed before streaming: %s", e)
        return PlainTextResponse(f"Error: {e}", status_code=500)

    return StreamingResponse(
        operation.body(),
        media_type=RELAY_MEDIA_TYPE,
        headers={"X-Request-ID": request_id},
    )
