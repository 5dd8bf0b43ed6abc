"""Probe endpoint: time the relay from many locations and report as JSON."""

import logging
import uuid

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse, Response

from relay.api.endpoint import get_http_client
from relay.config.regions import RegionsConfig, load_regions_config
from relay.config.settings import get_settings
from relay.observability import AuditLogger, configure_audit_logging
from relay.probe.client import PingdomClient
from relay.probe.service import ProbeService

logger = logging.getLogger(__name__)

probe_router = APIRouter(tags=["Probe"])


def get_regions_config(request: Request) -> RegionsConfig:
    """Get or load the region table from app state."""
    regions = getattr(request.app.state, "regions_config", None)
    if regions is None:
        regions = load_regions_config(get_settings().regions_path)
        request.app.state.regions_config = regions
    return regions


@probe_router.get("/probe", response_model=None)
async def probe(
    request: Request,
    token: str | None = None,
    host: str | None = None,
    path: str | None = None,
) -> Response:
    """Measure the target from a region-balanced sample of probe locations.

    Query parameters override the configured token, host and path.

    Args:
        request: The FastAPI request object.
        token: Pingdom API token.
        host: Target host.
        path: Target path.

    Returns:
        The probe report as indented JSON, or ``{"error": ...}``.
    """
    settings = get_settings()
    pingdom_token = token or settings.pingdom_api_token
    target_host = host or settings.probe_target_host
    target_path = path or settings.probe_target_path

    if not pingdom_token:
        return JSONResponse(status_code=400, content={"error": "Pingdom API token is required"})
    if not target_host:
        return JSONResponse(status_code=400, content={"error": "Target host is required"})

    configure_audit_logging(settings.audit_log_level)
    audit = AuditLogger(request_id=str(uuid.uuid4()), enabled=settings.audit_enabled)

    try:
        client = PingdomClient(
            http_client=get_http_client(request),
            token=pingdom_token,
            api_base=settings.pingdom_api_base,
            timeout=settings.probe_timeout,
        )
        service = ProbeService(
            client=client,
            regions=get_regions_config(request),
            sample_size=settings.probe_sample_size,
        )
        report = await service.run(target_host, target_path, audit=audit)
    except Exception as e:
        logger.exception("Probe run failed: %s", e)
        return JSONResponse(status_code=500, content={"error": str(e)})

    return Response(
        content=report.model_dump_json(indent=2, exclude_none=True),
        media_type="application/json",
    )
