"""FastAPI application entry point for the streaming TTFT relay."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI
from fastapi.responses import JSONResponse

from relay import __version__
from relay.config import RegionsLoadError, get_settings, load_regions_config
from relay.streaming.controller import RelayController
from relay.upstream import UpstreamClient

settings = get_settings()

logging.basicConfig(
    level=getattr(logging, settings.log_level.value),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler for startup and shutdown events."""
    current = get_settings()
    logger.info("Starting llm-ttft-relay v%s", __version__)
    if current.llm_endpoint:
        logger.info("Upstream endpoint: %s (model=%s)", current.llm_endpoint, current.llm_model)
    else:
        logger.warning("No upstream endpoint configured (RELAY_LLM_ENDPOINT)")

    app.state.http_client = httpx.AsyncClient(timeout=current.upstream_timeout)

    upstream = UpstreamClient(
        http_client=app.state.http_client,
        endpoint=current.llm_endpoint,
        token=current.llm_token,
        timeout=current.upstream_timeout,
    )
    app.state.relay_controller = RelayController(
        upstream=upstream,
        channel_max_chunks=current.channel_max_chunks,
    )
    logger.info("Relay controller initialized")

    # Load the probe region table
    try:
        app.state.regions_config = load_regions_config(current.regions_path)
        logger.info(
            "Loaded %d probe regions", len(app.state.regions_config.all_buckets())
        )
    except RegionsLoadError as e:
        logger.error("Failed to load probe regions: %s", e)
        app.state.regions_config = None

    yield

    # Cleanup
    if getattr(app.state, "relay_controller", None):
        await app.state.relay_controller.close()
        app.state.relay_controller = None
    if getattr(app.state, "http_client", None):
        await app.state.http_client.aclose()
        app.state.http_client = None
    logger.info("Shutting down llm-ttft-relay")


app = FastAPI(
    title="LLM TTFT Relay",
    description=(
        "Streaming relay that forwards prompts to an LLM API and measures "
        "time to first token"
    ),
    version=__version__,
    lifespan=lifespan,
)


@app.get("/health/live", response_class=JSONResponse)
async def liveness() -> dict:
    """Kubernetes liveness probe endpoint."""
    return {"status": "ok"}


@app.get("/health/ready", response_class=JSONResponse)
async def readiness() -> JSONResponse:
    """Kubernetes readiness probe endpoint."""
    if not get_settings().llm_endpoint:
        return JSONResponse(
            status_code=503,
            content={"status": "not ready", "reason": "upstream endpoint not configured"},
        )
    return JSONResponse(content={"status": "ok"})


# Routers are imported here to avoid circular imports. The relay router
# goes last because it matches every path.
from relay.probe.endpoint import probe_router  # noqa: E402
from relay.api.endpoint import relay_router  # noqa: E402

app.include_router(probe_router)
app.include_router(relay_router)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "relay.main:app",
        host=settings.host,
        port=settings.port,
    )
