# =============================================================================
# Interview Snap - FastAPI Relay Application
# =============================================================================
# Defines the HTTP API for the streaming relay: a single analysis route that
# accepts one captured image as a data URL, forwards it to the upstream
# multimodal model, and streams the answer back as raw text while it is being
# generated.  Pre-stream failures are returned as a JSON ErrorResponse.
# =============================================================================

import logging
import time
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import Depends, FastAPI, Request
from fastapi.responses import JSONResponse, StreamingResponse

from config import get_config
from server.errors import RelayError
from server.relay import AnalysisRelay

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Global references populated during lifespan startup
# ---------------------------------------------------------------------------
_relay: Optional[AnalysisRelay] = None
_start_time: float = 0.0

# Keep reverse proxies from buffering the incremental body.
_STREAM_HEADERS = {
    "Cache-Control": "no-cache",
    "X-Accel-Buffering": "no",
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.

    Builds the relay from configuration.  A missing upstream credential is
    only logged here; each analysis request reports it as a configuration
    error so the service stays up and explains itself.
    """
    global _relay, _start_time

    config = get_config()
    _start_time = time.time()
    _relay = AnalysisRelay.from_config(config)

    if not _relay.is_configured:
        logger.warning("OPENAI_API_KEY is not set; analysis requests will be rejected.")
    logger.info("Relay ready (model=%s, route=%s).", config.openai_model, config.analyze_route)
    yield

    logger.info("Shutting down relay...")


def get_relay() -> AnalysisRelay:
    """Return the process-wide relay, building it if lifespan did not run."""
    global _relay
    if _relay is None:
        _relay = AnalysisRelay.from_config(get_config())
    return _relay


# ---------------------------------------------------------------------------
# FastAPI application
# ---------------------------------------------------------------------------
app = FastAPI(
    title="Interview Snap Relay",
    description=(
        "Receives a single camera frame as a data URL, asks a multimodal "
        "language model to answer the interview question it shows, and "
        "streams the answer back as plain text."
    ),
    version="0.1.0",
    lifespan=lifespan,
)


@app.exception_handler(RelayError)
async def relay_error_handler(request: Request, exc: RelayError) -> JSONResponse:
    """Render a pre-stream failure as a single JSON ErrorResponse."""
    logger.warning("Rejected %s %s: [%s] %s", request.method, request.url.path, exc.category.value, exc.message)
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_response().model_dump(mode="json"),
    )


@app.get("/health")
def health_check(relay: AnalysisRelay = Depends(get_relay)):
    """
    Health check endpoint.

    Returns server status, whether an upstream credential is configured, the
    upstream model name, and uptime.
    """
    uptime = time.time() - _start_time if _start_time > 0 else 0.0
    return {
        "status": "ok" if relay.is_configured else "misconfigured",
        "upstream_configured": relay.is_configured,
        "model": relay.model,
        "uptime_seconds": round(uptime, 2),
    }


@app.post(get_config().analyze_route)
async def analyze(request: Request, relay: AnalysisRelay = Depends(get_relay)):
    """
    Analyze one captured image and stream the model's answer.

    The body is read by hand rather than declared as a pydantic parameter so
    that a missing credential is reported before the image is looked at.

    Returns:
        StreamingResponse of ``text/plain`` fragments in generation order.
    """
    try:
        payload = await request.json()
    except ValueError:
        # Malformed JSON is treated as a request without an image.
        payload = None

    fragments = await relay.open(payload)
    return StreamingResponse(
        fragments,
        media_type="text/plain; charset=utf-8",
        headers=_STREAM_HEADERS,
    )
