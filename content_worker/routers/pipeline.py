"""
HTTP entry points for the content pipeline.

Endpoints:
  POST /pipeline/process - run the pipeline for one content item
  GET  /health           - liveness and wiring status
  GET  /metrics          - Prometheus exposition
"""

from typing import Optional

from fastapi import APIRouter, Request, Response
from fastapi.responses import JSONResponse

from content_worker.core.config import settings
from content_worker.core.errors import RateLimitExceededError
from content_worker.core.inflight import InFlightRegistry
from content_worker.core.logger import get_logger
from content_worker.core.observability import metrics_payload
from content_worker.core.rate_limit import RateLimitStore, enforce_rate_limit
from content_worker.core.schemas import ProcessContentRequest

logger = get_logger(__name__)

router = APIRouter()

# Set on app startup (see main.py)
_orchestrator = None
_registry: Optional[InFlightRegistry] = None
_rate_limit_store: Optional[RateLimitStore] = None


def set_pipeline(orchestrator, registry: InFlightRegistry, rate_limit_store: RateLimitStore) -> None:
    global _orchestrator, _registry, _rate_limit_store
    _orchestrator = orchestrator
    _registry = registry
    _rate_limit_store = rate_limit_store


def client_key(request: Request) -> str:
    forwarded = request.headers.get("x-forwarded-for", "")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


@router.post("/pipeline/process", tags=["Pipeline"])
async def process_content(body: ProcessContentRequest, request: Request):
    """
    Run the content value pipeline for one item.

    Returns the PipelineResult (HTTP 200 even when the run failed; check
    `success`). Over the per-client limit the answer is 429 with Retry-After.
    """
    if _orchestrator is None or _registry is None or _rate_limit_store is None:
        return JSONResponse({"error": "Pipeline not initialized"}, status_code=503)

    key = f"pipeline:{client_key(request)}"
    try:
        await enforce_rate_limit(
            _rate_limit_store, key, settings.RATE_LIMIT_MAX_REQUESTS, settings.RATE_LIMIT_WINDOW_MS
        )
    except RateLimitExceededError as e:
        return JSONResponse(
            {"error": "Rate limit exceeded", "retry_after_ms": int(e.retry_after_ms)},
            status_code=429,
            headers={"Retry-After": str(e.retry_after_seconds)},
        )

    content = body.content
    result = await _registry.run(
        f"content:{content.id}",
        lambda: _orchestrator.process(
            content, options=body.options, parent=body.parent, skip_precheck=body.skip_precheck
        ),
    )
    return JSONResponse(result.model_dump(mode="json"))


@router.get("/health", tags=["Health"])
async def health():
    return {
        "status": "ok",
        "pipeline_ready": _orchestrator is not None,
        "in_flight": len(_registry) if _registry is not None else 0,
    }


@router.get("/metrics", tags=["Health"])
async def metrics():
    payload, content_type = metrics_payload()
    return Response(content=payload, media_type=content_type)
