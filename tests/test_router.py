import json
from types import SimpleNamespace

import pytest

from content_worker.core.config import settings
from content_worker.core.inflight import InFlightRegistry
from content_worker.core.rate_limit import InMemoryRateLimitStore
from content_worker.core.schemas import ContentItem, PipelineResult, ProcessContentRequest
from content_worker.routers import pipeline as pipeline_router


class StubOrchestrator:
    def __init__(self):
        self.calls = []

    async def process(self, content, options=None, parent=None, skip_precheck=False):
        self.calls.append({"content": content, "parent": parent, "skip_precheck": skip_precheck})
        return PipelineResult(success=True, status="completed", steps_completed=["precheck"])


def _request(ip="10.0.0.1", headers=None):
    return SimpleNamespace(headers=headers or {}, client=SimpleNamespace(host=ip))


def _body(**kwargs):
    return ProcessContentRequest(content=ContentItem(id="post-1", author_id="user-1", text="hi"), **kwargs)


@pytest.fixture
def wired(monkeypatch):
    orchestrator = StubOrchestrator()
    pipeline_router.set_pipeline(orchestrator, InFlightRegistry(), InMemoryRateLimitStore())
    monkeypatch.setattr(settings, "RATE_LIMIT_MAX_REQUESTS", 2)
    monkeypatch.setattr(settings, "RATE_LIMIT_WINDOW_MS", 60_000)
    yield orchestrator
    pipeline_router.set_pipeline(None, None, None)


@pytest.mark.asyncio
async def test_process_returns_pipeline_result(wired):
    response = await pipeline_router.process_content(_body(skip_precheck=True), _request())

    assert response.status_code == 200
    payload = json.loads(response.body)
    assert payload["success"] is True
    assert payload["steps_completed"] == ["precheck"]
    assert wired.calls[0]["skip_precheck"] is True


@pytest.mark.asyncio
async def test_rate_limited_client_gets_429(wired):
    for _ in range(2):
        await pipeline_router.process_content(_body(), _request())

    response = await pipeline_router.process_content(_body(), _request())

    assert response.status_code == 429
    payload = json.loads(response.body)
    assert payload["error"] == "Rate limit exceeded"
    assert 0 < payload["retry_after_ms"] <= 60_000
    assert int(response.headers["retry-after"]) >= 1
    assert len(wired.calls) == 2

    other = await pipeline_router.process_content(_body(), _request(ip="10.0.0.2"))
    assert other.status_code == 200


def test_client_key_prefers_forwarded_header():
    request = _request(headers={"x-forwarded-for": "203.0.113.7, 10.0.0.1"})
    assert pipeline_router.client_key(request) == "203.0.113.7"
    assert pipeline_router.client_key(_request()) == "10.0.0.1"
    assert pipeline_router.client_key(SimpleNamespace(headers={}, client=None)) == "unknown"


@pytest.mark.asyncio
async def test_uninitialized_pipeline_returns_503():
    pipeline_router.set_pipeline(None, None, None)
    response = await pipeline_router.process_content(_body(), _request())
    assert response.status_code == 503


@pytest.mark.asyncio
async def test_health_reports_wiring(wired):
    health = await pipeline_router.health()
    assert health == {"status": "ok", "pipeline_ready": True, "in_flight": 0}


@pytest.mark.asyncio
async def test_metrics_exposes_pipeline_counters():
    response = await pipeline_router.metrics()
    assert b"content_pipeline_runs_total" in response.body
