import json
from unittest.mock import AsyncMock

import pytest

from content_worker.core.inflight import InFlightRegistry
from content_worker.core.schemas import PipelineErrorInfo, PipelineResult
from content_worker.kafka import consumer as consumer_module
from content_worker.kafka.consumer import ContentJobConsumer


class StubOrchestrator:
    def __init__(self, result=None, error=None):
        self.result = result
        self.error = error
        self.calls = 0

    async def process(self, content, options=None, parent=None, skip_precheck=False):
        self.calls += 1
        if self.error:
            raise self.error
        return self.result


def _ok():
    return PipelineResult(success=True, status="completed")


def _failed(retryable=True):
    return PipelineResult(
        success=False,
        status="failed",
        error=PipelineErrorInfo(step="verify_claims", message="upstream timeout", is_retryable=retryable),
    )


def _raw(attempt=0):
    job = {
        "job_id": "job-1",
        "attempt": attempt,
        "content": {"id": "post-1", "author_id": "user-1", "text": "The earth is flat"},
    }
    return json.dumps(job).encode("utf-8")


def _worker(orchestrator):
    publisher = AsyncMock()
    return ContentJobConsumer(consumer=None, publisher=publisher, orchestrator=orchestrator, registry=InFlightRegistry()), publisher


@pytest.fixture(autouse=True)
def max_attempts(monkeypatch):
    monkeypatch.setattr(consumer_module, "MAX_ATTEMPTS", 3)


@pytest.mark.asyncio
async def test_successful_job_publishes_result():
    worker, publisher = _worker(StubOrchestrator(_ok()))
    await worker.handle_message(_raw())

    published = publisher.publish_result.await_args.args[0]
    assert published.job_id == "job-1"
    assert published.content_id == "post-1"
    assert published.result.success is True
    publisher.publish_dlq.assert_not_awaited()


@pytest.mark.asyncio
async def test_retryable_failure_requeues_with_next_attempt():
    worker, publisher = _worker(StubOrchestrator(_failed()))
    await worker.handle_message(_raw(attempt=0))

    payload, reason = publisher.publish_dlq.await_args.args
    assert payload["attempt"] == 1
    assert reason == "Retrying attempt 1 - upstream timeout"


@pytest.mark.asyncio
async def test_gives_up_after_max_attempts():
    worker, publisher = _worker(StubOrchestrator(_failed()))
    await worker.handle_message(_raw(attempt=2))

    payload, reason = publisher.publish_dlq.await_args.args
    assert payload["attempt"] == 2
    assert reason == "Max attempts exceeded: upstream timeout"


@pytest.mark.asyncio
async def test_non_retryable_failure_goes_straight_to_dlq():
    worker, publisher = _worker(StubOrchestrator(_failed(retryable=False)))
    await worker.handle_message(_raw())

    _, reason = publisher.publish_dlq.await_args.args
    assert reason == "Non-retryable failure: upstream timeout"


@pytest.mark.asyncio
async def test_worker_error_is_retried():
    worker, publisher = _worker(StubOrchestrator(error=RuntimeError("crash")))
    await worker.handle_message(_raw())

    _, reason = publisher.publish_dlq.await_args.args
    assert reason == "Retrying attempt 1 - crash"
    publisher.publish_result.assert_not_awaited()


@pytest.mark.asyncio
@pytest.mark.parametrize("raw", [b"not json", b'{"job_id": "x"}', b"\xff\xfe"])
async def test_invalid_messages_go_to_dlq(raw):
    orchestrator = StubOrchestrator(_ok())
    worker, publisher = _worker(orchestrator)
    await worker.handle_message(raw)

    assert orchestrator.calls == 0
    publisher.publish_dlq.assert_awaited_once()
