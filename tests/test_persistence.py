import json

import pytest

from content_worker.core.schemas import (
    Claim,
    PipelineErrorInfo,
    PipelineResult,
    PredictedEngagement,
)
from content_worker.services.pipeline.persistence import (
    InMemoryContentInsightsStore,
    RedisContentInsightsStore,
    build_failure_update,
    build_insights_store,
    build_success_update,
)


def _success():
    return PipelineResult(
        success=True,
        status="completed",
        claims=[Claim(id="p-claim-1", text="Water boils at 100C", confidence=0.9)],
        steps_completed=["precheck", "extract_claims"],
        duration_ms=12,
    )


def _failure():
    return PipelineResult(
        success=False,
        status="failed",
        error=PipelineErrorInfo(step="verify_claims", message="timeout", is_retryable=True),
    )


def test_success_update_clears_progress_markers():
    prediction = PredictedEngagement(
        expected_views_7d=10, expected_bookmarks_7d=1, expected_reshares_7d=0, expected_replies_7d=1
    )
    update = build_success_update(_success(), prediction)

    assert update["processing_status"] == "completed"
    assert update["processing_started_at"] is None
    assert update["last_error"] is None
    assert update["claims"][0]["id"] == "p-claim-1"
    assert update["predicted_engagement"]["expected_views_7d"] == 10
    assert update["value_score"] is None
    json.dumps(update)


def test_failure_update_is_minimal():
    update = build_failure_update(_failure())
    assert update == {
        "processing_status": "failed",
        "processing_started_at": None,
        "last_error": {"step": "verify_claims", "message": "timeout", "is_retryable": True},
    }


@pytest.mark.asyncio
async def test_in_memory_store_removes_none_fields():
    store = InMemoryContentInsightsStore()
    await store.update_content_insights("p", {"processing_status": "processing", "processing_started_at": "t0"})
    await store.update_content_insights("p", build_success_update(_success()))

    record = await store.get("p")
    assert "processing_started_at" not in record
    assert "value_score" not in record
    assert record["processing_status"] == "completed"

    await store.update_content_insights("p", build_failure_update(_failure()))
    record = await store.get("p")
    assert record["processing_status"] == "failed"
    assert record["claims"][0]["text"] == "Water boils at 100C"
    assert await store.get("missing") is None


class _FakePipeline:
    def __init__(self, sink):
        self.sink = sink

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return False

    def hset(self, key, mapping):
        self.sink.append(("hset", key, mapping))

    def hdel(self, key, *fields):
        self.sink.append(("hdel", key, fields))

    async def execute(self):
        self.sink.append(("exec",))


class _FakeRedis:
    def __init__(self):
        self.commands = []
        self.hashes = {}

    def pipeline(self, transaction=True):
        assert transaction is True
        return _FakePipeline(self.commands)

    async def hgetall(self, key):
        return self.hashes.get(key, {})


@pytest.mark.asyncio
async def test_redis_store_sets_and_deletes_in_one_transaction():
    redis = _FakeRedis()
    store = RedisContentInsightsStore(redis)

    await store.update_content_insights("p", build_failure_update(_failure()))

    hset, hdel, execute = redis.commands
    assert hset[1] == "content_insights:p"
    assert json.loads(hset[2]["last_error"])["step"] == "verify_claims"
    assert hdel == ("hdel", "content_insights:p", ("processing_started_at",))
    assert execute == ("exec",)


@pytest.mark.asyncio
async def test_redis_store_get_decodes_json():
    redis = _FakeRedis()
    redis.hashes["content_insights:p"] = {b"processing_status": b'"completed"', b"duration_ms": b"12"}
    assert await RedisContentInsightsStore(redis).get("p") == {"processing_status": "completed", "duration_ms": 12}
    assert await RedisContentInsightsStore(redis).get("other") is None


def test_build_insights_store():
    assert isinstance(build_insights_store("memory"), InMemoryContentInsightsStore)
    assert isinstance(build_insights_store("redis", _FakeRedis()), RedisContentInsightsStore)
    with pytest.raises(RuntimeError):
        build_insights_store("redis")
