"""
Content insights persistence.

The orchestrator writes exactly once per run through update_content_insights:
a full update on success, a minimal failure marker otherwise. A field whose
value is None is removed from the stored record. Each update is applied as one
unit so concurrent runs for the same content never interleave fields.
"""

import asyncio
import json
from typing import Any, Dict, Optional, Protocol

from content_worker.core.logger import get_logger
from content_worker.core.schemas import PipelineResult, PredictedEngagement

logger = get_logger(__name__)


class ContentInsightsStore(Protocol):
    async def update_content_insights(self, content_id: str, fields: Dict[str, Any]) -> None: ...


class InMemoryContentInsightsStore:
    """Single-instance store; a dict guarded by one asyncio lock."""

    def __init__(self) -> None:
        self._records: Dict[str, Dict[str, Any]] = {}
        self._lock = asyncio.Lock()

    async def update_content_insights(self, content_id: str, fields: Dict[str, Any]) -> None:
        async with self._lock:
            record = dict(self._records.get(content_id, {}))
            for name, value in fields.items():
                if value is None:
                    record.pop(name, None)
                else:
                    record[name] = value
            self._records[content_id] = record

    async def get(self, content_id: str) -> Optional[Dict[str, Any]]:
        async with self._lock:
            record = self._records.get(content_id)
            return dict(record) if record is not None else None

    def __len__(self) -> int:
        return len(self._records)


class RedisContentInsightsStore:
    """
    Redis hash per content item, values JSON encoded.

    HSET and HDEL for one update run inside a single MULTI/EXEC transaction.
    """

    def __init__(self, redis_client, prefix: str = "content_insights:") -> None:
        self.redis = redis_client
        self.prefix = prefix

    def _key(self, content_id: str) -> str:
        return f"{self.prefix}{content_id}"

    async def update_content_insights(self, content_id: str, fields: Dict[str, Any]) -> None:
        key = self._key(content_id)
        to_set = {name: json.dumps(value, default=str) for name, value in fields.items() if value is not None}
        to_delete = [name for name, value in fields.items() if value is None]

        async with self.redis.pipeline(transaction=True) as pipe:
            if to_set:
                pipe.hset(key, mapping=to_set)
            if to_delete:
                pipe.hdel(key, *to_delete)
            await pipe.execute()

    async def get(self, content_id: str) -> Optional[Dict[str, Any]]:
        raw = await self.redis.hgetall(self._key(content_id))
        if not raw:
            return None
        return {
            (k.decode() if isinstance(k, bytes) else k): json.loads(v.decode() if isinstance(v, bytes) else v)
            for k, v in raw.items()
        }


def build_success_update(result: PipelineResult, prediction: Optional[PredictedEngagement] = None) -> Dict[str, Any]:
    """Fields written on a completed run. Clears the in-progress markers."""
    data = result.model_dump(mode="json")
    return {
        "pre_check": data["pre_check"],
        "claims": data["claims"],
        "fact_checks": data["fact_checks"],
        "fact_check_status": data["fact_check_status"],
        "value_score": data["value_score"],
        "predicted_engagement": prediction.model_dump(mode="json") if prediction else None,
        "steps_completed": data["steps_completed"],
        "processed_at": data["processed_at"],
        "duration_ms": data["duration_ms"],
        "processing_status": "completed",
        "processing_started_at": None,
        "last_error": None,
    }


def build_failure_update(result: PipelineResult) -> Dict[str, Any]:
    """
    Minimal failure marker.

    Leaves previously written claims, scores and statuses untouched.
    """
    error = result.error.model_dump(mode="json") if result.error else None
    return {
        "processing_status": "failed",
        "processing_started_at": None,
        "last_error": error,
    }


def build_insights_store(backend: str, redis_client=None) -> ContentInsightsStore:
    if backend == "redis":
        if redis_client is None:
            raise RuntimeError("Redis insights backend requires a redis client")
        logger.info("[Persistence] Using Redis content insights store")
        return RedisContentInsightsStore(redis_client)
    logger.info("[Persistence] Using in-memory content insights store")
    return InMemoryContentInsightsStore()
