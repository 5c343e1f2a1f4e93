from typing import Optional

import redis.asyncio as redis
from fastapi import FastAPI

from content_worker.core.config import settings
from content_worker.core.inflight import InFlightRegistry
from content_worker.core.logger import get_logger
from content_worker.core.observability import setup_tracing
from content_worker.core.rate_limit import build_rate_limit_store
from content_worker.kafka import cleanup_kafka_services, init_kafka_consumer, init_kafka_producer, start_consumer_loop
from content_worker.routers.pipeline import router as pipeline_router
from content_worker.routers.pipeline import set_pipeline
from content_worker.services.pipeline import (
    InMemorySideEffectQueue,
    KafkaSideEffectQueue,
    PipelineOrchestrator,
    SideEffectDispatcher,
    build_insights_store,
)

logger = get_logger(__name__)

_redis: Optional[redis.Redis] = None
_dispatcher: Optional[SideEffectDispatcher] = None
_local_queue: Optional[InMemorySideEffectQueue] = None


async def _log_side_effect(job) -> None:
    logger.info(f"[SideEffects] {job.type} for user={job.user_id} content={job.content_id} ({job.dedupe_key})")


async def startup_event() -> None:
    """Build stores, side-effect queue and orchestrator; start Kafka when enabled."""
    global _redis, _dispatcher, _local_queue

    if "redis" in (settings.INSIGHTS_BACKEND, settings.RATE_LIMIT_BACKEND):
        _redis = redis.from_url(settings.REDIS_URL)
        logger.info(f"[Main] Redis client configured: {settings.REDIS_URL}")

    publisher = None
    if settings.KAFKA_ENABLED:
        try:
            publisher = await init_kafka_producer()
        except Exception as e:
            logger.error(f"[Main] Kafka producer unavailable, continuing without it: {e}")

    if settings.SIDE_EFFECT_BACKEND == "kafka" and publisher is not None:
        queue = KafkaSideEffectQueue(publisher)
    else:
        if settings.SIDE_EFFECT_BACKEND == "kafka":
            logger.warning("[Main] Kafka side-effect backend requested but producer is down; using in-memory queue")
        _local_queue = InMemorySideEffectQueue()
        _local_queue.start_consumer(_log_side_effect)
        queue = _local_queue

    _dispatcher = SideEffectDispatcher(queue)
    store = build_insights_store(settings.INSIGHTS_BACKEND, _redis)
    orchestrator = PipelineOrchestrator.build(store, _dispatcher)
    registry = InFlightRegistry()
    set_pipeline(orchestrator, registry, build_rate_limit_store(settings.RATE_LIMIT_BACKEND, _redis))

    if publisher is not None:
        try:
            await init_kafka_consumer(orchestrator, registry)
            await start_consumer_loop()
            logger.info("[Main] Kafka consumer loop started")
        except Exception as e:
            # Graceful degradation: HTTP entry point keeps working
            logger.error(f"[Main] Failed to start Kafka consumer: {e}")


async def shutdown_event() -> None:
    if _dispatcher is not None:
        await _dispatcher.drain()

    try:
        await cleanup_kafka_services()
        logger.info("[Main] Kafka services cleaned up")
    except Exception as e:
        logger.warning(f"[Main] Error during Kafka cleanup: {e}")

    if _local_queue is not None:
        await _local_queue.stop_consumer()

    if _redis is not None:
        await _redis.aclose()
        logger.info("[Main] Redis client closed")


app = FastAPI(title="Content Value Pipeline", version="1.0.0")

app.add_event_handler("startup", startup_event)
app.add_event_handler("shutdown", shutdown_event)

app.include_router(pipeline_router)
setup_tracing(app)

logger.info("Content Value Pipeline service initialized")
