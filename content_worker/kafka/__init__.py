"""
Kafka service initialization and lifecycle management.

The producer is started first so the side-effect queue can publish through it;
the content-job consumer is started once the orchestrator exists.
"""

import asyncio
from typing import Optional

from aiokafka import AIOKafkaConsumer, AIOKafkaProducer

from content_worker.core.config import settings
from content_worker.core.inflight import InFlightRegistry
from content_worker.core.logger import get_logger
from content_worker.kafka.consumer import ContentJobConsumer
from content_worker.kafka.producer import ResultPublisher

logger = get_logger(__name__)

# Global instances
_consumer: Optional[AIOKafkaConsumer] = None
_producer: Optional[AIOKafkaProducer] = None
_publisher: Optional[ResultPublisher] = None
_job_consumer: Optional[ContentJobConsumer] = None
_consumer_task: Optional[asyncio.Task] = None


async def init_kafka_producer() -> ResultPublisher:
    global _producer, _publisher

    try:
        _producer = AIOKafkaProducer(
            bootstrap_servers=settings.KAFKA_BOOTSTRAP,
            client_id="content-worker-producer",
            acks="all",
        )
        await _producer.start()
        _publisher = ResultPublisher(_producer)
        logger.info(f"[KafkaInit] Producer started: {settings.KAFKA_BOOTSTRAP}")
        return _publisher
    except Exception as e:
        logger.error(f"[KafkaInit] Failed to start producer: {e}")
        await cleanup_kafka_services()
        raise


async def init_kafka_consumer(orchestrator, registry: InFlightRegistry) -> ContentJobConsumer:
    global _consumer, _job_consumer

    if _publisher is None:
        raise RuntimeError("Kafka producer not initialized. Call init_kafka_producer() first.")

    try:
        _consumer = AIOKafkaConsumer(
            settings.CONTENT_JOBS_TOPIC,
            bootstrap_servers=settings.KAFKA_BOOTSTRAP,
            group_id=settings.WORKER_GROUP_ID,
            client_id="content-worker-consumer",
            auto_offset_reset="earliest",
            enable_auto_commit=True,
        )
        await _consumer.start()
        logger.info(
            f"[KafkaInit] Consumer started: group={settings.WORKER_GROUP_ID}, topic={settings.CONTENT_JOBS_TOPIC}"
        )
        _job_consumer = ContentJobConsumer(_consumer, _publisher, orchestrator, registry)
        return _job_consumer
    except Exception as e:
        logger.error(f"[KafkaInit] Failed to start consumer: {e}")
        await cleanup_kafka_services()
        raise


async def start_consumer_loop():
    """Start the consumer loop as a background task."""
    global _consumer_task

    if _job_consumer is None:
        raise RuntimeError("Kafka consumer not initialized. Call init_kafka_consumer() first.")

    _consumer_task = asyncio.create_task(_job_consumer.start_loop())
    logger.info("[KafkaInit] Consumer loop started as background task")


async def cleanup_kafka_services():
    """Cancel the consumer loop and stop consumer and producer."""
    global _consumer, _producer, _publisher, _job_consumer, _consumer_task

    if _consumer_task:
        _consumer_task.cancel()
        try:
            await _consumer_task
        except asyncio.CancelledError:
            logger.info("[KafkaCleanup] Consumer loop cancelled")
        finally:
            _consumer_task = None

    if _consumer:
        try:
            await _consumer.stop()
            logger.info("[KafkaCleanup] Consumer stopped")
        except Exception as e:
            logger.warning(f"[KafkaCleanup] Error stopping consumer: {e}")
        finally:
            _consumer = None

    if _producer:
        try:
            await _producer.stop()
            logger.info("[KafkaCleanup] Producer stopped")
        except Exception as e:
            logger.warning(f"[KafkaCleanup] Error stopping producer: {e}")
        finally:
            _producer = None

    _publisher = None
    _job_consumer = None
