import json

from aiokafka import AIOKafkaConsumer
from pydantic import ValidationError

from content_worker.core.config import CONTENT_JOBS_TOPIC, MAX_ATTEMPTS
from content_worker.core.inflight import InFlightRegistry
from content_worker.core.logger import get_logger
from content_worker.core.schemas import ContentJob, ContentJobResult
from content_worker.kafka.producer import ResultPublisher

logger = get_logger(__name__)


class ContentJobConsumer:
    """
    Queue worker for the content pipeline.

    Consumes content jobs, runs the pipeline, publishes the result. Failed
    runs that are retryable go back out through the DLQ topic with the attempt
    counter bumped until MAX_ATTEMPTS; re-invoking is the only retry there is.
    """

    def __init__(self, consumer: AIOKafkaConsumer, publisher: ResultPublisher, orchestrator, registry: InFlightRegistry):
        self.consumer = consumer
        self.publisher = publisher
        self.orchestrator = orchestrator
        self.registry = registry

    async def start_loop(self):
        logger.info(f"[ContentJobConsumer] Started on topic {CONTENT_JOBS_TOPIC}")

        async for msg in self.consumer:
            await self.handle_message(msg.value)

    async def handle_message(self, raw: bytes) -> None:
        payload: dict = {}
        try:
            payload = json.loads(raw.decode("utf-8"))
            job = ContentJob(**payload)
        except (json.JSONDecodeError, UnicodeDecodeError, TypeError, ValidationError) as e:
            logger.error(f"[ContentJobConsumer] Invalid job received: {e}")
            await self.publisher.publish_dlq(payload if isinstance(payload, dict) else {"raw": payload}, str(e))
            return

        try:
            await self.handle_job(job)
        except Exception as e:
            logger.exception(f"[ContentJobConsumer] Worker error on job {job.job_id}: {e}")
            await self._retry_or_give_up(job, str(e))

    async def handle_job(self, job: ContentJob) -> None:
        result = await self.registry.run(
            f"content:{job.content.id}",
            lambda: self.orchestrator.process(
                job.content, options=job.options, parent=job.parent, skip_precheck=job.skip_precheck
            ),
        )

        await self.publisher.publish_result(
            ContentJobResult(job_id=job.job_id, content_id=job.content.id, attempt=job.attempt, result=result)
        )

        if result.success:
            logger.info(f"[ContentJobConsumer] Job {job.job_id} completed for content {job.content.id}")
            return

        if result.error is not None and not result.error.is_retryable:
            await self.publisher.publish_dlq(job.model_dump(mode="json"), f"Non-retryable failure: {result.error.message}")
            return

        reason = result.error.message if result.error else "unknown failure"
        await self._retry_or_give_up(job, reason)

    async def _retry_or_give_up(self, job: ContentJob, reason: str) -> None:
        if job.attempt + 1 < MAX_ATTEMPTS:
            retry_job = job.model_copy(update={"attempt": job.attempt + 1})
            await self.publisher.publish_dlq(
                retry_job.model_dump(mode="json"), f"Retrying attempt {retry_job.attempt} - {reason}"
            )
        else:
            await self.publisher.publish_dlq(job.model_dump(mode="json"), f"Max attempts exceeded: {reason}")
