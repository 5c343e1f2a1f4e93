import json

from aiokafka import AIOKafkaProducer

from content_worker.core.config import DLQ_TOPIC, RESULTS_TOPIC, SIDE_EFFECTS_TOPIC
from content_worker.core.schemas import ContentJobResult, SideEffectJob


class ResultPublisher:
    def __init__(self, producer: AIOKafkaProducer):
        self.producer = producer

    async def publish_result(self, result: ContentJobResult):
        await self.producer.send_and_wait(
            RESULTS_TOPIC, result.model_dump_json().encode("utf-8"), key=result.content_id.encode("utf-8")
        )

    async def publish_side_effect(self, job: SideEffectJob):
        await self.producer.send_and_wait(
            SIDE_EFFECTS_TOPIC, job.model_dump_json().encode("utf-8"), key=job.dedupe_key.encode("utf-8")
        )

    async def publish_dlq(self, job_payload: dict, reason: str):
        await self.producer.send_and_wait(
            DLQ_TOPIC, json.dumps({"reason": reason, "job": job_payload}, default=str).encode("utf-8")
        )
