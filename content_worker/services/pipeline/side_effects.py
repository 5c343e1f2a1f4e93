import asyncio
from typing import Awaitable, Callable, List, Optional, Protocol, Set

from content_worker.core.logger import get_logger
from content_worker.core.observability import pipeline_side_effect_failures_total
from content_worker.core.schemas import ContentItem, PipelineResult, SideEffectJob
from content_worker.services.pipeline.policy import PolicyDecision

logger = get_logger(__name__)


class SideEffectQueue(Protocol):
    async def publish(self, job: SideEffectJob) -> None: ...


class InMemorySideEffectQueue:
    """Outbound channel for single-process deployments and tests."""

    def __init__(self, maxsize: int = 0) -> None:
        self.queue: "asyncio.Queue[SideEffectJob]" = asyncio.Queue(maxsize=maxsize)
        self._consumer_task: Optional[asyncio.Task] = None

    async def publish(self, job: SideEffectJob) -> None:
        await self.queue.put(job)

    async def get(self) -> SideEffectJob:
        return await self.queue.get()

    def qsize(self) -> int:
        return self.queue.qsize()

    def start_consumer(self, handler: Callable[[SideEffectJob], Awaitable[None]]) -> asyncio.Task:
        """Hand every queued job to `handler` in a background task until stopped."""

        async def _loop() -> None:
            while True:
                job = await self.queue.get()
                try:
                    await handler(job)
                except Exception as e:
                    logger.error(f"[SideEffects] Local consumer failed on {job.dedupe_key}: {e}")
                finally:
                    self.queue.task_done()

        self._consumer_task = asyncio.create_task(_loop())
        return self._consumer_task

    async def stop_consumer(self) -> None:
        if self._consumer_task is None:
            return
        self._consumer_task.cancel()
        try:
            await self._consumer_task
        except asyncio.CancelledError:
            pass
        self._consumer_task = None


class KafkaSideEffectQueue:
    """Publishes side-effect jobs to the side-effects topic; consumers dedupe on job.dedupe_key."""

    def __init__(self, publisher) -> None:
        self.publisher = publisher

    async def publish(self, job: SideEffectJob) -> None:
        await self.publisher.publish_side_effect(job)


def build_side_effect_jobs(
    content: ContentItem, result: PipelineResult, policy: Optional[PolicyDecision] = None
) -> List[SideEffectJob]:
    """
    Jobs for a successful run.

    A reputation update needs a value score; the author-score update is
    always sent and carries the policy outcome.
    """
    if not result.success:
        return []

    content_type = "reply" if content.is_reply else "post"
    processed_at = result.processed_at.isoformat()
    jobs: List[SideEffectJob] = []

    if result.value_score is not None:
        jobs.append(
            SideEffectJob(
                type="reputation_update",
                user_id=content.author_id,
                content_id=content.id,
                content_type=content_type,
                data={
                    "processed_at": processed_at,
                    "topic": content.topic,
                    "value_score": result.value_score.model_dump(mode="json"),
                    "claim_count": len(result.claims),
                },
            )
        )

    verdicts = {v: sum(1 for fc in result.fact_checks if fc.verdict == v) for v in ("true", "false", "mixed", "unknown")}
    jobs.append(
        SideEffectJob(
            type="author_score_update",
            user_id=content.author_id,
            content_id=content.id,
            content_type=content_type,
            data={
                "processed_at": processed_at,
                "fact_check_status": result.fact_check_status,
                "value_total": result.value_score.total if result.value_score else None,
                "verdicts": verdicts,
                "policy_reasons": policy.reasons if policy else [],
                "escalate_to_human": result.fact_check_status == "blocked",
            },
        )
    )
    return jobs


class SideEffectDispatcher:
    """
    Fire-and-forget delivery of side-effect jobs.

    dispatch() schedules publishing and returns immediately. Publishing errors
    are logged and counted, never raised to the pipeline caller.
    """

    def __init__(self, queue: SideEffectQueue) -> None:
        self.queue = queue
        self._pending: Set[asyncio.Task] = set()

    async def _publish_all(self, jobs: List[SideEffectJob]) -> None:
        for job in jobs:
            try:
                await self.queue.publish(job)
            except Exception as e:
                pipeline_side_effect_failures_total.labels(type=job.type).inc()
                logger.error(f"[SideEffects] {job.type} failed for content {job.content_id}: {e}")

    def dispatch(
        self, content: ContentItem, result: PipelineResult, policy: Optional[PolicyDecision] = None
    ) -> Optional[asyncio.Task]:
        jobs = build_side_effect_jobs(content, result, policy)
        if not jobs:
            logger.info(f"[SideEffects] Nothing to dispatch for {content.id}")
            return None

        task = asyncio.create_task(self._publish_all(jobs))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def drain(self) -> None:
        """Wait for every scheduled publish; used on shutdown and in tests."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    @property
    def pending(self) -> int:
        return len(self._pending)
