import time
from typing import List, Optional

from content_worker.constants.config import (
    STEP_EXTRACT_CLAIMS,
    STEP_INIT,
    STEP_PERSIST,
    STEP_PRECHECK,
    STEP_PRECHECK_SKIPPED,
    STEP_SCORE_VALUE,
    STEP_SCORE_VALUE_SKIPPED,
    STEP_VERIFY_CLAIMS,
)
from content_worker.core.errors import is_authentication_error
from content_worker.core.logger import get_logger
from content_worker.core.observability import (
    pipeline_fact_check_status_total,
    pipeline_run_duration_seconds,
    pipeline_runs_in_flight,
    pipeline_runs_total,
    stage_timer,
)
from content_worker.core.schemas import (
    Claim,
    ContentItem,
    FactCheck,
    PipelineErrorInfo,
    PipelineOptions,
    PipelineResult,
    PreCheckResult,
)
from content_worker.services.evidence.web_search import EvidenceSearch
from content_worker.services.llms.factory import get_llm_service
from content_worker.services.pipeline.extract_claims import ClaimExtractionStage
from content_worker.services.pipeline.persistence import (
    ContentInsightsStore,
    build_failure_update,
    build_success_update,
)
from content_worker.services.pipeline.policy import PolicyDecision, determine_fact_check_status, evaluate_policy
from content_worker.services.pipeline.precheck import PrecheckStage
from content_worker.services.pipeline.prediction import predict_engagement
from content_worker.services.pipeline.score_value import ValueScoreResult, ValueScoringStage
from content_worker.services.pipeline.side_effects import SideEffectDispatcher
from content_worker.services.pipeline.verify_claims import ClaimVerificationStage

logger = get_logger(__name__)


class _RunState:
    """Progress of one run; read back when a stage fails."""

    def __init__(self) -> None:
        self.started = time.perf_counter()
        self.current_step = STEP_INIT
        self.steps: List[str] = []
        self.pre_check: Optional[PreCheckResult] = None
        self.claims: List[Claim] = []
        self.fact_checks: Optional[List[FactCheck]] = None

    def duration_ms(self) -> int:
        return int((time.perf_counter() - self.started) * 1000)


class PipelineOrchestrator:
    """
    Content value pipeline: precheck → extract → verify → policy → score.

    Stages run strictly in sequence for one item; independent items may run
    concurrently on the same orchestrator. process() never raises: every
    outcome is a PipelineResult, persisted with exactly one store update.
    """

    def __init__(
        self,
        store: ContentInsightsStore,
        dispatcher: SideEffectDispatcher,
        precheck: PrecheckStage,
        extractor: ClaimExtractionStage,
        verifier: ClaimVerificationStage,
        scorer: ValueScoringStage,
    ) -> None:
        self.store = store
        self.dispatcher = dispatcher
        self.precheck = precheck
        self.extractor = extractor
        self.verifier = verifier
        self.scorer = scorer

    @classmethod
    def build(cls, store: ContentInsightsStore, dispatcher: SideEffectDispatcher, llm=None, search=None):
        """Wire the stages against one shared LLM client (and optional evidence search)."""
        if llm is None:
            llm = get_llm_service()
        if search is None and EvidenceSearch.is_configured():
            search = EvidenceSearch()
        return cls(
            store=store,
            dispatcher=dispatcher,
            precheck=PrecheckStage(llm),
            extractor=ClaimExtractionStage(llm),
            verifier=ClaimVerificationStage(llm, search),
            scorer=ValueScoringStage(llm),
        )

    @staticmethod
    def _effective_content(content: ContentItem, parent: Optional[ContentItem]) -> ContentItem:
        if parent is not None and content.is_reply and (content.topic or "general").lower() == "general":
            if parent.topic and parent.topic.lower() != "general":
                return content.model_copy(update={"topic": parent.topic})
        return content

    async def process(
        self,
        content: ContentItem,
        options: Optional[PipelineOptions] = None,
        parent: Optional[ContentItem] = None,
        skip_precheck: bool = False,
    ) -> PipelineResult:
        options = options or PipelineOptions()
        state = _RunState()
        pipeline_runs_in_flight.inc()
        logger.info(f"[Pipeline] Processing {content.id} (reply={content.is_reply}, skip_precheck={skip_precheck})")

        try:
            result = await self._run(content, options, parent, skip_precheck, state)
        except Exception as e:
            result = await self._fail(content, state, e)
        finally:
            pipeline_runs_in_flight.dec()

        pipeline_runs_total.labels(status=result.status).inc()
        pipeline_run_duration_seconds.observe(result.duration_ms / 1000)
        if result.duration_ms > options.timeout_ms:
            logger.warning(
                f"[Pipeline] {content.id} took {result.duration_ms}ms (configured timeout {options.timeout_ms}ms)"
            )
        return result

    async def _run(
        self,
        content: ContentItem,
        options: PipelineOptions,
        parent: Optional[ContentItem],
        skip_precheck: bool,
        state: _RunState,
    ) -> PipelineResult:
        content = self._effective_content(content, parent)

        if skip_precheck:
            state.steps.append(STEP_PRECHECK_SKIPPED)
        else:
            state.current_step = STEP_PRECHECK
            with stage_timer(STEP_PRECHECK):
                state.pre_check = await self.precheck.run(content)
            state.steps.append(STEP_PRECHECK)

            if not state.pre_check.needs_fact_check:
                logger.info(f"[Pipeline] {content.id}: no fact-check needed ({state.pre_check.reasoning})")
                return await self._complete(content, state, value_result=None, policy=None)

        state.current_step = STEP_EXTRACT_CLAIMS
        with stage_timer(STEP_EXTRACT_CLAIMS):
            state.claims = await self.extractor.run(content, parent)
        state.steps.append(STEP_EXTRACT_CLAIMS)

        if not state.claims:
            logger.info(f"[Pipeline] {content.id}: no claims extracted")
            return await self._complete(content, state, value_result=None, policy=None)

        state.current_step = STEP_VERIFY_CLAIMS
        with stage_timer(STEP_VERIFY_CLAIMS):
            state.fact_checks = await self.verifier.run(content, state.claims)
        state.steps.append(STEP_VERIFY_CLAIMS)
        policy = evaluate_policy(state.claims, state.fact_checks)

        value_result: Optional[ValueScoreResult] = None
        if options.skip_value_scoring:
            state.steps.append(STEP_SCORE_VALUE_SKIPPED)
        else:
            state.current_step = STEP_SCORE_VALUE
            with stage_timer(STEP_SCORE_VALUE):
                value_result = await self.scorer.evaluate(content, state.claims, state.fact_checks)
            state.steps.append(STEP_SCORE_VALUE)

        return await self._complete(content, state, value_result=value_result, policy=policy)

    async def _complete(
        self,
        content: ContentItem,
        state: _RunState,
        value_result: Optional[ValueScoreResult],
        policy: Optional[PolicyDecision],
    ) -> PipelineResult:
        fact_checks = state.fact_checks or []
        result = PipelineResult(
            success=True,
            status="completed",
            pre_check=state.pre_check,
            claims=state.claims,
            fact_checks=fact_checks,
            fact_check_status=determine_fact_check_status(fact_checks) if state.claims else "clean",
            value_score=value_result.score if value_result else None,
            duration_ms=state.duration_ms(),
            steps_completed=list(state.steps),
        )
        prediction = predict_engagement(result.value_score, fact_checks) if result.value_score else None

        state.current_step = STEP_PERSIST
        await self.store.update_content_insights(content.id, build_success_update(result, prediction))

        pipeline_fact_check_status_total.labels(fact_check_status=result.fact_check_status).inc()
        self.dispatcher.dispatch(content, result, policy)
        logger.info(
            f"[Pipeline] Completed {content.id}: status={result.fact_check_status} claims={len(result.claims)} "
            f"steps={result.steps_completed} duration={result.duration_ms}ms"
        )
        return result

    async def _fail(self, content: ContentItem, state: _RunState, error: Exception) -> PipelineResult:
        retryable = not is_authentication_error(error)
        if state.fact_checks is not None:
            status = determine_fact_check_status(state.fact_checks)
        elif state.claims:
            # Claims exist but nothing was verified
            status = "needs_review"
        else:
            status = "clean"

        result = PipelineResult(
            success=False,
            status="failed",
            pre_check=state.pre_check,
            claims=state.claims,
            fact_checks=state.fact_checks or [],
            fact_check_status=status,
            duration_ms=state.duration_ms(),
            steps_completed=list(state.steps),
            error=PipelineErrorInfo(
                step=state.current_step,
                message=str(error) or type(error).__name__,
                is_retryable=retryable,
            ),
        )
        if retryable:
            logger.exception(f"[Pipeline] Failed {content.id} at step={state.current_step}: {error}")
        else:
            logger.error(f"[Pipeline] Credentials rejected while processing {content.id} at step={state.current_step}")

        try:
            await self.store.update_content_insights(content.id, build_failure_update(result))
        except Exception as e:
            logger.error(f"[Pipeline] Could not record failure for {content.id}: {e}")
        return result
