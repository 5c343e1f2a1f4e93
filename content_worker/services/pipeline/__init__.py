from content_worker.services.pipeline.extract_claims import ClaimExtractionStage
from content_worker.services.pipeline.orchestrator import PipelineOrchestrator
from content_worker.services.pipeline.persistence import (
    ContentInsightsStore,
    InMemoryContentInsightsStore,
    RedisContentInsightsStore,
    build_insights_store,
)
from content_worker.services.pipeline.policy import PolicyDecision, determine_fact_check_status, evaluate_policy
from content_worker.services.pipeline.precheck import PrecheckStage
from content_worker.services.pipeline.score_value import ValueScoringStage
from content_worker.services.pipeline.side_effects import (
    InMemorySideEffectQueue,
    KafkaSideEffectQueue,
    SideEffectDispatcher,
    SideEffectQueue,
)
from content_worker.services.pipeline.verify_claims import ClaimVerificationStage

__all__ = [
    "ClaimExtractionStage",
    "ClaimVerificationStage",
    "ContentInsightsStore",
    "InMemoryContentInsightsStore",
    "InMemorySideEffectQueue",
    "KafkaSideEffectQueue",
    "PipelineOrchestrator",
    "PolicyDecision",
    "PrecheckStage",
    "RedisContentInsightsStore",
    "SideEffectDispatcher",
    "SideEffectQueue",
    "ValueScoringStage",
    "build_insights_store",
    "determine_fact_check_status",
    "evaluate_policy",
]
