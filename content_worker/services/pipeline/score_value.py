import math
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from content_worker.constants.config import (
    DEFAULT_SCORE_CONFIDENCE,
    DOMAIN_WEIGHT_PROFILES,
    NON_FINITE_DIMENSION_FALLBACK,
    PENALTY_FALSE_CONFIDENCE,
    PENALTY_INSIGHT_SHARE,
    PENALTY_MAX,
    PENALTY_PER_FALSE_CLAIM,
    RISK_DOMAIN_WEIGHTS,
    SCORING_TEXT_PREVIEW,
    UNVERIFIED_EPISTEMIC_CAP,
    VALUE_DIMENSIONS,
    WEIGHTS_BALANCED,
)
from content_worker.constants.llm_prompts import VALUE_SCHEMA, VALUE_SCORING_PROMPT, VALUE_SCORING_SYSTEM_PROMPT
from content_worker.core.logger import get_logger
from content_worker.core.schemas import Claim, ContentItem, FactCheck, ValueScore, ValueVector
from content_worker.services.common.text_cleaner import sanitize_for_prompt

logger = get_logger(__name__)


def _clamp01(value: float) -> float:
    return max(0.0, min(1.0, value))


def _as_number(value: Any) -> float:
    if isinstance(value, bool):
        return math.nan
    try:
        return float(value)
    except (TypeError, ValueError):
        return math.nan


def _safe_dimension(value: Any) -> float:
    number = _as_number(value)
    if not math.isfinite(number):
        return NON_FINITE_DIMENSION_FALLBACK
    return _clamp01(number)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def normalize_value_response(response: Any) -> Optional[Dict[str, Any]]:
    """
    Normalize the scorer's answer into {dimension: value} before any scoring logic.

    Recognized shapes, in order:
        1. nested: {"scores": {"epistemic": ..., ...}, "confidence": ...}
        2. flat lowercase: {"epistemic": ..., "insight": ..., ...}
        3. flat capitalized: {"Epistemic": ..., "Insight": ..., ...}

    Returns None for anything else.
    """
    if not isinstance(response, dict):
        return None

    nested = response.get("scores")
    if isinstance(nested, dict):
        return {dim: nested.get(dim) for dim in VALUE_DIMENSIONS}

    if all(_is_number(response.get(dim)) for dim in VALUE_DIMENSIONS):
        logger.warning("[ValueScoring] Received flat response format (lowercase), expected nested format")
        return {dim: response[dim] for dim in VALUE_DIMENSIONS}

    if all(_is_number(response.get(dim.capitalize())) for dim in VALUE_DIMENSIONS):
        logger.warning("[ValueScoring] Received flat response format (capitalized), expected nested format")
        return {dim: response[dim.capitalize()] for dim in VALUE_DIMENSIONS}

    return None


def validate_vector(raw: Dict[str, Any]) -> ValueVector:
    """Clamp each dimension to [0, 1]; non-finite or non-numeric values become 0.5."""
    return ValueVector(**{dim: _safe_dimension(raw.get(dim)) for dim in VALUE_DIMENSIONS})


def apply_fact_check_penalty(vector: ValueVector, fact_checks: List[FactCheck]) -> tuple[ValueVector, List[str]]:
    """
    Penalize epistemic (and part of insight) for confident false verdicts.

    With no fact-checks at all, epistemic is capped instead. Returns the
    adjusted vector and the names of the penalties applied.
    """
    if not fact_checks:
        capped = vector.model_copy(update={"epistemic": min(vector.epistemic, UNVERIFIED_EPISTEMIC_CAP)})
        return capped, ["no_fact_checks_penalty"]

    confident_false = sum(1 for fc in fact_checks if fc.verdict == "false" and fc.confidence > PENALTY_FALSE_CONFIDENCE)
    if confident_false == 0:
        return vector, []

    penalty = min(PENALTY_MAX, confident_false * PENALTY_PER_FALSE_CLAIM)
    adjusted = vector.model_copy(
        update={
            "epistemic": _clamp01(vector.epistemic * (1 - penalty)),
            "insight": _clamp01(vector.insight * (1 - penalty * PENALTY_INSIGHT_SHARE)),
        }
    )
    return adjusted, [f"false_claims_penalty_{confident_false}"]


def resolve_dominant_domain(content: ContentItem, claims: List[Claim]) -> str:
    """
    Pick the domain that drives the weight profile.

    Claim domains (other than "general") are counted with risk weights. The
    content topic wins whenever it is among the top-scoring domains, and is
    the answer when no claim names a specific domain.
    """
    topic = (content.topic or "general").strip().lower() or "general"

    counts: Dict[str, float] = {}
    for claim in claims:
        domain = claim.domain.lower()
        if domain == "general":
            continue
        counts[domain] = counts.get(domain, 0.0) + RISK_DOMAIN_WEIGHTS.get(claim.risk_level, 1.0)

    if not counts:
        return topic

    best = max(counts.values())
    top_domains = [domain for domain, count in counts.items() if count == best]
    if topic in top_domains:
        return topic
    return top_domains[0]


def dimension_weights(content: ContentItem, claims: List[Claim]) -> Dict[str, float]:
    return DOMAIN_WEIGHT_PROFILES.get(resolve_dominant_domain(content, claims), WEIGHTS_BALANCED)


def build_summary(content: ContentItem, claims: List[Claim], fact_checks: List[FactCheck]) -> str:
    if claims:
        risky = sum(1 for c in claims if c.risk_level != "low")
        claim_summary = f"{len(claims)} claims ({risky} medium/high risk)."
    else:
        claim_summary = "No explicit extracted claims."

    if fact_checks:
        fact_summary = "; ".join(
            f"{fc.verdict} ({fc.confidence:.2f}) on claim {fc.claim_id}" for fc in fact_checks[:5]
        )
    else:
        fact_summary = "Fact checks pending."

    lines = [
        f'Post text: """{sanitize_for_prompt(content.text)[:SCORING_TEXT_PREVIEW]}"""',
        f"Topic: {content.topic or 'general'}",
        claim_summary,
        fact_summary,
    ]
    if content.has_image:
        lines.append("An image is attached to this post.")
    return "\n".join(lines)


@dataclass
class ValueScoreResult:
    score: ValueScore
    penalties: List[str] = field(default_factory=list)
    dominant_domain: str = "general"


class ValueScoringStage:
    """
    Five-dimension value scoring with verdict penalties and domain weighting.

    Best-effort: an unavailable scorer or an unrecognized response shape gives
    None. A failed scorer call is raised to the caller.
    """

    def __init__(self, llm=None) -> None:
        self.llm = llm

    def compose(
        self,
        response: Any,
        content: ContentItem,
        claims: List[Claim],
        fact_checks: List[FactCheck],
    ) -> Optional[ValueScoreResult]:
        """Turn a raw scorer answer into a ValueScore. Pure; no model call."""
        raw = normalize_value_response(response)
        if raw is None:
            logger.error(f"[ValueScoring] Invalid response structure for {content.id}: {str(response)[:300]}")
            return None

        vector = validate_vector(raw)
        vector, penalties = apply_fact_check_penalty(vector, fact_checks)
        vector = validate_vector(vector.model_dump())

        dominant = resolve_dominant_domain(content, claims)
        weights = DOMAIN_WEIGHT_PROFILES.get(dominant, WEIGHTS_BALANCED)
        total = sum(getattr(vector, dim) * weights[dim] for dim in VALUE_DIMENSIONS)

        confidence = _as_number(response.get("confidence"))
        if not math.isfinite(confidence) or confidence == 0.0:
            confidence = DEFAULT_SCORE_CONFIDENCE

        drivers: List[str] = []
        raw_drivers = response.get("drivers")
        if isinstance(raw_drivers, list):
            for driver in raw_drivers:
                if isinstance(driver, str) and driver.strip() and driver.strip() not in drivers:
                    drivers.append(driver.strip())

        score = ValueScore(
            **vector.model_dump(),
            total=_clamp01(total),
            confidence=_clamp01(confidence),
            drivers=drivers,
        )
        return ValueScoreResult(score=score, penalties=penalties, dominant_domain=dominant)

    async def evaluate(
        self, content: ContentItem, claims: List[Claim], fact_checks: List[FactCheck]
    ) -> Optional[ValueScoreResult]:
        if self.llm is None:
            logger.warning(f"[ValueScoring] LLM unavailable, skipping value score for {content.id}")
            return None

        prompt = VALUE_SCORING_PROMPT.format(summary=build_summary(content, claims, fact_checks))
        response = await self.llm.generate_json(prompt, VALUE_SCORING_SYSTEM_PROMPT, VALUE_SCHEMA)

        result = self.compose(response, content, claims, fact_checks)
        if result is not None:
            logger.info(
                f"[ValueScoring] {content.id}: total={result.score.total:.3f} domain={result.dominant_domain} "
                f"penalties={result.penalties}"
            )
        return result
