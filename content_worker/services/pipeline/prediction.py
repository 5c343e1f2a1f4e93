import math
from typing import List

from content_worker.constants.config import (
    ENGAGEMENT_BASE,
    ENGAGEMENT_BLOCKED_CONFIDENCE,
    ENGAGEMENT_BLOCKED_MULTIPLIERS,
    ENGAGEMENT_FALSE_MULTIPLIERS,
    PENALTY_FALSE_CONFIDENCE,
)
from content_worker.core.schemas import FactCheck, PredictedEngagement, ValueScore


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def predict_engagement(value_score: ValueScore, fact_checks: List[FactCheck]) -> PredictedEngagement:
    """
    Heuristic 7-day engagement estimate.

    Base rates scale with the value total (floor 0.1) and score confidence
    (floor 0.5). Confident false verdicts shrink every base rate.
    """
    multipliers = dict(ENGAGEMENT_BASE)

    blocked = any(fc.verdict == "false" and fc.confidence > ENGAGEMENT_BLOCKED_CONFIDENCE for fc in fact_checks)
    has_false = any(fc.verdict == "false" and fc.confidence > PENALTY_FALSE_CONFIDENCE for fc in fact_checks)

    if blocked:
        factors = ENGAGEMENT_BLOCKED_MULTIPLIERS
    elif has_false:
        factors = ENGAGEMENT_FALSE_MULTIPLIERS
    else:
        factors = {}
    for key, factor in factors.items():
        multipliers[key] *= factor

    value_factor = max(0.1, value_score.total)
    confidence_factor = max(0.5, value_score.confidence)
    scale = value_factor * confidence_factor

    return PredictedEngagement(
        expected_views_7d=_round_half_up(multipliers["views"] * scale),
        expected_bookmarks_7d=_round_half_up(multipliers["bookmarks"] * scale),
        expected_reshares_7d=_round_half_up(multipliers["reshares"] * scale),
        expected_replies_7d=_round_half_up(multipliers["replies"] * scale),
    )
