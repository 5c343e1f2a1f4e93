"""
Policy engine: maps fact-check verdicts to a publication status.

The thresholds are fixed safety constants. A single high-confidence false
verdict is a veto and is checked before any aggregate counting.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Literal

from content_worker.constants.config import (
    POLICY_BLOCK_CONFIDENCE,
    POLICY_REVIEW_MIXED_COUNT,
    POLICY_REVIEW_UNKNOWN_COUNT,
)
from content_worker.core.schemas import Claim, FactCheck

Status = Literal["clean", "needs_review", "blocked"]


@dataclass
class PolicyDecision:
    status: Status
    reasons: List[str] = field(default_factory=list)
    escalate_to_human: bool = False


def determine_fact_check_status(fact_checks: List[FactCheck]) -> Status:
    if not fact_checks:
        return "clean"

    # Veto: evaluated before counting, overrides every other verdict
    if any(fc.verdict == "false" and fc.confidence >= POLICY_BLOCK_CONFIDENCE for fc in fact_checks):
        return "blocked"

    false_count = sum(1 for fc in fact_checks if fc.verdict == "false")
    unknown_count = sum(1 for fc in fact_checks if fc.verdict == "unknown")
    mixed_count = sum(1 for fc in fact_checks if fc.verdict == "mixed")

    if false_count > 0 or unknown_count >= POLICY_REVIEW_UNKNOWN_COUNT or mixed_count >= POLICY_REVIEW_MIXED_COUNT:
        return "needs_review"
    return "clean"


def evaluate_policy(claims: List[Claim], fact_checks: List[FactCheck]) -> PolicyDecision:
    """
    Explain a policy outcome claim by claim.

    The status matches determine_fact_check_status, except that a claim with
    no fact-check at all forces at least needs_review. Used to annotate
    side-effect jobs; the persisted status is always the pure one.
    """
    if not claims:
        return PolicyDecision(status="clean", reasons=["No extractable claims"])

    by_claim: Dict[str, FactCheck] = {fc.claim_id: fc for fc in fact_checks}
    status = determine_fact_check_status(fact_checks)
    reasons: List[str] = []

    for claim in claims:
        fc = by_claim.get(claim.id)
        if fc is None:
            if status == "clean":
                status = "needs_review"
            reasons.append(f'Claim "{claim.text}" lacks verification.')
        elif fc.verdict == "false" and fc.confidence >= POLICY_BLOCK_CONFIDENCE:
            reasons.append(f'Claim "{claim.text}" is false with high confidence.')
        elif fc.verdict == "false":
            reasons.append(f'Claim "{claim.text}" is rated false.')
        elif fc.verdict == "unknown":
            reasons.append(f'Claim "{claim.text}" could not be verified.')
        elif fc.verdict == "mixed":
            reasons.append(f'Claim "{claim.text}" has mixed evidence.')

    if not reasons:
        reasons.append("All claims verified.")

    return PolicyDecision(status=status, reasons=reasons, escalate_to_human=status != "clean")
