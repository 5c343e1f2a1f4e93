import pytest

from content_worker.core.schemas import Claim, FactCheck
from content_worker.services.pipeline.policy import determine_fact_check_status, evaluate_policy


def _fc(verdict, confidence, claim_id="c1"):
    return FactCheck(id=f"{claim_id}-fc", claim_id=claim_id, verdict=verdict, confidence=confidence)


def _claim(claim_id, text="Some claim"):
    return Claim(id=claim_id, text=text, confidence=0.8)


def test_empty_fact_checks_are_clean():
    assert determine_fact_check_status([]) == "clean"


@pytest.mark.parametrize(
    "checks, expected",
    [
        ([_fc("false", 0.85)], "blocked"),
        ([_fc("false", 0.84)], "needs_review"),
        ([_fc("false", 0.1)], "needs_review"),
        ([_fc("unknown", 0.5)], "clean"),
        ([_fc("unknown", 0.5), _fc("unknown", 0.5)], "needs_review"),
        ([_fc("mixed", 0.6)], "clean"),
        ([_fc("mixed", 0.6), _fc("mixed", 0.6)], "needs_review"),
        ([_fc("true", 0.9), _fc("true", 0.3)], "clean"),
        ([_fc("mixed", 0.6), _fc("unknown", 0.5), _fc("true", 0.9)], "clean"),
    ],
)
def test_status_thresholds(checks, expected):
    assert determine_fact_check_status(checks) == expected


def test_veto_overrides_all_other_verdicts():
    checks = [_fc("true", 0.99) for _ in range(10)] + [_fc("false", 0.9)]
    assert determine_fact_check_status(checks) == "blocked"


def test_adding_true_verdicts_never_makes_status_stricter():
    base = [_fc("unknown", 0.5), _fc("unknown", 0.5)]
    assert determine_fact_check_status(base + [_fc("true", 0.95)]) == determine_fact_check_status(base)


def test_evaluate_policy_without_claims():
    decision = evaluate_policy([], [])
    assert decision.status == "clean"
    assert decision.reasons == ["No extractable claims"]
    assert decision.escalate_to_human is False


def test_evaluate_policy_reasons_per_claim():
    claims = [_claim("c1", "The moon is cheese"), _claim("c2", "Water is wet"), _claim("c3", "Stocks rise")]
    checks = [_fc("false", 0.9, "c1"), _fc("true", 0.9, "c2"), _fc("unknown", 0.4, "c3")]

    decision = evaluate_policy(claims, checks)

    assert decision.status == "blocked"
    assert decision.escalate_to_human is True
    assert decision.reasons == [
        'Claim "The moon is cheese" is false with high confidence.',
        'Claim "Stocks rise" could not be verified.',
    ]


def test_unverified_claim_forces_review():
    decision = evaluate_policy([_claim("c1"), _claim("c2", "Other")], [_fc("true", 0.9, "c1")])
    assert decision.status == "needs_review"
    assert decision.reasons == ['Claim "Other" lacks verification.']


def test_all_verified_claims():
    decision = evaluate_policy([_claim("c1")], [_fc("true", 0.9, "c1")])
    assert decision.status == "clean"
    assert decision.reasons == ["All claims verified."]
