from content_worker.core.schemas import FactCheck, ValueScore
from content_worker.services.pipeline.prediction import predict_engagement


def _score(total, confidence):
    return ValueScore(
        epistemic=0.5, insight=0.5, practical=0.5, relational=0.5, effort=0.5, total=total, confidence=confidence
    )


def _fc(verdict, confidence):
    return FactCheck(id="fc", claim_id="c1", verdict=verdict, confidence=confidence)


def test_baseline_scales_with_value_and_confidence():
    prediction = predict_engagement(_score(0.5, 0.8), [])
    assert prediction.expected_views_7d == 40
    assert prediction.expected_bookmarks_7d == 2
    assert prediction.expected_reshares_7d == 1
    assert prediction.expected_replies_7d == 4


def test_rounds_half_up():
    prediction = predict_engagement(_score(0.5, 0.5), [])
    assert prediction.expected_views_7d == 25
    assert prediction.expected_replies_7d == 3
    assert prediction.expected_reshares_7d == 1


def test_floors_apply_to_low_scores():
    prediction = predict_engagement(_score(0.0, 0.0), [])
    assert prediction.expected_views_7d == 5
    assert prediction.expected_replies_7d == 1


def test_false_verdict_reduces_engagement():
    prediction = predict_engagement(_score(1.0, 1.0), [_fc("false", 0.8)])
    assert prediction.expected_views_7d == 50
    assert prediction.expected_replies_7d == 6


def test_blocked_verdict_reduces_engagement_further():
    prediction = predict_engagement(_score(1.0, 1.0), [_fc("false", 0.95)])
    assert prediction.expected_views_7d == 20
    assert prediction.expected_bookmarks_7d == 1
    assert prediction.expected_replies_7d == 3


def test_low_confidence_false_verdict_is_ignored():
    prediction = predict_engagement(_score(1.0, 1.0), [_fc("false", 0.6)])
    assert prediction.expected_views_7d == 100
