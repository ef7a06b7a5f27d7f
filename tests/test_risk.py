import pandas as pd

from beacon.config import BeaconConfig, RiskThresholds
from beacon.errors import ComputationError
from beacon.records import RiskAssessmentInput
from beacon.risk import LEVELS, classify_level, daily_assessment, predict, summarize_daily
from tests.fixtures import REF, check_in, spiralling_history, steady_history

CFG = BeaconConfig()


def test_invalid_threshold_order_raises():
    try:
        RiskThresholds(moderate=60, high=50)
        raise AssertionError("Should have raised ValueError")
    except ValueError:
        pass


def test_level_boundaries():
    t = CFG.risk
    assert classify_level(0, t) == "low"
    assert classify_level(24.99, t) == "low"
    assert classify_level(25, t) == "moderate"
    assert classify_level(50, t) == "high"
    assert classify_level(75, t) == "critical"
    assert classify_level(100, t) == "critical"


def test_empty_history_is_neutral():
    result = predict(RiskAssessmentInput())
    assert result.score == CFG.risk.neutral_score
    assert result.level == "low"
    assert result.factors == ()
    assert result.confidence == CFG.confidence.floor
    assert result.warnings == () and result.interventions == ()


def test_stale_history_is_neutral():
    old = RiskAssessmentInput(check_ins=(check_in(1, 30, mood=1),), as_of=REF)
    result = predict(old)
    assert result.score == 0.0 and result.factors == ()


def test_steady_history_is_low_risk():
    result = predict(steady_history())
    assert result.level == "low"
    assert result.score == 20.0
    assert [f.id for f in result.factors] == ["isolation"]
    assert result.confidence == 0.8


def test_spiralling_history_is_critical():
    result = predict(spiralling_history())
    assert result.score == 100.0
    assert result.level == "critical"
    assert result.factors[0].id == "worseningCravings"
    weights = [f.weight for f in result.factors]
    assert weights == sorted(weights, reverse=True)
    assert result.confidence == 0.8
    assert len(result.warnings) == 5
    assert result.warnings[0].severity == "critical"
    assert result.interventions[0].priority == "immediate"
    assert "emergency-support" in {i.id for i in result.interventions}


def test_score_in_range_and_level_matches_thresholds():
    for data in (RiskAssessmentInput(), steady_history(), spiralling_history()):
        result = predict(data)
        assert 0.0 <= result.score <= CFG.risk.score_max
        assert result.level in LEVELS
        assert result.level == classify_level(result.score, CFG.risk)


def test_prediction_is_deterministic():
    data = spiralling_history()
    snapshot = data.to_dict()
    assert predict(data) == predict(data)
    assert data.to_dict() == snapshot


def test_prediction_ignores_wall_clock():
    data = steady_history()
    shift = pd.Timedelta(days=400)
    moved = RiskAssessmentInput(
        check_ins=tuple(c.model_copy(update={"timestamp": c.timestamp + shift}) for c in data.check_ins),
        meetings=tuple(m.model_copy(update={"timestamp": m.timestamp + shift}) for m in data.meetings),
        meditations=tuple(m.model_copy(update={"timestamp": m.timestamp + shift}) for m in data.meditations),
        as_of=data.as_of + shift,
    )
    assert predict(moved) == predict(data)


def test_custom_weights_change_score():
    cfg = BeaconConfig(weights=CFG.weights.__class__(isolation=5))
    assert predict(steady_history(), cfg).score == 5.0


def test_out_of_range_mood_raises():
    data = RiskAssessmentInput(check_ins=(check_in(1, 0, mood=11),), as_of=REF)
    try:
        predict(data)
        raise AssertionError("Should have raised ComputationError")
    except ComputationError:
        pass


def test_warnings_carry_description_and_triggers():
    result = predict(spiralling_history())
    by_id = {w.id: w for w in result.warnings}
    assert "1.0/5" in by_id["mood-warning"].description
    assert by_id["mood-warning"].severity == "critical"
    assert "0%" in by_id["low-success-rate"].description
    assert by_id["craving-intensity"].trigger_factors == (
        "Increased urge strength", "Possible trigger exposure",
    )
    assert all(i.description for i in result.interventions)


def test_daily_assessment_steady():
    today = daily_assessment(steady_history())
    assert today.today_risk == "low"
    assert today.risk_score == 20.0
    assert today.top_warnings == ("Social Isolation Detected",)
    assert today.immediate_actions == (
        "Text 3 people from your support network today",
        "Schedule coffee with your sponsor",
    )


def test_daily_assessment_spiralling():
    result = predict(spiralling_history())
    today = summarize_daily(result)
    assert today.today_risk == "critical" and today.risk_score == 100.0
    assert today.top_warnings == tuple(w.title for w in result.warnings[:3])
    assert today.immediate_actions[:2] == ("Call your sponsor", "Text your accountability partner")
    assert len(today.immediate_actions) == 6


def test_daily_assessment_of_empty_history():
    today = daily_assessment(RiskAssessmentInput())
    assert today.today_risk == "low"
    assert today.top_warnings == () and today.immediate_actions == ()
    assert today.to_dict()["todayRisk"] == "low"
