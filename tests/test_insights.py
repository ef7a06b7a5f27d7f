import random

from beacon.config import InsightParams
from beacon.errors import ComputationError
from beacon.insights import InsightEntry, InsightsResult, generate
from tests.fixtures import approx, check_in, halt, meditation, meeting, mixed_week


def _by_id(result, message_id):
    matches = [e for e in result.insights if e.message_id == message_id]
    assert matches, f"{message_id} missing from {result.message_ids()}"
    return matches[0]


def test_invalid_insight_params_raise():
    try:
        InsightParams(top_tags=0)
        raise AssertionError("Should have raised ValueError")
    except ValueError:
        pass


def test_empty_inputs_give_informational_entry():
    result = generate([], [], [])
    assert result.message_ids() == ["summary.no_data"]
    assert result.insights[0].significance == 0.0
    assert result.insights[0].render()


def test_single_check_in_is_referenced():
    result = generate([check_in("cin1", 0, mood=4)], [], [])
    assert result.insights
    assert any("cin1" in e.evidence for e in result.insights)
    assert result.message_ids() == ["mood.snapshot", "checkins.logged"]


def test_ordering_is_by_significance():
    result = generate(*mixed_week())
    sig = [e.significance for e in result.insights]
    assert sig == sorted(sig, reverse=True)
    assert result.insights[0].message_id == "halt.dominant"


def test_independent_of_input_order():
    check_ins, meetings, meditations = mixed_week()
    expected = generate(check_ins, meetings, meditations)
    rng = random.Random(7)
    for _ in range(5):
        shuffled = [list(x) for x in (check_ins, meetings, meditations)]
        for items in shuffled:
            rng.shuffle(items)
        assert generate(*shuffled) == expected



def test_same_stamp_and_id_do_not_depend_on_order():
    a = check_in("x", 0, mood=5)
    b = check_in("x", 0, mood=1)
    assert generate([a, b], [], []) == generate([b, a], [], [])

    c = check_in(1, 0, mood=4)
    d = check_in("1", 0, mood=2)
    assert generate([c, d], [], []) == generate([d, c], [], [])

def test_inputs_not_mutated():
    check_ins, meetings, meditations = mixed_week()
    before = (list(check_ins), list(meetings), list(meditations))
    generate(check_ins, meetings, meditations)
    assert (check_ins, meetings, meditations) == before


def test_mood_declining_is_most_significant():
    moods = [5, 5, 5, 2, 2, 2]      # oldest first
    check_ins = [check_in(i, 5 - i, mood=m) for i, m in enumerate(moods)]
    result = generate(check_ins, [], [])
    first = result.insights[0]
    assert first.message_id == "mood.declining"
    approx(first.detail("earlier"), 5.0, 1e-9)
    approx(first.detail("later"), 2.0, 1e-9)


def test_low_average_mood_flagged():
    result = generate([check_in(1, 1, mood=2), check_in(2, 0, mood=2)], [], [])
    assert _by_id(result, "mood.low").detail("average") == 2.0


def test_halt_dominant_factors():
    result = generate(*mixed_week())
    entry = _by_id(result, "halt.dominant")
    assert entry.detail("factors") == ("lonely", "tired")
    assert set(entry.evidence) == {"c0", "c1", "c2"}


def test_frequent_tags():
    result = generate(*mixed_week())
    entry = _by_id(result, "triggers.frequent")
    assert entry.detail("tags") == ("Stress", "Boredom", "Loneliness")
    assert entry.detail("counts") == (3, 1, 1)


def test_streak_detected():
    result = generate(*mixed_week())
    entry = _by_id(result, "checkins.streak")
    assert entry.detail("longest") == 6
    assert entry.detail("current") == 6


def test_mood_on_activity_days():
    result = generate(*mixed_week())
    higher = _by_id(result, "mood.meeting_days_higher")
    assert higher.detail("with_activity") == 5.0
    assert higher.detail("without_activity") == 3.0
    assert {"c0", "c2", "c4", "m0", "m2", "m4"} <= set(higher.evidence)
    lower = _by_id(result, "mood.meditation_days_lower")
    assert lower.detail("with_activity") == 3.0


def test_meeting_and_meditation_summaries():
    result = generate(*mixed_week())
    meetings = _by_id(result, "meetings.consistent")
    assert meetings.detail("top_category") == "AA"
    summary = _by_id(result, "meditation.summary")
    assert summary.detail("minutes") == 25.0
    assert summary.detail("technique") == "Body Scan"


def test_infrequent_meetings():
    result = generate([], [meeting("m1", 0)], [])
    entry = _by_id(result, "meetings.infrequent")
    assert entry.detail("weekly_rate") == 1.0
    assert "m1" in entry.evidence


def test_weekly_meeting_mood_correlation():
    check_ins = [check_in(f"c{k}", 7 * k, mood=5 - k) for k in range(4)]
    meetings = [
        meeting(f"m{k}-{n}", 7 * k, hours=1 + n)
        for k in range(4) for n in range(3 - k)
    ]
    entry = _by_id(generate(check_ins, meetings, []), "correlation.meetings_mood")
    assert entry.detail("coefficient") == 1.0
    assert entry.detail("weeks") == 4


def test_negative_duration_raises():
    try:
        generate([], [], [meditation("d1", 0, minutes=-5)])
        raise AssertionError("Should have raised ComputationError")
    except ComputationError:
        pass


def test_result_survives_wire_encoding():
    result = generate(*mixed_week())
    assert InsightsResult.from_dict(result.to_dict()) == result
    assert all(isinstance(i["message"], str) for i in result.to_dict()["insights"])


def test_entry_render_joins_lists():
    entry = InsightEntry.build("halt", "halt.dominant", 0.5, factors=["lonely", "tired"])
    assert entry.render() == "Your strongest HALT signals are lonely, tired."
