"""Shared record builders and history scenarios for the test modules."""

import pandas as pd

from beacon.records import (
    CheckIn,
    Craving,
    HaltCheck,
    MeditationSession,
    MeetingAttendance,
    RiskAssessmentInput,
)

REF = pd.Timestamp("2026-10-15 12:00:00")


def at(days_ago: float, hours: float = 0.0) -> pd.Timestamp:
    return REF - pd.Timedelta(days=days_ago) + pd.Timedelta(hours=hours)


def halt(hungry=2, angry=2, lonely=2, tired=2) -> HaltCheck:
    return HaltCheck(hungry=hungry, angry=angry, lonely=lonely, tired=tired)


def check_in(id, days_ago, mood=None, halt_check=None, tags=(), hours=0.0) -> CheckIn:
    return CheckIn(id=id, timestamp=at(days_ago, hours), mood=mood, halt=halt_check, tags=tuple(tags))


def craving(id, days_ago, intensity=5, overcame=True, trigger="Stress") -> Craving:
    return Craving(id=id, timestamp=at(days_ago), intensity=intensity, trigger=trigger, overcame=overcame)


def meeting(id, days_ago, category="AA", minutes=60, hours=7.0) -> MeetingAttendance:
    return MeetingAttendance(id=id, timestamp=at(days_ago, hours), duration_minutes=minutes, category=category)


def meditation(id, days_ago, technique="Breathing Exercise", minutes=10, hours=-5.0) -> MeditationSession:
    return MeditationSession(id=id, timestamp=at(days_ago, hours), duration_minutes=minutes, technique=technique)


# ---------------------------------------------------------------------------
# Scenarios
# ---------------------------------------------------------------------------

def steady_history() -> RiskAssessmentInput:
    """Daily check-ins, stable mood, no cravings, three meetings a week."""
    return RiskAssessmentInput(
        check_ins=tuple(
            [check_in(i, i, mood=4, halt_check=halt()) for i in range(0, 7)]
            + [check_in(i, i, mood=4, halt_check=halt()) for i in range(8, 14)]
        ),
        meetings=tuple(meeting(100 + d, d) for d in (1, 3, 5, 8, 10, 12)),
        meditations=tuple(meditation(200 + d, d) for d in (0, 2, 4, 6, 8, 9, 11, 13)),
        as_of=REF,
    )


def spiralling_history() -> RiskAssessmentInput:
    """Engagement collapsing this week after a solid previous week."""
    severe = halt(9, 9, 9, 9)
    return RiskAssessmentInput(
        check_ins=tuple(
            [check_in(1, 0, mood=1, halt_check=severe), check_in(2, 1, mood=1, halt_check=severe)]
            + [check_in(10 + d, d, mood=5, halt_check=halt()) for d in range(8, 14)]
        ),
        cravings=tuple(
            [craving(i, i, intensity=9, overcame=False) for i in range(0, 6)]
            + [craving(20, 9, intensity=3), craving(21, 10, intensity=3)]
        ),
        meetings=tuple(meeting(100 + d, d) for d in (8, 9, 10)),
        meditations=tuple(meditation(200 + d, d) for d in (8, 9, 10)),
        as_of=REF,
    )


def mixed_week():
    """(check_ins, meetings, meditations) with tags, HALT and activity days."""
    check_ins = [
        check_in("c0", 0, mood=5, halt_check=halt(1, 2, 8, 6), tags=("Stress",)),
        check_in("c1", 1, mood=3, halt_check=halt(1, 2, 7, 6), tags=("Loneliness", "Stress")),
        check_in("c2", 2, mood=5, halt_check=halt(1, 2, 8, 5)),
        check_in("c3", 3, mood=3, tags=("Boredom",)),
        check_in("c4", 4, mood=5),
        check_in("c5", 5, mood=3, tags=("Stress",)),
    ]
    meetings = [meeting("m0", 0), meeting("m2", 2, category="SMART"), meeting("m4", 4)]
    meditations = [
        meditation("d1", 1, technique="Body Scan", minutes=15),
        meditation("d3", 3, technique="Breathing Exercise", minutes=10),
    ]
    return check_ins, meetings, meditations


def approx(a, b, tol=0.01):
    assert abs(a - b) < tol, f"{a} != {b} (tol={tol})"
