"""
Insight detectors: behavioral history → ordered, evidence-backed observations.

Each detector is a pure function over canonically ordered records and returns
zero or more InsightEntry values. generate() runs every detector and sorts the
union by significance, so the result never depends on input order.
"""

from collections import Counter
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

import numpy as np
import pandas as pd
from pydantic import computed_field, field_serializer, field_validator

from beacon.config import BeaconConfig, InsightParams
from beacon.records import (
    HALT_FIELDS,
    CheckIn,
    MeditationSession,
    MeetingAttendance,
    WireModel,
    canonical_order,
    validate_check_ins,
    validate_durations,
)
from beacon.signals import day_streaks, ols_slope, pearson


MESSAGE_TEMPLATES = {
    "summary.no_data": "Not enough history yet. Keep logging to unlock insights.",
    "checkins.logged": "You checked in {count} times across {days} days.",
    "checkins.streak": "Your longest check-in streak is {longest} days (current: {current}).",
    "mood.snapshot": "Your latest mood was {mood}/5.",
    "mood.improving": "Your mood is improving: {earlier} → {later} on average.",
    "mood.declining": "Your mood is declining: {earlier} → {later} on average.",
    "mood.stable": "Your mood has been steady around {later}/5.",
    "mood.low": "Your average mood is low at {average}/5.",
    "halt.dominant": "Your strongest HALT signals are {factors}.",
    "triggers.frequent": "Your most frequent triggers are {tags}.",
    "meetings.consistent": "You attend about {weekly_rate} meetings per week. Keep it up.",
    "meetings.infrequent": "You attend about {weekly_rate} meetings per week; aim for {target}.",
    "mood.meeting_days_higher": "Mood is higher on meeting days ({with_activity} vs {without_activity}).",
    "mood.meeting_days_lower": "Mood is lower on meeting days ({with_activity} vs {without_activity}).",
    "meditation.summary": "You meditated {minutes} minutes over {count} sessions, mostly {technique}.",
    "mood.meditation_days_higher": "Mood is higher on meditation days ({with_activity} vs {without_activity}).",
    "mood.meditation_days_lower": "Mood is lower on meditation days ({with_activity} vs {without_activity}).",
    "correlation.meetings_mood": "Weekly meeting count and mood move together (r = {coefficient}).",
}


# ---------------------------------------------------------------------------
# Result types
# ---------------------------------------------------------------------------

def _freeze(value: Any) -> Any:
    if isinstance(value, (list, tuple)):
        return tuple(_freeze(v) for v in value)
    return value


def _thaw(value: Any) -> Any:
    if isinstance(value, tuple):
        return [_thaw(v) for v in value]
    return value


class InsightEntry(WireModel):
    category: str
    message_id: str
    significance: float
    evidence: Tuple[Any, ...] = ()
    details: Tuple[Tuple[str, Any], ...] = ()

    @field_validator("details", mode="before")
    @classmethod
    def _frozen_details(cls, value: Any) -> Any:
        items = value.items() if isinstance(value, Mapping) else value
        return tuple(sorted((k, _freeze(v)) for k, v in items))

    @field_serializer("details")
    def _details_as_object(self, details: Tuple[Tuple[str, Any], ...]) -> Dict[str, Any]:
        return {k: _thaw(v) for k, v in details}

    @computed_field
    @property
    def message(self) -> str:
        return self.render()

    @classmethod
    def build(
        cls,
        category: str,
        message_id: str,
        significance: float,
        evidence: Iterable[Any] = (),
        **details: Any,
    ) -> "InsightEntry":
        return cls(
            category=category,
            message_id=message_id,
            significance=round(float(np.clip(significance, 0.0, 1.0)), 4),
            evidence=tuple(evidence),
            details=details,
        )

    def detail(self, key: str, default: Any = None) -> Any:
        return dict(self.details).get(key, default)

    def render(self) -> str:
        template = MESSAGE_TEMPLATES.get(self.message_id, self.message_id)
        values = {k: (", ".join(map(str, v)) if isinstance(v, tuple) else v) for k, v in self.details}
        return template.format(**values)


class InsightsResult(WireModel):
    insights: Tuple[InsightEntry, ...] = ()

    def message_ids(self) -> List[str]:
        return [i.message_id for i in self.insights]


def _round(x: float, digits: int = 2) -> float:
    return round(float(x), digits)


def _mood_frame(check_ins: Sequence[CheckIn]) -> pd.DataFrame:
    rows = [
        {"id": c.id, "timestamp": c.timestamp, "mood": c.mood}
        for c in check_ins if c.mood is not None
    ]
    if not rows:
        return pd.DataFrame(columns=["id", "timestamp", "mood", "day"])
    df = pd.DataFrame(rows)
    df["day"] = pd.to_datetime(df["timestamp"]).dt.normalize()
    return df


# ---------------------------------------------------------------------------
# Check-in detectors
# ---------------------------------------------------------------------------

def detect_check_in_activity(check_ins: Sequence[CheckIn]) -> List[InsightEntry]:
    if not check_ins:
        return []
    days = {c.timestamp.normalize() for c in check_ins}
    return [InsightEntry.build(
        "engagement", "checkins.logged", 0.2,
        evidence=[c.id for c in check_ins],
        count=len(check_ins), days=len(days),
    )]


def detect_check_in_streaks(check_ins: Sequence[CheckIn], p: InsightParams) -> List[InsightEntry]:
    streaks = day_streaks(c.timestamp for c in check_ins)
    if not streaks or max(streaks) < p.min_streak_days:
        return []
    longest = max(streaks)
    current = streaks[-1]
    # Evidence: check-ins belonging to the current run of days.
    last_day = check_ins[-1].timestamp.normalize()
    run_start = last_day - pd.Timedelta(days=current - 1)
    evidence = [c.id for c in check_ins if c.timestamp.normalize() >= run_start]
    return [InsightEntry.build(
        "engagement", "checkins.streak", 0.3 + min(longest, 30) / 100,
        evidence=evidence, longest=longest, current=current, streaks=len(streaks),
    )]


def detect_mood_trend(check_ins: Sequence[CheckIn], p: InsightParams) -> List[InsightEntry]:
    """Compare the earlier and later halves of the mood series."""
    moody = [c for c in check_ins if c.mood is not None]
    if not moody:
        return []

    ids = [c.id for c in moody]
    moods = np.array([c.mood for c in moody], dtype=np.float64)

    if len(moody) == 1:
        return [InsightEntry.build("mood", "mood.snapshot", 0.25, evidence=ids, mood=_round(moods[0]))]

    half = len(moods) // 2
    earlier = float(moods[:half].mean())
    later = float(moods[half:].mean())
    delta = later - earlier
    slope = ols_slope(moods)

    out: List[InsightEntry] = []
    if delta > p.mood_trend_delta:
        out.append(InsightEntry.build(
            "mood", "mood.improving", 0.5, evidence=ids,
            earlier=_round(earlier), later=_round(later), slope=_round(slope, 4),
        ))
    elif delta < -p.mood_trend_delta:
        out.append(InsightEntry.build(
            "mood", "mood.declining", 0.9, evidence=ids,
            earlier=_round(earlier), later=_round(later), slope=_round(slope, 4),
        ))
    else:
        out.append(InsightEntry.build(
            "mood", "mood.stable", 0.3, evidence=ids,
            earlier=_round(earlier), later=_round(later), slope=_round(slope, 4),
        ))

    average = float(moods.mean())
    if average < p.low_mood:
        out.append(InsightEntry.build(
            "mood", "mood.low", 0.95 - (average - 1.0) / 20, evidence=ids, average=_round(average),
        ))
    return out


def detect_halt_factors(check_ins: Sequence[CheckIn], p: InsightParams) -> List[InsightEntry]:
    with_halt = [c for c in check_ins if c.halt is not None]
    if not with_halt:
        return []
    averages = np.array([c.halt.as_tuple() for c in with_halt], dtype=np.float64).mean(axis=0)
    ranked = sorted(zip(HALT_FIELDS, averages), key=lambda kv: (-kv[1], kv[0]))
    top = ranked[:p.top_halt_factors]
    return [InsightEntry.build(
        "halt", "halt.dominant", float(top[0][1]) / 10,
        evidence=[c.id for c in with_halt],
        factors=[name for name, _ in top],
        averages=[_round(v) for _, v in top],
    )]


def detect_frequent_tags(check_ins: Sequence[CheckIn], p: InsightParams) -> List[InsightEntry]:
    counts = Counter(tag for c in check_ins for tag in c.tags)
    if not counts:
        return []
    top = sorted(counts.items(), key=lambda kv: (-kv[1], kv[0]))[:p.top_tags]
    names = {tag for tag, _ in top}
    return [InsightEntry.build(
        "triggers", "triggers.frequent", 0.3 + min(top[0][1], 10) / 20,
        evidence=[c.id for c in check_ins if names.intersection(c.tags)],
        tags=[tag for tag, _ in top], counts=[n for _, n in top],
    )]


# ---------------------------------------------------------------------------
# Activity detectors
# ---------------------------------------------------------------------------

def _weekly_rate(records: Sequence) -> float:
    span_days = (records[-1].timestamp - records[0].timestamp).days
    weeks = max(1.0, span_days / 7)
    return len(records) / weeks


def _top_category(values: Iterable[str]) -> str:
    counts = pd.Series(list(values), dtype="object").value_counts()
    # value_counts ties are not ordered by label; break them alphabetically.
    best = counts.max()
    return sorted(counts[counts == best].index)[0]


def detect_meeting_activity(meetings: Sequence[MeetingAttendance], p: InsightParams) -> List[InsightEntry]:
    if not meetings:
        return []
    rate = _weekly_rate(meetings)
    consistent = rate >= p.weekly_meeting_target
    return [InsightEntry.build(
        "meetings",
        "meetings.consistent" if consistent else "meetings.infrequent",
        0.3 if consistent else 0.7,
        evidence=[m.id for m in meetings],
        count=len(meetings),
        weekly_rate=_round(rate, 1),
        target=p.weekly_meeting_target,
        top_category=_top_category(m.category for m in meetings),
    )]


def detect_meditation_activity(meditations: Sequence[MeditationSession]) -> List[InsightEntry]:
    if not meditations:
        return []
    minutes = sum(m.duration_minutes for m in meditations)
    return [InsightEntry.build(
        "meditation", "meditation.summary", 0.25,
        evidence=[m.id for m in meditations],
        count=len(meditations),
        minutes=_round(minutes, 1),
        technique=_top_category(m.technique for m in meditations),
    )]


def detect_activity_mood_gap(
    check_ins: Sequence[CheckIn],
    activities: Sequence,
    kind: str,
    p: InsightParams,
) -> List[InsightEntry]:
    """Mood on days with the activity versus days without it."""
    if not activities:
        return []
    moods = _mood_frame(check_ins)
    if moods.empty:
        return []

    activity_days = {a.timestamp.normalize() for a in activities}
    on_day = moods["day"].isin(sorted(activity_days))
    if on_day.all() or not on_day.any():
        return []

    with_activity = float(moods.loc[on_day, "mood"].mean())
    without_activity = float(moods.loc[~on_day, "mood"].mean())
    gap = with_activity - without_activity
    if abs(gap) < p.mood_gap:
        return []

    direction = "higher" if gap > 0 else "lower"
    shared_days = set(moods.loc[on_day, "day"])
    evidence = [
        c.id for c in check_ins
        if c.mood is not None and c.timestamp.normalize() in activity_days
    ] + [a.id for a in activities if a.timestamp.normalize() in shared_days]
    return [InsightEntry.build(
        "correlation", f"mood.{kind}_days_{direction}",
        0.5 + min(abs(gap), 2.0) / 10,
        evidence=evidence,
        with_activity=_round(with_activity),
        without_activity=_round(without_activity),
    )]


def detect_weekly_meeting_mood_correlation(
    check_ins: Sequence[CheckIn],
    meetings: Sequence[MeetingAttendance],
) -> List[InsightEntry]:
    """Pearson correlation of weekly meeting counts against weekly mean mood."""
    moods = _mood_frame(check_ins)
    if moods.empty or not meetings:
        return []

    weekly_mood = moods.groupby(moods["day"].dt.to_period("W"))["mood"].mean()
    if len(weekly_mood) < 3:
        return []

    meeting_weeks = pd.Series(
        [pd.Timestamp(m.timestamp).to_period("W") for m in meetings], dtype="object"
    ).value_counts()
    counts = [int(meeting_weeks.get(week, 0)) for week in weekly_mood.index]

    r = pearson(counts, list(weekly_mood.values))
    if abs(r) <= 0.4:
        return []
    return [InsightEntry.build(
        "correlation", "correlation.meetings_mood", 0.4 + abs(r) * 0.4,
        evidence=[m.id for m in meetings],
        coefficient=_round(r, 3),
        weeks=len(weekly_mood),
    )]


# ---------------------------------------------------------------------------
# Public entry point
# ---------------------------------------------------------------------------

def _significance_order(entry: InsightEntry):
    return (-entry.significance, entry.category, entry.message_id)


def generate(
    check_ins: Iterable[CheckIn],
    meetings: Iterable[MeetingAttendance],
    meditations: Iterable[MeditationSession],
    cfg: Optional[BeaconConfig] = None,
) -> InsightsResult:
    """
    Derive insights from the three record collections.

    Deterministic and independent of input order; inputs are never mutated.
    With no records at all, a single informational entry is returned.
    """
    if cfg is None:
        cfg = BeaconConfig()
    p = cfg.insights

    check_ins = canonical_order(check_ins)
    meetings = canonical_order(meetings)
    meditations = canonical_order(meditations)

    validate_check_ins(check_ins)
    validate_durations(meetings, "meeting")
    validate_durations(meditations, "meditation")

    if not (check_ins or meetings or meditations):
        return InsightsResult(insights=(InsightEntry.build("summary", "summary.no_data", 0.0),))

    entries: List[InsightEntry] = []
    entries += detect_check_in_activity(check_ins)
    entries += detect_check_in_streaks(check_ins, p)
    entries += detect_mood_trend(check_ins, p)
    entries += detect_halt_factors(check_ins, p)
    entries += detect_frequent_tags(check_ins, p)
    entries += detect_meeting_activity(meetings, p)
    entries += detect_meditation_activity(meditations)
    entries += detect_activity_mood_gap(check_ins, meetings, "meeting", p)
    entries += detect_activity_mood_gap(check_ins, meditations, "meditation", p)
    entries += detect_weekly_meeting_mood_correlation(check_ins, meetings)

    entries.sort(key=_significance_order)
    return InsightsResult(insights=tuple(entries))
