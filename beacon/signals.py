"""
Signal extraction: window slicing, summary statistics, trend and streaks.

These are temporal features computed over record collections.
All functions are pure transforms. The reference timestamp always comes
from the caller; nothing here reads the wall clock.
"""

from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd

from beacon.config import BeaconConfig
from beacon.records import HALT_FIELDS, RiskAssessmentInput


# ---------------------------------------------------------------------------
# Windows
# ---------------------------------------------------------------------------

def split_windows(
    records: Iterable,
    reference: pd.Timestamp,
    recent_days: int,
    previous_days: int,
) -> Tuple[list, list]:
    """
    Partition records into the recent window [ref - recent, ref] and the
    previous window [ref - previous, ref - recent).

    Records stamped after the reference are ignored.
    """
    recent_start = reference - pd.Timedelta(days=recent_days)
    previous_start = reference - pd.Timedelta(days=previous_days)

    recent, previous = [], []
    for r in records:
        if recent_start <= r.timestamp <= reference:
            recent.append(r)
        elif previous_start <= r.timestamp < recent_start:
            previous.append(r)
    return recent, previous


def count_since(records: Iterable, reference: pd.Timestamp, days: int) -> int:
    start = reference - pd.Timedelta(days=days)
    return sum(1 for r in records if start <= r.timestamp <= reference)


# ---------------------------------------------------------------------------
# Summary statistics
# ---------------------------------------------------------------------------

def mean_or(values: Sequence[float], default: float) -> float:
    if len(values) == 0:
        return default
    return float(np.mean(np.asarray(values, dtype=np.float64)))


def population_std(values: Sequence[float]) -> float:
    """Population standard deviation (ddof=0); 0.0 below two points."""
    if len(values) < 2:
        return 0.0
    return float(np.std(np.asarray(values, dtype=np.float64), ddof=0))


def ols_slope(y: np.ndarray) -> float:
    """
    Ordinary least-squares slope for evenly-spaced data.

    Uses the closed-form solution:  slope = Σ(x_c · y_c) / Σ(x_c²)
    where x_c and y_c are mean-centered.
    """
    n = len(y)
    if n < 2:
        return 0.0
    x = np.arange(n, dtype=np.float64)
    x_c = x - x.mean()
    y_c = y - y.mean()
    denom = np.dot(x_c, x_c)
    if denom == 0.0:
        return 0.0
    return float(np.dot(x_c, y_c) / denom)


def pearson(x: Sequence[float], y: Sequence[float]) -> float:
    """Pearson correlation coefficient; 0.0 for degenerate input."""
    n = min(len(x), len(y))
    if n < 2:
        return 0.0
    xa = np.asarray(x[:n], dtype=np.float64)
    ya = np.asarray(y[:n], dtype=np.float64)
    xc = xa - xa.mean()
    yc = ya - ya.mean()
    denom = np.sqrt(np.dot(xc, xc) * np.dot(yc, yc))
    if denom == 0.0:
        return 0.0
    return float(np.clip(np.dot(xc, yc) / denom, -1.0, 1.0))


def classify_change(delta: float, threshold: float, up: str, down: str) -> str:
    """Map a signed change to a three-way label."""
    if delta > threshold:
        return up
    if delta < -threshold:
        return down
    return "stable"


# ---------------------------------------------------------------------------
# Streaks
# ---------------------------------------------------------------------------

def day_streaks(timestamps: Iterable[pd.Timestamp]) -> List[int]:
    """
    Lengths of runs of consecutive calendar days, in chronological order.

    Multiple records on one day count once. Single isolated days are runs of 1.
    """
    days = sorted({ts.normalize() for ts in timestamps})
    if not days:
        return []

    streaks = []
    current = 1
    for prev, day in zip(days, days[1:]):
        if (day - prev).days == 1:
            current += 1
        else:
            streaks.append(current)
            current = 1
    streaks.append(current)
    return streaks


# ---------------------------------------------------------------------------
# Behavioral pattern snapshot (risk predictor input features)
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class BehavioralPattern:
    """Features derived from the recent and previous windows."""

    check_in_frequency: int
    check_in_decline: bool
    mood_trend: str                 # improving | stable | declining
    avg_mood: float
    mood_volatility: float
    craving_frequency: int
    craving_intensity_trend: str    # improving | stable | worsening
    craving_success_rate: float
    halt: Dict[str, float]
    meeting_attendance: int
    meeting_decline: bool
    meditation_frequency: int
    meditation_decline: bool
    isolation_score: float
    stress_score: float


def _declined(recent: list, previous: list, ratio: float) -> bool:
    return len(recent) < len(previous) * ratio


def analyze_behavioral_patterns(
    data: RiskAssessmentInput,
    reference: pd.Timestamp,
    cfg: BeaconConfig,
) -> BehavioralPattern:
    """Compare the recent window against the previous one across all record kinds."""
    w = cfg.windows
    rt = cfg.risk

    def windows(records):
        return split_windows(records, reference, w.recent_days, w.previous_days)

    recent_ci, previous_ci = windows(data.check_ins)
    recent_cr, previous_cr = windows(data.cravings)
    recent_mt, previous_mt = windows(data.meetings)
    recent_md, previous_md = windows(data.meditations)

    # -- Mood ---------------------------------------------------------------
    recent_moods = [c.mood for c in recent_ci if c.mood is not None]
    previous_moods = [c.mood for c in previous_ci if c.mood is not None]
    avg_mood = mean_or(recent_moods, rt.default_mood)
    previous_avg_mood = mean_or(previous_moods, rt.default_mood)
    mood_trend = classify_change(
        avg_mood - previous_avg_mood, rt.mood_trend_delta, "improving", "declining"
    )

    # -- Cravings -----------------------------------------------------------
    avg_intensity = mean_or([c.intensity for c in recent_cr], 0.0)
    previous_intensity = mean_or([c.intensity for c in previous_cr], 0.0)
    # Rising intensity is a worsening trend, so the labels are inverted.
    craving_trend = classify_change(
        avg_intensity - previous_intensity, rt.craving_intensity_delta, "worsening", "improving"
    )
    success_rate = (
        sum(1 for c in recent_cr if c.overcame) / len(recent_cr) if recent_cr else 1.0
    )

    # -- HALT ---------------------------------------------------------------
    halts = np.array([c.halt.as_tuple() for c in recent_ci if c.halt is not None], dtype=np.float64)
    if len(halts):
        halt = {name: float(v) for name, v in zip(HALT_FIELDS, halts.mean(axis=0))}
    else:
        halt = {name: rt.halt_default for name in HALT_FIELDS}

    mood_volatility = population_std(recent_moods)
    meeting_attendance = len(recent_mt)

    isolation = min(rt.score_max, (10 - meeting_attendance) * 10 + halt["lonely"] * 5)
    stress = min(rt.score_max, (halt["angry"] + halt["tired"]) * 5 + mood_volatility * 10)

    return BehavioralPattern(
        check_in_frequency=len(recent_ci),
        check_in_decline=_declined(recent_ci, previous_ci, rt.decline_ratio),
        mood_trend=mood_trend,
        avg_mood=avg_mood,
        mood_volatility=mood_volatility,
        craving_frequency=len(recent_cr),
        craving_intensity_trend=craving_trend,
        craving_success_rate=success_rate,
        halt=halt,
        meeting_attendance=meeting_attendance,
        meeting_decline=_declined(recent_mt, previous_mt, rt.decline_ratio),
        meditation_frequency=len(recent_md),
        meditation_decline=_declined(recent_md, previous_md, rt.decline_ratio),
        isolation_score=float(max(isolation, 0.0)),
        stress_score=float(stress),
    )


def data_points(data: RiskAssessmentInput, reference: Optional[pd.Timestamp], days: int) -> int:
    """Number of records of any kind within `days` of the reference."""
    if reference is None:
        return 0
    return count_since(data.all_records(), reference, days)
