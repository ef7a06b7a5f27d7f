"""
Centralized configuration for all thresholds, weights, and window parameters.

Every tunable constant of the risk predictor, the insights generator and the
offload worker lives here. Analytic functions take a BeaconConfig and never
read module-level constants directly.
"""

from dataclasses import dataclass, field


# ---------------------------------------------------------------------------
# Analysis windows
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class WindowParams:
    """Window sizes (days) measured back from the reference timestamp."""

    recent_days: int = 7
    previous_days: int = 14     # previous window spans [previous, recent)
    confidence_days: int = 14

    def __post_init__(self):
        if not 0 < self.recent_days < self.previous_days:
            raise ValueError(
                f"Windows must satisfy 0 < recent < previous, got "
                f"{self.recent_days}/{self.previous_days}"
            )


# ---------------------------------------------------------------------------
# Risk level thresholds
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class RiskThresholds:
    """Score → level boundaries and the detector cut-offs feeding the score."""

    score_max: float = 100.0
    neutral_score: float = 0.0

    critical: float = 75.0
    high: float = 50.0
    moderate: float = 25.0

    # Behavioral detector cut-offs
    decline_ratio: float = 0.7          # recent < previous * ratio → decline
    mood_trend_delta: float = 0.5
    low_mood: float = 3.0
    default_mood: float = 3.0
    mood_volatility: float = 1.5
    craving_frequency: int = 5
    craving_intensity_delta: float = 1.0
    craving_success_rate: float = 0.6
    halt_high: float = 7.0
    halt_default: float = 5.0
    min_weekly_meetings: int = 2
    isolation: float = 60.0
    stress: float = 60.0

    def __post_init__(self):
        if not (0 <= self.moderate < self.high < self.critical <= self.score_max):
            raise ValueError(
                "Risk thresholds must be ordered moderate < high < critical <= score_max"
            )


# ---------------------------------------------------------------------------
# Risk factor weights (points added to the score when a factor fires)
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class RiskWeights:
    """Additive weight of each named risk factor."""

    check_in_decline: float = 15
    mood_decline: float = 20
    low_mood: float = 15
    mood_volatility: float = 10
    high_craving_frequency: float = 20
    worsening_cravings: float = 25
    low_craving_success: float = 20
    high_hunger: float = 12
    high_anger: float = 15
    high_loneliness: float = 18
    high_tiredness: float = 12
    meeting_decline: float = 15
    meditation_decline: float = 10
    isolation: float = 20
    stress: float = 15


# ---------------------------------------------------------------------------
# Confidence tiers
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ConfidenceTiers:
    """(minimum data points, confidence) pairs, checked highest first."""

    tiers: tuple = ((30, 0.90), (20, 0.80), (10, 0.70), (5, 0.60))
    floor: float = 0.50


# ---------------------------------------------------------------------------
# Insights
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class InsightParams:
    """Thresholds for the insight detectors."""

    mood_trend_delta: float = 0.5
    low_mood: float = 3.0
    mood_gap: float = 0.3               # mood difference on activity days
    top_halt_factors: int = 2
    top_tags: int = 3
    min_streak_days: int = 2
    weekly_meeting_target: int = 3

    def __post_init__(self):
        if self.top_halt_factors < 1 or self.top_tags < 1:
            raise ValueError("Insight top-N limits must be at least 1")


# ---------------------------------------------------------------------------
# Offload worker
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class WorkerParams:
    """Channel and thread settings for the dispatch loop."""

    thread_name: str = "beacon-analytics"
    inbox_maxsize: int = 0              # 0 → unbounded
    join_timeout: float = 5.0


# ---------------------------------------------------------------------------
# Top-level config aggregate
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class BeaconConfig:
    """Complete engine configuration. Pass to predict/generate to override defaults."""

    windows: WindowParams = field(default_factory=WindowParams)
    risk: RiskThresholds = field(default_factory=RiskThresholds)
    weights: RiskWeights = field(default_factory=RiskWeights)
    confidence: ConfidenceTiers = field(default_factory=ConfidenceTiers)
    insights: InsightParams = field(default_factory=InsightParams)
    worker: WorkerParams = field(default_factory=WorkerParams)
