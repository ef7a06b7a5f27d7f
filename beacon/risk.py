"""
Relapse-risk prediction: behavioral snapshot → scored, levelled assessment.

Scoring model (additive, interpretable):

    1. Extract a BehavioralPattern comparing the recent 7-day window against
       the previous 7 days (see signals.analyze_behavioral_patterns).
    2. Each factor rule that fires contributes its configured weight.
    3. score = min(score_max, Σ weights)
    4. level = fixed thresholds over the score (classify_level).

Confidence reflects data volume in the last 14 days, not model fit.
An input with no records in that span yields the neutral assessment.
"""

from dataclasses import dataclass
from typing import Callable, List, Optional, Tuple

from beacon.config import BeaconConfig, ConfidenceTiers, RiskThresholds
from beacon.records import (
    RiskAssessmentInput,
    WireModel,
    validate_check_ins,
    validate_cravings,
    validate_durations,
)
from beacon.signals import BehavioralPattern, analyze_behavioral_patterns, data_points


LEVELS = ("low", "moderate", "high", "critical")
TIMEFRAME = "Next 3-7 days"

MAX_WARNINGS = 5
MAX_INTERVENTIONS = 10

# Daily view: top warning titles, urgent interventions, actions per intervention
DAILY_WARNINGS = 3
DAILY_INTERVENTIONS = 3
DAILY_ACTIONS_EACH = 2

SEVERITY_ORDER = {"critical": 4, "high": 3, "medium": 2, "low": 1}
PRIORITY_ORDER = {"immediate": 4, "high": 3, "medium": 2, "low": 1}


# ---------------------------------------------------------------------------
# Result types
# ---------------------------------------------------------------------------

class RiskFactor(WireModel):
    id: str
    weight: float
    description: str


class RiskWarning(WireModel):
    id: str
    severity: str
    title: str
    description: str
    detected_pattern: str
    confidence: float
    trigger_factors: Tuple[str, ...] = ()


class Intervention(WireModel):
    id: str
    priority: str
    title: str
    description: str
    actions: Tuple[str, ...]
    effectiveness: float
    time_estimate: str


class RiskAssessmentResult(WireModel):
    score: float
    level: str
    factors: Tuple[RiskFactor, ...] = ()
    confidence: float = 0.5
    timeframe: str = TIMEFRAME
    warnings: Tuple[RiskWarning, ...] = ()
    interventions: Tuple[Intervention, ...] = ()


class DailyRiskAssessment(WireModel):
    """Condensed view of one assessment for a "today" card."""

    today_risk: str
    risk_score: float
    top_warnings: Tuple[str, ...] = ()
    immediate_actions: Tuple[str, ...] = ()


# ---------------------------------------------------------------------------
# Score → level
# ---------------------------------------------------------------------------

def classify_level(score: float, t: RiskThresholds) -> str:
    """
    Map a numeric score to a discrete risk level.

    Decision order matters — first match wins (highest first).
    """
    if score >= t.critical:
        return "critical"
    if score >= t.high:
        return "high"
    if score >= t.moderate:
        return "moderate"
    return "low"


def calculate_confidence(points: int, tiers: ConfidenceTiers) -> float:
    """More recent data points → higher confidence."""
    for minimum, confidence in tiers.tiers:
        if points >= minimum:
            return confidence
    return tiers.floor


# ---------------------------------------------------------------------------
# Factor rules (declarative)
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class FactorRule:
    """A named risk factor: fires when `applies` holds, adds `weight` points."""

    id: str
    weight_attr: str
    description: str
    applies: Callable[[BehavioralPattern, RiskThresholds], bool]


FACTOR_RULES: Tuple[FactorRule, ...] = (
    FactorRule("checkInDecline", "check_in_decline",
               "Check-in frequency dropped versus the previous week",
               lambda p, t: p.check_in_decline),
    FactorRule("moodDecline", "mood_decline",
               "Average mood is falling",
               lambda p, t: p.mood_trend == "declining"),
    FactorRule("lowMood", "low_mood",
               "Average mood is low",
               lambda p, t: p.avg_mood < t.low_mood),
    FactorRule("moodVolatility", "mood_volatility",
               "Mood is swinging sharply",
               lambda p, t: p.mood_volatility > t.mood_volatility),
    FactorRule("highCravingFrequency", "high_craving_frequency",
               "Frequent cravings this week",
               lambda p, t: p.craving_frequency > t.craving_frequency),
    FactorRule("worseningCravings", "worsening_cravings",
               "Craving intensity is rising",
               lambda p, t: p.craving_intensity_trend == "worsening"),
    FactorRule("lowCravingSuccess", "low_craving_success",
               "Fewer cravings are being overcome",
               lambda p, t: p.craving_success_rate < t.craving_success_rate),
    FactorRule("highHunger", "high_hunger", "HALT hunger is high",
               lambda p, t: p.halt["hungry"] > t.halt_high),
    FactorRule("highAnger", "high_anger", "HALT anger is high",
               lambda p, t: p.halt["angry"] > t.halt_high),
    FactorRule("highLoneliness", "high_loneliness", "HALT loneliness is high",
               lambda p, t: p.halt["lonely"] > t.halt_high),
    FactorRule("highTiredness", "high_tiredness", "HALT tiredness is high",
               lambda p, t: p.halt["tired"] > t.halt_high),
    FactorRule("meetingDecline", "meeting_decline",
               "Meeting attendance is low or dropping",
               lambda p, t: p.meeting_decline or p.meeting_attendance < t.min_weekly_meetings),
    FactorRule("meditationDecline", "meditation_decline",
               "Meditation practice is dropping",
               lambda p, t: p.meditation_decline),
    FactorRule("isolation", "isolation",
               "Multiple signals point to social isolation",
               lambda p, t: p.isolation_score > t.isolation),
    FactorRule("stress", "stress",
               "Anger, tiredness and mood swings indicate high stress",
               lambda p, t: p.stress_score > t.stress),
)


def calculate_risk_factors(pattern: BehavioralPattern, cfg: BeaconConfig) -> List[RiskFactor]:
    """Evaluate every rule; return fired factors, heaviest first."""
    factors = [
        RiskFactor(
            id=rule.id,
            weight=float(getattr(cfg.weights, rule.weight_attr)),
            description=rule.description,
        )
        for rule in FACTOR_RULES
        if rule.applies(pattern, cfg.risk)
    ]
    factors.sort(key=lambda f: (-f.weight, f.id))
    return factors


def calculate_score(factors: List[RiskFactor], t: RiskThresholds) -> float:
    return float(min(t.score_max, sum(f.weight for f in factors)))


# ---------------------------------------------------------------------------
# Warnings
# ---------------------------------------------------------------------------

def generate_warnings(pattern: BehavioralPattern, fired: set) -> List[RiskWarning]:
    warnings: List[RiskWarning] = []

    if "checkInDecline" in fired:
        warnings.append(RiskWarning(
            id="check-in-decline", severity="high",
            title="Check-in Frequency Declining",
            description="You've been checking in less often than last week. "
                        "This often precedes increased risk.",
            detected_pattern="Declining engagement pattern detected", confidence=0.85,
            trigger_factors=("Reduced accountability", "Possible avoidance behavior"),
        ))
    if "moodDecline" in fired or "lowMood" in fired:
        warnings.append(RiskWarning(
            id="mood-warning", severity="critical" if pattern.avg_mood < 2 else "high",
            title="Mood Declining",
            description=f"Your average mood has dropped to {pattern.avg_mood:.1f}/5. "
                        "Declining mood is a significant risk factor.",
            detected_pattern="Negative mood trend detected", confidence=0.90,
            trigger_factors=("Depression risk", "Emotional vulnerability"),
        ))
    if "worseningCravings" in fired:
        warnings.append(RiskWarning(
            id="craving-intensity", severity="critical",
            title="Craving Intensity Increasing",
            description="Your cravings are becoming more intense. "
                        "This pattern often indicates heightened risk.",
            detected_pattern="Escalating urge pattern", confidence=0.92,
            trigger_factors=("Increased urge strength", "Possible trigger exposure"),
        ))
    if "lowCravingSuccess" in fired:
        warnings.append(RiskWarning(
            id="low-success-rate", severity="critical",
            title="Craving Success Rate Dropping",
            description=f"You're overcoming only {pattern.craving_success_rate * 100:.0f}% "
                        "of cravings. Your coping strategies may need reinforcement.",
            detected_pattern="Decreasing coping effectiveness", confidence=0.88,
            trigger_factors=("Coping fatigue", "Strategy ineffectiveness"),
        ))
    if "highLoneliness" in fired:
        warnings.append(RiskWarning(
            id="loneliness", severity="high",
            title="High Loneliness Detected",
            description="Your HALT assessments show elevated loneliness. "
                        "Isolation is a major relapse trigger.",
            detected_pattern="Social withdrawal pattern", confidence=0.82,
            trigger_factors=("Social isolation", "Lack of support connection"),
        ))
    if "meetingDecline" in fired:
        warnings.append(RiskWarning(
            id="meeting-decline", severity="high",
            title="Meeting Attendance Dropping",
            description="You've attended fewer support meetings this week. "
                        "Reduced support correlates with increased risk.",
            detected_pattern="Support disengagement", confidence=0.80,
            trigger_factors=("Reduced support network", "Isolation tendency"),
        ))
    if "stress" in fired:
        warnings.append(RiskWarning(
            id="high-stress", severity="high",
            title="Elevated Stress Levels",
            description="Your HALT data indicates high anger and tiredness, "
                        "suggesting elevated stress.",
            detected_pattern="Chronic stress pattern", confidence=0.75,
            trigger_factors=("Stress accumulation", "Poor self-care"),
        ))
    if "isolation" in fired:
        warnings.append(RiskWarning(
            id="isolation", severity="critical",
            title="Social Isolation Detected",
            description="Multiple indicators suggest you may be withdrawing "
                        "from support systems.",
            detected_pattern="Isolation spiral", confidence=0.88,
            trigger_factors=("Social withdrawal", "Loneliness", "Shame spiral"),
        ))

    # Stable sort keeps detection order within a severity.
    warnings.sort(key=lambda w: -SEVERITY_ORDER[w.severity])
    return warnings[:MAX_WARNINGS]


# ---------------------------------------------------------------------------
# Interventions
# ---------------------------------------------------------------------------

def generate_interventions(pattern: BehavioralPattern, level: str) -> List[Intervention]:
    items: List[Intervention] = []

    if level in ("high", "critical"):
        items.append(Intervention(
            id="emergency-support", priority="immediate",
            title="Contact Your Support Network Now",
            description="Reach out to your sponsor, therapist, or trusted friend immediately.",
            actions=("Call your sponsor", "Text your accountability partner",
                     "Attend a meeting today", "Call a recovery hotline"),
            effectiveness=0.95, time_estimate="5-10 minutes",
        ))
    if pattern.craving_frequency > 3 or pattern.craving_success_rate < 0.7:
        items.append(Intervention(
            id="craving-management", priority="immediate",
            title="Intensive Craving Management",
            description="Your craving patterns suggest you need immediate coping skill reinforcement.",
            actions=("Practice 10-minute urge surfing", "Run a HALT check before each craving",
                     "Call your sponsor when a craving hits", "Review your relapse prevention plan"),
            effectiveness=0.85, time_estimate="30-60 minutes today",
        ))
    if pattern.meeting_attendance < 2:
        items.append(Intervention(
            id="increase-meetings", priority="high",
            title="Increase Meeting Attendance",
            description="Your meeting attendance has dropped, and fewer meetings raise risk.",
            actions=("Schedule at least 3 meetings this week", "Try an online meeting",
                     "Arrive early and stay late to connect"),
            effectiveness=0.80, time_estimate="2-3 hours this week",
        ))
    if pattern.isolation_score > 50:
        items.append(Intervention(
            id="combat-isolation", priority="high",
            title="Break the Isolation Cycle",
            description="Isolation is dangerous. You need social connection soon.",
            actions=("Text 3 people from your support network today",
                     "Schedule coffee with your sponsor", "Call instead of texting"),
            effectiveness=0.85, time_estimate="1-2 hours over 3 days",
        ))
    if pattern.avg_mood < 3:
        items.append(Intervention(
            id="mood-support", priority="high",
            title="Address Low Mood",
            description="Your mood has been consistently low. This requires attention.",
            actions=("Schedule a therapy appointment", "Keep a daily gratitude journal",
                     "Get 30 minutes of exercise today"),
            effectiveness=0.75, time_estimate="Daily practice, 20-30 min",
        ))
    if pattern.stress_score > 60:
        items.append(Intervention(
            id="stress-management", priority="high",
            title="Urgent Stress Management",
            description="Your stress levels are dangerously high.",
            actions=("Practice box breathing (4-4-4-4)", "Take a 15-minute walk outside",
                     "Write down stressors and action plans"),
            effectiveness=0.78, time_estimate="15-30 minutes today",
        ))
    if pattern.meditation_frequency < 3:
        items.append(Intervention(
            id="mindfulness-practice", priority="medium",
            title="Restart Meditation Practice",
            description="Daily meditation significantly reduces relapse risk.",
            actions=("Start with 5 minutes daily", "Use guided meditations",
                     "Try breathing exercises when stressed"),
            effectiveness=0.70, time_estimate="5-20 minutes daily",
        ))
    if pattern.check_in_decline:
        items.append(Intervention(
            id="resume-checkins", priority="medium",
            title="Resume Daily Check-ins",
            description="Daily check-ins keep you accountable and aware.",
            actions=("Set a daily reminder", "Check in first thing in the morning",
                     "Track HALT daily"),
            effectiveness=0.72, time_estimate="2-5 minutes daily",
        ))

    items.sort(key=lambda i: -PRIORITY_ORDER[i.priority])
    return items[:MAX_INTERVENTIONS]


# ---------------------------------------------------------------------------
# Public entry points
# ---------------------------------------------------------------------------

def neutral_assessment(cfg: BeaconConfig) -> RiskAssessmentResult:
    """Low-confidence baseline returned when there is no recent history."""
    score = cfg.risk.neutral_score
    return RiskAssessmentResult(
        score=score,
        level=classify_level(score, cfg.risk),
        factors=(),
        confidence=cfg.confidence.floor,
    )


def predict(
    data: RiskAssessmentInput,
    cfg: Optional[BeaconConfig] = None,
) -> RiskAssessmentResult:
    """
    Predict relapse risk for the next few days.

    Pure and deterministic: windows are anchored at data.reference_time(),
    and the input is never mutated.
    """
    if cfg is None:
        cfg = BeaconConfig()

    validate_check_ins(data.check_ins)
    validate_cravings(data.cravings)
    validate_durations(data.meetings, "meeting")
    validate_durations(data.meditations, "meditation")

    reference = data.reference_time()
    points = data_points(data, reference, cfg.windows.confidence_days)
    if points == 0:
        return neutral_assessment(cfg)

    pattern = analyze_behavioral_patterns(data, reference, cfg)
    factors = calculate_risk_factors(pattern, cfg)
    score = calculate_score(factors, cfg.risk)
    level = classify_level(score, cfg.risk)
    fired = {f.id for f in factors}

    return RiskAssessmentResult(
        score=score,
        level=level,
        factors=tuple(factors),
        confidence=calculate_confidence(points, cfg.confidence),
        warnings=tuple(generate_warnings(pattern, fired)),
        interventions=tuple(generate_interventions(pattern, level)),
    )


def summarize_daily(result: RiskAssessmentResult) -> DailyRiskAssessment:
    """Top warning titles plus the first actions of the most urgent interventions."""
    urgent = [i for i in result.interventions if i.priority in ("immediate", "high")]
    return DailyRiskAssessment(
        today_risk=result.level,
        risk_score=result.score,
        top_warnings=tuple(w.title for w in result.warnings[:DAILY_WARNINGS]),
        immediate_actions=tuple(
            action
            for item in urgent[:DAILY_INTERVENTIONS]
            for action in item.actions[:DAILY_ACTIONS_EACH]
        ),
    )


def daily_assessment(
    data: RiskAssessmentInput,
    cfg: Optional[BeaconConfig] = None,
) -> DailyRiskAssessment:
    return summarize_daily(predict(data, cfg))
