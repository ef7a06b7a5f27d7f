"""
BEACON v1.0 — Recovery Analytics Offload Engine

Runs relapse-risk prediction and behavioral-insight generation on a dedicated
background worker so the interactive side never blocks on analytics.

Architecture:
    config      — All thresholds, weights, and window sizes (single source of truth)
    records     — Immutable history records (pydantic models) and their wire form
    signals     — Windows, summary statistics, trends, streaks, behavioral pattern
    risk        — Relapse-risk predictor (additive factor model)
    insights    — Insight detectors, ordered by significance
    protocol    — Tagged request/response envelopes
    dispatch    — Single-threaded dispatch loop (the offload context)
    bridge      — Caller-side futures and response correlation
    pipeline    — Orchestration: load → offload → report

Public API:
    predict(data)                             → pure risk prediction
    daily_assessment(data)                    → condensed daily risk summary
    generate(check_ins, meetings, meditations) → pure insight generation
    AnalyticsBridge.open()                    → offloaded, future-based access
    analyze(filepath) / analyze_data(data)    → CLI / backend mode
"""

from beacon.bridge import AnalyticsBridge
from beacon.config import BeaconConfig
from beacon.dispatch import DispatchLoop
from beacon.errors import AnalyticsError, BeaconError, ComputationError, ProtocolError
from beacon.insights import InsightEntry, InsightsResult, generate
from beacon.pipeline import analyze, analyze_data, generate_report
from beacon.records import (
    CheckIn,
    Craving,
    HaltCheck,
    MeditationSession,
    MeetingAttendance,
    RiskAssessmentInput,
)
from beacon.risk import (
    DailyRiskAssessment,
    RiskAssessmentResult,
    RiskFactor,
    daily_assessment,
    predict,
    summarize_daily,
)

__version__ = "1.0.0"

__all__ = [
    "AnalyticsBridge",
    "AnalyticsError",
    "BeaconConfig",
    "BeaconError",
    "CheckIn",
    "ComputationError",
    "Craving",
    "DailyRiskAssessment",
    "DispatchLoop",
    "HaltCheck",
    "InsightEntry",
    "InsightsResult",
    "MeditationSession",
    "MeetingAttendance",
    "ProtocolError",
    "RiskAssessmentInput",
    "RiskAssessmentResult",
    "RiskFactor",
    "analyze",
    "analyze_data",
    "daily_assessment",
    "generate",
    "generate_report",
    "predict",
    "summarize_daily",
]
