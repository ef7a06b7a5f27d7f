"""
Pipeline orchestration: load → offload both analytics → report.

This is the only module with file I/O (history loading, report formatting).
All analytical work is sent through the AnalyticsBridge, so the CLI exercises
exactly the same request/response path as an interactive caller.
"""

import json
from pathlib import Path
from typing import Dict, Optional, Union

from beacon.bridge import AnalyticsBridge
from beacon.config import BeaconConfig
from beacon.errors import ProtocolError
from beacon.records import RiskAssessmentInput
from beacon.risk import summarize_daily


# ---------------------------------------------------------------------------
# Data loading (CLI mode only)
# ---------------------------------------------------------------------------

def load_history(filepath: Union[str, Path]) -> Dict:
    """Load a JSON history export (checkIns, cravings, meetings, meditations)."""
    path = Path(filepath)
    if not path.exists():
        raise FileNotFoundError(f"History file not found: {path}")

    with open(path, "r") as f:
        data = json.load(f)

    if not isinstance(data, dict):
        raise ValueError("History file must contain a JSON object")
    return data


# ---------------------------------------------------------------------------
# Public Entry Points
# ---------------------------------------------------------------------------

def analyze_data(
    data: Dict,
    cfg: Optional[BeaconConfig] = None,
    timeout: Optional[float] = 30.0,
) -> Dict:
    """
    Backend / UI integration entry point.

    Decodes the history once, then runs risk prediction and insight
    generation on a dedicated worker and waits for both answers.
    Worker-side failures re-raise here as AnalyticsError.
    """
    history = RiskAssessmentInput.from_dict(data)

    with AnalyticsBridge.open(cfg) as bridge:
        risk_future = bridge.predict_risk(history)
        insights_future = bridge.generate_insights(
            history.check_ins, history.meetings, history.meditations
        )
        return {
            "risk": risk_future.result(timeout),
            "insights": insights_future.result(timeout),
        }


def analyze(
    filepath: Union[str, Path],
    cfg: Optional[BeaconConfig] = None,
) -> Dict:
    """
    CLI-compatible entry point.
    Reads a JSON history file and runs both analyses.
    """
    data = load_history(filepath)
    try:
        return analyze_data(data, cfg)
    except ProtocolError as exc:
        raise ValueError(f"Malformed history file {filepath}: {exc}") from exc


# ---------------------------------------------------------------------------
# Report generation
# ---------------------------------------------------------------------------

def generate_report(result: Dict) -> str:
    """Format both analyses as a human-readable text report."""
    risk = result["risk"]
    insights = result["insights"]

    lines = [
        "BEACON RECOVERY REPORT",
        "=" * 58,
        "",
        f"  Relapse Risk        : {risk.level.upper()} ({risk.score:.0f}/100)",
        f"  Confidence          : {risk.confidence:.2f}",
        f"  Timeframe           : {risk.timeframe}",
    ]

    if risk.factors:
        lines.append("")
        lines.append("  Contributing Factors:")
        for factor in risk.factors:
            lines.append(f"    +{factor.weight:>4.0f}  {factor.description}")

    if risk.warnings:
        lines.append("")
        lines.append("  Warnings:")
        for warning in risk.warnings:
            lines.append(f"    [{warning.severity:8s}] {warning.title}")

    if risk.interventions:
        lines.append("")
        lines.append("  Suggested Next Steps:")
        for item in risk.interventions:
            lines.append(f"    - {item.title} ({item.time_estimate})")

    today = summarize_daily(risk)
    if today.immediate_actions:
        lines.append("")
        lines.append(f"  Do Today ({today.today_risk}):")
        for action in today.immediate_actions:
            lines.append(f"    - {action}")

    lines.append("")
    lines.append("  Insights:")
    for entry in insights.insights:
        lines.append(f"    [{entry.category:11s}] {entry.render()}")

    lines.append("")
    lines.append("=" * 58)
    return "\n".join(lines)
