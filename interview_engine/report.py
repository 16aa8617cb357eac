"""Session report — aggregate delivery and content results across turns.

Usage:
    from interview_engine.report import build_report

    report = build_report(orchestrator.state)
    # → {"turns": 3, "mean_content_score": 6.3, "mean_metrics": {...}, ...}
"""

from __future__ import annotations

from dataclasses import fields
from typing import Any, Sequence

from interview_engine.models.state import MetricsSnapshot, PlanStatus, SessionState


def average_metrics(history: Sequence[MetricsSnapshot]) -> dict[str, float]:
    """Mean value of each metric over the per-turn snapshots."""
    if not history:
        return {}
    n = len(history)
    return {
        f.name: round(sum(getattr(m, f.name) for m in history) / n, 2)
        for f in fields(MetricsSnapshot)
    }


def build_report(state: SessionState) -> dict[str, Any]:
    analyses = state.analyses
    n = len(analyses)

    def _mean(attr: str) -> float | None:
        if not n:
            return None
        return round(sum(getattr(a, attr) for a in analyses) / n, 2)

    strengths = [s for a in analyses for s in a.strengths]
    weaknesses = [w for a in analyses for w in a.weaknesses]

    return {
        "role": state.config.role_title,
        "status": state.current_node.value,
        "turns": n,
        "topics_completed": sum(1 for p in state.plan if p.status is PlanStatus.COMPLETED),
        "topics_planned": len(state.plan),
        "mean_content_score": _mean("content_score"),
        "mean_delivery_score": _mean("delivery_score"),
        "mean_metrics": average_metrics(state.metrics_history),
        "strengths": strengths,
        "weaknesses": weaknesses,
    }


def format_report(report: dict[str, Any]) -> str:
    """Human-readable summary for the terminal."""
    lines = [
        f"Role            : {report['role']}",
        f"Turns answered  : {report['turns']}",
        f"Topics covered  : {report['topics_completed']}/{report['topics_planned']}",
    ]
    if report["mean_content_score"] is not None:
        lines.append(f"Content score   : {report['mean_content_score']:.1f}/10")
        lines.append(f"Delivery score  : {report['mean_delivery_score']:.1f}/10")
    metrics = report["mean_metrics"]
    if metrics:
        lines.append(
            f"Delivery        : {metrics['speech_rate']:.0f} wpm, "
            f"{metrics['pause_ratio']:.0f}% pauses, "
            f"eye contact {metrics['eye_contact']:.0f}%, "
            f"confidence {metrics['confidence']:.0f}/100"
        )
    for label, items in (("Strengths", report["strengths"]), ("Weaknesses", report["weaknesses"])):
        if items:
            lines.append(f"{label}:")
            lines.extend(f"  • {item}" for item in items)
    return "\n".join(lines)
