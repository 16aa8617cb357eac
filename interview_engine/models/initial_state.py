"""Factory helpers for creating workflow state payloads."""

from __future__ import annotations

from typing import Any

from interview_engine.models.state import GraphNode, InterviewConfig, SessionState

# Used when the planner fails or returns nothing usable.
DEFAULT_PLAN: tuple[dict[str, str], ...] = (
    {"id": "q1", "competency": "Intro", "topic": "Tell me about yourself"},
    {"id": "q2", "competency": "Experience", "topic": "Past Projects"},
)


def new_session_state(config: InterviewConfig) -> dict[str, Any]:
    """Return a fresh graph state dict in the INIT node."""
    return {
        "config": config.model_dump(mode="json"),
        "current_node": GraphNode.INIT.value,
        "plan": [],
        "current_question_index": 0,
        "transcript": [],
        "metrics_history": [],
        "reasoning_log": [],
        "analyses": [],
        "current_question_text": "",
        "current_answer_text": "",
        "last_analysis": None,
        "judgment": None,
    }


def default_plan() -> list[dict[str, str]]:
    """Fresh PENDING copy of the two-item fallback plan."""
    return [{**item, "status": "PENDING"} for item in DEFAULT_PLAN]


def to_snapshot(values: dict[str, Any]) -> SessionState:
    """Build the immutable subscriber view from raw graph values."""
    return SessionState.model_validate(
        {k: v for k, v in values.items() if not k.startswith("__")}
    )
