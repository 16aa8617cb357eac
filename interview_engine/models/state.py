"""Shared state definitions for the interview orchestration graph.

Two views of the same session live here:

  - ``GraphState`` — the LangGraph channel schema.  Values are plain
    JSON-friendly dicts and lists so the checkpointer can store them;
    the history channels use an ``operator.add`` reducer, which makes
    them append-only by construction.
  - ``SessionState`` — the frozen snapshot handed to subscribers.  It is
    rebuilt from the graph values after every node and never mutated.
"""

from __future__ import annotations

import operator
from dataclasses import asdict, dataclass
from datetime import datetime
from enum import Enum
from typing import Annotated, Any, Optional, TypedDict

from pydantic import BaseModel, ConfigDict, Field


class GraphNode(str, Enum):
    INIT = "INIT"
    ASK = "ASK"
    LISTEN = "LISTEN"
    ANALYZE = "ANALYZE"
    DECIDE = "DECIDE"
    WRAP_UP = "WRAP_UP"
    END = "END"


class PlanStatus(str, Enum):
    PENDING = "PENDING"
    ACTIVE = "ACTIVE"
    COMPLETED = "COMPLETED"
    SKIPPED = "SKIPPED"  # reserved; no routing path produces it yet


class RoutingAction(str, Enum):
    FOLLOW_UP = "FOLLOW_UP"
    NEXT_QUESTION = "NEXT_QUESTION"
    WRAP_UP = "WRAP_UP"


class Role(str, Enum):
    AGENT = "agent"
    CANDIDATE = "candidate"


class Difficulty(str, Enum):
    EASY = "Easy"
    STANDARD = "Standard"
    HARD = "Hard"


# ── Live metrics ──────────────────────────────────────────────────────────


@dataclass(frozen=True)
class MetricsSnapshot:
    """Delivery metrics derived from the live audio/video windows.

    Frozen: the aggregator publishes a new instance on every tick, so a
    reference captured into history can never change afterwards.
    """

    speech_rate: int = 0  # words/minute (heuristic, not transcription based)
    pause_ratio: float = 0.0  # 0–100 %
    volume_stability: float = 10.0  # 0–10
    eye_contact: int = 100  # 0–100 %
    confidence: int = 100  # 0–100 composite
    clarity: float = 8.0  # 0–10, static for now

    def to_dict(self) -> dict[str, Any]:
        """Convert to plain dict for graph state / JSON serialization."""
        return asdict(self)


# ── Session data (immutable snapshot models) ──────────────────────────────


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True)


class InterviewConfig(_Frozen):
    """Per-session parameters, fixed at session creation."""

    role_title: str = Field(..., min_length=1, max_length=200)
    industry: str = ""
    difficulty: Difficulty = Difficulty.STANDARD
    duration_minutes: int = Field(30, ge=1, le=240)
    job_description: str = ""
    resume: str = ""


class PlanItem(_Frozen):
    id: str
    competency: str
    topic: str
    status: PlanStatus = PlanStatus.PENDING


class Message(_Frozen):
    role: Role
    text: str
    timestamp: datetime


class ReasoningLogEntry(_Frozen):
    """One goal / perception / analysis / decision trace of the reasoner."""

    step_id: str
    timestamp: datetime
    goal: str
    perception: str
    analysis: str
    decision: str


class AnalysisRecord(_Frozen):
    """Per-turn outcome derived from the reasoning judgment."""

    question_id: int
    question_text: str
    answer_text: str
    metrics: MetricsSnapshot
    content_score: float
    delivery_score: float
    feedback: str
    strengths: tuple[str, ...] = ()
    weaknesses: tuple[str, ...] = ()
    action: RoutingAction = RoutingAction.NEXT_QUESTION


class SessionState(_Frozen):
    """Aggregate root broadcast to subscribers after every mutation."""

    config: InterviewConfig
    current_node: GraphNode = GraphNode.INIT
    plan: tuple[PlanItem, ...] = ()
    current_question_index: int = 0
    transcript: tuple[Message, ...] = ()
    metrics_history: tuple[MetricsSnapshot, ...] = ()
    reasoning_log: tuple[ReasoningLogEntry, ...] = ()
    analyses: tuple[AnalysisRecord, ...] = ()
    current_question_text: str = ""
    current_answer_text: str = ""
    last_analysis: Optional[AnalysisRecord] = None

    @property
    def current_plan_item(self) -> PlanItem | None:
        if 0 <= self.current_question_index < len(self.plan):
            return self.plan[self.current_question_index]
        return None

    @property
    def is_finished(self) -> bool:
        return self.current_node in (GraphNode.WRAP_UP, GraphNode.END)


# ── LangGraph channel schema ──────────────────────────────────────────────


class GraphState(TypedDict, total=False):
    """Channels of the orchestration graph (JSON-friendly values only)."""

    # --- Static config ---
    config: dict[str, Any]

    # --- Flow ---
    current_node: str
    plan: list[dict[str, Any]]  # overwritten as a whole on status changes
    current_question_index: int

    # --- Append-only history ---
    transcript: Annotated[list[dict[str, Any]], operator.add]
    metrics_history: Annotated[list[dict[str, Any]], operator.add]
    reasoning_log: Annotated[list[dict[str, Any]], operator.add]
    analyses: Annotated[list[dict[str, Any]], operator.add]

    # --- Current turn ---
    current_question_text: str
    current_answer_text: str
    last_analysis: Optional[dict[str, Any]]
    judgment: Optional[dict[str, Any]]  # ANALYZE → DECIDE hand-off, not broadcast
