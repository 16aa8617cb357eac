"""Reasoning agent — scores one answer and chooses the next routing action.

The LLM follows a four-step chain of thought (goal, perception,
analysis, decision) and replies with JSON shaped like:

    {
      "goal": "...",
      "analysis": {
        "content_reasoning": "...", "delivery_reasoning": "...",
        "scores": {"content": 7, "delivery": 6},
        "strengths": ["..."], "weaknesses": ["..."]
      },
      "decision": {"action": "FOLLOW_UP", "reason": "..."},
      "next_message": "..."
    }

Remote output is never trusted: ``Judgment.from_response`` merges any
mapping (including ``{}``) with the defaults field by field.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Mapping, Sequence

from langchain_core.messages import HumanMessage, SystemMessage

from interview_engine.llm import get_chat_llm, parse_json, response_text
from interview_engine.models.state import (
    InterviewConfig,
    Message,
    MetricsSnapshot,
    RoutingAction,
)
from interview_engine.settings import NEUTRAL_SCORE, clamp_score

logger = logging.getLogger(__name__)

DEFAULT_GOAL = "Evaluate answer"
DEFAULT_REASONING = "Analysis unavailable"
DEFAULT_REASON = "Proceeding"
DEFAULT_NEXT_MESSAGE = "Thank you. Let's move on."
FAILED_REASONING = "Error parsing response"

SYSTEM_PROMPT = """\
You are an AI interview orchestrator using chain-of-thought reasoning.
Role: {role}. Target competency: {competency}.

Follow this 4-step reasoning process strictly:

1. Step A — Goal
   Define what you are looking for in this specific answer
   (e.g. STAR method, technical depth).

2. Step B — Perception (provided below)
   Consider the biometric delivery data.

3. Step C — Analysis
   - CONTENT: did they answer the question? Is it specific?
   - DELIVERY: are they confident (eye contact > 60, steady volume)?
   - Assign scores from 0 to 10.

4. Step D — Decision
   - Content score < 6 OR answer too short: action = FOLLOW_UP.
   - Scores >= 6: action = NEXT_QUESTION.
   - Time is up: action = WRAP_UP.

RESPOND WITH VALID JSON ONLY — no markdown, no commentary:
{{
  "goal": "...",
  "analysis": {{
    "content_reasoning": "...",
    "delivery_reasoning": "...",
    "scores": {{"content": 0, "delivery": 0}},
    "strengths": ["..."],
    "weaknesses": ["..."]
  }},
  "decision": {{"action": "FOLLOW_UP | NEXT_QUESTION | WRAP_UP", "reason": "..."}},
  "next_message": "what you say to the candidate next"
}}
"""


def perception_summary(metrics: MetricsSnapshot) -> str:
    return (
        f"- Speech Rate: {metrics.speech_rate} WPM (Ideal: 120-160)\n"
        f"- Pause Ratio: {metrics.pause_ratio}%\n"
        f"- Volume Stability: {metrics.volume_stability}/10\n"
        f"- Eye Contact: {metrics.eye_contact}%\n"
        f"- Confidence Score: {metrics.confidence}/100"
    )


# ── Judgment (defaults merge) ─────────────────────────────────────────────


def _mapping(value: Any) -> Mapping[str, Any]:
    return value if isinstance(value, Mapping) else {}


def _text(value: Any, default: str) -> str:
    return value.strip() if isinstance(value, str) and value.strip() else default


def _score(value: Any) -> float:
    # bool is an int subclass; "true" is not a score.
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return clamp_score(float(value))
    return NEUTRAL_SCORE


def _texts(value: Any) -> tuple[str, ...]:
    if not isinstance(value, (list, tuple)):
        return ()
    return tuple(str(v) for v in value if isinstance(v, str) and v.strip())


def _action(value: Any) -> RoutingAction:
    if isinstance(value, str):
        try:
            return RoutingAction(value.strip().upper())
        except ValueError:
            logger.info("[reasoner] Unknown action %r, using NEXT_QUESTION", value)
    return RoutingAction.NEXT_QUESTION


@dataclass(frozen=True)
class Judgment:
    """Complete, validated reasoning result for one turn."""

    goal: str = DEFAULT_GOAL
    content_reasoning: str = DEFAULT_REASONING
    delivery_reasoning: str = DEFAULT_REASONING
    content_score: float = NEUTRAL_SCORE
    delivery_score: float = NEUTRAL_SCORE
    strengths: tuple[str, ...] = ()
    weaknesses: tuple[str, ...] = ()
    action: RoutingAction = RoutingAction.NEXT_QUESTION
    reason: str = DEFAULT_REASON
    next_message: str = DEFAULT_NEXT_MESSAGE

    @classmethod
    def from_response(cls, raw: Any) -> "Judgment":
        """Merge a raw (possibly malformed) response with the defaults."""
        root = _mapping(raw)
        analysis = _mapping(root.get("analysis"))
        scores = _mapping(analysis.get("scores"))
        decision = _mapping(root.get("decision"))
        return cls(
            goal=_text(root.get("goal"), DEFAULT_GOAL),
            content_reasoning=_text(analysis.get("content_reasoning"), DEFAULT_REASONING),
            delivery_reasoning=_text(analysis.get("delivery_reasoning"), DEFAULT_REASONING),
            content_score=_score(scores.get("content")),
            delivery_score=_score(scores.get("delivery")),
            strengths=_texts(analysis.get("strengths")),
            weaknesses=_texts(analysis.get("weaknesses")),
            action=_action(decision.get("action")),
            reason=_text(decision.get("reason"), DEFAULT_REASON),
            next_message=_text(root.get("next_message"), DEFAULT_NEXT_MESSAGE),
        )

    @classmethod
    def fallback(cls, error: str | None) -> "Judgment":
        """Neutral judgment for a reasoning call that failed outright."""
        return cls(
            content_reasoning=FAILED_REASONING,
            delivery_reasoning=FAILED_REASONING,
            reason=f"Fallback ({error or 'unknown error'})",
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "goal": self.goal,
            "content_reasoning": self.content_reasoning,
            "delivery_reasoning": self.delivery_reasoning,
            "content_score": self.content_score,
            "delivery_score": self.delivery_score,
            "strengths": list(self.strengths),
            "weaknesses": list(self.weaknesses),
            "action": self.action.value,
            "reason": self.reason,
            "next_message": self.next_message,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Judgment":
        """Inverse of ``to_dict`` (graph hand-off, already validated)."""
        return cls(
            goal=data["goal"],
            content_reasoning=data["content_reasoning"],
            delivery_reasoning=data["delivery_reasoning"],
            content_score=float(data["content_score"]),
            delivery_score=float(data["delivery_score"]),
            strengths=tuple(data["strengths"]),
            weaknesses=tuple(data["weaknesses"]),
            action=RoutingAction(data["action"]),
            reason=data["reason"],
            next_message=data["next_message"],
        )


# ── LLM-backed reasoner ───────────────────────────────────────────────────


class LLMReasoner:
    """Reasoning collaborator backed by the shared chat model."""

    def __init__(self, llm=None):
        self._llm = llm

    def _get_llm(self):
        if self._llm is None:
            self._llm = get_chat_llm(temperature=0.2)
        return self._llm

    async def reason(
        self,
        config: InterviewConfig,
        transcript_tail: Sequence[Message],
        question: str,
        answer: str,
        metrics: MetricsSnapshot,
        competency: str,
    ) -> Mapping[str, Any]:
        history = "\n".join(f"{m.role.value}: {m.text}" for m in transcript_tail)
        user_prompt = (
            f"[HISTORY]\n{history}\n\n"
            f"[CURRENT INTERACTION]\n"
            f'Interviewer: "{question}"\n'
            f'Candidate: "{answer}"\n\n'
            f"[PERCEPTION DATA]\n{perception_summary(metrics)}"
        )
        response = await self._get_llm().ainvoke(
            [
                SystemMessage(
                    content=SYSTEM_PROMPT.format(role=config.role_title, competency=competency)
                ),
                HumanMessage(content=user_prompt),
            ]
        )

        try:
            parsed = parse_json(response_text(response.content))
        except (json.JSONDecodeError, IndexError) as e:
            logger.warning("[reasoner] Unparsable reasoning output: %s", e)
            return {}
        return parsed if isinstance(parsed, dict) else {}
