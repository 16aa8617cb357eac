"""Planner agent — builds the interview roadmap from the role, JD and resume."""

from __future__ import annotations

import logging
from typing import Any

from langchain_core.messages import HumanMessage, SystemMessage

from interview_engine.llm import get_chat_llm, parse_json, response_text
from interview_engine.models.state import InterviewConfig, PlanItem

logger = logging.getLogger(__name__)

# JD / resume excerpts are cut to keep the planning prompt small.
_CONTEXT_CHARS = 500

PLANNER_PROMPT = """\
You are an expert interviewer. Create a structured interview plan.
Role: {role} ({industry})
Difficulty: {difficulty}
Duration: {duration} minutes (approx. 5-8 questions).

JD context: {jd}
Resume context: {resume}

Cover specific competencies, starting with an ice breaker.

RESPOND WITH VALID JSON ONLY:
{{
  "plan": [
    {{"id": "q1", "competency": "Introduction", "topic": "Ice breaker & resume walk-through"}},
    {{"id": "q2", "competency": "Technical/Hard Skill", "topic": "Specific skill from the JD"}}
  ]
}}
"""


def _excerpt(text: str) -> str:
    text = text.strip()
    if not text:
        return "N/A"
    return text[:_CONTEXT_CHARS] + ("..." if len(text) > _CONTEXT_CHARS else "")


def normalize_plan(raw: Any) -> list[PlanItem]:
    """Turn loosely-shaped model output into PENDING ``PlanItem``s.

    Accepts a bare list or ``{"plan": [...]}``.  Items without a topic are
    dropped; missing ids and competencies are filled in.
    """
    if isinstance(raw, dict):
        raw = raw.get("plan", [])
    if not isinstance(raw, list):
        return []

    items: list[PlanItem] = []
    for entry in raw:
        if not isinstance(entry, dict):
            continue
        topic = str(entry.get("topic") or "").strip()
        if not topic:
            continue
        items.append(
            PlanItem(
                id=str(entry.get("id") or f"q{len(items) + 1}"),
                competency=str(entry.get("competency") or "General").strip() or "General",
                topic=topic,
            )
        )
    return items


class LLMPlanner:
    """Plan collaborator backed by the shared chat model."""

    def __init__(self, llm=None):
        self._llm = llm

    def _get_llm(self):
        if self._llm is None:
            self._llm = get_chat_llm(temperature=0.7)
        return self._llm

    async def generate_plan(self, config: InterviewConfig) -> list[PlanItem]:
        prompt = PLANNER_PROMPT.format(
            role=config.role_title,
            industry=config.industry or "General",
            difficulty=config.difficulty.value,
            duration=config.duration_minutes,
            jd=_excerpt(config.job_description),
            resume=_excerpt(config.resume),
        )
        response = await self._get_llm().ainvoke(
            [
                SystemMessage(content=prompt),
                HumanMessage(content="Generate the interview plan now."),
            ]
        )
        # Parse errors propagate: the orchestrator falls back to its default plan.
        plan = normalize_plan(parse_json(response_text(response.content)))
        logger.info("[planner] Generated %d plan items", len(plan))
        return plan
