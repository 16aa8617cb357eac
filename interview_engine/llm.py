"""Shared chat-model factory and JSON helpers for the LLM collaborators.

The planner and the reasoner both import from here instead of building
their own client, so model selection and timeouts stay consistent.
"""

from __future__ import annotations

import json
from typing import Any

from langchain_openai import ChatOpenAI

from interview_engine import settings

# Default network timeout (seconds) for all OpenAI requests.
_REQUEST_TIMEOUT: int = 30


def get_chat_llm(
    *,
    temperature: float = 0.4,
    request_timeout: int = _REQUEST_TIMEOUT,
) -> ChatOpenAI:
    """Return a configured ChatOpenAI instance in JSON-output mode."""
    return ChatOpenAI(
        model=settings.LLM_MODEL_NAME,
        temperature=temperature,
        request_timeout=request_timeout,
        model_kwargs={"response_format": {"type": "json_object"}},
    )


def response_text(content: Any) -> str:
    """Normalize LangChain message content into a text string."""
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        # Content blocks: keep the text parts only.
        parts = [
            block.get("text", "") if isinstance(block, dict) else str(block)
            for block in content
        ]
        return "".join(parts)
    return json.dumps(content)


def parse_json(raw: str) -> Any:
    """Parse JSON from model output, stripping markdown fences if needed."""
    text = raw.strip()
    if text.startswith("```"):
        text = text.split("\n", 1)[1].rsplit("```", 1)[0]
    return json.loads(text)
