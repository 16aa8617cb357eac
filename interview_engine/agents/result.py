"""Collaborator boundary — explicit success/failure results.

Every remote call the orchestrator makes (plan generation, reasoning,
speech synthesis, playback) goes through ``guarded()``, so a failure
arrives as a ``Result`` with a reason instead of an exception unwinding
the turn cycle.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Generic, Mapping, Optional, Protocol, Sequence, TypeVar

from interview_engine.models.state import InterviewConfig, Message, MetricsSnapshot, PlanItem

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class Result(Generic[T]):
    value: Optional[T] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: T) -> "Result[T]":
        return cls(value=value)

    @classmethod
    def failure(cls, reason: str) -> "Result[T]":
        return cls(error=reason or "unknown error")


async def guarded(label: str, call: Callable[..., Awaitable[T]], *args: Any) -> Result[T]:
    """Await ``call(*args)`` and fold any exception into a failed ``Result``."""
    try:
        return Result.success(await call(*args))
    except Exception as e:  # noqa: BLE001
        logger.warning("[%s] Collaborator call failed: %s", label, e)
        return Result.failure(f"{type(e).__name__}: {e}")


# ── Collaborator contracts ────────────────────────────────────────────────


class PlanGenerator(Protocol):
    async def generate_plan(self, config: InterviewConfig) -> Sequence[PlanItem]: ...


class Reasoner(Protocol):
    async def reason(
        self,
        config: InterviewConfig,
        transcript_tail: Sequence[Message],
        question: str,
        answer: str,
        metrics: MetricsSnapshot,
        competency: str,
    ) -> Mapping[str, Any]:
        """Raw, possibly partial judgment mapping (see ``Judgment``)."""


class SpeechSynthesizer(Protocol):
    async def synthesize(self, text: str) -> Any:
        """Playable buffer, or ``None`` when nothing can be spoken."""


class AudioPlayer(Protocol):
    async def play(self, buffer: Any) -> None:
        """Return once playback has finished."""
