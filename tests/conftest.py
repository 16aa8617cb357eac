"""Shared fakes for the orchestrator tests (no network, no audio devices)."""

from __future__ import annotations

from typing import Any

import numpy as np
import pytest

from interview_engine.agents.speech import AudioBuffer
from interview_engine.models.state import InterviewConfig, PlanItem
from interview_engine.signals.store import MetricsStore
from interview_engine.workflow import InterviewOrchestrator


class FakePlanner:
    def __init__(self, plan: list[PlanItem] | None = None, error: Exception | None = None):
        self.plan = plan if plan is not None else make_plan(3)
        self.error = error
        self.calls = 0

    async def generate_plan(self, config: InterviewConfig) -> list[PlanItem]:
        self.calls += 1
        if self.error is not None:
            raise self.error
        return self.plan


class ScriptedReasoner:
    """Returns queued responses; once empty, always NEXT_QUESTION."""

    def __init__(self, responses: list[Any] | None = None, error: Exception | None = None):
        self.responses = list(responses or [])
        self.error = error
        self.calls: list[dict[str, Any]] = []

    async def reason(self, config, transcript_tail, question, answer, metrics, competency):
        self.calls.append(
            {
                "tail": list(transcript_tail),
                "question": question,
                "answer": answer,
                "metrics": metrics,
                "competency": competency,
            }
        )
        if self.error is not None:
            raise self.error
        if self.responses:
            return self.responses.pop(0)
        return {
            "decision": {"action": "NEXT_QUESTION", "reason": "Solid answer"},
            "next_message": f"Next question {len(self.calls)}",
        }


class FakeSynthesizer:
    def __init__(self, buffer: AudioBuffer | None = None, error: Exception | None = None):
        self.buffer = buffer
        self.error = error
        self.texts: list[str] = []

    async def synthesize(self, text: str):
        self.texts.append(text)
        if self.error is not None:
            raise self.error
        return self.buffer


class RecordingPlayer:
    """Remembers which node the orchestrator was in while audio played."""

    def __init__(self, error: Exception | None = None):
        self.error = error
        self.played: list[AudioBuffer] = []
        self.nodes_during_playback: list[str] = []
        self.orchestrator: InterviewOrchestrator | None = None

    async def play(self, buffer: AudioBuffer) -> None:
        self.played.append(buffer)
        if self.orchestrator is not None:
            self.nodes_during_playback.append(self.orchestrator.state.current_node.value)
        if self.error is not None:
            raise self.error


def make_plan(n: int) -> list[PlanItem]:
    return [
        PlanItem(id=f"q{i}", competency=f"Competency {i}", topic=f"Topic {i}")
        for i in range(1, n + 1)
    ]


def one_second_buffer() -> AudioBuffer:
    return AudioBuffer(samples=np.zeros((24000, 1), dtype=np.float32), sample_rate=24000)


@pytest.fixture
def config() -> InterviewConfig:
    return InterviewConfig(role_title="Backend Engineer", industry="Fintech")


@pytest.fixture
def make_orchestrator(config):
    """Factory building an orchestrator wired to fakes (zero settle delay)."""

    def _make(
        *,
        planner: FakePlanner | None = None,
        reasoner: ScriptedReasoner | None = None,
        store: MetricsStore | None = None,
        synthesizer: FakeSynthesizer | None = None,
        player: RecordingPlayer | None = None,
    ) -> InterviewOrchestrator:
        orchestrator = InterviewOrchestrator(
            config,
            planner=planner or FakePlanner(),
            reasoner=reasoner or ScriptedReasoner(),
            metrics=store or MetricsStore(),
            synthesizer=synthesizer or FakeSynthesizer(),
            player=player or RecordingPlayer(),
            settle_delay=0.0,
            session_id="test-session",
        )
        if isinstance(orchestrator.player, RecordingPlayer):
            orchestrator.player.orchestrator = orchestrator
        return orchestrator

    return _make
