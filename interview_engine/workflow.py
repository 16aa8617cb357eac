"""LangGraph workflow — the turn-taking state machine of the interview.

Flow:
    START → init → ask → speak → listen ⏸ → analyze → decide ─┬→ ask …
                                                              └→ END (WRAP_UP)

  - init     asks the planner for a roadmap (default plan on failure)
  - ask      appends the agent utterance to the transcript
  - speak    synthesizes and plays the question, then settles briefly
  - listen   pauses on ``interrupt()`` until ``submit_answer`` resumes it
  - analyze  calls the reasoner with a frozen metrics snapshot
  - decide   routes: follow-up, next plan item, or wrap-up

``InterviewOrchestrator`` owns the compiled graph and the only copy of
the session state.  Every node returns exactly one update; after each
one the orchestrator swaps in a new frozen ``SessionState`` and
broadcasts it to all subscribers.
"""

from __future__ import annotations

import asyncio
import json
import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Literal

from langgraph.checkpoint.memory import MemorySaver
from langgraph.graph import END, START, StateGraph
from langgraph.types import Command, interrupt
from pydantic import ValidationError

from interview_engine import settings
from interview_engine.agents.reasoner import Judgment
from interview_engine.agents.result import (
    AudioPlayer,
    PlanGenerator,
    Reasoner,
    SpeechSynthesizer,
    guarded,
)
from interview_engine.agents.speech import SilentSynthesizer, TimedPlayer
from interview_engine.models.initial_state import default_plan, new_session_state, to_snapshot
from interview_engine.models.state import (
    GraphNode,
    GraphState,
    InterviewConfig,
    Message,
    MetricsSnapshot,
    PlanItem,
    PlanStatus,
    Role,
    RoutingAction,
    SessionState,
)
from interview_engine.observers import Callback, SubscriberRegistry
from interview_engine.signals.store import MetricsStore

logger = logging.getLogger(__name__)

# Messages of context handed to the reasoner.
TRANSCRIPT_TAIL = 3


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _message(role: Role, text: str, timestamp: str | None = None) -> dict[str, Any]:
    return {"role": role.value, "text": text, "timestamp": timestamp or _now_iso()}


def opening_question(config: InterviewConfig, first_item: dict[str, Any]) -> str:
    return (
        f"Welcome to the interview for the {config.role_title} role. "
        f"Let's start with: {first_item['topic']}?"
    )


# ── Pure graph nodes ──────────────────────────────────────────────────────


async def listen(state: GraphState) -> dict:
    """Pause until the candidate's answer arrives via ``Command(resume=...)``.

    The resume payload carries the answer text and the metrics snapshot
    taken at submission time, before any reasoning call is issued.
    """
    payload = interrupt({"question": state.get("current_question_text", "")})
    answer = str(payload.get("answer", ""))
    logger.info("[graph] State: LISTEN -> received answer (%d chars)", len(answer))
    return {
        "transcript": [_message(Role.CANDIDATE, answer, payload.get("timestamp"))],
        "current_answer_text": answer,
        "metrics_history": [payload["metrics"]],
        "current_node": GraphNode.ANALYZE.value,
    }


def decide(state: GraphState) -> Command[Literal["ask", "__end__"]]:
    """Routing policy, evaluated in order: wrap-up, follow-up, next question."""
    judgment = Judgment.from_dict(state["judgment"])
    index = state.get("current_question_index", 0)
    plan = [dict(item) for item in state.get("plan", [])]
    logger.info("[graph] State: DECIDE (%s)", judgment.action.value)

    if judgment.action is RoutingAction.WRAP_UP or index >= len(plan) - 1:
        if 0 <= index < len(plan):
            plan[index]["status"] = PlanStatus.COMPLETED.value
        return Command(
            update={
                "plan": plan,
                "current_node": GraphNode.WRAP_UP.value,
                "judgment": None,
            },
            goto=END,
        )

    if judgment.action is RoutingAction.FOLLOW_UP:
        return Command(
            update={
                "current_question_text": judgment.next_message,
                "current_node": GraphNode.ASK.value,
                "judgment": None,
            },
            goto="ask",
        )

    plan[index]["status"] = PlanStatus.COMPLETED.value
    plan[index + 1]["status"] = PlanStatus.ACTIVE.value
    return Command(
        update={
            "plan": plan,
            "current_question_index": index + 1,
            "current_question_text": judgment.next_message,
            "current_node": GraphNode.ASK.value,
            "judgment": None,
        },
        goto="ask",
    )


# ── Orchestrator ──────────────────────────────────────────────────────────


class InterviewOrchestrator:
    """Single owner and single mutator of one interview session.

    ``start()`` runs INIT → … → LISTEN; each ``submit_answer()`` runs one
    turn through to the next LISTEN, or to WRAP_UP.  There is no stop():
    ending a session means no longer calling it and stopping the signal
    aggregator separately.
    """

    def __init__(
        self,
        config: InterviewConfig,
        *,
        planner: PlanGenerator,
        reasoner: Reasoner,
        metrics: MetricsStore,
        synthesizer: SpeechSynthesizer | None = None,
        player: AudioPlayer | None = None,
        settle_delay: float | None = None,
        session_id: str | None = None,
    ):
        self.config = config
        self.planner = planner
        self.reasoner = reasoner
        self.metrics = metrics
        self.synthesizer = synthesizer or SilentSynthesizer()
        self.player = player or TimedPlayer()
        self.settle_delay = (
            settings.TURN_SETTLE_SECONDS if settle_delay is None else settle_delay
        )
        self.session_id = session_id or uuid.uuid4().hex[:8]

        self._graph = self.build_graph()
        self._thread = {"configurable": {"thread_id": self.session_id}}
        self._state: SessionState = to_snapshot(new_session_state(config))
        self._subscribers: SubscriberRegistry[SessionState] = SubscriberRegistry()

        self._started = False
        self._answer_pending = False
        self._idle = asyncio.Event()
        self._idle.set()

    # ── Public surface ────────────────────────────────────────────────────

    @property
    def state(self) -> SessionState:
        return self._state

    def subscribe(self, callback: Callback) -> int:
        """Register ``callback``; it immediately receives the current state."""
        handle = self._subscribers.add(callback)
        self._subscribers.notify_one(handle, self._state)
        return handle

    def unsubscribe(self, handle: int) -> bool:
        return self._subscribers.remove(handle)

    async def start(self) -> None:
        if self._started:
            logger.debug("[graph] start() ignored, session %s already started", self.session_id)
            return
        self._started = True
        logger.info("[graph] Starting session %s for %r", self.session_id, self.config.role_title)
        await self._drive(new_session_state(self.config))

    async def submit_answer(self, text: str) -> bool:
        """Hand the candidate's answer to the LISTEN node.

        Returns ``False`` (and changes nothing) outside LISTEN or while an
        earlier answer is still being processed.
        """
        if self._answer_pending or self._state.current_node is not GraphNode.LISTEN:
            logger.debug(
                "[graph] Ignoring answer in node %s", self._state.current_node.value
            )
            return False

        self._answer_pending = True
        snapshot = self.metrics.current  # frozen; later ticks cannot touch it
        payload = {
            "answer": text,
            "metrics": snapshot.to_dict(),
            "timestamp": _now_iso(),
        }
        try:
            # The LISTEN broadcast can precede the interrupt being recorded.
            await self._idle.wait()
            await self._drive(Command(resume=payload))
        finally:
            self._answer_pending = False
        return True

    # ── Graph ─────────────────────────────────────────────────────────────

    def build_graph(self):
        """Construct and compile the interview StateGraph."""
        graph = StateGraph(GraphState)

        graph.add_node("init", self._init_node)
        graph.add_node("ask", self._ask_node)
        graph.add_node("speak", self._speak_node)
        graph.add_node("listen", listen)
        graph.add_node("analyze", self._analyze_node)
        graph.add_node("decide", decide)

        graph.add_edge(START, "init")
        graph.add_edge("init", "ask")
        graph.add_edge("ask", "speak")
        graph.add_edge("speak", "listen")
        graph.add_edge("listen", "analyze")
        graph.add_edge("analyze", "decide")
        # decide uses Command to go to "ask" or END

        return graph.compile(checkpointer=MemorySaver())

    async def _drive(self, payload: Any) -> None:
        self._idle.clear()
        try:
            async for chunk in self._graph.astream(payload, self._thread, stream_mode="values"):
                if isinstance(chunk, dict) and "current_node" in chunk:
                    self._replace(chunk)
        finally:
            self._idle.set()

    def _replace(self, values: dict[str, Any]) -> None:
        """The one state-replacement step: swap the snapshot, then broadcast."""
        new_state = to_snapshot(values)
        if new_state == self._state:
            return
        self._state = new_state
        self._subscribers.broadcast(new_state)

    # ── Nodes needing collaborators ───────────────────────────────────────

    async def _init_node(self, state: GraphState) -> dict:
        logger.info("[graph] State: INIT")
        result = await guarded("planner", self.planner.generate_plan, self.config)

        plan: list[dict[str, Any]] = []
        if result.ok and result.value:
            try:
                plan = [
                    PlanItem.model_validate(item).model_dump(mode="json")
                    for item in result.value
                ]
            except ValidationError as e:
                logger.warning("[planner] Invalid plan items: %s", e)
                plan = []
        if not plan:
            logger.warning("[planner] No usable plan (%s), using default plan", result.error)
            plan = default_plan()

        for i, item in enumerate(plan):
            item["status"] = (PlanStatus.ACTIVE if i == 0 else PlanStatus.PENDING).value

        return {
            "plan": plan,
            "current_question_index": 0,
            "current_question_text": opening_question(self.config, plan[0]),
            "current_node": GraphNode.ASK.value,
        }

    async def _ask_node(self, state: GraphState) -> dict:
        logger.info("[graph] State: ASK")
        return {
            "transcript": [_message(Role.AGENT, state.get("current_question_text", ""))],
            "current_node": GraphNode.ASK.value,
        }

    async def _speak_node(self, state: GraphState) -> dict:
        text = state.get("current_question_text", "")
        audio = await guarded("tts", self.synthesizer.synthesize, text)

        if audio.ok and audio.value is not None:
            played = await guarded("playback", self.player.play, audio.value)
            if played.ok:
                await asyncio.sleep(self.settle_delay)
        else:
            logger.info("[graph] No audio for question, listening immediately")

        return {"current_node": GraphNode.LISTEN.value}

    async def _analyze_node(self, state: GraphState) -> dict:
        logger.info("[graph] State: ANALYZE")
        index = state.get("current_question_index", 0)
        item = to_snapshot(state).current_plan_item
        competency = item.competency if item is not None else "General"

        metrics_dict = state["metrics_history"][-1]
        metrics = MetricsSnapshot(**metrics_dict)
        tail = [
            Message.model_validate(m)
            for m in state.get("transcript", [])[-TRANSCRIPT_TAIL:]
        ]
        question = state.get("current_question_text", "")
        answer = state.get("current_answer_text", "")

        result = await guarded(
            "reasoner",
            self.reasoner.reason,
            self.config,
            tail,
            question,
            answer,
            metrics,
            competency,
        )
        if result.ok:
            judgment = Judgment.from_response(result.value)
        else:
            judgment = Judgment.fallback(result.error)

        entry = {
            "step_id": uuid.uuid4().hex[:12],
            "timestamp": _now_iso(),
            "goal": judgment.goal,
            "perception": f"Speech: {metrics.speech_rate}wpm, Eye: {metrics.eye_contact}%",
            "analysis": json.dumps(
                {"content": judgment.content_score, "delivery": judgment.delivery_score}
            ),
            "decision": f"{judgment.action.value} because {judgment.reason}",
        }
        analysis = {
            "question_id": index,
            "question_text": question,
            "answer_text": answer,
            "metrics": metrics_dict,
            "content_score": judgment.content_score,
            "delivery_score": judgment.delivery_score,
            "feedback": judgment.content_reasoning,
            "strengths": list(judgment.strengths),
            "weaknesses": list(judgment.weaknesses),
            "action": judgment.action.value,
        }
        return {
            "reasoning_log": [entry],
            "analyses": [analysis],
            "last_analysis": analysis,
            "judgment": judgment.to_dict(),
            "current_node": GraphNode.DECIDE.value,
        }
