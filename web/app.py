"""FastAPI backend for browser-driven interview sessions.

The browser owns capture: it posts analyser spectra and face-mesh
landmarks at the tick rate, and posts the recognized answer text when
the candidate finishes speaking.  Sessions live in process memory only.
"""

from __future__ import annotations

import logging
import os
import time
import uuid
from dataclasses import dataclass, field
from typing import Any, Optional

from dotenv import load_dotenv
from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from interview_engine import settings
from interview_engine.agents.planner import LLMPlanner
from interview_engine.agents.reasoner import LLMReasoner
from interview_engine.logging_config import setup_logging
from interview_engine.models.state import InterviewConfig, MetricsSnapshot, SessionState
from interview_engine.report import build_report
from interview_engine.signals.aggregator import SignalAggregator
from interview_engine.signals.sensors import FaceFrame, SensorContext
from interview_engine.signals.store import MetricsStore
from interview_engine.workflow import InterviewOrchestrator

load_dotenv()
setup_logging()

# Hosting dashboards sometimes keep trailing whitespace after copy/paste.
for key in ("OPENAI_API_KEY", "OPENAI_CHAT_MODEL"):
    value = os.environ.get(key)
    if value:
        os.environ[key] = value.strip()

logger = logging.getLogger(__name__)

app = FastAPI(title="Interview Orchestration Engine", version="0.1.0")
MAX_MESSAGE_CHARS = 4000
MAX_SPECTRUM_BINS = 4096


@dataclass
class LiveSession:
    orchestrator: InterviewOrchestrator
    aggregator: SignalAggregator
    store: MetricsStore
    last_seen: float = field(default_factory=time.monotonic)


SESSIONS: dict[str, LiveSession] = {}


def evict_idle_sessions(now: float | None = None) -> list[str]:
    """Stop and forget sessions untouched for ``SESSION_IDLE_SECONDS``."""
    now = time.monotonic() if now is None else now
    cutoff = now - settings.SESSION_IDLE_SECONDS
    expired = [sid for sid, s in SESSIONS.items() if s.last_seen < cutoff]
    for sid in expired:
        SESSIONS.pop(sid).aggregator.stop()
        logger.info("[web] Evicted idle session %s", sid)
    return expired


def make_collaborators() -> dict[str, Any]:
    """Collaborators for new sessions (patched in tests)."""
    return {"planner": LLMPlanner(), "reasoner": LLMReasoner()}


# ── Request logging middleware ────────────────────────────────────────────

@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log every request with method, path, and response time."""
    request_id = uuid.uuid4().hex[:8]
    start = time.perf_counter()
    response = await call_next(request)
    elapsed_ms = (time.perf_counter() - start) * 1000
    # Frame pushes arrive ~60x per second; keep them out of INFO.
    level = logging.DEBUG if request.url.path.endswith(("/audio", "/face")) else logging.INFO
    logger.log(
        level,
        "%s %s -> %s (%.0fms) [rid=%s]",
        request.method,
        request.url.path,
        response.status_code,
        elapsed_ms,
        request_id,
    )
    response.headers["X-Request-ID"] = request_id
    return response


# ── Health check ──────────────────────────────────────────────────────────

@app.get("/health")
def health_check() -> JSONResponse:
    """Lightweight health probe for deployment platforms."""
    return JSONResponse({"status": "ok", "sessions": len(SESSIONS)})


# ── Schemas ───────────────────────────────────────────────────────────────


class SessionResponse(BaseModel):
    session_id: str
    state: SessionState


class AnswerRequest(BaseModel):
    message: str


class AnswerResponse(SessionResponse):
    accepted: bool


class AudioFrame(BaseModel):
    spectrum: list[float] = Field(..., min_length=1, max_length=MAX_SPECTRUM_BINS)
    timestamp_ms: Optional[float] = None


class FaceFrameRequest(BaseModel):
    # None → no face detected in this frame.
    landmarks: Optional[list[list[float]]] = None


class MetricsResponse(BaseModel):
    session_id: str
    metrics: MetricsSnapshot


def _get_session(session_id: str) -> LiveSession:
    session = SESSIONS.get(session_id)
    if session is None:
        raise HTTPException(status_code=404, detail="Unknown session. Start a new session.")
    session.last_seen = time.monotonic()
    return session


# ── Session lifecycle ─────────────────────────────────────────────────────


@app.post("/api/sessions", response_model=SessionResponse)
async def start_session(config: InterviewConfig) -> SessionResponse:
    """Create a session, plan it, and run until the first LISTEN."""
    evict_idle_sessions()
    store = MetricsStore()
    aggregator = SignalAggregator(store)
    aggregator.start(SensorContext())  # frames are pushed, not pulled

    orchestrator = InterviewOrchestrator(config, metrics=store, **make_collaborators())
    SESSIONS[orchestrator.session_id] = LiveSession(orchestrator, aggregator, store)

    await orchestrator.start()
    return SessionResponse(session_id=orchestrator.session_id, state=orchestrator.state)


@app.get("/api/sessions/{session_id}", response_model=SessionResponse)
def get_session(session_id: str) -> SessionResponse:
    session = _get_session(session_id)
    return SessionResponse(session_id=session_id, state=session.orchestrator.state)


@app.post("/api/sessions/{session_id}/answer", response_model=AnswerResponse)
async def submit_answer(session_id: str, req: AnswerRequest) -> AnswerResponse:
    """Submit the candidate's answer; ignored unless the session is listening."""
    session = _get_session(session_id)
    message = req.message.strip()
    if len(message) > MAX_MESSAGE_CHARS:
        raise HTTPException(
            status_code=400,
            detail=f"Message too long. Maximum length is {MAX_MESSAGE_CHARS} characters.",
        )

    accepted = await session.orchestrator.submit_answer(
        message or "(No verbal answer provided)"
    )
    return AnswerResponse(
        session_id=session_id, state=session.orchestrator.state, accepted=accepted
    )


@app.delete("/api/sessions/{session_id}")
async def end_session(session_id: str) -> JSONResponse:
    """Release the session's sensors and forget it."""
    session = _get_session(session_id)
    session.aggregator.stop()
    del SESSIONS[session_id]
    return JSONResponse({"session_id": session_id, "status": "closed"})


@app.get("/api/sessions/{session_id}/report")
def session_report(session_id: str) -> JSONResponse:
    session = _get_session(session_id)
    return JSONResponse(build_report(session.orchestrator.state))


# ── Live signals ──────────────────────────────────────────────────────────


@app.post("/api/sessions/{session_id}/audio", response_model=MetricsResponse)
async def push_audio(session_id: str, frame: AudioFrame) -> MetricsResponse:
    session = _get_session(session_id)
    metrics = session.aggregator.process_audio(frame.spectrum, frame.timestamp_ms)
    return MetricsResponse(session_id=session_id, metrics=metrics)


@app.post("/api/sessions/{session_id}/face", response_model=MetricsResponse)
async def push_face(session_id: str, frame: FaceFrameRequest) -> MetricsResponse:
    session = _get_session(session_id)
    metrics = session.aggregator.process_face(FaceFrame.from_points(frame.landmarks))
    return MetricsResponse(session_id=session_id, metrics=metrics)


@app.get("/api/sessions/{session_id}/metrics", response_model=MetricsResponse)
def get_metrics(session_id: str) -> MetricsResponse:
    session = _get_session(session_id)
    return MetricsResponse(session_id=session_id, metrics=session.store.current)


if __name__ == "__main__":
    import uvicorn

    port = int(os.getenv("PORT", "8080"))
    print(f"Starting interview API on http://localhost:{port}")
    uvicorn.run(app, host="0.0.0.0", port=port)
