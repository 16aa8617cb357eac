"""CLI entry-point — run a text-only interview in the terminal.

Usage:
    python -m interview_engine.main --role "Backend Engineer"
    # or via pyproject entry-point:  interview --role "Backend Engineer"

No camera or microphone is attached, so delivery metrics stay at their
defaults; content is still scored by the reasoning model.
"""

from __future__ import annotations

import argparse
import asyncio
from pathlib import Path

from dotenv import load_dotenv

from interview_engine.agents.planner import LLMPlanner
from interview_engine.agents.reasoner import LLMReasoner
from interview_engine.logging_config import setup_logging
from interview_engine.models.state import Difficulty, InterviewConfig, Role, SessionState
from interview_engine.report import build_report, format_report
from interview_engine.signals.store import MetricsStore
from interview_engine.workflow import InterviewOrchestrator

load_dotenv()


BANNER = """
╔══════════════════════════════════════════════════════════════╗
║                  AI Interview — Text Mode                    ║
║                                                              ║
║  Answer each question in one message.                        ║
║  Type 'quit' at any time to end the session early.           ║
╚══════════════════════════════════════════════════════════════╝
"""


def _read_text(path: str | None) -> str:
    return Path(path).read_text(encoding="utf-8") if path else ""


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="interview", description=__doc__.splitlines()[0])
    parser.add_argument("--role", required=True, help="Target role title")
    parser.add_argument("--industry", default="")
    parser.add_argument(
        "--difficulty",
        choices=[d.value for d in Difficulty],
        default=Difficulty.STANDARD.value,
    )
    parser.add_argument("--duration", type=int, default=30, help="Planned minutes")
    parser.add_argument("--jd", help="Path to a job description text file")
    parser.add_argument("--resume", help="Path to a resume text file")
    parser.add_argument("--verbose", action="store_true")
    return parser.parse_args(argv)


class TranscriptPrinter:
    """Subscriber that prints agent utterances as they are appended."""

    def __init__(self) -> None:
        self._seen = 0

    def __call__(self, state: SessionState) -> None:
        for message in state.transcript[self._seen:]:
            if message.role is Role.AGENT:
                print(f"\n🎙️  Interviewer: {message.text}\n")
        self._seen = len(state.transcript)


async def run(config: InterviewConfig) -> SessionState:
    orchestrator = InterviewOrchestrator(
        config,
        planner=LLMPlanner(),
        reasoner=LLMReasoner(),
        metrics=MetricsStore(),
    )
    orchestrator.subscribe(TranscriptPrinter())
    await orchestrator.start()

    while not orchestrator.state.is_finished:
        try:
            answer = (await asyncio.to_thread(input, "You: ")).strip()
        except (EOFError, KeyboardInterrupt):
            print("\nSession ended by user.")
            break
        if answer.lower() == "quit":
            print("\nEnding session early.")
            break
        await orchestrator.submit_answer(answer or "(No verbal answer provided)")

    return orchestrator.state


def main(argv: list[str] | None = None) -> None:
    args = parse_args(argv)
    setup_logging("DEBUG" if args.verbose else "WARNING")
    print(BANNER)

    config = InterviewConfig(
        role_title=args.role,
        industry=args.industry,
        difficulty=Difficulty(args.difficulty),
        duration_minutes=args.duration,
        job_description=_read_text(args.jd),
        resume=_read_text(args.resume),
    )
    final_state = asyncio.run(run(config))

    print("\n" + "═" * 60)
    print("INTERVIEW SUMMARY")
    print("═" * 60)
    print(format_report(build_report(final_state)))
    print("═" * 60)


if __name__ == "__main__":
    main()
