"""Metrics snapshot store — the single current value of the live metrics."""

from __future__ import annotations

import dataclasses
from typing import Any

from interview_engine.models.state import MetricsSnapshot


class MetricsStore:
    """Holds the latest ``MetricsSnapshot``.

    Only the signal aggregator writes; the orchestrator and any UI poller
    read.  Each write swaps in a new frozen snapshot, so a reader either
    sees the previous value or the next one, never a partial update.
    No history is kept here.
    """

    def __init__(self, initial: MetricsSnapshot | None = None):
        self._current = initial or MetricsSnapshot()

    @property
    def current(self) -> MetricsSnapshot:
        return self._current

    def update(self, **fields: Any) -> MetricsSnapshot:
        """Replace the snapshot with a copy carrying ``fields``."""
        self._current = dataclasses.replace(self._current, **fields)
        return self._current

    def reset(self) -> None:
        self._current = MetricsSnapshot()
