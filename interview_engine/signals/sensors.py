"""Sensor sources and the explicitly owned capture context.

Hardware capture is out of scope: sources here only hand over frames
that something else already captured (a browser pushing analyser data,
a MediaPipe loop, a test fixture).  The context owns whichever sources
are available for one session and releases them on exit.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Protocol, runtime_checkable

import numpy as np

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FaceFrame:
    """One face-detection result.

    ``landmarks`` is an (N, 2) or (N, 3) array of normalized coordinates,
    or ``None`` when no face was found in the frame.
    """

    landmarks: Optional[np.ndarray] = None

    @classmethod
    def from_points(cls, points) -> "FaceFrame":
        if points is None:
            return cls(None)
        try:
            arr = np.asarray(points, dtype=float)
        except (TypeError, ValueError):
            # Ragged or non-numeric points: treated as no detection.
            return cls(None)
        if arr.ndim != 2 or arr.shape[0] == 0 or arr.shape[1] < 2:
            return cls(None)
        return cls(arr)

    @property
    def has_face(self) -> bool:
        return self.landmarks is not None


@runtime_checkable
class LoudnessSource(Protocol):
    """Yields frequency-domain energy samples (e.g. byte analyser bins)."""

    def read(self) -> Optional[np.ndarray]:
        """Latest sample, or ``None`` when nothing new arrived."""

    def close(self) -> None: ...


@runtime_checkable
class LandmarkSource(Protocol):
    """Yields per-frame face detection results."""

    def read(self) -> Optional[FaceFrame]:
        """Latest frame, or ``None`` when nothing new arrived."""

    def close(self) -> None: ...


class SensorContext:
    """Capture resources for a single session.

    Either source may be missing (no microphone permission, no face
    pipeline); the matching sub-pipeline of the aggregator then does
    nothing.  Use as a context manager or call ``close()`` explicitly.
    """

    def __init__(
        self,
        audio: LoudnessSource | None = None,
        video: LandmarkSource | None = None,
    ):
        self.audio = audio
        self.video = video
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def disable_audio(self) -> None:
        self._release(self.audio, "audio")
        self.audio = None

    def disable_video(self) -> None:
        self._release(self.video, "video")
        self.video = None

    def close(self) -> None:
        if self._closed:
            return
        self.disable_audio()
        self.disable_video()
        self._closed = True
        logger.info("[sensors] Capture context released")

    def __enter__(self) -> "SensorContext":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    @staticmethod
    def _release(source, label: str) -> None:
        if source is None:
            return
        try:
            source.close()
        except Exception as e:  # noqa: BLE001
            logger.warning("[sensors] Failed to release %s source: %s", label, e)
