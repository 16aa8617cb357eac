"""Signal aggregator — turns raw audio/face frames into live delivery metrics.

Audio sub-pipeline (per tick):
  - loudness = RMS of the frequency-domain energy sample
  - readings above the loudness floor feed a 50-entry FIFO whose spread
    gives ``volume_stability``
  - each tick is classified speech/silence and pushed into a 5-second
    time window, which gives ``pause_ratio`` and ``speech_rate``

Video sub-pipeline (per frame):
  - gaze = reference landmark (nose tip) horizontally inside a centered
    band; the last 30 classifications give ``eye_contact``
  - ``confidence`` blends eye contact and volume stability, and decays
    while no face is visible

The speech rate is a heuristic proxy: it assumes a fixed number of words
per second of detected speech, so it over-reads fast mumbling and
under-reads slow, deliberate speakers.  The gaze check is equally coarse
(one landmark, fixed band).  There is no calibration step.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections import deque

import numpy as np

from interview_engine import settings
from interview_engine.models.state import MetricsSnapshot
from interview_engine.signals.sensors import FaceFrame, SensorContext
from interview_engine.signals.store import MetricsStore

logger = logging.getLogger(__name__)

# ── Window sizes and heuristic constants ──────────────────────────────────
LOUDNESS_WINDOW = 50  # readings
SPEECH_WINDOW_MS = 5000.0
GAZE_WINDOW = 30  # frames
MIN_STABILITY_READINGS = 10
WORDS_PER_ACTIVE_SECOND = 3.0
GAZE_BAND = (0.4, 0.6)  # normalized x, exclusive
GAZE_LANDMARK = 1  # nose tip in the MediaPipe face mesh
NO_FACE_CONFIDENCE_PENALTY = 5


def loudness(spectrum) -> float:
    """RMS of a frequency-domain energy sample."""
    arr = np.asarray(spectrum, dtype=float)
    if arr.size == 0:
        return 0.0
    return float(np.sqrt(np.mean(np.square(arr))))


def is_looking_at_camera(landmarks: np.ndarray) -> bool:
    """Nose tip horizontally centered → assume the candidate faces the camera."""
    if landmarks.shape[0] <= GAZE_LANDMARK:
        return False
    x = float(landmarks[GAZE_LANDMARK, 0])
    return GAZE_BAND[0] < x < GAZE_BAND[1]


class SignalAggregator:
    """Rolling-window metric computation feeding a ``MetricsStore``.

    Frames can be pushed directly (``process_audio`` / ``process_face``)
    or pulled from a ``SensorContext`` by the ``run()`` tick loop.  The
    rolling buffers are only touched from those calls, which all run on
    the event-loop thread.
    """

    def __init__(
        self,
        store: MetricsStore,
        *,
        tick_hz: float | None = None,
        silence_threshold: float | None = None,
        loudness_floor: float | None = None,
    ):
        self.store = store
        self.tick_hz = tick_hz or settings.TICK_HZ
        self.silence_threshold = (
            settings.SILENCE_THRESHOLD if silence_threshold is None else silence_threshold
        )
        self.loudness_floor = (
            settings.LOUDNESS_FLOOR if loudness_floor is None else loudness_floor
        )

        self._loudness: deque[float] = deque(maxlen=LOUDNESS_WINDOW)
        self._speech: deque[tuple[float, bool]] = deque()
        self._speech_frames = 0
        self._gaze: deque[bool] = deque(maxlen=GAZE_WINDOW)

        self._context: SensorContext | None = None
        self._running = False

    # ── Lifecycle ─────────────────────────────────────────────────────────

    @property
    def running(self) -> bool:
        return self._running

    def start(self, context: SensorContext) -> None:
        """Take ownership of ``context`` and start from clean windows."""
        if self._context is not None and self._context is not context:
            self._context.close()
        self._clear_buffers()
        self.store.reset()
        self._context = context
        self._running = True
        logger.info(
            "[signals] Started (audio=%s, video=%s, %.0f Hz)",
            context.audio is not None,
            context.video is not None,
            self.tick_hz,
        )

    def stop(self) -> None:
        """Release capture resources and drop every rolling buffer."""
        self._running = False
        if self._context is not None:
            self._context.close()
            self._context = None
        self._clear_buffers()
        logger.info("[signals] Stopped")

    async def run(self, context: SensorContext | None = None) -> None:
        """Tick until ``stop()`` is called."""
        if context is not None:
            self.start(context)
        interval = 1.0 / self.tick_hz
        while self._running:
            self.tick()
            await asyncio.sleep(interval)

    def tick(self, now_ms: float | None = None) -> MetricsSnapshot:
        """Pull one frame from each available source and update metrics."""
        ctx = self._context
        if ctx is None:
            return self.store.current

        if ctx.audio is not None:
            try:
                sample = ctx.audio.read()
                if sample is not None:
                    self.process_audio(sample, now_ms)
            except Exception as e:  # noqa: BLE001 - keep last metrics
                logger.warning("[signals] Audio source failed, disabling: %s", e)
                ctx.disable_audio()

        if ctx.video is not None:
            try:
                frame = ctx.video.read()
                if frame is not None:
                    self.process_face(frame)
            except Exception as e:  # noqa: BLE001
                logger.warning("[signals] Landmark source failed, disabling: %s", e)
                ctx.disable_video()

        return self.store.current

    # ── Audio ─────────────────────────────────────────────────────────────

    def process_audio(self, spectrum, now_ms: float | None = None) -> MetricsSnapshot:
        """Consume one frequency-domain energy sample."""
        if now_ms is None:
            now_ms = time.monotonic() * 1000.0
        if self._speech and now_ms < self._speech[-1][0]:
            # Late frame: the window stays ordered by timestamp.
            now_ms = self._speech[-1][0]
        rms = loudness(spectrum)

        # Only readings above the floor count towards stability.
        if rms > self.loudness_floor:
            self._loudness.append(rms)

        is_speech = rms > self.silence_threshold
        self._speech.append((now_ms, is_speech))
        if is_speech:
            self._speech_frames += 1
        while self._speech and now_ms - self._speech[0][0] > SPEECH_WINDOW_MS:
            _, was_speech = self._speech.popleft()
            if was_speech:
                self._speech_frames -= 1

        return self._publish_audio_metrics()

    def _publish_audio_metrics(self) -> MetricsSnapshot:
        stability = 10.0
        if len(self._loudness) > MIN_STABILITY_READINGS:
            spread = float(np.std(np.fromiter(self._loudness, dtype=float)))
            stability = min(10.0, max(0.0, 10.0 - spread / 5.0))

        total = len(self._speech)
        speech_ratio = self._speech_frames / total if total else 0.0
        pause_ratio = (1.0 - speech_ratio) * 100.0

        # Project the words spoken in the window onto a full minute.
        active_seconds = self._speech_frames / self.tick_hz
        window_seconds = total / self.tick_hz
        wpm = (
            active_seconds * WORDS_PER_ACTIVE_SECOND * (60.0 / window_seconds)
            if window_seconds > 0
            else 0.0
        )

        return self.store.update(
            volume_stability=round(stability, 1),
            pause_ratio=round(pause_ratio, 1),
            speech_rate=int(round(wpm)),
        )

    # ── Video ─────────────────────────────────────────────────────────────

    def process_face(self, frame: FaceFrame | None) -> MetricsSnapshot:
        """Consume one face-detection result (``None`` means no face)."""
        if frame is None or not frame.has_face:
            current = self.store.current
            return self.store.update(
                eye_contact=0,
                confidence=max(0, current.confidence - NO_FACE_CONFIDENCE_PENALTY),
            )

        self._gaze.append(is_looking_at_camera(frame.landmarks))
        eye_contact = int(round(100.0 * sum(self._gaze) / len(self._gaze)))
        stability = self.store.current.volume_stability
        confidence = int(round(0.6 * eye_contact + 0.4 * stability * 10.0))
        return self.store.update(
            eye_contact=eye_contact,
            confidence=min(100, max(0, confidence)),
        )

    # ── Introspection (window bounds) ─────────────────────────────────────

    @property
    def loudness_window(self) -> tuple[float, ...]:
        return tuple(self._loudness)

    @property
    def gaze_window(self) -> tuple[bool, ...]:
        return tuple(self._gaze)

    @property
    def speech_window(self) -> tuple[tuple[float, bool], ...]:
        return tuple(self._speech)

    @property
    def speech_ratio(self) -> float:
        return self._speech_frames / len(self._speech) if self._speech else 0.0

    def _clear_buffers(self) -> None:
        self._loudness.clear()
        self._speech.clear()
        self._speech_frames = 0
        self._gaze.clear()
