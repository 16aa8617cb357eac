"""Tests for the signal aggregator: rolling windows and derived metrics."""

from __future__ import annotations

import asyncio

import numpy as np
import pytest

from interview_engine.models.state import MetricsSnapshot
from interview_engine.signals.aggregator import (
    GAZE_WINDOW,
    LOUDNESS_WINDOW,
    SPEECH_WINDOW_MS,
    SignalAggregator,
    is_looking_at_camera,
    loudness,
)
from interview_engine.signals.sensors import FaceFrame, SensorContext
from interview_engine.signals.store import MetricsStore

FRAME_MS = 1000.0 / 60.0
SPEECH = [20.0] * 8  # rms 20, above the silence threshold
QUIET = [10.0] * 8  # rms 10, above the floor but silent
NEAR_SILENT = [3.0] * 8  # rms 3, below the loudness floor


def _aggregator(store: MetricsStore | None = None) -> SignalAggregator:
    return SignalAggregator(
        store or MetricsStore(), tick_hz=60, silence_threshold=15, loudness_floor=5
    )


def _feed(agg: SignalAggregator, spectra, start_ms: float = 0.0) -> MetricsSnapshot:
    metrics = agg.store.current
    for i, spectrum in enumerate(spectra):
        metrics = agg.process_audio(spectrum, start_ms + i * FRAME_MS)
    return metrics


def _face(x: float) -> FaceFrame:
    return FaceFrame.from_points([[0.5, 0.2], [x, 0.5], [0.5, 0.8]])


class FakeSource:
    def __init__(self, sample=None, error: Exception | None = None):
        self.sample = sample
        self.error = error
        self.reads = 0
        self.closed = False

    def read(self):
        self.reads += 1
        if self.error is not None:
            raise self.error
        return self.sample

    def close(self) -> None:
        self.closed = True


class TestLoudness:
    def test_rms_of_spectrum(self):
        assert loudness([3.0, 4.0]) == pytest.approx(np.sqrt(12.5))

    def test_empty_spectrum_is_silent(self):
        assert loudness([]) == 0.0


class TestAudioMetrics:
    def test_all_silence(self):
        metrics = _feed(_aggregator(), [QUIET] * 300)
        assert metrics.pause_ratio == 100.0
        assert metrics.speech_rate == 0

    def test_all_speech(self):
        metrics = _feed(_aggregator(), [SPEECH] * 300)
        assert metrics.pause_ratio == 0.0
        assert metrics.speech_rate == 180

    def test_alternating_speech(self):
        metrics = _feed(_aggregator(), [SPEECH, QUIET] * 150)
        assert metrics.pause_ratio == 50.0
        assert metrics.speech_rate == 90

    def test_pause_ratio_complements_speech_ratio(self):
        agg = _aggregator()
        pattern = [SPEECH, QUIET, QUIET, SPEECH, SPEECH, QUIET, QUIET] * 20
        metrics = _feed(agg, pattern)
        assert metrics.pause_ratio + agg.speech_ratio * 100 == pytest.approx(100.0, abs=0.1)

    def test_speech_window_spans_at_most_five_seconds(self):
        agg = _aggregator()
        _feed(agg, [SPEECH] * 1000)
        window = agg.speech_window
        assert window[-1][0] - window[0][0] <= SPEECH_WINDOW_MS
        assert len(window) < 1000

    def test_old_speech_leaves_the_window(self):
        agg = _aggregator()
        _feed(agg, [SPEECH] * 300)
        metrics = _feed(agg, [QUIET] * 400, start_ms=300 * FRAME_MS)
        assert metrics.pause_ratio == 100.0
        assert metrics.speech_rate == 0

    def test_late_frames_keep_window_bounded(self):
        agg = _aggregator()
        for ts in (1000.0, 0.0, 5500.0):
            agg.process_audio(SPEECH, ts)
        stamps = [ts for ts, _ in agg.speech_window]
        assert stamps == sorted(stamps)
        assert stamps[-1] - stamps[0] <= SPEECH_WINDOW_MS

    def test_late_frames_are_evicted_with_the_window(self):
        agg = _aggregator()
        agg.process_audio(SPEECH, 1000.0)
        agg.process_audio(SPEECH, 0.0)
        metrics = agg.process_audio(QUIET, 7000.0)
        assert len(agg.speech_window) == 1
        assert metrics.pause_ratio == 100.0

    def test_loudness_window_is_bounded(self):
        agg = _aggregator()
        _feed(agg, [SPEECH] * 200)
        assert len(agg.loudness_window) == LOUDNESS_WINDOW

    def test_near_silence_skips_loudness_window(self):
        agg = _aggregator()
        _feed(agg, [NEAR_SILENT] * 20)
        assert agg.loudness_window == ()
        assert len(agg.speech_window) == 20

    def test_constant_loudness_is_fully_stable(self):
        metrics = _feed(_aggregator(), [SPEECH] * 20)
        assert metrics.volume_stability == 10.0

    def test_erratic_loudness_is_unstable(self):
        metrics = _feed(_aggregator(), [[20.0], [120.0]] * 10)
        assert metrics.volume_stability == 0.0

    def test_stability_needs_enough_readings(self):
        metrics = _feed(_aggregator(), [[20.0], [120.0]] * 3)
        assert metrics.volume_stability == 10.0


class TestFaceMetrics:
    def test_from_points_without_face(self):
        assert not FaceFrame.from_points(None).has_face
        assert not FaceFrame.from_points([]).has_face
        assert not FaceFrame.from_points([0.5, 0.5]).has_face
        assert not FaceFrame.from_points([[0.5]]).has_face

    def test_ragged_points_mean_no_face(self):
        assert not FaceFrame.from_points([[0.5, 0.5], [0.5]]).has_face
        assert not FaceFrame.from_points([["x", "y"], [0.5, 0.5]]).has_face

    def test_from_points_with_face(self):
        frame = FaceFrame.from_points([[0.1, 0.2], [0.5, 0.5]])
        assert frame.has_face
        assert frame.landmarks.shape == (2, 2)

    def test_gaze_band_is_exclusive(self):
        assert is_looking_at_camera(np.array([[0.0, 0.0], [0.5, 0.5]]))
        assert not is_looking_at_camera(np.array([[0.0, 0.0], [0.4, 0.5]]))
        assert not is_looking_at_camera(np.array([[0.0, 0.0], [0.6, 0.5]]))

    def test_missing_reference_landmark(self):
        assert not is_looking_at_camera(np.array([[0.5, 0.5]]))

    def test_eye_contact_and_confidence(self):
        agg = _aggregator()
        for x in (0.5, 0.5, 0.5, 0.9):
            metrics = agg.process_face(_face(x))
        assert metrics.eye_contact == 75
        # 0.6 * 75 + 0.4 * (10 stability * 10)
        assert metrics.confidence == 85

    def test_gaze_window_is_bounded(self):
        agg = _aggregator()
        for _ in range(100):
            agg.process_face(_face(0.9))
        for _ in range(GAZE_WINDOW):
            metrics = agg.process_face(_face(0.5))
        assert len(agg.gaze_window) == GAZE_WINDOW
        assert metrics.eye_contact == 100

    def test_no_face_decays_confidence(self):
        agg = _aggregator()
        metrics = agg.process_face(None)
        assert metrics.eye_contact == 0
        assert metrics.confidence == 95

        for _ in range(30):
            metrics = agg.process_face(FaceFrame())
        assert metrics.confidence == 0

    def test_no_face_leaves_audio_metrics_alone(self):
        agg = _aggregator()
        _feed(agg, [SPEECH] * 60)
        before = agg.store.current
        after = agg.process_face(None)
        assert after.speech_rate == before.speech_rate
        assert after.pause_ratio == before.pause_ratio


class TestLifecycle:
    def test_tick_without_context_returns_current(self):
        agg = _aggregator()
        assert agg.tick() == MetricsSnapshot()

    def test_tick_reads_available_sources(self):
        source = FakeSource(np.full(8, 20.0))
        agg = _aggregator()
        agg.start(SensorContext(audio=source))
        for i in range(5):
            agg.tick(now_ms=i * FRAME_MS)
        assert source.reads == 5
        assert len(agg.speech_window) == 5

    def test_failing_source_is_disabled(self):
        source = FakeSource(error=OSError("device unplugged"))
        ctx = SensorContext(audio=source)
        agg = _aggregator()
        agg.start(ctx)

        agg.tick()
        agg.tick()

        assert ctx.audio is None
        assert source.closed
        assert source.reads == 1
        assert agg.store.current == MetricsSnapshot()

    def test_unprocessable_sample_disables_only_that_source(self):
        audio = FakeSource(["loud", "quiet"])
        video = FakeSource(_face(0.5))
        ctx = SensorContext(audio=audio, video=video)
        agg = _aggregator()
        agg.start(ctx)

        metrics = agg.tick()
        metrics = agg.tick()

        assert ctx.audio is None
        assert audio.closed
        assert audio.reads == 1
        assert ctx.video is video
        assert video.reads == 2
        assert metrics.eye_contact == 100
        assert metrics.speech_rate == 0

    def test_run_survives_unprocessable_sample(self):
        audio = FakeSource(["loud", "quiet"])
        video = FakeSource(_face(0.9))
        agg = SignalAggregator(MetricsStore(), tick_hz=200)

        async def scenario():
            task = asyncio.create_task(agg.run(SensorContext(audio=audio, video=video)))
            await asyncio.sleep(0.05)
            assert not task.done()
            agg.stop()
            await asyncio.wait_for(task, timeout=1.0)

        asyncio.run(scenario())
        assert audio.reads == 1
        assert video.reads > 1
        assert agg.store.current.eye_contact == 0

    def test_stop_clears_windows_and_closes_context(self):
        source = FakeSource()
        ctx = SensorContext(audio=source)
        agg = _aggregator()
        agg.start(ctx)
        _feed(agg, [SPEECH] * 30)
        agg.process_face(_face(0.5))

        agg.stop()

        assert ctx.closed
        assert source.closed
        assert agg.loudness_window == ()
        assert agg.speech_window == ()
        assert agg.gaze_window == ()
        assert not agg.running

    def test_start_resets_store(self):
        store = MetricsStore()
        store.update(eye_contact=3, confidence=7)
        agg = _aggregator(store)
        agg.start(SensorContext())
        assert store.current == MetricsSnapshot()

    def test_restart_closes_previous_context(self):
        first, second = SensorContext(), SensorContext()
        agg = _aggregator()
        agg.start(first)
        agg.start(second)
        assert first.closed
        assert not second.closed

    def test_run_ticks_until_stopped(self):
        source = FakeSource(np.full(8, 20.0))
        agg = SignalAggregator(MetricsStore(), tick_hz=200, silence_threshold=15)

        async def scenario():
            task = asyncio.create_task(agg.run(SensorContext(audio=source)))
            await asyncio.sleep(0.05)
            agg.stop()
            await asyncio.wait_for(task, timeout=1.0)

        asyncio.run(scenario())
        assert source.reads > 0
        assert source.closed
