"""Tests for audio buffers, PCM decoding and the headless collaborators."""

from __future__ import annotations

import asyncio
import time

import numpy as np
import pytest

from interview_engine.agents.speech import (
    AudioBuffer,
    SilentSynthesizer,
    TimedPlayer,
    decode_pcm16,
)


class TestDecodePcm16:
    def test_mono(self):
        data = np.array([0, 16384, -32768], dtype="<i2").tobytes()
        buf = decode_pcm16(data)
        assert buf.sample_rate == 24000
        assert buf.channels == 1
        assert buf.frames == 3
        assert buf.samples[:, 0].tolist() == [0.0, 0.5, -1.0]

    def test_stereo_is_deinterleaved(self):
        data = np.array([100, -100, 200, -200], dtype="<i2").tobytes()
        buf = decode_pcm16(data, sample_rate=16000, channels=2)
        assert buf.samples.shape == (2, 2)
        assert buf.samples[1, 0] == pytest.approx(200 / 32768)
        assert buf.samples[1, 1] == pytest.approx(-200 / 32768)

    def test_trailing_partial_frame_dropped(self):
        data = np.zeros(3, dtype="<i2").tobytes() + b"\x01"
        buf = decode_pcm16(data, channels=1)
        assert buf.frames == 3

    def test_empty_input(self):
        buf = decode_pcm16(b"")
        assert buf.frames == 0
        assert buf.duration == 0.0

    def test_invalid_channel_count(self):
        with pytest.raises(ValueError, match="channels"):
            decode_pcm16(b"\x00\x00", channels=0)


def test_duration_from_frames_and_rate():
    buf = AudioBuffer(samples=np.zeros((12000, 1), dtype=np.float32), sample_rate=24000)
    assert buf.duration == 0.5


def test_silent_synthesizer_produces_nothing():
    assert asyncio.run(SilentSynthesizer().synthesize("Hello")) is None


def test_timed_player_waits_for_duration():
    buf = AudioBuffer(samples=np.zeros((2400, 1), dtype=np.float32), sample_rate=24000)
    started = time.perf_counter()
    asyncio.run(TimedPlayer(speed=2.0).play(buf))
    assert time.perf_counter() - started >= 0.04
