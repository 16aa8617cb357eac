"""Speech plumbing — audio buffers, PCM decoding, and headless collaborators.

Real synthesis and playback live outside the engine.  What is here is
enough to run text-only sessions (``SilentSynthesizer``) and to pace a
session by the length of audio that a remote client plays itself
(``TimedPlayer``).
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass

import numpy as np


@dataclass(frozen=True)
class AudioBuffer:
    """Decoded audio: float32 samples shaped (frames, channels) in [-1, 1]."""

    samples: np.ndarray
    sample_rate: int

    @property
    def channels(self) -> int:
        return int(self.samples.shape[1]) if self.samples.ndim == 2 else 1

    @property
    def frames(self) -> int:
        return int(self.samples.shape[0])

    @property
    def duration(self) -> float:
        """Length in seconds."""
        return self.frames / self.sample_rate if self.sample_rate else 0.0


def decode_pcm16(data: bytes, sample_rate: int = 24000, channels: int = 1) -> AudioBuffer:
    """Decode raw signed 16-bit little-endian PCM (interleaved if multi-channel).

    Helper for external synthesizers whose TTS service returns raw PCM
    bytes; the collaborators shipped here never produce audio.  A
    trailing partial frame is dropped.
    """
    if channels < 1:
        raise ValueError("channels must be >= 1")
    frame_bytes = 2 * channels
    usable = len(data) - len(data) % frame_bytes
    pcm = np.frombuffer(data[:usable], dtype="<i2")
    samples = (pcm.astype(np.float32) / 32768.0).reshape(-1, channels)
    return AudioBuffer(samples=samples, sample_rate=sample_rate)


class SilentSynthesizer:
    """Text-only sessions: nothing is ever spoken."""

    async def synthesize(self, text: str) -> AudioBuffer | None:
        return None


class TimedPlayer:
    """Completes after the buffer's duration without touching any device."""

    def __init__(self, speed: float = 1.0):
        self.speed = speed

    async def play(self, buffer: AudioBuffer) -> None:
        await asyncio.sleep(buffer.duration / self.speed)
