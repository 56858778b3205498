"""Plays the cue associated with a trigger phrase."""

from __future__ import annotations

import logging
import wave
from pathlib import Path
from typing import Any

from errors import PLAYBACK_FAILED
from models import PlaybackResult, TriggerPhrase

try:
    import numpy as np
except Exception:  # pragma: no cover
    np = None  # type: ignore

try:
    import sounddevice as sd
except Exception:  # pragma: no cover
    sd = None  # type: ignore

logger = logging.getLogger(__name__)


def synthesize_tone(
    frequency_hz: float,
    duration_s: float = 0.5,
    sample_rate: int = 44100,
    fade_s: float = 0.05,
    amplitude: float = 0.3,
) -> Any:
    """Sine cue with linear fade in/out to avoid clicks, float32 mono."""
    if np is None:
        raise RuntimeError("numpy is not installed")
    n_samples = int(sample_rate * duration_s)
    index = np.arange(n_samples)
    fade_samples = max(sample_rate * fade_s, 1.0)
    fade_in = np.minimum(1.0, index / fade_samples)
    fade_out = np.minimum(1.0, (n_samples - index) / fade_samples)
    wave_data = np.sin(2 * np.pi * frequency_hz * index / sample_rate)
    return (wave_data * fade_in * fade_out * amplitude).astype(np.float32)


def read_wav(path: Path) -> tuple[Any, int]:
    """Load a 16-bit PCM WAV file as an int16 array shaped (frames, channels)."""
    if np is None:
        raise RuntimeError("numpy is not installed")
    with wave.open(str(path), "rb") as wf:
        if wf.getsampwidth() != 2:
            raise ValueError(f"unsupported sample width {wf.getsampwidth()} in {path}")
        channels = wf.getnchannels()
        sample_rate = wf.getframerate()
        raw = wf.readframes(wf.getnframes())
    data = np.frombuffer(raw, dtype=np.int16).reshape(-1, channels)
    return data, sample_rate


class TonePlaybackService:
    def __init__(self, sample_rate: int = 44100, tone_duration_s: float = 0.5) -> None:
        self._sample_rate = sample_rate
        self._tone_duration_s = tone_duration_s

    def play(self, trigger: TriggerPhrase) -> PlaybackResult:
        if sd is None or np is None:
            return PlaybackResult(
                success=False,
                reason=f"{PLAYBACK_FAILED}: sounddevice/numpy dependency missing",
            )

        if trigger.audio_path:
            try:
                data, sample_rate = read_wav(Path(trigger.audio_path))
                self._play_blocking(data, sample_rate)
                return PlaybackResult(success=True, reason="ok")
            except Exception as exc:
                logger.warning(
                    "could not play %s for %r, using tone: %s",
                    trigger.audio_path,
                    trigger.phrase,
                    exc,
                )

        try:
            tone = synthesize_tone(
                trigger.tone_hz, self._tone_duration_s, sample_rate=self._sample_rate
            )
            self._play_blocking(tone, self._sample_rate)
        except Exception as exc:
            return PlaybackResult(success=False, reason=f"{PLAYBACK_FAILED}: {exc}")
        return PlaybackResult(
            success=True,
            reason="ok",
            used_fallback=bool(trigger.audio_path),
        )

    def _play_blocking(self, data: Any, sample_rate: int) -> None:
        sd.play(data, samplerate=sample_rate)
        sd.wait()
