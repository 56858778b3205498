"""Tests for TonePlaybackService and the tone/WAV helpers."""

from __future__ import annotations

import wave
from pathlib import Path
from unittest.mock import MagicMock, patch

import numpy as np
import pytest

from errors import PLAYBACK_FAILED
from models import TriggerPhrase
from playback import TonePlaybackService, read_wav, synthesize_tone


def _write_wav(path: Path, frames: int = 800, channels: int = 1, width: int = 2) -> Path:
    with wave.open(str(path), "wb") as wf:
        wf.setnchannels(channels)
        wf.setsampwidth(width)
        wf.setframerate(8000)
        wf.writeframes(b"\x10\x00" * frames * channels * (width // 2 or 1))
    return path


# ---------------------------------------------------------------
# Tone synthesis
# ---------------------------------------------------------------

def test_tone_length_and_envelope() -> None:
    tone = synthesize_tone(440.0, duration_s=0.5, sample_rate=8000, fade_s=0.05)

    assert tone.dtype == np.float32
    assert tone.shape == (4000,)
    assert tone[0] == 0.0
    assert np.max(np.abs(tone)) <= 0.3 + 1e-6
    assert abs(tone[-1]) < 0.01


def test_tone_amplitude_reached_mid_signal() -> None:
    tone = synthesize_tone(500.0, duration_s=0.2, sample_rate=8000, amplitude=0.5)

    assert np.max(np.abs(tone)) > 0.45


# ---------------------------------------------------------------
# WAV loading
# ---------------------------------------------------------------

def test_read_wav(tmp_path: Path) -> None:
    data, rate = read_wav(_write_wav(tmp_path / "cue.wav", frames=400, channels=2))

    assert rate == 8000
    assert data.shape == (400, 2)
    assert data.dtype == np.int16


def test_read_wav_rejects_8_bit(tmp_path: Path) -> None:
    path = tmp_path / "cue.wav"
    with wave.open(str(path), "wb") as wf:
        wf.setnchannels(1)
        wf.setsampwidth(1)
        wf.setframerate(8000)
        wf.writeframes(b"\x80" * 100)

    with pytest.raises(ValueError, match="sample width"):
        read_wav(path)


# ---------------------------------------------------------------
# Playback service
# ---------------------------------------------------------------

def test_missing_dependencies_fail_cleanly(monkeypatch) -> None:  # noqa: ANN001
    import playback as playback_mod
    monkeypatch.setattr(playback_mod, "sd", None)

    result = TonePlaybackService().play(TriggerPhrase(id="a", phrase="hi"))

    assert result.success is False
    assert PLAYBACK_FAILED in result.reason


@patch("playback.sd")
def test_plays_tone_at_trigger_frequency(mock_sd: MagicMock) -> None:
    service = TonePlaybackService(sample_rate=8000, tone_duration_s=0.25)

    result = service.play(TriggerPhrase(id="a", phrase="good morning", tone_hz=523.0))

    assert result.success is True
    assert result.used_fallback is False
    data = mock_sd.play.call_args.args[0]
    assert data.shape == (2000,)
    assert mock_sd.play.call_args.kwargs["samplerate"] == 8000
    mock_sd.wait.assert_called_once()


@patch("playback.sd")
def test_plays_configured_wav(mock_sd: MagicMock, tmp_path: Path) -> None:
    path = _write_wav(tmp_path / "cue.wav")

    result = TonePlaybackService().play(
        TriggerPhrase(id="a", phrase="good morning", audio_path=str(path))
    )

    assert result.success is True
    assert result.used_fallback is False
    assert mock_sd.play.call_args.kwargs["samplerate"] == 8000


@patch("playback.sd")
def test_missing_wav_falls_back_to_tone(mock_sd: MagicMock, tmp_path: Path) -> None:
    result = TonePlaybackService(sample_rate=8000).play(
        TriggerPhrase(id="a", phrase="good morning", audio_path=str(tmp_path / "missing.wav"))
    )

    assert result.success is True
    assert result.used_fallback is True
    assert mock_sd.play.call_args.kwargs["samplerate"] == 8000


@patch("playback.sd")
def test_device_error_reported(mock_sd: MagicMock) -> None:
    mock_sd.play.side_effect = RuntimeError("no output device")

    result = TonePlaybackService().play(TriggerPhrase(id="a", phrase="hi"))

    assert result.success is False
    assert "no output device" in result.reason
