"""Core data models for the app."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Union


class ListenState(str, Enum):
    IDLE = "IDLE"
    LISTENING = "LISTENING"
    AWAITING_PLAYBACK = "AWAITING_PLAYBACK"
    PLAYING = "PLAYING"


class PlatformMode(str, Enum):
    UNKNOWN = "unknown"
    CUMULATIVE = "cumulative"
    INCREMENTAL = "incremental"


class MatchTier(str, Enum):
    PRIORITY = "priority"
    FALLBACK = "fallback"


@dataclass
class AudioFrame:
    pcm16_bytes: bytes
    sample_rate: int = 16000
    channels: int = 1
    timestamp_ms: int = 0


@dataclass
class RecognitionSegment:
    text: str
    is_final: bool = False


@dataclass
class RecognitionEvent:
    """One recognizer callback: ``results[result_index:]`` is the changed range.

    ``base_index`` is the session-wide index of ``results[0]``; recognizers
    that drop finished segments advance it instead of resending history.
    """

    result_index: int
    results: list[RecognitionSegment] = field(default_factory=list)
    base_index: int = 0


@dataclass(frozen=True)
class TriggerPhrase:
    id: str
    phrase: str
    is_default: bool = False
    audio_path: Optional[str] = None
    tone_hz: float = 440.0


@dataclass
class IngestResult:
    final_segments: list[tuple[int, str]] = field(default_factory=list)
    interim_text: str = ""
    has_final_result: bool = False
    has_interim_result: bool = False

    @property
    def final_texts(self) -> list[str]:
        return [text for _, text in self.final_segments]


@dataclass(frozen=True)
class TriggerMatch:
    trigger: TriggerPhrase
    tier: MatchTier
    matched_text: str
    rule: str


@dataclass
class SessionState:
    stable_transcript: str = ""
    pending_final_buffer: str = ""
    platform_mode: PlatformMode = PlatformMode.UNKNOWN
    is_listening: bool = False
    is_playing: bool = False
    trigger_detected_in_session: bool = False
    detected_trigger: Optional[TriggerPhrase] = None
    last_speech_time: float = 0.0
    # Highest final segment index already reconciled; -1 before any.
    consumed_through: int = -1


# Events emitted by the engine


@dataclass(frozen=True)
class TranscriptUpdated:
    committed_text: str
    transcript: str


@dataclass(frozen=True)
class TranscriptCleared:
    reason: str


@dataclass(frozen=True)
class InterimUpdated:
    text: str


@dataclass(frozen=True)
class TriggerDetected:
    trigger: TriggerPhrase
    matched_text: str
    timestamp: float
    tier: MatchTier


@dataclass(frozen=True)
class PlaybackRequested:
    trigger: TriggerPhrase


EngineEvent = Union[
    TranscriptUpdated,
    TranscriptCleared,
    InterimUpdated,
    TriggerDetected,
    PlaybackRequested,
]


@dataclass
class PlaybackResult:
    success: bool
    reason: str
    used_fallback: bool = False
