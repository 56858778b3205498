"""Protocol interfaces for the collaborators around the engine."""

from __future__ import annotations

from queue import Queue
from typing import Callable, Optional, Protocol

from models import AudioFrame, PlaybackResult, RecognitionEvent, TriggerPhrase

RecognizerErrorCallback = Callable[[str, str, bool], None]


class Recorder(Protocol):
    def start(self, audio_queue: Queue[AudioFrame | None]) -> None: ...

    def stop(self) -> None: ...

    def pause(self) -> None: ...

    def resume(self) -> None: ...


class RecognizerAdapter(Protocol):
    def start(
        self,
        audio_queue: Queue[AudioFrame | None],
        on_event: Callable[[RecognitionEvent], None],
        on_error: RecognizerErrorCallback,
    ) -> None: ...

    def stop(self) -> None: ...


class PlaybackService(Protocol):
    def play(self, trigger: TriggerPhrase) -> PlaybackResult: ...


class TriggerStore(Protocol):
    def load_triggers(self) -> Optional[list[TriggerPhrase]]: ...

    def save_triggers(self, triggers: list[TriggerPhrase]) -> None: ...
