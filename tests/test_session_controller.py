from __future__ import annotations

import threading
from queue import Queue
from typing import Optional

from errors import (
    AUTH_FAILED,
    NETWORK_ERROR,
    PERMISSION_DENIED,
    PLAYBACK_FAILED,
    RECOGNIZER_ERROR,
)
from models import (
    AudioFrame,
    ListenState,
    PlaybackResult,
    RecognitionEvent,
    RecognitionSegment,
    TriggerDetected,
    TriggerPhrase,
)
from session_controller import SessionController
from timers import ManualScheduler
from triggers import TriggerSet


class FakeRecorder:
    def __init__(self) -> None:
        self.started = False
        self.stopped = False
        self.calls: list[str] = []
        self.queue: Queue[AudioFrame | None] | None = None

    def start(self, audio_queue: Queue[AudioFrame | None]) -> None:
        self.started = True
        self.queue = audio_queue

    def stop(self) -> None:
        self.stopped = True

    def pause(self) -> None:
        self.calls.append("pause")

    def resume(self) -> None:
        self.calls.append("resume")


class FakeRecognizer:
    def __init__(self, fail_on_start: bool = False) -> None:
        self.on_event = None
        self.on_error = None
        self.start_count = 0
        self.stopped = False
        self.fail_on_start = fail_on_start
        self.restarted = threading.Event()

    def start(self, audio_queue, on_event, on_error) -> None:  # noqa: ANN001
        if self.fail_on_start:
            raise RuntimeError("no microphone permission")
        self.start_count += 1
        self.on_event = on_event
        self.on_error = on_error
        if self.start_count > 1:
            self.restarted.set()

    def stop(self) -> None:
        self.stopped = True

    def final(self, text: str, index: int = 0) -> None:
        assert self.on_event is not None
        results = [RecognitionSegment("earlier", True)] * index + [RecognitionSegment(text, True)]
        self.on_event(RecognitionEvent(result_index=index, results=results))

    def fail(self, code: str, message: str, retryable: bool) -> None:
        assert self.on_error is not None
        self.on_error(code, message, retryable)


class FakePlayback:
    def __init__(self, result: Optional[PlaybackResult] = None, raises: bool = False) -> None:
        self.result = result or PlaybackResult(success=True, reason="ok")
        self.raises = raises
        self.played: list[TriggerPhrase] = []

    def play(self, trigger: TriggerPhrase) -> PlaybackResult:
        self.played.append(trigger)
        if self.raises:
            raise OSError("device busy")
        return self.result


class Rig:
    def __init__(
        self,
        recognizer: Optional[FakeRecognizer] = None,
        recorder: Optional[FakeRecorder] = None,
        playback: Optional[FakePlayback] = None,
        max_recognizer_restarts: int = 3,
    ) -> None:
        self.scheduler = ManualScheduler()
        self.recorder = recorder or FakeRecorder()
        self.recognizer = recognizer or FakeRecognizer()
        self.playback = playback or FakePlayback()
        self.triggers = TriggerSet()
        self.triggers.add("good morning")
        self.states: list[tuple[ListenState, ListenState]] = []
        self.transcripts: list[str] = []
        self.detections: list[TriggerDetected] = []
        self.errors: list[tuple[str, str]] = []
        self.controller = SessionController(
            recorder=self.recorder,
            recognizer=self.recognizer,
            playback=self.playback,
            triggers=self.triggers,
            scheduler=self.scheduler,
            max_recognizer_restarts=max_recognizer_restarts,
            on_state_change=lambda f, t: self.states.append((f, t)),
            on_transcript=self.transcripts.append,
            on_trigger=self.detections.append,
            on_error=lambda code, msg: self.errors.append((code, msg)),
        )


def test_start_and_stop_session() -> None:
    rig = Rig()

    rig.controller.start_session()
    assert rig.controller.state == ListenState.LISTENING
    assert rig.recorder.started
    assert rig.recognizer.start_count == 1

    rig.controller.stop_session()
    assert rig.controller.state == ListenState.IDLE
    assert rig.recorder.stopped
    assert rig.recognizer.stopped
    assert rig.states == [
        (ListenState.IDLE, ListenState.LISTENING),
        (ListenState.LISTENING, ListenState.IDLE),
    ]


def test_toggle_session() -> None:
    rig = Rig()

    rig.controller.toggle_session()
    assert rig.controller.state == ListenState.LISTENING
    rig.controller.toggle_session()
    assert rig.controller.state == ListenState.IDLE


def test_transcript_is_relayed_after_settle() -> None:
    rig = Rig()
    rig.controller.start_session()

    rig.recognizer.final("hello there")
    rig.scheduler.advance(0.35)

    assert rig.transcripts == ["hello there"]
    assert rig.controller.transcript == "hello there"


def test_trigger_pause_and_playback() -> None:
    rig = Rig()
    rig.controller.start_session()

    rig.recognizer.final("well good morning")
    assert rig.controller.state == ListenState.AWAITING_PLAYBACK
    assert [d.trigger.phrase for d in rig.detections] == ["good morning"]
    assert rig.controller.trigger_log == rig.detections

    rig.scheduler.advance(1.6)
    rig.controller.wait_for_playback(timeout=2.0)

    assert [t.phrase for t in rig.playback.played] == ["good morning"]
    assert rig.recorder.calls == ["pause", "resume"]
    assert rig.controller.state == ListenState.LISTENING
    assert (ListenState.AWAITING_PLAYBACK, ListenState.PLAYING) in rig.states
    assert rig.errors == []


def test_failed_playback_reports_and_recovers() -> None:
    rig = Rig(playback=FakePlayback(PlaybackResult(success=False, reason="no output device")))
    rig.controller.start_session()

    rig.recognizer.final("good morning")
    rig.scheduler.advance(1.6)
    rig.controller.wait_for_playback(timeout=2.0)

    assert rig.errors == [(PLAYBACK_FAILED, "no output device")]
    assert rig.controller.state == ListenState.LISTENING
    assert rig.recorder.calls == ["pause", "resume"]


def test_playback_exception_is_contained() -> None:
    rig = Rig(playback=FakePlayback(raises=True))
    rig.controller.start_session()

    rig.recognizer.final("good morning")
    rig.scheduler.advance(1.6)
    rig.controller.wait_for_playback(timeout=2.0)

    assert rig.errors == [(PLAYBACK_FAILED, "device busy")]
    assert rig.controller.state == ListenState.LISTENING


def test_trigger_log_is_bounded_and_newest_first() -> None:
    rig = Rig()
    rig.controller.start_session()

    for index in range(12):
        rig.recognizer.final(f"number {index} good morning", index=index)
        rig.controller.engine.clear()

    log = rig.controller.trigger_log
    assert len(log) == 10
    assert log[0].matched_text.startswith("number 11")


def test_clear_transcript_empties_log() -> None:
    rig = Rig()
    rig.controller.start_session()
    rig.recognizer.final("good morning")

    rig.controller.clear_transcript()

    assert rig.controller.trigger_log == []
    assert rig.controller.state == ListenState.LISTENING
    assert rig.transcripts[-1] == ""


def test_start_failure_reports_and_returns_to_idle() -> None:
    rig = Rig(recognizer=FakeRecognizer(fail_on_start=True))

    rig.controller.start_session()

    assert rig.controller.state == ListenState.IDLE
    assert rig.errors[0][0] == RECOGNIZER_ERROR
    assert "no microphone permission" in rig.errors[0][1]


class _DeniedRecorder(FakeRecorder):
    def start(self, audio_queue: Queue[AudioFrame | None]) -> None:
        raise OSError("input device busy")


def test_microphone_failure_reports_permission_error() -> None:
    rig = Rig(recorder=_DeniedRecorder())

    rig.controller.start_session()

    assert rig.errors[0][0] == PERMISSION_DENIED
    assert rig.controller.state == ListenState.IDLE
    assert rig.recognizer.stopped


def test_fatal_recognizer_error_stops_session() -> None:
    rig = Rig()
    rig.controller.start_session()

    rig.recognizer.fail(AUTH_FAILED, "bad key", False)

    assert rig.errors == [(AUTH_FAILED, "bad key")]
    assert rig.controller.state == ListenState.IDLE
    assert rig.recorder.stopped


def test_retryable_recognizer_error_restarts() -> None:
    rig = Rig()
    rig.controller.start_session()

    rig.recognizer.fail(NETWORK_ERROR, "connection reset", True)

    assert rig.recognizer.restarted.wait(timeout=2.0)
    assert rig.recognizer.start_count == 2
    assert rig.controller.state == ListenState.LISTENING
    assert rig.errors == [(NETWORK_ERROR, "connection reset")]


def test_restart_budget_exhausted() -> None:
    rig = Rig(max_recognizer_restarts=0)
    rig.controller.start_session()

    rig.recognizer.fail(NETWORK_ERROR, "connection reset", True)

    assert rig.controller.state == ListenState.IDLE
    assert rig.recognizer.start_count == 1


def test_errors_while_idle_are_ignored() -> None:
    rig = Rig()
    rig.controller.start_session()
    rig.controller.stop_session()

    rig.recognizer.fail(NETWORK_ERROR, "late error", True)

    assert rig.errors == []


def test_replace_recognizer_restarts_running_session() -> None:
    rig = Rig()
    rig.controller.start_session()
    replacement = FakeRecognizer()

    rig.controller.replace_recognizer(replacement)

    assert rig.recognizer.stopped
    assert replacement.start_count == 1
    assert rig.controller.state == ListenState.LISTENING


def test_set_pause_duration_applies_to_engine() -> None:
    rig = Rig()
    rig.controller.set_pause_duration(700)
    rig.controller.start_session()

    rig.recognizer.final("good morning")
    rig.scheduler.advance(0.75)
    rig.controller.wait_for_playback(timeout=2.0)

    assert len(rig.playback.played) == 1
