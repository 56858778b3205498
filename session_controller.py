"""Wires recorder, recognizer, engine and playback into one listening session."""

from __future__ import annotations

import logging
import threading
from collections import deque
from queue import Queue
from typing import Callable, Optional

from config import EngineConfig
from engine import TranscriptEngine, TriggerSource
from errors import PERMISSION_DENIED, PLAYBACK_FAILED, RECOGNIZER_ERROR
from interfaces import PlaybackService, Recorder, RecognizerAdapter
from models import (
    AudioFrame,
    EngineEvent,
    InterimUpdated,
    ListenState,
    PlaybackRequested,
    PlaybackResult,
    RecognitionEvent,
    TranscriptCleared,
    TranscriptUpdated,
    TriggerDetected,
    TriggerPhrase,
)
from timers import Scheduler

logger = logging.getLogger(__name__)

StateCallback = Callable[[ListenState, ListenState], None]
TextCallback = Callable[[str], None]
TriggerCallback = Callable[[TriggerDetected], None]
ErrorCallback = Callable[[str, str], None]

TRIGGER_LOG_SIZE = 10


class SessionController:
    def __init__(
        self,
        recorder: Recorder,
        recognizer: RecognizerAdapter,
        playback: PlaybackService,
        triggers: TriggerSource,
        config: Optional[EngineConfig] = None,
        scheduler: Optional[Scheduler] = None,
        queue_maxsize: int = 50,
        max_recognizer_restarts: int = 3,
        on_state_change: Optional[StateCallback] = None,
        on_transcript: Optional[TextCallback] = None,
        on_partial: Optional[TextCallback] = None,
        on_trigger: Optional[TriggerCallback] = None,
        on_error: Optional[ErrorCallback] = None,
    ) -> None:
        self._recorder = recorder
        self._recognizer = recognizer
        self._playback = playback
        self._max_recognizer_restarts = max_recognizer_restarts
        self._on_state_change = on_state_change
        self._on_transcript = on_transcript
        self._on_partial = on_partial
        self._on_trigger = on_trigger
        self._on_error = on_error

        self._lock = threading.RLock()
        self._log_lock = threading.Lock()
        self._session_id = 0
        self._restarts = 0
        self._audio_queue: Queue[AudioFrame | None] = Queue(maxsize=queue_maxsize)
        self._trigger_log: deque[TriggerDetected] = deque(maxlen=TRIGGER_LOG_SIZE)
        self._playback_thread: Optional[threading.Thread] = None
        self._engine = TranscriptEngine(
            triggers,
            config=config,
            scheduler=scheduler,
            on_event=self._handle_engine_event,
            on_state_change=self._relay_state_change,
        )

    @property
    def state(self) -> ListenState:
        return self._engine.listen_state

    @property
    def engine(self) -> TranscriptEngine:
        return self._engine

    @property
    def transcript(self) -> str:
        return self._engine.transcript

    @property
    def trigger_log(self) -> list[TriggerDetected]:
        """Most recent detection first."""
        with self._log_lock:
            return list(self._trigger_log)

    def start_session(self) -> None:
        with self._lock:
            if self.state != ListenState.IDLE:
                return
            self._session_id += 1
            self._restarts = 0
            self._audio_queue = Queue(maxsize=self._audio_queue.maxsize)
            self._engine.start()
            try:
                self._recognizer.start(
                    self._audio_queue,
                    self._handle_recognition_event,
                    self._handle_recognizer_error,
                )
            except Exception as exc:
                self._fail(RECOGNIZER_ERROR, f"start failed: {exc}")
                return
            try:
                self._recorder.start(self._audio_queue)
            except Exception as exc:
                self._fail(PERMISSION_DENIED, f"microphone unavailable: {exc}")
                return
            logger.info("session %d started", self._session_id)

    def stop_session(self) -> None:
        with self._lock:
            if self.state == ListenState.IDLE:
                return
            self._engine.stop()
            self._safe_stop_recorder()
            self._safe_stop_recognizer()
            logger.info("session %d stopped", self._session_id)

    def toggle_session(self) -> None:
        with self._lock:
            if self.state == ListenState.IDLE:
                self.start_session()
            else:
                self.stop_session()

    def clear_transcript(self) -> None:
        with self._log_lock:
            self._trigger_log.clear()
        self._engine.clear()

    def set_pause_duration(self, pause_duration_ms: int) -> None:
        self._engine.set_pause_duration(pause_duration_ms)

    def replace_recognizer(self, recognizer: RecognizerAdapter) -> None:
        with self._lock:
            was_running = self.state != ListenState.IDLE
            if was_running:
                self.stop_session()
            self._recognizer = recognizer
            if was_running:
                self.start_session()

    def wait_for_playback(self, timeout: Optional[float] = None) -> None:
        thread = self._playback_thread
        if thread is not None:
            thread.join(timeout=timeout)

    # ------------------------------------------------------------------
    # Recognizer callbacks (recognizer threads)
    # ------------------------------------------------------------------

    def _handle_recognition_event(self, event: RecognitionEvent) -> None:
        self._engine.handle_event(event)

    def _handle_recognizer_error(self, code: str, message: str, retryable: bool) -> None:
        with self._lock:
            if self.state == ListenState.IDLE:
                return
            session_id = self._session_id
            logger.warning("recognizer error %s (retryable=%s): %s", code, retryable, message)
            self._emit_error(code, message)
            if not retryable or self._restarts >= self._max_recognizer_restarts:
                self._fail(code, message, report=False)
                return
            self._restarts += 1
        # stop() joins the recognizer worker, which may be the calling thread
        threading.Thread(
            target=self._restart_recognizer,
            args=(session_id,),
            daemon=True,
        ).start()

    def _restart_recognizer(self, session_id: int) -> None:
        with self._lock:
            if self.state == ListenState.IDLE or session_id != self._session_id:
                return
            logger.info("restarting recognizer (attempt %d)", self._restarts)
            self._safe_stop_recognizer()
            self._engine.reset_result_tracking()
            try:
                self._recognizer.start(
                    self._audio_queue,
                    self._handle_recognition_event,
                    self._handle_recognizer_error,
                )
            except Exception as exc:
                self._fail(RECOGNIZER_ERROR, f"restart failed: {exc}")

    # ------------------------------------------------------------------
    # Engine events (called with the engine lock held)
    # ------------------------------------------------------------------

    def _handle_engine_event(self, event: EngineEvent) -> None:
        if isinstance(event, TranscriptUpdated):
            if self._on_transcript:
                self._on_transcript(event.transcript)
        elif isinstance(event, TranscriptCleared):
            if self._on_transcript:
                self._on_transcript("")
        elif isinstance(event, InterimUpdated):
            if self._on_partial:
                self._on_partial(event.text)
        elif isinstance(event, TriggerDetected):
            with self._log_lock:
                self._trigger_log.appendleft(event)
            if self._on_trigger:
                self._on_trigger(event)
        elif isinstance(event, PlaybackRequested):
            self._begin_playback(event.trigger)

    def _begin_playback(self, trigger: TriggerPhrase) -> None:
        self._safe_pause_recorder()
        self._playback_thread = threading.Thread(
            target=self._run_playback,
            args=(trigger,),
            daemon=True,
        )
        self._playback_thread.start()

    def _run_playback(self, trigger: TriggerPhrase) -> None:
        try:
            result = self._safe_play(trigger)
            if not result.success:
                logger.warning("playback failed for %r: %s", trigger.phrase, result.reason)
                self._emit_error(PLAYBACK_FAILED, result.reason)
        finally:
            self._safe_resume_recorder()
            self._engine.playback_finished()

    def _safe_play(self, trigger: TriggerPhrase) -> PlaybackResult:
        try:
            return self._playback.play(trigger)
        except Exception as exc:
            return PlaybackResult(success=False, reason=str(exc))

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _relay_state_change(self, from_state: ListenState, to_state: ListenState) -> None:
        if self._on_state_change:
            self._on_state_change(from_state, to_state)

    def _fail(self, code: str, message: str, report: bool = True) -> None:
        if report:
            self._emit_error(code, message)
        self._engine.stop()
        self._safe_stop_recorder()
        self._safe_stop_recognizer()

    def _emit_error(self, code: str, message: str) -> None:
        if self._on_error:
            self._on_error(code, message)

    def _safe_stop_recorder(self) -> None:
        try:
            self._recorder.stop()
        except Exception:
            logger.exception("recorder stop failed")

    def _safe_pause_recorder(self) -> None:
        try:
            self._recorder.pause()
        except Exception:
            logger.exception("recorder pause failed")

    def _safe_resume_recorder(self) -> None:
        try:
            self._recorder.resume()
        except Exception:
            logger.exception("recorder resume failed")

    def _safe_stop_recognizer(self) -> None:
        try:
            self._recognizer.stop()
        except Exception:
            logger.exception("recognizer stop failed")
