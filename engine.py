"""Reconciles a live recognition stream and decides when a trigger should play.

One :class:`TranscriptEngine` owns one :class:`SessionState`. Recognition
events, timer expiries and commands all take the same lock and run to
completion, so the state is never mutated by two reactions at once even
though timers fire on their own threads.
"""

from __future__ import annotations

import dataclasses
import logging
import threading
import time
from typing import Callable, Optional, Protocol

from config import EngineConfig
from ingest import ingest_event
from models import (
    EngineEvent,
    InterimUpdated,
    ListenState,
    MatchTier,
    PlatformMode,
    PlaybackRequested,
    RecognitionEvent,
    SessionState,
    TranscriptCleared,
    TranscriptUpdated,
    TriggerDetected,
    TriggerPhrase,
)
from pause_buffer import PauseBuffer
from pause_gate import PauseGate
from reconciler import TranscriptReconciler
from timers import Scheduler, ThreadingScheduler
from trigger_matcher import TriggerMatcher

logger = logging.getLogger(__name__)

EventCallback = Callable[[EngineEvent], None]
StateCallback = Callable[[ListenState, ListenState], None]


class TriggerSource(Protocol):
    @property
    def phrases(self) -> tuple[TriggerPhrase, ...]: ...


class TranscriptEngine:
    def __init__(
        self,
        triggers: TriggerSource,
        config: Optional[EngineConfig] = None,
        scheduler: Optional[Scheduler] = None,
        clock: Callable[[], float] = time.time,
        matcher: Optional[TriggerMatcher] = None,
        on_event: Optional[EventCallback] = None,
        on_state_change: Optional[StateCallback] = None,
    ) -> None:
        self._config = config or EngineConfig()
        self._triggers = triggers
        self._scheduler = scheduler or ThreadingScheduler()
        self._clock = clock
        self._on_event = on_event
        self._on_state_change = on_state_change

        self._lock = threading.RLock()
        self._state = SessionState()
        self._listen_state = ListenState.IDLE
        self._reconciler = TranscriptReconciler()
        self._matcher = matcher or TriggerMatcher(
            recency_window_chars=self._config.recency_window_chars
        )
        self._buffer = PauseBuffer(
            self._scheduler, self._on_settle_expired, self._config.settle_delay_ms
        )
        self._gate = PauseGate(
            self._scheduler, self._on_pause_elapsed, self._config.pause_duration_ms
        )

    # ------------------------------------------------------------------
    # Read-only views
    # ------------------------------------------------------------------

    @property
    def listen_state(self) -> ListenState:
        with self._lock:
            return self._listen_state

    @property
    def state(self) -> SessionState:
        """A copy of the session record."""
        with self._lock:
            return dataclasses.replace(self._state)

    @property
    def transcript(self) -> str:
        with self._lock:
            return self._state.stable_transcript

    @property
    def platform_mode(self) -> PlatformMode:
        with self._lock:
            return self._state.platform_mode

    @property
    def pause_duration_ms(self) -> int:
        with self._lock:
            return self._gate.pause_duration_ms

    @property
    def rejected_matches(self) -> int:
        with self._lock:
            return self._matcher.rejected_matches

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def start(self) -> None:
        with self._lock:
            if self._state.is_listening:
                return
            self._state = SessionState(is_listening=True, last_speech_time=self._clock())
            logger.info("listening started")
            self._transition(ListenState.LISTENING)

    def stop(self) -> None:
        with self._lock:
            self._buffer.discard(self._state)
            self._gate.interrupt()
            self._state.is_listening = False
            self._state.is_playing = False
            if self._listen_state != ListenState.IDLE:
                logger.info("listening stopped")
            self._transition(ListenState.IDLE)

    def clear(self) -> None:
        with self._lock:
            self._buffer.discard(self._state)
            self._gate.interrupt()
            self._gate.clear_text(self._state)
            self._state.trigger_detected_in_session = False
            self._state.detected_trigger = None
            self._emit(TranscriptCleared(reason="clear"))
            if self._listen_state == ListenState.AWAITING_PLAYBACK:
                self._transition(ListenState.LISTENING)

    def playback_finished(self) -> None:
        with self._lock:
            if not self._state.is_playing:
                return
            self._state.is_playing = False
            self._buffer.discard(self._state)
            self._gate.clear_text(self._state)
            self._emit(TranscriptCleared(reason="playback"))
            if self._state.is_listening:
                self._transition(ListenState.LISTENING)
            else:
                self._transition(ListenState.IDLE)

    def reset_result_tracking(self) -> None:
        """The recognizer restarted its result list; indices begin at 0 again."""
        with self._lock:
            self._state.consumed_through = -1

    def set_pause_duration(self, pause_duration_ms: int) -> None:
        EngineConfig(pause_duration_ms=pause_duration_ms)
        with self._lock:
            self._gate.pause_duration_ms = pause_duration_ms
            logger.info("pause duration set to %d ms", pause_duration_ms)

    # ------------------------------------------------------------------
    # Recognition input
    # ------------------------------------------------------------------

    def handle_event(self, event: RecognitionEvent) -> None:
        with self._lock:
            state = self._state
            if not state.is_listening:
                logger.debug("ignoring recognition event while idle")
                return
            if state.is_playing:
                logger.debug("ignoring recognition event during playback")
                return

            ingest = ingest_event(event, state.consumed_through)
            if ingest.final_segments:
                state.consumed_through = max(index for index, _ in ingest.final_segments)

            final_delta = self._reconciler.final_delta(state, ingest.final_texts)
            self._buffer.add_final(state, final_delta, self._clock())

            if ingest.has_interim_result:
                if self._gate.interrupt():
                    logger.info("speech resumed, playback postponed")
                    self._transition(ListenState.LISTENING)
                interim = self._reconciler.interim_delta(state, ingest.interim_text)
                if interim:
                    self._emit(InterimUpdated(text=interim))

            self._buffer.update(state, ingest.has_interim_result)

            if ingest.has_final_result:
                self._check_triggers(ingest.has_interim_result)

    def _check_triggers(self, has_interim_result: bool) -> None:
        state = self._state
        # The pending buffer already holds this event's final delta.
        match = self._matcher.search(
            state.pending_final_buffer, state.stable_transcript, self._triggers.phrases
        )
        if match is None:
            state.trigger_detected_in_session = False
            state.detected_trigger = None
            return

        if match.tier == MatchTier.PRIORITY or not state.trigger_detected_in_session:
            state.trigger_detected_in_session = True
            state.detected_trigger = match.trigger
            logger.info(
                "trigger detected: %r (%s, %s)", match.trigger.phrase, match.tier.value, match.rule
            )
            self._emit(
                TriggerDetected(
                    trigger=match.trigger,
                    matched_text=match.matched_text,
                    timestamp=self._clock(),
                    tier=match.tier,
                )
            )

        self._buffer.discard(state)
        self._gate.clear_text(state)
        self._emit(TranscriptCleared(reason="trigger"))

        if has_interim_result:
            logger.debug("still speaking, waiting for a pause before %r", match.trigger.phrase)
            return
        self._gate.arm(match.trigger)
        self._transition(ListenState.AWAITING_PLAYBACK)

    # ------------------------------------------------------------------
    # Timer expiry
    # ------------------------------------------------------------------

    def _on_settle_expired(self, token: int) -> None:
        with self._lock:
            if not self._buffer.slot.claim(token):
                return
            committed = self._buffer.commit(self._state)
            if committed:
                self._emit(
                    TranscriptUpdated(
                        committed_text=committed, transcript=self._state.stable_transcript
                    )
                )

    def _on_pause_elapsed(self, token: int) -> None:
        with self._lock:
            if not self._gate.slot.claim(token):
                return
            trigger = self._gate.release(self._state)
            if trigger is None:
                if self._listen_state == ListenState.AWAITING_PLAYBACK:
                    self._transition(ListenState.LISTENING)
                return
            self._state.is_playing = True
            logger.info("pause complete, requesting playback for %r", trigger.phrase)
            self._transition(ListenState.PLAYING)
            self._emit(PlaybackRequested(trigger=trigger))

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _emit(self, event: EngineEvent) -> None:
        if self._on_event is None:
            return
        try:
            self._on_event(event)
        except Exception:
            logger.exception("event listener failed for %s", type(event).__name__)

    def _transition(self, to_state: ListenState) -> None:
        from_state = self._listen_state
        if from_state == to_state:
            return
        self._listen_state = to_state
        if self._on_state_change:
            try:
                self._on_state_change(from_state, to_state)
            except Exception:
                logger.exception("state listener failed")
