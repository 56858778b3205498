"""Holds a confirmed trigger until the speaker has really paused."""

from __future__ import annotations

import logging
from typing import Callable, Optional

from models import SessionState, TriggerPhrase
from timers import Scheduler, TimerSlot

logger = logging.getLogger(__name__)


class PauseGate:
    def __init__(
        self,
        scheduler: Scheduler,
        on_elapsed: Callable[[int], None],
        pause_duration_ms: int = 1500,
    ) -> None:
        self.slot = TimerSlot(scheduler, "pause")
        self.pause_duration_ms = pause_duration_ms
        self._on_elapsed = on_elapsed
        self.armed_trigger: Optional[TriggerPhrase] = None

    @property
    def is_armed(self) -> bool:
        return self.slot.is_pending

    def clear_text(self, state: SessionState) -> None:
        """Drop everything heard so far so the phrase cannot match again."""
        state.stable_transcript = ""
        state.pending_final_buffer = ""

    def arm(self, trigger: TriggerPhrase) -> None:
        self.armed_trigger = trigger
        self.slot.schedule(self.pause_duration_ms / 1000.0, self._on_elapsed)
        logger.info("waiting %d ms of silence for %r", self.pause_duration_ms, trigger.phrase)

    def interrupt(self) -> bool:
        """Speech resumed before the pause completed."""
        if not self.slot.cancel():
            return False
        logger.debug("pause interrupted for %r", self.armed_trigger and self.armed_trigger.phrase)
        self.armed_trigger = None
        return True

    def release(self, state: SessionState) -> Optional[TriggerPhrase]:
        """Pause completed (slot already claimed); returns the trigger to play, if any."""
        trigger = self.armed_trigger
        self.armed_trigger = None
        if trigger is None:
            return None
        if not state.is_listening or state.is_playing:
            logger.warning(
                "pause elapsed for %r but playback suppressed (listening=%s, playing=%s)",
                trigger.phrase,
                state.is_listening,
                state.is_playing,
            )
            return None
        state.trigger_detected_in_session = False
        state.detected_trigger = None
        return trigger
