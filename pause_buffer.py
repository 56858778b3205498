"""Coalesces bursts of final results into one transcript commit."""

from __future__ import annotations

import logging
from typing import Callable

from models import SessionState
from timers import Scheduler, TimerSlot

logger = logging.getLogger(__name__)


class PauseBuffer:
    """Holds final deltas until the recognizer has been quiet for the settle delay.

    Backends often emit several finals back to back; committing each one
    would flicker and may commit text that the next result extends. The
    settle timer is re-armed on every quiet event and cancelled by any
    interim result, so a burst ends up as a single commit.
    """

    def __init__(
        self,
        scheduler: Scheduler,
        on_settled: Callable[[int], None],
        settle_delay_ms: int = 300,
    ) -> None:
        self.slot = TimerSlot(scheduler, "settle")
        self.settle_delay_ms = settle_delay_ms
        self._on_settled = on_settled

    def add_final(self, state: SessionState, delta: str, now: float) -> None:
        if not delta:
            return
        state.pending_final_buffer += delta + " "
        state.last_speech_time = now

    def update(self, state: SessionState, has_interim_result: bool) -> None:
        if has_interim_result:
            self.slot.cancel()
        elif state.pending_final_buffer.strip():
            self.slot.schedule(self.settle_delay_ms / 1000.0, self._on_settled)

    def commit(self, state: SessionState) -> str:
        committed = state.pending_final_buffer.strip()
        state.pending_final_buffer = ""
        if committed:
            if state.stable_transcript:
                state.stable_transcript = f"{state.stable_transcript} {committed}"
            else:
                state.stable_transcript = committed
            logger.info("committed: %r", committed)
        return committed

    def discard(self, state: SessionState) -> None:
        self.slot.cancel()
        state.pending_final_buffer = ""
