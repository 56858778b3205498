"""Platform mode detection and new-text-only delta extraction.

Recognition backends disagree on what a final result contains. Cumulative
backends restate the whole utterance every time, incremental ones only send
what is new. The first final result that arrives while a stable transcript
already exists decides which kind we are talking to; after that the mode is
latched for the session and every segment is reduced to its new part.
"""

from __future__ import annotations

import logging
from typing import Iterable

from models import PlatformMode, SessionState
from text_utils import common_prefix_length, normalize_words, split_words

logger = logging.getLogger(__name__)


def detect_platform_mode(current: str, incoming: str) -> PlatformMode:
    current_words = normalize_words(current)
    incoming_words = normalize_words(incoming)
    is_longer = len(incoming_words) > len(current_words)
    is_prefix = (
        bool(current_words)
        and common_prefix_length(current_words, incoming_words) == len(current_words)
    )
    mode = PlatformMode.CUMULATIVE if is_longer and is_prefix else PlatformMode.INCREMENTAL
    logger.debug(
        "mode check: current=%d words, incoming=%d words, prefix=%s -> %s",
        len(current_words),
        len(incoming_words),
        is_prefix,
        mode.value,
    )
    return mode


def extract_delta(mode: PlatformMode, current: str, incoming: str) -> str:
    """Return the part of ``incoming`` that is new relative to ``current``."""
    incoming = incoming.strip()
    current = current.strip()
    if not incoming:
        return ""

    if mode == PlatformMode.CUMULATIVE and current:
        k = common_prefix_length(normalize_words(current), normalize_words(incoming))
        return " ".join(split_words(incoming)[k:])

    current_lower = current.lower()
    if current_lower and incoming.lower().startswith(current_lower):
        return incoming[len(current):].strip()
    return incoming


class TranscriptReconciler:
    """Latches ``state.platform_mode`` and reduces raw segments to deltas."""

    def observe_final(self, state: SessionState, incoming: str) -> None:
        if state.platform_mode != PlatformMode.UNKNOWN:
            return
        if not state.stable_transcript.strip():
            return
        state.platform_mode = detect_platform_mode(state.stable_transcript, incoming)
        logger.info("platform mode latched: %s", state.platform_mode.value)

    def final_delta(self, state: SessionState, final_texts: Iterable[str]) -> str:
        deltas: list[str] = []
        for text in final_texts:
            self.observe_final(state, text)
            delta = extract_delta(state.platform_mode, state.stable_transcript, text)
            if delta:
                deltas.append(delta)
            else:
                logger.debug("final segment added nothing new: %r", text)
        return " ".join(deltas)

    def interim_delta(self, state: SessionState, interim_text: str) -> str:
        return extract_delta(state.platform_mode, state.stable_transcript, interim_text)
