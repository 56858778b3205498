"""Continuous recognizer adapter using DashScope realtime ASR.

Audio frames from the recorder queue are streamed to
``dashscope.audio.asr.Recognition``. Each sentence update coming back becomes
one event in the result-list shape browser speech APIs use: a finished
sentence is a final segment, the sentence still being spoken is an interim
segment, and ``base_index`` places the segment within the session.
"""

from __future__ import annotations

import logging
import os
import threading
from queue import Empty, Queue
from typing import Any, Callable, Optional

from errors import AUTH_FAILED, NETWORK_ERROR, RECOGNIZER_ERROR
from interfaces import RecognizerErrorCallback
from models import AudioFrame, RecognitionEvent, RecognitionSegment

try:
    import dashscope
    from dashscope.audio.asr import Recognition, RecognitionCallback, RecognitionResult
except Exception:  # pragma: no cover
    dashscope = None  # type: ignore
    Recognition = None  # type: ignore
    RecognitionCallback = object  # type: ignore
    RecognitionResult = None  # type: ignore

logger = logging.getLogger(__name__)


class SentenceTracker:
    """Turns sentence updates into result-list events.

    Each event carries only the sentence that changed. Finished sentences
    are not kept; ``base_index`` counts them so segment indices keep
    increasing for the whole session.
    """

    def __init__(self) -> None:
        self._finished = 0
        self._lock = threading.Lock()

    @property
    def finished(self) -> int:
        return self._finished

    def update(self, text: str, is_final: bool) -> RecognitionEvent:
        with self._lock:
            event = RecognitionEvent(
                result_index=0,
                results=[RecognitionSegment(text=text, is_final=is_final)],
                base_index=self._finished,
            )
            if is_final:
                self._finished += 1
            return event

    def reset(self) -> None:
        with self._lock:
            self._finished = 0


def _is_sentence_end(sentence: dict) -> bool:
    if RecognitionResult is not None:
        return bool(RecognitionResult.is_sentence_end(sentence))
    return bool(sentence.get("sentence_end"))


def classify_error(message: str) -> tuple[str, bool]:
    """Map an SDK/network error message to ``(code, retryable)``."""
    low = message.lower()
    if "401" in low or "auth" in low or "api key" in low or "apikey" in low:
        return AUTH_FAILED, False
    if "timeout" in low or "network" in low or "connection" in low:
        return NETWORK_ERROR, True
    return RECOGNIZER_ERROR, True


class _StreamCallback(RecognitionCallback):  # type: ignore[misc]
    def __init__(self, adapter: "DashscopeRecognizerAdapter") -> None:
        super().__init__()
        self._adapter = adapter

    def on_open(self) -> None:
        logger.debug("recognition stream open")

    def on_close(self) -> None:
        logger.debug("recognition stream closed")

    def on_complete(self) -> None:
        logger.debug("recognition stream complete")

    def on_error(self, result: Any) -> None:
        self._adapter._report_error(str(getattr(result, "message", result)))

    def on_event(self, result: Any) -> None:
        sentence = result.get_sentence()
        if not isinstance(sentence, dict):
            return
        self._adapter._on_sentence(str(sentence.get("text", "")), _is_sentence_end(sentence))


class DashscopeRecognizerAdapter:
    def __init__(
        self,
        api_key: str,
        model: str = "paraformer-realtime-v2",
        sample_rate: int = 16000,
    ) -> None:
        self._api_key = api_key
        self._model = model
        self._sample_rate = sample_rate
        self._thread: Optional[threading.Thread] = None
        self._stop_event = threading.Event()
        self._tracker = SentenceTracker()
        self._audio_queue: Optional[Queue[AudioFrame | None]] = None
        self._on_event: Optional[Callable[[RecognitionEvent], None]] = None
        self._on_error: Optional[RecognizerErrorCallback] = None

    def start(
        self,
        audio_queue: Queue[AudioFrame | None],
        on_event: Callable[[RecognitionEvent], None],
        on_error: RecognizerErrorCallback,
    ) -> None:
        if self._thread and self._thread.is_alive():
            return
        self._audio_queue = audio_queue
        self._on_event = on_event
        self._on_error = on_error
        self._tracker.reset()
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._worker, daemon=True)
        self._thread.start()

    def stop(self) -> None:
        self._stop_event.set()
        thread = self._thread
        if thread and thread.is_alive() and thread is not threading.current_thread():
            thread.join(timeout=1.0)

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _worker(self) -> None:
        """Stream audio frames until the sentinel or stop()."""
        if self._audio_queue is None:
            return
        if Recognition is None or dashscope is None:
            self._emit_error(RECOGNIZER_ERROR, "dashscope is not installed", False)
            return

        api_key = self._api_key or os.getenv("DASHSCOPE_API_KEY", "")
        if not api_key:
            self._emit_error(AUTH_FAILED, "No API key configured", False)
            return
        dashscope.api_key = api_key

        recognition = Recognition(
            model=self._model,
            format="pcm",
            sample_rate=self._sample_rate,
            callback=_StreamCallback(self),
        )
        try:
            recognition.start()
        except Exception as exc:
            self._report_error(str(exc))
            return

        try:
            while not self._stop_event.is_set():
                try:
                    frame = self._audio_queue.get(timeout=0.2)
                except Empty:
                    continue
                if frame is None:  # Sentinel
                    break
                recognition.send_audio_frame(frame.pcm16_bytes)
        except Exception as exc:
            self._report_error(str(exc))
        finally:
            try:
                recognition.stop()
            except Exception as exc:
                logger.debug("recognition stop raised: %s", exc)

    def _on_sentence(self, text: str, is_final: bool) -> None:
        if self._stop_event.is_set() or self._on_event is None:
            return
        if not text.strip():
            return
        self._on_event(self._tracker.update(text, is_final))

    def _report_error(self, message: str) -> None:
        if self._stop_event.is_set():
            return
        code, retryable = classify_error(message)
        self._emit_error(code, message, retryable)

    def _emit_error(self, code: str, message: str, retryable: bool) -> None:
        logger.warning("recognizer %s: %s", code, message)
        if self._on_error is not None:
            self._on_error(code, message, retryable)
