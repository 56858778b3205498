"""Overlay window for the live transcript and trigger notices."""

from __future__ import annotations

import html
from typing import Iterable

from models import TriggerPhrase
from text_utils import normalize_words, split_words

try:
    from PySide6.QtCore import Qt, QTimer
    from PySide6.QtWidgets import QApplication, QLabel, QWidget, QVBoxLayout
except Exception:  # pragma: no cover
    Qt = None  # type: ignore
    QTimer = None  # type: ignore
    QApplication = None  # type: ignore
    QLabel = object  # type: ignore
    QWidget = object  # type: ignore
    QVBoxLayout = object  # type: ignore

_BASE_STYLE = (
    "color: white; font-size: 18px; padding: 16px;"
    "background: rgba(0,0,0,190); border-radius: 12px;"
)
_ERROR_STYLE = (
    "color: #FF6B6B; font-size: 18px; padding: 16px;"
    "background: rgba(0,0,0,210); border-radius: 12px;"
)
_NOTICE_STYLE = (
    "color: #7CFC9A; font-size: 14px; padding: 8px 16px;"
    "background: rgba(0,0,0,190); border-radius: 8px;"
)


def highlight_trigger_words(transcript: str, triggers: Iterable[TriggerPhrase]) -> str:
    """Rich-text transcript with words that belong to a trigger phrase in bold."""
    trigger_words = {
        word
        for trigger in triggers
        for word in normalize_words(trigger.phrase, strip_punctuation=True)
        if word
    }
    parts = []
    for word, bare in zip(split_words(transcript), normalize_words(transcript, strip_punctuation=True)):
        escaped = html.escape(word)
        parts.append(f"<b>{escaped}</b>" if bare in trigger_words else escaped)
    return " ".join(parts)


class OverlayWindow(QWidget):
    def __init__(self) -> None:
        if Qt is None:
            raise RuntimeError("PySide6 is not installed")
        super().__init__()
        self.setWindowFlags(
            Qt.WindowStaysOnTopHint | Qt.FramelessWindowHint | Qt.Tool
        )
        self.setAttribute(Qt.WA_TranslucentBackground, True)
        self.setFixedWidth(600)

        self._label = QLabel("")
        self._label.setWordWrap(True)
        self._label.setTextFormat(Qt.RichText)
        self._label.setStyleSheet(_BASE_STYLE)

        self._notice = QLabel("")
        self._notice.setWordWrap(True)
        self._notice.setStyleSheet(_NOTICE_STYLE)
        self._notice.hide()

        layout = QVBoxLayout()
        layout.setContentsMargins(0, 0, 0, 0)
        layout.addWidget(self._label)
        layout.addWidget(self._notice)
        self.setLayout(layout)

        self._hide_timer: QTimer | None = None
        self._notice_timer: QTimer | None = None

    def _center_top(self) -> None:
        """Position the window at the top center of the primary screen."""
        if QApplication is None:
            return
        screen = QApplication.primaryScreen()
        if screen is None:
            return
        geom = screen.availableGeometry()
        self.adjustSize()
        x = geom.x() + (geom.width() - self.width()) // 2
        y = geom.y() + 40
        self.move(x, y)

    def set_text(self, text: str) -> None:
        self._cancel_hide_timer()
        self._label.setStyleSheet(_BASE_STYLE)
        self._label.setText(text)
        self._center_top()
        self.show()

    def set_transcript(
        self, transcript: str, triggers: Iterable[TriggerPhrase], interim: str = ""
    ) -> None:
        if not transcript and not interim:
            self.set_text("Listening...")
            return
        text = highlight_trigger_words(transcript, triggers)
        if interim:
            text = f"{text} <span style=\"color:#AAAAAA\">{html.escape(interim)}</span>".strip()
        self.set_text(text)

    def show_trigger(self, phrase: str, timestamp: str) -> None:
        self._notice.setText(f"{timestamp}  Trigger detected: “{html.escape(phrase)}”")
        self._notice.show()
        self._center_top()
        self.show()
        if QTimer is not None:
            if self._notice_timer is not None:
                self._notice_timer.stop()
            self._notice_timer = QTimer()
            self._notice_timer.setSingleShot(True)
            self._notice_timer.timeout.connect(self._notice.hide)
            self._notice_timer.start(4000)

    def hide_with_delay(self, delay_ms: int = 400) -> None:
        self._cancel_hide_timer()
        if QTimer is not None:
            self._hide_timer = QTimer()
            self._hide_timer.setSingleShot(True)
            self._hide_timer.timeout.connect(self.hide)
            self._hide_timer.start(delay_ms)

    def show_error(self, text: str, hide_after_ms: int = 2000) -> None:
        """Show an error message and auto-hide after given ms."""
        self.set_text(html.escape(text))
        self._label.setStyleSheet(_ERROR_STYLE)
        self.hide_with_delay(hide_after_ms)

    def _cancel_hide_timer(self) -> None:
        if self._hide_timer is not None:
            self._hide_timer.stop()
            self._hide_timer = None
