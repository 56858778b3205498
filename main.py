"""Application entrypoint."""

from __future__ import annotations

import logging
import sys
import time

from config import JsonConfigStore
from errors import ERROR_MESSAGES, INVALID_CONFIG
from hotkey import GlobalHotkeyAdapter
from models import ListenState, TriggerDetected
from overlay import OverlayWindow
from playback import TonePlaybackService
from recognizer import DashscopeRecognizerAdapter
from recorder import SoundDeviceRecorder
from session_controller import SessionController
from triggers import TriggerSet

try:
    from PySide6.QtCore import QObject, Signal, QSize
    from PySide6.QtGui import QAction, QIcon, QPixmap, QPainter, QColor, QBrush
    from PySide6.QtWidgets import QApplication, QInputDialog, QMenu, QMessageBox, QSystemTrayIcon
except Exception as exc:  # pragma: no cover
    raise SystemExit(f"PySide6 is required to run the desktop app: {exc}")

logger = logging.getLogger(__name__)


def _create_icon(color: str = "#888888", size: int = 22) -> QIcon:
    """Generate a simple circular tray icon with the given color."""
    pixmap = QPixmap(QSize(size, size))
    pixmap.fill(QColor(0, 0, 0, 0))
    painter = QPainter(pixmap)
    painter.setRenderHint(QPainter.Antialiasing, True)
    painter.setBrush(QBrush(QColor(color)))
    painter.setPen(QColor(color))
    painter.drawEllipse(2, 2, size - 4, size - 4)
    painter.end()
    return QIcon(pixmap)


ICON_IDLE = "#888888"       # grey
ICON_LISTENING = "#FF4444"  # red
ICON_WAITING = "#FFCC00"    # yellow
ICON_PLAYING = "#33AA55"    # green
ICON_ERROR = "#FF8800"      # orange

STATE_STYLE = {
    ListenState.IDLE.value: (ICON_IDLE, "Ready"),
    ListenState.LISTENING.value: (ICON_LISTENING, "Listening..."),
    ListenState.AWAITING_PLAYBACK.value: (ICON_WAITING, "Waiting for pause..."),
    ListenState.PLAYING.value: (ICON_PLAYING, "Playing cue..."),
}


class UIBridge(QObject):
    transcript_signal = Signal(str)
    partial_signal = Signal(str)
    trigger_signal = Signal(str, str)  # phrase, time of day
    error_signal = Signal(str, str)  # code, detail
    state_signal = Signal(str, str)  # from_state, to_state


class App:
    def __init__(self) -> None:
        self.app = QApplication(sys.argv)
        self.app.setQuitOnLastWindowClosed(False)
        self.config_store = JsonConfigStore()
        self.triggers = TriggerSet.from_store(self.config_store)
        self.overlay = OverlayWindow()
        self._committed = ""
        self.ui = UIBridge()
        self.ui.transcript_signal.connect(self._on_transcript_ui)
        self.ui.partial_signal.connect(self._on_partial_ui)
        self.ui.trigger_signal.connect(self._on_trigger_ui)
        self.ui.error_signal.connect(self._on_error_ui)
        self.ui.state_signal.connect(self._on_state_change_ui)

        self.controller = SessionController(
            recorder=SoundDeviceRecorder(),
            recognizer=DashscopeRecognizerAdapter(api_key=self.config_store.get_api_key()),
            playback=TonePlaybackService(),
            triggers=self.triggers,
            config=self.config_store.get_engine_config(),
            on_state_change=self._on_state_change,
            on_transcript=self._on_transcript,
            on_partial=self._on_partial,
            on_trigger=self._on_trigger,
            on_error=self._on_error,
        )
        self.hotkey = GlobalHotkeyAdapter(
            {
                self.config_store.get_hotkey(): self.controller.toggle_session,
                self.config_store.get_clear_hotkey(): self.controller.clear_transcript,
            }
        )

        self.tray = QSystemTrayIcon()
        self.tray.setIcon(_create_icon(ICON_IDLE))
        self.tray.setToolTip("Phrase Cue: Ready")
        self._setup_menu()
        self.tray.show()

    def _setup_menu(self) -> None:
        menu = QMenu()

        self._toggle_action = QAction("Start Listening", menu)
        self._toggle_action.triggered.connect(self.controller.toggle_session)
        menu.addAction(self._toggle_action)

        clear_action = QAction("Clear Transcript", menu)
        clear_action.triggered.connect(self.controller.clear_transcript)
        menu.addAction(clear_action)

        menu.addSeparator()

        add_action = QAction("Add Trigger Phrase", menu)
        add_action.triggered.connect(self._add_trigger)
        menu.addAction(add_action)

        remove_action = QAction("Remove Trigger Phrase", menu)
        remove_action.triggered.connect(self._remove_trigger)
        menu.addAction(remove_action)

        pause_action = QAction("Set Pause Duration", menu)
        pause_action.triggered.connect(self._set_pause_duration)
        menu.addAction(pause_action)

        api_action = QAction("Set API Key", menu)
        api_action.triggered.connect(self._set_api_key)
        menu.addAction(api_action)

        menu.addSeparator()
        quit_action = QAction("Quit", menu)
        quit_action.triggered.connect(self.quit)
        menu.addAction(quit_action)

        self.tray.setContextMenu(menu)

    def _add_trigger(self) -> None:
        phrase, ok = QInputDialog.getText(None, "Trigger Phrase", "Phrase to listen for")
        if not ok or not phrase.strip():
            return
        audio_path, _ = QInputDialog.getText(
            None, "Cue Sound", "Optional path to a WAV file (leave empty for a tone)"
        )
        try:
            trigger = self.triggers.add(phrase, audio_path=audio_path.strip() or None)
        except ValueError as exc:
            QMessageBox.warning(None, "Invalid phrase", f"{ERROR_MESSAGES[INVALID_CONFIG]} {exc}")
            return
        self.triggers.save(self.config_store)
        QMessageBox.information(None, "Saved", f"Listening for “{trigger.phrase}”.")

    def _remove_trigger(self) -> None:
        phrases = self.triggers.phrases
        if not phrases:
            QMessageBox.information(None, "Triggers", "No trigger phrases configured.")
            return
        labels = [t.phrase for t in phrases]
        label, ok = QInputDialog.getItem(None, "Remove Trigger", "Phrase", labels, 0, False)
        if not ok:
            return
        trigger = phrases[labels.index(label)]
        self.triggers.remove(trigger.id)
        self.triggers.save(self.config_store)

    def _set_pause_duration(self) -> None:
        value, ok = QInputDialog.getInt(
            None,
            "Pause Duration",
            "Silence before the cue plays (ms)",
            self.controller.engine.pause_duration_ms,
            100,
            10000,
            100,
        )
        if not ok:
            return
        self.controller.set_pause_duration(value)
        self.config_store.set_pause_duration_ms(value)

    def _set_api_key(self) -> None:
        value, ok = QInputDialog.getText(None, "API Key", "DashScope API Key")
        if not ok:
            return
        self.config_store.set_api_key(value)
        # Hot-swap recognizer with new key
        self.controller.replace_recognizer(DashscopeRecognizerAdapter(api_key=value))
        QMessageBox.information(None, "Saved", "API Key saved and applied.")

    # ------------------------------------------------------------------
    # Callbacks (called from worker threads → emit signals for UI thread)
    # ------------------------------------------------------------------

    def _on_state_change(self, from_state: ListenState, to_state: ListenState) -> None:
        self.ui.state_signal.emit(from_state.value, to_state.value)

    def _on_transcript(self, text: str) -> None:
        self.ui.transcript_signal.emit(text)

    def _on_partial(self, text: str) -> None:
        self.ui.partial_signal.emit(text)

    def _on_trigger(self, event: TriggerDetected) -> None:
        stamp = time.strftime("%H:%M:%S", time.localtime(event.timestamp))
        self.ui.trigger_signal.emit(event.trigger.phrase, stamp)

    def _on_error(self, code: str, message: str) -> None:
        self.ui.error_signal.emit(code, message)

    # ------------------------------------------------------------------
    # UI thread handlers (safe for Qt)
    # ------------------------------------------------------------------

    def _on_transcript_ui(self, text: str) -> None:
        if self.controller.state == ListenState.IDLE:
            return
        self._committed = text
        self.overlay.set_transcript(text, self.triggers.phrases)

    def _on_partial_ui(self, text: str) -> None:
        if self.controller.state == ListenState.IDLE:
            return
        self.overlay.set_transcript(self._committed, self.triggers.phrases, interim=text)

    def _on_trigger_ui(self, phrase: str, stamp: str) -> None:
        self.overlay.show_trigger(phrase, stamp)

    def _on_error_ui(self, code: str, detail: str) -> None:
        logger.warning("%s: %s", code, detail)
        self.overlay.show_error(ERROR_MESSAGES.get(code, detail))
        self.tray.setIcon(_create_icon(ICON_ERROR))

    def _on_state_change_ui(self, from_state: str, to_state: str) -> None:
        color, label = STATE_STYLE.get(to_state, (ICON_ERROR, to_state))
        self.tray.setIcon(_create_icon(color))
        self.tray.setToolTip(f"Phrase Cue: {label}")
        if to_state == ListenState.IDLE.value:
            self._toggle_action.setText("Start Listening")
            self.overlay.hide_with_delay(400)
        else:
            self._toggle_action.setText("Stop Listening")
            if from_state == ListenState.IDLE.value:
                self.overlay.set_transcript("", ())

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def run(self) -> int:
        try:
            self.hotkey.start()
        except Exception as exc:
            self.overlay.show_error(f"Hotkeys disabled: {exc}")
        return self.app.exec()

    def quit(self) -> None:
        self.hotkey.stop()
        self.controller.stop_session()
        self.triggers.save(self.config_store)
        self.app.quit()


def main() -> int:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    app = App()
    return app.run()


if __name__ == "__main__":
    raise SystemExit(main())
