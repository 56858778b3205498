"""Engine settings and the JSON-based config store."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path

from models import TriggerPhrase

logger = logging.getLogger(__name__)

DEFAULT_PAUSE_DURATION_MS = 1500
DEFAULT_SETTLE_DELAY_MS = 300
DEFAULT_RECENCY_WINDOW_CHARS = 200


@dataclass
class EngineConfig:
    pause_duration_ms: int = DEFAULT_PAUSE_DURATION_MS
    settle_delay_ms: int = DEFAULT_SETTLE_DELAY_MS
    # Measured in characters of lowercased transcript, not words.
    recency_window_chars: int = DEFAULT_RECENCY_WINDOW_CHARS

    def __post_init__(self) -> None:
        for name in ("pause_duration_ms", "settle_delay_ms", "recency_window_chars"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
                raise ValueError(f"{name} must be a positive integer, got {value!r}")


class JsonConfigStore:
    def __init__(self, path: Path | None = None) -> None:
        self._path = path or Path.home() / ".config" / "phrase_cue" / "config.json"
        self._path.parent.mkdir(parents=True, exist_ok=True)

    def get_api_key(self) -> str:
        data = self._read_all()
        return str(data.get("api_key", ""))

    def set_api_key(self, key: str) -> None:
        data = self._read_all()
        data["api_key"] = key
        self._write_all(data)

    def get_hotkey(self) -> str:
        data = self._read_all()
        return str(data.get("hotkey", "Key.f8"))

    def set_hotkey(self, hotkey: str) -> None:
        data = self._read_all()
        data["hotkey"] = hotkey
        self._write_all(data)

    def get_clear_hotkey(self) -> str:
        data = self._read_all()
        return str(data.get("clear_hotkey", "Key.f9"))

    def get_engine_config(self) -> EngineConfig:
        data = self._read_all()
        try:
            return EngineConfig(
                pause_duration_ms=int(data.get("pause_duration_ms", DEFAULT_PAUSE_DURATION_MS)),
                settle_delay_ms=int(data.get("settle_delay_ms", DEFAULT_SETTLE_DELAY_MS)),
                recency_window_chars=int(
                    data.get("recency_window_chars", DEFAULT_RECENCY_WINDOW_CHARS)
                ),
            )
        except (TypeError, ValueError) as exc:
            logger.warning("ignoring invalid engine settings in %s: %s", self._path, exc)
            return EngineConfig()

    def set_pause_duration_ms(self, value: int) -> None:
        EngineConfig(pause_duration_ms=value)
        data = self._read_all()
        data["pause_duration_ms"] = value
        self._write_all(data)

    def load_triggers(self) -> list[TriggerPhrase] | None:
        """Stored trigger phrases, or ``None`` when nothing was ever saved."""
        data = self._read_all()
        raw = data.get("triggers")
        if not isinstance(raw, list):
            return None
        triggers: list[TriggerPhrase] = []
        for item in raw:
            if not isinstance(item, dict) or not item.get("id") or not item.get("phrase"):
                logger.warning("skipping malformed trigger entry: %r", item)
                continue
            try:
                tone_hz = float(item.get("tone_hz", 440.0))
            except (TypeError, ValueError):
                tone_hz = 440.0
            triggers.append(
                TriggerPhrase(
                    id=str(item["id"]),
                    phrase=str(item["phrase"]),
                    is_default=bool(item.get("is_default", False)),
                    audio_path=item.get("audio_path") or None,
                    tone_hz=tone_hz,
                )
            )
        return triggers

    def save_triggers(self, triggers: list[TriggerPhrase]) -> None:
        data = self._read_all()
        data["triggers"] = [
            {
                "id": t.id,
                "phrase": t.phrase,
                "is_default": t.is_default,
                "audio_path": t.audio_path,
                "tone_hz": t.tone_hz,
            }
            for t in triggers
        ]
        self._write_all(data)

    def _read_all(self) -> dict:
        if not self._path.exists():
            return {}
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, OSError):
            return {}
        return data if isinstance(data, dict) else {}

    def _write_all(self, data: dict) -> None:
        self._path.write_text(json.dumps(data, ensure_ascii=False, indent=2), encoding="utf-8")
