"""The active, ordered set of trigger phrases."""

from __future__ import annotations

import logging
import threading
import uuid
from typing import Iterable, Optional

from interfaces import TriggerStore
from models import TriggerPhrase
from text_utils import normalize_phrase

logger = logging.getLogger(__name__)

DEFAULT_TRIGGERS: tuple[tuple[str, float], ...] = (
    ("hello assistant", 440.0),
    ("good morning", 523.0),
    ("good afternoon", 587.0),
    ("good evening", 659.0),
    ("thank you", 698.0),
    ("how are you", 784.0),
)


def new_trigger_id() -> str:
    return uuid.uuid4().hex


class TriggerSet:
    """Ordered trigger phrases; earlier entries win when phrases overlap.

    Mutated from the UI thread and read from recognizer callbacks, so reads
    return an immutable snapshot.
    """

    def __init__(self, triggers: Iterable[TriggerPhrase] = ()) -> None:
        self._lock = threading.Lock()
        self._triggers: list[TriggerPhrase] = []
        self.replace_all(triggers)

    @classmethod
    def with_defaults(cls) -> "TriggerSet":
        triggers = cls()
        for phrase, tone_hz in DEFAULT_TRIGGERS:
            triggers.add(phrase, tone_hz=tone_hz, is_default=True)
        return triggers

    @classmethod
    def from_store(cls, store: TriggerStore) -> "TriggerSet":
        stored = store.load_triggers()
        if stored is None:
            logger.info("no saved triggers, using built-in defaults")
            return cls.with_defaults()
        try:
            triggers = cls(stored)
        except ValueError as exc:
            logger.warning("saved triggers are invalid (%s), using built-in defaults", exc)
            return cls.with_defaults()
        logger.info("loaded %d triggers", len(triggers))
        return triggers

    @property
    def phrases(self) -> tuple[TriggerPhrase, ...]:
        with self._lock:
            return tuple(self._triggers)

    def __len__(self) -> int:
        with self._lock:
            return len(self._triggers)

    def get(self, trigger_id: str) -> Optional[TriggerPhrase]:
        with self._lock:
            return next((t for t in self._triggers if t.id == trigger_id), None)

    def add(
        self,
        phrase: str,
        audio_path: Optional[str] = None,
        tone_hz: float = 440.0,
        is_default: bool = False,
    ) -> TriggerPhrase:
        normalized = normalize_phrase(phrase)
        if not normalized:
            raise ValueError("trigger phrase must not be empty")
        trigger = TriggerPhrase(
            id=new_trigger_id(),
            phrase=normalized,
            is_default=is_default,
            audio_path=audio_path,
            tone_hz=tone_hz,
        )
        with self._lock:
            self._triggers.append(trigger)
        logger.info("trigger added: %r", normalized)
        return trigger

    def remove(self, trigger_id: str) -> bool:
        with self._lock:
            before = len(self._triggers)
            self._triggers = [t for t in self._triggers if t.id != trigger_id]
            removed = len(self._triggers) != before
        if removed:
            logger.info("trigger removed: %s", trigger_id)
        return removed

    def replace_all(self, triggers: Iterable[TriggerPhrase]) -> None:
        cleaned: list[TriggerPhrase] = []
        seen: set[str] = set()
        for trigger in triggers:
            if trigger.id in seen:
                raise ValueError(f"duplicate trigger id: {trigger.id}")
            phrase = normalize_phrase(trigger.phrase)
            if not phrase:
                raise ValueError("trigger phrase must not be empty")
            seen.add(trigger.id)
            cleaned.append(
                TriggerPhrase(
                    id=trigger.id,
                    phrase=phrase,
                    is_default=trigger.is_default,
                    audio_path=trigger.audio_path,
                    tone_hz=trigger.tone_hz,
                )
            )
        with self._lock:
            self._triggers = cleaned

    def save(self, store: TriggerStore) -> None:
        store.save_triggers(list(self.phrases))
