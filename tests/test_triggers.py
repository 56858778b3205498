from __future__ import annotations

from pathlib import Path

import pytest

from config import JsonConfigStore
from models import TriggerPhrase
from triggers import DEFAULT_TRIGGERS, TriggerSet


def test_defaults_in_order() -> None:
    triggers = TriggerSet.with_defaults()

    assert [t.phrase for t in triggers.phrases] == [p for p, _ in DEFAULT_TRIGGERS]
    assert all(t.is_default for t in triggers.phrases)
    assert triggers.phrases[1].tone_hz == 523.0


def test_add_normalizes_phrase() -> None:
    triggers = TriggerSet()

    trigger = triggers.add("  Open   SESAME ")

    assert trigger.phrase == "open sesame"
    assert triggers.get(trigger.id) == trigger
    assert len(triggers) == 1


def test_add_rejects_blank_phrase() -> None:
    with pytest.raises(ValueError):
        TriggerSet().add("   ")


def test_ids_are_unique() -> None:
    triggers = TriggerSet()
    a = triggers.add("one")
    b = triggers.add("one")

    assert a.id != b.id


def test_remove() -> None:
    triggers = TriggerSet()
    keep = triggers.add("keep me")
    drop = triggers.add("drop me")

    assert triggers.remove(drop.id) is True
    assert triggers.remove(drop.id) is False
    assert triggers.phrases == (keep,)


def test_replace_all_rejects_duplicate_ids() -> None:
    with pytest.raises(ValueError, match="duplicate"):
        TriggerSet([TriggerPhrase(id="a", phrase="x"), TriggerPhrase(id="a", phrase="y")])


def test_phrases_is_a_snapshot() -> None:
    triggers = TriggerSet()
    triggers.add("first")
    snapshot = triggers.phrases

    triggers.add("second")

    assert len(snapshot) == 1


def test_from_store_uses_defaults_when_nothing_saved(tmp_path: Path) -> None:
    store = JsonConfigStore(path=tmp_path / "config.json")

    assert len(TriggerSet.from_store(store)) == len(DEFAULT_TRIGGERS)


def test_from_store_keeps_empty_saved_list(tmp_path: Path) -> None:
    store = JsonConfigStore(path=tmp_path / "config.json")
    TriggerSet().save(store)

    assert len(TriggerSet.from_store(store)) == 0


def test_save_and_reload(tmp_path: Path) -> None:
    store = JsonConfigStore(path=tmp_path / "config.json")
    triggers = TriggerSet()
    triggers.add("good night", audio_path="/sounds/night.wav", tone_hz=330.0)
    triggers.save(store)

    reloaded = TriggerSet.from_store(store)
    assert reloaded.phrases == triggers.phrases


def test_from_store_falls_back_on_duplicates(tmp_path: Path) -> None:
    store = JsonConfigStore(path=tmp_path / "config.json")
    store.save_triggers([TriggerPhrase(id="a", phrase="x"), TriggerPhrase(id="a", phrase="y")])

    assert len(TriggerSet.from_store(store)) == len(DEFAULT_TRIGGERS)
