from __future__ import annotations

import pytest

from models import MatchTier, TriggerPhrase
from trigger_matcher import TriggerMatcher, contains_word_sequence


def _phrases(*texts: str) -> list[TriggerPhrase]:
    return [TriggerPhrase(id=str(i), phrase=t) for i, t in enumerate(texts)]


def test_exact_substring_in_recent_chunk_is_priority() -> None:
    matcher = TriggerMatcher()
    phrases = _phrases("hello assistant", "good morning")

    match = matcher.search("Hello there good morning", "", phrases)

    assert match is not None
    assert match.trigger.phrase == "good morning"
    assert match.tier == MatchTier.PRIORITY
    assert match.rule == "exact"
    assert match.matched_text == "hello there good morning"


def test_first_configured_phrase_wins_on_overlap() -> None:
    matcher = TriggerMatcher()

    match = matcher.search("good morning everyone", "", _phrases("morning", "good morning"))

    assert match is not None
    assert match.trigger.phrase == "morning"


def test_word_sequence_rule_ignores_punctuation() -> None:
    assert contains_word_sequence("well, thank you!", "thank you")
    assert contains_word_sequence("good, very good morning", "good morning")
    assert not contains_word_sequence("morning good", "good morning")
    assert not contains_word_sequence("thanks you", "thank you")


def test_word_sequence_match_is_dropped_by_guard_when_not_literal() -> None:
    matcher = TriggerMatcher()

    # Words are in order but the literal phrase is nowhere in the text.
    match = matcher.search("good and sunny morning", "", _phrases("good morning"))

    assert match is None
    assert matcher.rejected_matches == 1


def test_punctuated_phrase_passes_word_sequence_and_guard() -> None:
    matcher = TriggerMatcher()

    match = matcher.search("well, thank you.", "", _phrases("thank you"))

    assert match is not None
    assert match.rule == "exact"


def test_fallback_finds_phrase_split_across_chunks() -> None:
    matcher = TriggerMatcher()

    match = matcher.search("morning to you", "we said good", _phrases("good morning"))

    assert match is not None
    assert match.tier == MatchTier.FALLBACK
    assert "good morning" in match.matched_text


def test_fallback_window_only_looks_at_recent_characters() -> None:
    matcher = TriggerMatcher(recency_window_chars=20)
    stable = "good morning " + "x" * 50

    assert matcher.search("nothing here", stable, _phrases("good morning")) is None
    assert matcher.rejected_matches == 0


def test_forced_match_without_phrase_present_is_rejected() -> None:
    matcher = TriggerMatcher(priority_rules=[("always", lambda text, phrase: True)])

    match = matcher.search("completely unrelated words", "earlier text", _phrases("open sesame"))

    assert match is None
    assert matcher.rejected_matches == 1


def test_empty_phrases_never_match() -> None:
    matcher = TriggerMatcher()

    assert matcher.search("anything at all", "", _phrases("", "   ")) is None


def test_invalid_window_size() -> None:
    with pytest.raises(ValueError):
        TriggerMatcher(recency_window_chars=0)
