"""Tiered trigger phrase search over recently finalized speech."""

from __future__ import annotations

import logging
from typing import Callable, Iterable, Optional, Sequence

from errors import MATCH_UNVERIFIED
from models import MatchTier, TriggerMatch, TriggerPhrase
from text_utils import normalize_words

logger = logging.getLogger(__name__)

MatchRule = Callable[[str, str], bool]
NamedRule = tuple[str, MatchRule]


def contains_phrase(text: str, phrase: str) -> bool:
    return phrase in text


def contains_word_sequence(text: str, phrase: str) -> bool:
    """All words of ``phrase`` occur in ``text`` in order, not necessarily adjacent.

    Greedy left to right: each phrase word takes the first matching word after
    the previous one, with no backtracking.
    """
    words = normalize_words(text, strip_punctuation=True)
    targets = [word for word in normalize_words(phrase, strip_punctuation=True) if word]
    if not targets:
        return False
    position = 0
    for target in targets:
        try:
            position = words.index(target, position) + 1
        except ValueError:
            return False
    return True


PRIORITY_RULES: tuple[NamedRule, ...] = (
    ("exact", contains_phrase),
    ("word_sequence", contains_word_sequence),
)
FALLBACK_RULES: tuple[NamedRule, ...] = (("exact", contains_phrase),)


class TriggerMatcher:
    """Finds the first configured phrase present in recent speech.

    The newest chunk (``combined_recent``) is searched first with every
    priority rule; only if no phrase matches there is the tail of the whole
    transcript (the recency window) searched with the fallback rules. Phrases
    are tried in configured order, so when two phrases overlap the one
    configured first wins. Whatever rule produced a candidate, the literal
    phrase must be present in one of the two texts or the candidate is
    dropped.
    """

    def __init__(
        self,
        recency_window_chars: int = 200,
        priority_rules: Optional[Sequence[NamedRule]] = None,
        fallback_rules: Optional[Sequence[NamedRule]] = None,
    ) -> None:
        if recency_window_chars <= 0:
            raise ValueError("recency_window_chars must be positive")
        self.recency_window_chars = recency_window_chars
        self._priority_rules = tuple(priority_rules or PRIORITY_RULES)
        self._fallback_rules = tuple(fallback_rules or FALLBACK_RULES)
        self.rejected_matches = 0

    def recency_window(self, stable_transcript: str, combined_recent: str) -> str:
        parts = (stable_transcript.strip().lower(), combined_recent.strip().lower())
        full = " ".join(part for part in parts if part)
        return full[-self.recency_window_chars:]

    def search(
        self,
        combined_recent: str,
        stable_transcript: str,
        phrases: Iterable[TriggerPhrase],
    ) -> Optional[TriggerMatch]:
        phrases = list(phrases)
        combined = combined_recent.strip().lower()
        window = self.recency_window(stable_transcript, combined)
        logger.debug("searching triggers: recent=%r window=%r", combined, window)

        candidate = self._first_match(combined, phrases, self._priority_rules, MatchTier.PRIORITY)
        if candidate is None:
            candidate = self._first_match(window, phrases, self._fallback_rules, MatchTier.FALLBACK)
        if candidate is None:
            return None

        if not self.verify(candidate.trigger.phrase, combined, window):
            self.rejected_matches += 1
            logger.warning(
                "%s: rule %r matched %r but the phrase is not in recent text %r",
                MATCH_UNVERIFIED,
                candidate.rule,
                candidate.trigger.phrase,
                combined,
            )
            return None
        return candidate

    @staticmethod
    def verify(phrase: str, combined_recent: str, window: str) -> bool:
        target = phrase.strip().lower()
        if not target:
            return False
        return target in combined_recent or target in window

    @staticmethod
    def _first_match(
        text: str,
        phrases: Sequence[TriggerPhrase],
        rules: Sequence[NamedRule],
        tier: MatchTier,
    ) -> Optional[TriggerMatch]:
        if not text:
            return None
        for trigger in phrases:
            target = trigger.phrase.strip().lower()
            if not target:
                continue
            for name, rule in rules:
                if rule(text, target):
                    logger.debug("%s match via %s: %r", tier.value, name, target)
                    return TriggerMatch(trigger=trigger, tier=tier, matched_text=text, rule=name)
        return None
