"""Tokenizing and normalization shared by reconciliation and matching."""

from __future__ import annotations

PUNCTUATION = ".,!?;:"

_STRIP_TABLE = str.maketrans("", "", PUNCTUATION)


def split_words(text: str) -> list[str]:
    """Whitespace tokens of ``text`` in their original casing."""
    return text.split()


def normalize_words(text: str, strip_punctuation: bool = False) -> list[str]:
    """Lowercase whitespace tokens, index-aligned with :func:`split_words`.

    With ``strip_punctuation`` the characters in :data:`PUNCTUATION` are
    removed from each token; tokens that become empty are kept so positions
    still line up with the original words.
    """
    words = [word.lower() for word in split_words(text)]
    if strip_punctuation:
        words = [word.translate(_STRIP_TABLE) for word in words]
    return words


def normalize_phrase(text: str) -> str:
    """Canonical form of a trigger phrase: lowercase, single spaces."""
    return " ".join(normalize_words(text))


def common_prefix_length(left: list[str], right: list[str]) -> int:
    count = 0
    for a, b in zip(left, right):
        if a != b:
            break
        count += 1
    return count
