"""Lexical diversity checks for prompts and competitor names."""

from __future__ import annotations

from collections.abc import Iterable


def _words(text: str) -> set[str]:
    return {word for word in text.lower().split() if len(word) > 2}


def word_overlap(first: str, second: str) -> float:
    """Jaccard overlap of the two word sets, as a percentage."""
    words_a = _words(first)
    words_b = _words(second)
    union = words_a | words_b
    if not union:
        return 0.0
    return len(words_a & words_b) / len(union) * 100


def is_diverse(candidate: str, pool: Iterable[str], threshold: float) -> bool:
    """Reject *candidate* when its overlap with any pool member exceeds ``100 - threshold``."""
    limit = 100 - threshold
    return all(word_overlap(candidate, existing) <= limit for existing in pool)


def competitor_similarity(first: str, second: str) -> float:
    a = first.lower()
    b = second.lower()
    if a == b:
        return 100.0
    if a in b or b in a:
        return 90.0
    return word_overlap(a, b)


def dedupe_competitors(
    names: Iterable[str],
    threshold: float = 70.0,
    limit: int = 10,
) -> list[str]:
    """Keep names whose similarity to every kept name is below *threshold*, up to *limit*."""
    kept: list[str] = []
    for name in names:
        if len(kept) >= limit:
            break
        if all(competitor_similarity(name, existing) < threshold for existing in kept):
            kept.append(name)
    return kept
