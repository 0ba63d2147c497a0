"""Lexical normalization and similarity for cache keys.

Every cache in the package is keyed on ``normalize(text)``. ``similarity``
is a plain Jaccard index over word sets: no stemming, no synonyms. It backs
the semantic embedding cache, so two short queries that share most of their
words (e.g. "dl380 specs" / "dl380 specs?") will score as identical.
"""

import re
from typing import Set

# Punctuation and symbols become word separators; "_" counts as punctuation
_PUNCT_PATTERN = re.compile(r"[^\w\s]|_", re.UNICODE)


def normalize(text: str) -> str:
    """Lowercase and trim."""
    return (text or "").lower().strip()


def token_set(text: str) -> Set[str]:
    """Normalize, strip punctuation/symbols and split into a set of words."""
    cleaned = _PUNCT_PATTERN.sub(" ", normalize(text))
    return {word for word in cleaned.split() if word}


def similarity(a: str, b: str) -> float:
    """Jaccard index of the word sets of ``a`` and ``b``.

    Returns:
        Value in [0, 1]; 0.0 if either side has no words.
    """
    words_a = token_set(a)
    words_b = token_set(b)
    if not words_a or not words_b:
        return 0.0

    intersection = len(words_a & words_b)
    union = len(words_a | words_b)
    return intersection / union if union > 0 else 0.0
