"""
Sentinel - Text Similarity
Token-set (Jaccard) and character n-gram overlap for near-duplicate detection.
"""

import re
from typing import Set

JACCARD_WEIGHT = 0.6
NGRAM_WEIGHT = 0.4

_NON_WORD = re.compile(r'[^\w\s]')
_WHITESPACE = re.compile(r'\s+')


def _set_similarity(a: Set[str], b: Set[str]) -> float:
    if not a and not b:
        return 1.0
    if not a or not b:
        return 0.0
    return len(a & b) / len(a | b)


def tokenize(text: str) -> Set[str]:
    """Lower-cased word set, punctuation stripped, tokens of 2 chars or less dropped."""
    cleaned = _NON_WORD.sub(' ', text.lower())
    return {word for word in cleaned.split() if len(word) > 2}


def get_ngrams(text: str, n: int = 3) -> Set[str]:
    cleaned = _WHITESPACE.sub(' ', text.lower()).strip()
    return {cleaned[i:i + n] for i in range(len(cleaned) - n + 1)}


def jaccard_similarity(text1: str, text2: str) -> float:
    """Word-level overlap, 0 (disjoint) to 1 (identical sets)."""
    return _set_similarity(tokenize(text1), tokenize(text2))


def ngram_similarity(text1: str, text2: str, n: int = 3) -> float:
    """Character-level overlap; survives punctuation and spacing tricks."""
    return _set_similarity(get_ngrams(text1, n), get_ngrams(text2, n))


def has_comparable_content(text: str) -> bool:
    """False for text with no tokens and no n-grams (e.g. "ok", a lone emoji)."""
    return bool(tokenize(text) or get_ngrams(text))


def combined_similarity(text1: str, text2: str) -> float:
    """Weighted blend: 60% word-level, 40% character-level."""
    if not text1 and not text2:
        return 1.0
    if not text1 or not text2:
        return 0.0
    jaccard = jaccard_similarity(text1, text2)
    ngram = ngram_similarity(text1, text2)
    return jaccard * JACCARD_WEIGHT + ngram * NGRAM_WEIGHT
