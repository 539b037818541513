"""
Tests for the near-duplicate similarity measures.

Run with: python -m pytest tests/test_similarity.py -v
"""
import sys
import os

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import pytest

from similarity import (
    combined_similarity,
    get_ngrams,
    has_comparable_content,
    jaccard_similarity,
    ngram_similarity,
    tokenize,
)

SAMPLES = [
    "Looking for freelance clients, I build custom websites fast and cheap",
    "hello world",
    "a",
    "  spaced    out   text ",
    "🔥🔥🔥",
    "",
]

PROMO = "Experienced web developer available, message me for affordable landing pages"
PROMO_MANGLED = "Experienced 🔥 web developer available!!! message me for affordable landing pages 🚀"


def test_identical_texts_score_one():
    for text in SAMPLES:
        assert combined_similarity(text, text) == pytest.approx(1.0)


def test_similarity_is_symmetric():
    for a in SAMPLES:
        for b in SAMPLES:
            assert combined_similarity(a, b) == combined_similarity(b, a)


def test_empty_inputs():
    assert combined_similarity("", "") == pytest.approx(1.0)
    assert combined_similarity("hello world", "") == 0.0
    assert combined_similarity("", "hello world") == 0.0
    for text in ("hi", "!!!", "🔥"):
        assert combined_similarity(text, "") == 0.0
        assert combined_similarity("", text) == 0.0


def test_comparable_content():
    assert has_comparable_content("hello") is True
    assert has_comparable_content("!!!") is True
    for text in ("", "ok", "hi", "🔥", "  a "):
        assert has_comparable_content(text) is False


def test_scores_stay_in_unit_range():
    for a in SAMPLES:
        for b in SAMPLES:
            assert 0.0 <= combined_similarity(a, b) <= 1.0


def test_tokenize_drops_punctuation_and_short_words():
    assert tokenize("Hi, I am a DEV!! react-native") == {"dev", "react", "native"}


def test_ngrams_collapse_whitespace():
    assert get_ngrams("  Ab   c ", 3) == {"ab ", "b c"}
    assert get_ngrams("ab", 3) == set()


def test_reordered_words_have_full_token_overlap():
    assert jaccard_similarity("buy cheap followers now", "now followers cheap buy") == 1.0
    assert ngram_similarity("buy cheap followers now", "now followers cheap buy") < 1.0


def test_disjoint_texts():
    assert jaccard_similarity("completely different words", "nothing shared here") == 0.0


def test_combined_weighting():
    a, b = "buy cheap followers now", "now followers cheap buy"
    expected = 0.6 * jaccard_similarity(a, b) + 0.4 * ngram_similarity(a, b)
    assert combined_similarity(a, b) == pytest.approx(expected)


def test_emoji_and_punctuation_insertions_still_match():
    assert jaccard_similarity(PROMO, PROMO_MANGLED) == 1.0
    assert combined_similarity(PROMO, PROMO_MANGLED) >= 0.7


def test_unrelated_messages_score_low():
    assert combined_similarity(PROMO, "does anyone know a good react tutorial?") < 0.3
