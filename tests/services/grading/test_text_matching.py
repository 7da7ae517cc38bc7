from __future__ import annotations

import pytest

from app.services.grading.normalizer import normalize_text
from app.services.grading.similarity import calculate_similarity, levenshtein_distance


def test_normalize_trims_and_lowercases_by_default():
    assert normalize_text("  Paris ") == "paris"


def test_normalize_keeps_case_and_inner_spacing_unless_asked():
    assert normalize_text("New  York", case_sensitive=True) == "New  York"
    assert normalize_text("New  York", remove_whitespace=True) == "new york"


def test_normalize_strips_punctuation_after_collapsing():
    value = "  Hello,\t\tworld!  "
    assert normalize_text(value, remove_whitespace=True, remove_punctuation=True) == "hello world"


def test_normalize_keeps_unicode_word_characters():
    assert normalize_text("Café!", remove_punctuation=True) == "café"


@pytest.mark.parametrize("value", [None, 42, 4.2, ["a"], {"a": 1}, True])
def test_normalize_non_string_is_empty(value):
    assert normalize_text(value) == ""


def test_levenshtein_classic_examples():
    assert levenshtein_distance("kitten", "sitting") == 3
    assert levenshtein_distance("", "abc") == 3
    assert levenshtein_distance("abc", "abc") == 0


@pytest.mark.parametrize("text", ["", "a", "paris", "the quick brown fox"])
def test_similarity_of_identical_strings_is_one(text):
    assert calculate_similarity(text, text) == 1.0


@pytest.mark.parametrize(
    "a, b",
    [("abc", "abd"), ("flaw", "lawn"), ("colour", "color"), ("", "xyz")],
)
def test_similarity_is_symmetric(a, b):
    assert calculate_similarity(a, b) == calculate_similarity(b, a)


def test_similarity_reference_values():
    assert calculate_similarity("abc", "abd") == pytest.approx(0.667, abs=1e-3)
    assert calculate_similarity("", "") == 1.0
    assert calculate_similarity("", "abc") == 0.0
    assert calculate_similarity("colour", "color") == pytest.approx(5 / 6)
