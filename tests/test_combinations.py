"""Tests for phrase tokenising, word-pair combinations and chunking."""

from __future__ import annotations

import pytest

from phrase_lexicon.core import (
    InvalidArgument,
    count_words,
    divide_into_chunks,
    make_combinations,
    tokenize,
)


def test_tokenize_collapses_whitespace_runs():
    assert tokenize("  light \t year\n") == ["light", "year"]
    assert count_words("  light \t year\n") == 2
    assert tokenize("") == []


@pytest.mark.parametrize("phrase", ["", "   ", "single"])
def test_make_combinations_needs_two_tokens(phrase):
    assert make_combinations(phrase) == []


def test_make_combinations_keeps_token_order():
    assert make_combinations("a b c") == ["a b", "a c", "b c"]


def test_make_combinations_keeps_duplicates_and_case():
    assert make_combinations("Blue blue sky") == ["Blue blue", "Blue sky", "blue sky"]
    assert make_combinations("a b a") == ["a b", "a a", "b a"]


@pytest.mark.parametrize("token_count", [2, 3, 5, 8, 12])
def test_make_combinations_count_is_n_choose_two(token_count):
    tokens = [f"w{index}" for index in range(token_count)]
    combinations = make_combinations(" ".join(tokens))

    assert len(combinations) == token_count * (token_count - 1) // 2
    pairs = [tuple(item.split(" ")) for item in combinations]
    positions = [(tokens.index(first), tokens.index(second)) for first, second in pairs]
    assert all(first < second for first, second in positions)
    assert len(set(positions)) == len(positions)
    assert positions == sorted(positions)


def test_divide_into_chunks_preserves_order_and_sizes():
    items = list(range(23))
    chunks = divide_into_chunks(items, 10)

    assert [len(chunk) for chunk in chunks] == [10, 10, 3]
    assert [value for chunk in chunks for value in chunk] == items


def test_divide_into_chunks_exact_multiple_and_empty():
    assert divide_into_chunks(["a", "b", "c", "d"], 2) == [["a", "b"], ["c", "d"]]
    assert divide_into_chunks([], 10) == []


@pytest.mark.parametrize("size", [0, -3, True, 2.5])
def test_divide_into_chunks_rejects_bad_sizes(size):
    with pytest.raises(InvalidArgument):
        divide_into_chunks([1, 2, 3], size)
