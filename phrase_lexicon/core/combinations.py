"""Tokenising phrases into word-pair index keys and shaping them into batches."""

from __future__ import annotations

from typing import List, Sequence, TypeVar

from .errors import InvalidArgument

T = TypeVar("T")

# Maximum number of values the store accepts in one "any-of" or "not-in" filter.
MAX_QUERY_VALUES = 10


def tokenize(phrase: str) -> List[str]:
    """Split ``phrase`` on runs of whitespace."""

    return str(phrase or "").split()


def count_words(phrase: str) -> int:
    return len(tokenize(phrase))


def make_combinations(phrase: str) -> List[str]:
    """Return every unordered two-token combination of ``phrase``.

    Pairs keep the order in which the tokens appear: for positions ``i < j``
    the combination is ``"token_i token_j"``. Repeated tokens and letter case
    are left untouched, so ``"a b a"`` yields ``["a b", "a a", "b a"]``.
    """

    tokens = tokenize(phrase)
    return [
        f"{first} {second}"
        for index, first in enumerate(tokens)
        for second in tokens[index + 1 :]
    ]


def divide_into_chunks(items: Sequence[T], size: int) -> List[List[T]]:
    """Split ``items`` into consecutive chunks holding at most ``size`` values."""

    if isinstance(size, bool) or not isinstance(size, int) or size <= 0:
        raise InvalidArgument(f"chunk size must be a positive integer, got {size!r}")
    values = list(items)
    return [values[start : start + size] for start in range(0, len(values), size)]


__all__ = [
    "MAX_QUERY_VALUES",
    "tokenize",
    "count_words",
    "make_combinations",
    "divide_into_chunks",
]
