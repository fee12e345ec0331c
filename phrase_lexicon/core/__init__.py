"""Core data model and pure helpers for phrase lookups."""

from .combinations import (
    MAX_QUERY_VALUES,
    count_words,
    divide_into_chunks,
    make_combinations,
    tokenize,
)
from .entry import Entry, LookupResponse
from .errors import (
    ErrorCode,
    GenerationFailure,
    InvalidArgument,
    LexiconError,
    StoreLookupFailure,
    StorePersistFailure,
    TransientNetworkError,
)

__all__ = [
    "MAX_QUERY_VALUES",
    "count_words",
    "divide_into_chunks",
    "make_combinations",
    "tokenize",
    "Entry",
    "LookupResponse",
    "ErrorCode",
    "GenerationFailure",
    "InvalidArgument",
    "LexiconError",
    "StoreLookupFailure",
    "StorePersistFailure",
    "TransientNetworkError",
]
