"""Exception taxonomy and wire error codes for lexicon lookups."""

from __future__ import annotations

from enum import IntEnum


class ErrorCode(IntEnum):
    """Numeric codes carried in the ``errorCode`` field of responses."""

    NONE = -1
    INVALID_REQUEST = 3
    GENERATION_UNAVAILABLE = 7
    STORE_WRITE_FAILED = 8
    INTERNAL = 9


class LexiconError(Exception):
    """Base class for every error raised by the lexicon pipeline."""


class InvalidArgument(LexiconError, ValueError):
    """A caller passed an argument the pipeline cannot work with."""


class StoreLookupFailure(LexiconError):
    """A read against the entry store failed."""


class StorePersistFailure(LexiconError):
    """Writing a new entry to the store failed."""


class GenerationFailure(LexiconError):
    """The generation service could not produce an entry."""

    def __init__(self, message: str, error_code: int = ErrorCode.GENERATION_UNAVAILABLE) -> None:
        super().__init__(message)
        self.error_code = int(error_code)


class TransientNetworkError(LexiconError):
    """A remote call failed at the transport level (timeout, refused, bad body)."""


__all__ = [
    "ErrorCode",
    "LexiconError",
    "InvalidArgument",
    "StoreLookupFailure",
    "StorePersistFailure",
    "GenerationFailure",
    "TransientNetworkError",
]
