"""Dictionary entry record and the lookup response envelope."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from .combinations import count_words, make_combinations
from .errors import ErrorCode, InvalidArgument

LIST_FIELDS: Tuple[str, ...] = ("types", "meanings", "synonyms", "translations", "examples")


def _as_text_tuple(name: str, values: Optional[Iterable[Any]]) -> Tuple[str, ...]:
    if values is None:
        return ()
    if isinstance(values, str):
        return (values,) if values else ()
    if isinstance(values, Mapping) or not isinstance(values, Iterable):
        raise InvalidArgument(f"{name} must be a list of strings, got {type(values).__name__}")
    return tuple(str(value) for value in values if value is not None)


@dataclass(frozen=True)
class Entry:
    """Immutable dictionary entry for a phrase.

    ``word_count`` is always derived from ``phrase``. ``combinations`` are the
    word-pair index keys the store matches against; entries built through
    :meth:`create` compute them from the phrase once and they never change.
    ``record_id`` is assigned by the store and stays ``None`` until persisted.
    """

    phrase: str
    types: Tuple[str, ...] = ()
    meanings: Tuple[str, ...] = ()
    synonyms: Tuple[str, ...] = ()
    translations: Tuple[str, ...] = ()
    examples: Tuple[str, ...] = ()
    combinations: Tuple[str, ...] = ()
    record_id: Optional[str] = None
    word_count: int = field(init=False, default=0)

    def __post_init__(self) -> None:
        if not isinstance(self.phrase, str):
            raise InvalidArgument(f"phrase must be a string, got {type(self.phrase).__name__}")
        for name in LIST_FIELDS + ("combinations",):
            object.__setattr__(self, name, _as_text_tuple(name, getattr(self, name)))
        if self.record_id is not None:
            object.__setattr__(self, "record_id", str(self.record_id))
        object.__setattr__(self, "word_count", count_words(self.phrase))

    @classmethod
    def create(cls, phrase: str, **details: Any) -> "Entry":
        """Build a new, not yet persisted entry with freshly derived combinations."""

        values = {name: details.get(name) for name in LIST_FIELDS}
        return cls(phrase=phrase, combinations=tuple(make_combinations(phrase)), **values)

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any], *, record_id: Optional[str] = None) -> "Entry":
        """Deserialize an entry, accepting ``phrase`` or the older ``words`` key."""

        phrase = payload.get("phrase")
        if phrase is None:
            phrase = payload.get("words")
        if not isinstance(phrase, str):
            raise InvalidArgument("entry payload is missing a string 'phrase'")
        identifier = record_id if record_id is not None else payload.get("id")
        return cls(
            phrase=phrase,
            combinations=payload.get("combinations") or (),
            record_id=identifier,
            **{name: payload.get(name) for name in LIST_FIELDS},
        )

    @property
    def identity(self) -> str:
        """Stable key used to tell two records apart."""

        if self.record_id is not None:
            return f"id:{self.record_id}"
        return f"phrase:{self.phrase}"

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "id": self.record_id,
            "phrase": self.phrase,
            "wordCount": self.word_count,
        }
        for name in LIST_FIELDS + ("combinations",):
            payload[name] = list(getattr(self, name))
        return payload


@dataclass
class LookupResponse:
    """Outcome of one lookup request as returned to callers."""

    contents: List[Entry] = field(default_factory=list)
    exact_match: bool = False
    error: str = ""
    error_code: int = int(ErrorCode.NONE)
    warnings: List[str] = field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return self.error_code == ErrorCode.NONE

    def to_dict(self) -> Dict[str, Any]:
        return {
            "contents": [entry.to_dict() for entry in self.contents],
            "exactMatch": self.exact_match,
            "error": self.error,
            "errorCode": int(self.error_code),
        }


__all__ = ["Entry", "LookupResponse", "LIST_FIELDS"]
