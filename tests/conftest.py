from __future__ import annotations

import sys
import threading
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple

import pytest

PROJECT_ROOT = Path(__file__).resolve().parent.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from phrase_lexicon.app.services.generation import GenerationOutcome
from phrase_lexicon.core import (
    Entry,
    StoreLookupFailure,
    StorePersistFailure,
    TransientNetworkError,
    make_combinations,
)


def stored_entry(record_id: str, phrase: str, combinations: Optional[Sequence[str]] = None, **details) -> Entry:
    """Entry as it would come back from the store."""

    if combinations is None:
        combinations = make_combinations(phrase)
    return Entry(phrase=phrase, combinations=tuple(combinations), record_id=record_id, **details)


class FakeStore:
    """In-memory store that records every call made against it."""

    def __init__(self, entries: Sequence[Entry] = ()) -> None:
        self.entries: List[Entry] = list(entries)
        self.exact_calls: List[str] = []
        self.combination_calls: List[Tuple[Tuple[str, ...], Optional[Tuple[str, ...]]]] = []
        self.persisted: List[Entry] = []
        self.failing_combinations: set[str] = set()
        self.exact_error: Optional[Exception] = None
        self.persist_error: Optional[Exception] = None
        self._lock = threading.Lock()

    def exact_lookup(self, phrase: str) -> Optional[Entry]:
        self.exact_calls.append(phrase)
        if self.exact_error is not None:
            raise self.exact_error
        for entry in self.entries:
            if entry.phrase == phrase:
                return entry
        return None

    def combination_lookup(
        self,
        combinations: Sequence[str],
        exclude: Optional[Sequence[str]] = None,
    ) -> List[Entry]:
        assert len(combinations) <= 10
        assert exclude is None or len(exclude) <= 10
        with self._lock:
            self.combination_calls.append(
                (tuple(combinations), tuple(exclude) if exclude is not None else None)
            )
        if self.failing_combinations.intersection(combinations):
            raise StoreLookupFailure("simulated lookup failure")
        excluded = set(exclude or ())
        wanted = set(combinations)
        return [
            entry
            for entry in self.entries
            if wanted.intersection(entry.combinations) and entry.phrase not in excluded
        ]

    def persist(self, entry: Entry) -> str:
        if self.persist_error is not None:
            raise self.persist_error
        self.persisted.append(entry)
        record_id = f"new-{len(self.persisted)}"
        self.entries.append(
            Entry(
                phrase=entry.phrase,
                combinations=entry.combinations,
                record_id=record_id,
                meanings=entry.meanings,
            )
        )
        return record_id


class ScriptedGenerator:
    """Generator returning queued outcomes (or raising queued exceptions)."""

    def __init__(self, *outcomes) -> None:
        self._outcomes = list(outcomes)
        self.calls: List[str] = []

    def request_entry(self, phrase: str) -> GenerationOutcome:
        self.calls.append(phrase)
        item = self._outcomes.pop(0) if self._outcomes else GenerationOutcome.failure("exhausted")
        if isinstance(item, Exception):
            raise item
        if callable(item):
            return item(phrase)
        return item


def generated(phrase: str, **details) -> GenerationOutcome:
    return GenerationOutcome(entry=Entry(phrase=phrase, **details))


@pytest.fixture
def fake_store() -> FakeStore:
    return FakeStore()


@pytest.fixture
def network_error() -> TransientNetworkError:
    return TransientNetworkError("connection refused")


@pytest.fixture
def persist_error() -> StorePersistFailure:
    return StorePersistFailure("disk full")


@pytest.fixture
def sample_entries() -> Dict[str, Entry]:
    return {
        "light year": stored_entry("1", "light year", meanings=("distance light travels in a year",)),
        "blue sky": stored_entry("2", "blue sky", meanings=("a clear daytime sky",)),
        "blue sky thinking": stored_entry(
            "3",
            "blue sky thinking",
            meanings=("creative ideas unconstrained by current thinking",),
        ),
    }
