"""Two-phase batched combination search against the entry store."""

from __future__ import annotations

import concurrent.futures
from contextlib import nullcontext
from dataclasses import dataclass, field
from typing import Any, List, Optional, Sequence, Set

from phrase_lexicon.core import (
    MAX_QUERY_VALUES,
    Entry,
    InvalidArgument,
    divide_into_chunks,
    make_combinations,
)
from phrase_lexicon.utils.observability import create_counter, get_logger
from phrase_lexicon.utils.telemetry import StructuredTelemetry

from ..data.database import EntryStore

_CHUNK_LOOKUPS = create_counter(
    "lexicon_chunk_lookups_total",
    "Combination lookups issued against the entry store.",
    label_names=("phase",),
)
_CHUNK_LOOKUP_FAILURES = create_counter(
    "lexicon_chunk_lookup_failures_total",
    "Combination lookups that failed or were abandoned.",
    label_names=("phase",),
)


@dataclass
class SearchResult:
    """Entries gathered for one phrase, deduplicated by record identity."""

    entries: List[Entry] = field(default_factory=list)
    chunk_count: int = 0
    failed_lookups: int = 0
    failures: List[str] = field(default_factory=list)
    _seen: Set[str] = field(default_factory=set, repr=False)

    def merge(self, entries: Sequence[Entry]) -> int:
        """Append entries not seen before; returns how many were added."""

        added = 0
        for entry in entries:
            key = entry.identity
            if key in self._seen:
                continue
            self._seen.add(key)
            self.entries.append(entry)
            added += 1
        return added

    def record_failure(self, message: str) -> None:
        self.failed_lookups += 1
        self.failures.append(message)


class BatchedCombinationSearch:
    """Resolve a phrase to stored entries through its word-pair combinations.

    The combinations are split into store-sized chunks. The first third of
    the chunks is queried as-is; once those lookups have all finished, the
    remaining chunks are queried while excluding the phrases already found
    (at most ``exclusion_limit`` of them), so the store does not ship the
    same records back again. Any duplicates that still slip through are
    removed when merging.

    A lookup that raises is logged and counted but never stops its siblings.
    With ``lookup_timeout`` set, lookups still running when a phase times out
    are abandoned and counted as failed.
    """

    def __init__(
        self,
        store: EntryStore,
        *,
        chunk_size: int = MAX_QUERY_VALUES,
        exclusion_limit: int = MAX_QUERY_VALUES,
        max_workers: int = 8,
        lookup_timeout: Optional[float] = None,
    ) -> None:
        if isinstance(chunk_size, bool) or int(chunk_size) <= 0:
            raise InvalidArgument(f"chunk_size must be positive, got {chunk_size!r}")
        self.store = store
        self.chunk_size = min(int(chunk_size), MAX_QUERY_VALUES)
        self.exclusion_limit = max(0, min(int(exclusion_limit), MAX_QUERY_VALUES))
        self.max_workers = max(1, int(max_workers))
        self.lookup_timeout = lookup_timeout
        self._logger = get_logger(__name__).bind(
            component="batched_combination_search",
            store=type(store).__name__,
        )

    @staticmethod
    def split_phases(chunk_count: int) -> int:
        """Number of leading chunks queried before any exclusion is possible."""

        return chunk_count // 3

    def search(self, phrase: str, telemetry: Optional[StructuredTelemetry] = None) -> SearchResult:
        combinations = make_combinations(phrase)
        chunks = divide_into_chunks(combinations, self.chunk_size)
        result = SearchResult(chunk_count=len(chunks))
        if not chunks:
            return result

        boundary = self.split_phases(len(chunks))
        first_phase, second_phase = chunks[:boundary], chunks[boundary:]
        if telemetry:
            telemetry.annotate("search.combinations", len(combinations))
            telemetry.annotate("search.chunks", len(chunks))

        executor = concurrent.futures.ThreadPoolExecutor(
            max_workers=min(self.max_workers, len(chunks)),
            thread_name_prefix="lexicon-lookup",
        )
        try:
            if first_phase:
                self._run_phase("initial", first_phase, None, result, executor, telemetry)

            exclude: Optional[List[str]] = None
            if result.entries and self.exclusion_limit:
                exclude = [entry.phrase for entry in result.entries[: self.exclusion_limit]]
            self._run_phase("optimised", second_phase, exclude, result, executor, telemetry)
        finally:
            executor.shutdown(wait=False, cancel_futures=True)

        self._logger.info(
            "Combination search finished",
            context={
                "phrase": phrase,
                "chunks": len(chunks),
                "initial_chunks": len(first_phase),
                "matches": len(result.entries),
                "failed_lookups": result.failed_lookups,
            },
        )
        return result

    def _run_phase(
        self,
        phase: str,
        chunks: List[List[str]],
        exclude: Optional[List[str]],
        result: SearchResult,
        executor: concurrent.futures.Executor,
        telemetry: Optional[StructuredTelemetry],
    ) -> None:
        """Launch one lookup per chunk, wait for all of them, then merge in chunk order."""

        timer = (
            telemetry.timer(f"search.phase.{phase}", {"chunks": len(chunks)})
            if telemetry
            else nullcontext({})
        )
        with timer as timer_payload:
            futures = [
                executor.submit(self.store.combination_lookup, chunk, exclude)
                for chunk in chunks
            ]
            _CHUNK_LOOKUPS.labels(phase=phase).inc(len(futures))
            concurrent.futures.wait(futures, timeout=self.lookup_timeout)

            added = 0
            for index, future in enumerate(futures):
                added += result.merge(self._collect(phase, index, future, result))
            timer_payload["added"] = added
            timer_payload["excluded"] = len(exclude or ())
        if telemetry:
            telemetry.increment(f"search.{phase}.matches", added)

    def _collect(
        self,
        phase: str,
        index: int,
        future: "concurrent.futures.Future[Any]",
        result: SearchResult,
    ) -> List[Entry]:
        if not future.done():
            future.cancel()
            message = f"{phase} chunk {index} abandoned after {self.lookup_timeout}s"
            self._logger.warning(
                "Combination lookup abandoned",
                context={"phase": phase, "chunk": index, "timeout": self.lookup_timeout},
            )
        else:
            error = future.exception()
            if error is None:
                return list(future.result() or [])
            message = f"{phase} chunk {index} failed: {error}"
            self._logger.warning(
                "Combination lookup failed",
                context={"phase": phase, "chunk": index, "error": str(error)},
            )
        _CHUNK_LOOKUP_FAILURES.labels(phase=phase).inc()
        result.record_failure(message)
        return []


__all__ = ["BatchedCombinationSearch", "SearchResult"]
