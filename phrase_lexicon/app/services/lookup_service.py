"""Lookup service orchestrating exact match, combination search and generation."""

from __future__ import annotations

import threading
from dataclasses import replace
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from phrase_lexicon.core import (
    Entry,
    ErrorCode,
    InvalidArgument,
    LookupResponse,
    StoreLookupFailure,
    StorePersistFailure,
    TransientNetworkError,
)
from phrase_lexicon.utils.observability import (
    add_span_attributes,
    create_counter,
    create_histogram,
    get_logger,
    record_exception,
    start_span,
)
from phrase_lexicon.utils.telemetry import StructuredTelemetry, TelemetryListener

from ..data.database import EntryStore
from ..inbound import parse_lookup_request
from .batch_search import BatchedCombinationSearch
from .generation import EntryGenerator, FallbackGenerator
from .result_formatter import EntryResultFormatter

_REQUESTS = create_counter(
    "lexicon_lookup_requests_total",
    "Phrase lookup requests received.",
)
_OUTCOMES = create_counter(
    "lexicon_lookup_outcomes_total",
    "Phrase lookups by the state that produced the response.",
    label_names=("outcome",),
)
_PERSIST_FAILURES = create_counter(
    "lexicon_persist_failures_total",
    "Generated entries that could not be written to the store.",
)
_LATENCY = create_histogram(
    "lexicon_lookup_seconds",
    "Latency of phrase lookup requests.",
)


class LookupState(str, Enum):
    """Stages a lookup request moves through."""

    EXACT_MATCH = "exact_match"
    COMBINATION_SEARCH = "combination_search"
    GENERATE = "generate"
    PERSIST = "persist"
    DONE = "done"
    FAILED = "failed"


class LookupOrchestrator:
    """Runs one phrase through the lookup pipeline.

    The stages are tried in order and the first one that yields entries wins:
    an exact phrase match, then the batched combination search, then the
    generation service. A generated entry is written back to the store and
    returned even if that write fails. Errors never escape :meth:`lookup`;
    they come back as a response carrying an error code.
    """

    def __init__(
        self,
        *,
        store: EntryStore,
        searcher: BatchedCombinationSearch,
        generator: FallbackGenerator,
        listeners: Optional[Iterable[TelemetryListener]] = None,
    ) -> None:
        self.store = store
        self.searcher = searcher
        self.generator = generator
        self._listeners: List[TelemetryListener] = list(listeners or [])
        self._latest_lock = threading.Lock()
        self._latest_trace: Dict[str, Any] = {}
        self._logger = get_logger(__name__).bind(
            component="lookup_orchestrator",
            store=type(store).__name__,
        )

    def get_latest_telemetry(self) -> Dict[str, Any]:
        """Snapshot of the most recently finished lookup."""

        with self._latest_lock:
            return dict(self._latest_trace)

    def lookup(self, phrase: str) -> LookupResponse:
        return self.lookup_with_trace(phrase)[0]

    def lookup_with_trace(self, phrase: str) -> Tuple[LookupResponse, Dict[str, Any]]:
        """Run a lookup and return its response with this request's telemetry snapshot."""

        telemetry = StructuredTelemetry("lookup", listeners=self._listeners)
        telemetry.annotate("input.phrase", phrase)
        _REQUESTS.inc()
        self._logger.info("Lookup request received", context={"phrase": phrase})

        with start_span("lookup.request", {"lookup.phrase": phrase}) as span:
            with _LATENCY.time():
                try:
                    response = self._run(phrase, telemetry)
                except Exception as exc:
                    self._logger.exception("Lookup failed unexpectedly", context={"phrase": phrase})
                    record_exception(span, exc)
                    self._transition(telemetry, LookupState.FAILED)
                    response = LookupResponse(
                        error=f"Unexpected error while looking up phrase: {exc}",
                        error_code=int(ErrorCode.INTERNAL),
                    )

            outcome = telemetry.snapshot()["metadata"].get("resolved_by", "error")
            _OUTCOMES.labels(outcome=outcome).inc()
            add_span_attributes(
                span,
                {
                    "lookup.exact_match": response.exact_match,
                    "lookup.results": len(response.contents),
                    "lookup.error_code": response.error_code,
                },
            )

        telemetry.annotate("result.count", len(response.contents))
        telemetry.annotate("result.error_code", response.error_code)
        trace = telemetry.snapshot()
        with self._latest_lock:
            self._latest_trace = trace

        log = self._logger.info if response.succeeded else self._logger.warning
        log(
            "Lookup request completed",
            context={
                "phrase": phrase,
                "results": len(response.contents),
                "exact_match": response.exact_match,
                "error_code": response.error_code,
                "warnings": len(response.warnings),
            },
        )
        return response, trace

    def _transition(self, telemetry: StructuredTelemetry, state: LookupState) -> None:
        telemetry.annotate("state", state.value)
        telemetry.increment(f"state.{state.value}")

    def _run(self, phrase: str, telemetry: StructuredTelemetry) -> LookupResponse:
        if not isinstance(phrase, str) or not phrase.strip():
            telemetry.annotate("resolved_by", "empty")
            self._transition(telemetry, LookupState.DONE)
            return LookupResponse()

        response = LookupResponse()

        self._transition(telemetry, LookupState.EXACT_MATCH)
        with telemetry.timer("stage.exact_match"):
            exact = self._exact_lookup(phrase, response)
        if exact is not None:
            response.contents = [exact]
            response.exact_match = True
            telemetry.annotate("resolved_by", "exact")
            self._transition(telemetry, LookupState.DONE)
            return response

        self._transition(telemetry, LookupState.COMBINATION_SEARCH)
        with telemetry.timer("stage.combination_search"):
            search = self.searcher.search(phrase, telemetry)
        response.warnings.extend(search.failures)
        if search.entries:
            response.contents = list(search.entries)
            telemetry.annotate("resolved_by", "combination")
            self._transition(telemetry, LookupState.DONE)
            return response

        self._transition(telemetry, LookupState.GENERATE)
        with telemetry.timer("stage.generate") as timing:
            outcome = self.generator.generate(phrase)
            timing["attempts"] = outcome.attempts
        telemetry.annotate("generation.attempts", outcome.attempts)
        if not outcome.succeeded or outcome.entry is None:
            response.error = outcome.error
            response.error_code = outcome.error_code
            telemetry.annotate("resolved_by", "generation_failed")
            self._transition(telemetry, LookupState.FAILED)
            return response

        self._transition(telemetry, LookupState.PERSIST)
        with telemetry.timer("stage.persist"):
            response.contents = [self._persist(outcome.entry, response)]
        telemetry.annotate("resolved_by", "generated")
        self._transition(telemetry, LookupState.DONE)
        return response

    def _exact_lookup(self, phrase: str, response: LookupResponse) -> Optional[Entry]:
        try:
            return self.store.exact_lookup(phrase)
        except (StoreLookupFailure, TransientNetworkError) as exc:
            self._logger.warning(
                "Exact lookup failed; continuing with combination search",
                context={"phrase": phrase, "error": str(exc)},
            )
            response.warnings.append(f"exact lookup failed: {exc}")
            return None

    def _persist(self, entry: Entry, response: LookupResponse) -> Entry:
        try:
            record_id = self.store.persist(entry)
        except (StorePersistFailure, TransientNetworkError) as exc:
            _PERSIST_FAILURES.inc()
            self._logger.error(
                "Generated entry could not be stored",
                context={"phrase": entry.phrase, "error": str(exc)},
            )
            response.error = f"ERROR CREATING ENTRY IN STORE: {exc}"
            response.error_code = int(ErrorCode.STORE_WRITE_FAILED)
            return entry
        return replace(entry, record_id=record_id)


class LookupService:
    """Facade handed to entry points (HTTP handlers, the UI, scripts)."""

    def __init__(
        self,
        *,
        store: EntryStore,
        generator: EntryGenerator,
        max_workers: int = 8,
        lookup_timeout: Optional[float] = None,
        listeners: Optional[Iterable[TelemetryListener]] = None,
        orchestrator: Optional[LookupOrchestrator] = None,
        formatter: Optional[EntryResultFormatter] = None,
    ) -> None:
        if orchestrator is None:
            orchestrator = LookupOrchestrator(
                store=store,
                searcher=BatchedCombinationSearch(
                    store,
                    max_workers=max_workers,
                    lookup_timeout=lookup_timeout,
                ),
                generator=FallbackGenerator(generator),
                listeners=listeners,
            )
        self.orchestrator = orchestrator
        self.store = store
        self.formatter = formatter or EntryResultFormatter()

    def lookup(self, phrase: str) -> LookupResponse:
        return self.orchestrator.lookup(phrase)

    def lookup_with_trace(self, phrase: str) -> Tuple[LookupResponse, Dict[str, Any]]:
        return self.orchestrator.lookup_with_trace(phrase)

    def handle_request(self, body: Mapping[str, Any] | str | bytes | None) -> Dict[str, Any]:
        """Parse an inbound request body and return the wire response."""

        try:
            phrase = parse_lookup_request(body)
        except InvalidArgument as exc:
            return LookupResponse(error=str(exc), error_code=int(ErrorCode.INVALID_REQUEST)).to_dict()
        return self.lookup(phrase).to_dict()

    def get_latest_telemetry(self) -> Dict[str, Any]:
        return self.orchestrator.get_latest_telemetry()

    def format_response(self, phrase: str, response: LookupResponse) -> str:
        return self.formatter.format_response(phrase, response)


__all__ = ["LookupOrchestrator", "LookupService", "LookupState"]
