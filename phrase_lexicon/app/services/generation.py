"""Client for the external entry generation service."""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Mapping, Optional, Protocol

import requests

from phrase_lexicon.core import (
    Entry,
    ErrorCode,
    GenerationFailure,
    InvalidArgument,
    TransientNetworkError,
)
from phrase_lexicon.core.entry import LIST_FIELDS
from phrase_lexicon.utils.observability import create_counter, get_logger

_GENERATION_ATTEMPTS = create_counter(
    "lexicon_generation_attempts_total",
    "Calls made to the entry generation service.",
)
_GENERATION_FAILURES = create_counter(
    "lexicon_generation_failures_total",
    "Generation requests that failed after the retry.",
)


@dataclass(frozen=True)
class GenerationOutcome:
    """Either a generated entry or the error reported for the phrase."""

    entry: Optional[Entry] = None
    error_code: int = int(ErrorCode.NONE)
    error: str = ""
    attempts: int = 1

    @property
    def succeeded(self) -> bool:
        return self.entry is not None and self.error_code == ErrorCode.NONE

    @classmethod
    def failure(cls, message: str, error_code: int = ErrorCode.GENERATION_UNAVAILABLE) -> "GenerationOutcome":
        code = int(error_code)
        if code == ErrorCode.NONE:
            code = int(ErrorCode.GENERATION_UNAVAILABLE)
        return cls(entry=None, error_code=code, error=message)


class EntryGenerator(Protocol):
    """Anything able to synthesize an entry for a phrase in one call."""

    def request_entry(self, phrase: str) -> GenerationOutcome:
        ...


def parse_generation_payload(payload: Any, phrase: Optional[str] = None) -> GenerationOutcome:
    """Interpret a generation service response body.

    Accepted shapes are ``{"entry": {...}}`` and ``{"contents": {...}}``,
    optionally wrapped in ``{"data": ...}`` and optionally JSON-encoded a
    second time. Errors are ``{"errorCode": n, "errorMessage": "..."}``
    (``error`` is accepted for the message too); ``-1`` means no error.
    An entry without its own ``phrase``/``words`` key takes ``phrase``.
    """

    if isinstance(payload, str):
        try:
            payload = json.loads(payload)
        except ValueError as exc:
            raise TransientNetworkError(f"generation service returned malformed JSON: {exc}") from exc
    if isinstance(payload, Mapping) and isinstance(payload.get("data"), Mapping):
        payload = payload["data"]
    if not isinstance(payload, Mapping):
        raise TransientNetworkError(
            f"generation service returned {type(payload).__name__}, expected an object"
        )

    try:
        error_code = int(payload.get("errorCode", ErrorCode.NONE))
    except (TypeError, ValueError):
        error_code = int(ErrorCode.GENERATION_UNAVAILABLE)
    if error_code != ErrorCode.NONE:
        message = payload.get("errorMessage") or payload.get("error") or "generation failed"
        return GenerationOutcome.failure(str(message), error_code)

    body = payload.get("entry")
    if body is None:
        body = payload.get("contents")
    if not isinstance(body, Mapping):
        return GenerationOutcome.failure("generation service response carried no entry")
    if phrase is not None and body.get("phrase") is None and body.get("words") is None:
        body = {**body, "phrase": phrase}
    try:
        return GenerationOutcome(entry=Entry.from_dict(body))
    except InvalidArgument as exc:
        return GenerationOutcome.failure(f"generation service returned an invalid entry: {exc}")


class HttpEntryGenerator:
    """Calls the generation service over HTTP with a JSON ``{"phrase": ...}`` body."""

    def __init__(
        self,
        url: str,
        *,
        timeout: float = 30.0,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.url = url
        self.timeout = timeout
        self._session = session or requests.Session()
        self._logger = get_logger(__name__).bind(component="http_entry_generator", url=url)

    def request_entry(self, phrase: str) -> GenerationOutcome:
        try:
            response = self._session.post(
                self.url,
                json={"phrase": phrase},
                headers={"Content-Type": "application/json"},
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            raise TransientNetworkError(f"ERROR CALLING GENERATION SERVICE: {exc}") from exc

        if response.status_code >= 400:
            raise TransientNetworkError(
                f"ERROR CALLING GENERATION SERVICE: HTTP {response.status_code}"
            )
        try:
            body = response.json()
        except ValueError as exc:
            raise TransientNetworkError(
                f"ERROR CALLING GENERATION SERVICE: response was not JSON ({exc})"
            ) from exc

        outcome = parse_generation_payload(body, phrase)
        self._logger.debug(
            "Generation service responded",
            context={"phrase": phrase, "error_code": outcome.error_code},
        )
        return outcome


class FallbackGenerator:
    """Synthesizes an entry for a phrase, retrying a failed call exactly once.

    The returned entry is always rebuilt for the requested phrase so its word
    count and combinations come from the phrase itself, whatever the service
    sent back. Nothing is persisted here.
    """

    MAX_ATTEMPTS = 2

    def __init__(self, generator: EntryGenerator) -> None:
        self.generator = generator
        self._logger = get_logger(__name__).bind(
            component="fallback_generator",
            generator=type(generator).__name__,
        )

    def _attempt(self, phrase: str) -> GenerationOutcome:
        _GENERATION_ATTEMPTS.inc()
        try:
            return self.generator.request_entry(phrase)
        except GenerationFailure as exc:
            return GenerationOutcome.failure(str(exc), exc.error_code)
        except (TransientNetworkError, InvalidArgument) as exc:
            return GenerationOutcome.failure(str(exc))

    def generate(self, phrase: str) -> GenerationOutcome:
        outcome = GenerationOutcome.failure("generation was not attempted")
        for attempt in range(1, self.MAX_ATTEMPTS + 1):
            outcome = self._attempt(phrase)
            if outcome.succeeded:
                entry = Entry.create(
                    phrase,
                    **{name: getattr(outcome.entry, name) for name in LIST_FIELDS},
                )
                self._logger.info(
                    "Entry generated",
                    context={"phrase": phrase, "attempt": attempt},
                )
                return GenerationOutcome(entry=entry, attempts=attempt)
            self._logger.warning(
                "Generation attempt failed",
                context={
                    "phrase": phrase,
                    "attempt": attempt,
                    "error_code": outcome.error_code,
                    "error": outcome.error,
                },
            )

        _GENERATION_FAILURES.inc()
        return GenerationOutcome(
            entry=None,
            error_code=outcome.error_code,
            error=outcome.error,
            attempts=self.MAX_ATTEMPTS,
        )


__all__ = [
    "EntryGenerator",
    "FallbackGenerator",
    "GenerationOutcome",
    "HttpEntryGenerator",
    "parse_generation_payload",
]
