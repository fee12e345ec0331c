from __future__ import annotations

import json

import pytest

from conftest import FakeStore, ScriptedGenerator, generated
from phrase_lexicon.app.services.generation import GenerationOutcome, parse_generation_payload
from phrase_lexicon.app.services.lookup_service import LookupService
from phrase_lexicon.core import Entry, ErrorCode, StoreLookupFailure


def _service(store, generator, **kwargs) -> LookupService:
    return LookupService(store=store, generator=generator, **kwargs)


@pytest.fixture
def seeded_store(sample_entries) -> FakeStore:
    return FakeStore(sample_entries.values())


def test_exact_match_short_circuits(seeded_store, sample_entries):
    generator = ScriptedGenerator()
    response = _service(seeded_store, generator).lookup("light year")

    assert response.exact_match is True
    assert response.contents == [sample_entries["light year"]]
    assert response.error_code == ErrorCode.NONE
    assert seeded_store.combination_calls == []
    assert generator.calls == []


def test_combination_search_returns_related_entries(seeded_store):
    seeded_store.entries = [entry for entry in seeded_store.entries if entry.phrase != "blue sky"]
    seeded_store.entries.append(
        generated("the blue sky", record_id="4", combinations=("the blue", "the sky", "blue sky")).entry
    )
    generator = ScriptedGenerator()

    response = _service(seeded_store, generator).lookup("blue sky")

    phrases = [entry.phrase for entry in response.contents]
    assert phrases == ["blue sky thinking", "the blue sky"]
    assert len({entry.identity for entry in response.contents}) == len(response.contents)
    assert response.exact_match is False
    assert response.error_code == ErrorCode.NONE
    assert generator.calls == []


def test_unknown_phrase_is_generated_and_persisted(seeded_store):
    generator = ScriptedGenerator(generated("zzzz qqqq", meanings=("made-up pair",)))

    response = _service(seeded_store, generator).lookup("zzzz qqqq")

    assert response.error_code == ErrorCode.NONE
    assert response.exact_match is False
    assert len(response.contents) == 1
    entry = response.contents[0]
    assert entry.phrase == "zzzz qqqq"
    assert entry.word_count == 2
    assert entry.record_id == "new-1"
    assert len(seeded_store.persisted) == 1
    assert seeded_store.persisted[0].combinations == ("zzzz qqqq",)
    assert generator.calls == ["zzzz qqqq"]


def test_generated_entry_found_exactly_next_time(seeded_store):
    generator = ScriptedGenerator(generated("zzzz qqqq"))
    service = _service(seeded_store, generator)

    service.lookup("zzzz qqqq")
    second = service.lookup("zzzz qqqq")

    assert second.exact_match is True
    assert len(generator.calls) == 1


def test_generation_failing_twice_returns_error(seeded_store, network_error):
    generator = ScriptedGenerator(network_error, GenerationOutcome.failure("still down", 7))

    response = _service(seeded_store, generator).lookup("zzzz qqqq")

    assert response.error_code != ErrorCode.NONE
    assert response.error == "still down"
    assert response.contents == []
    assert generator.calls == ["zzzz qqqq", "zzzz qqqq"]
    assert seeded_store.persisted == []


def test_persist_failure_still_returns_entry(seeded_store, persist_error):
    seeded_store.persist_error = persist_error
    generator = ScriptedGenerator(generated("zzzz qqqq"))

    response = _service(seeded_store, generator).lookup("zzzz qqqq")

    assert response.error_code == ErrorCode.STORE_WRITE_FAILED
    assert response.error.startswith("ERROR CREATING ENTRY IN STORE")
    assert [entry.phrase for entry in response.contents] == ["zzzz qqqq"]
    assert response.contents[0].record_id is None


@pytest.mark.parametrize("phrase", ["", "   "])
def test_blank_phrase_returns_empty_success(seeded_store, phrase):
    generator = ScriptedGenerator()

    response = _service(seeded_store, generator).lookup(phrase)

    assert response.to_dict() == {"contents": [], "exactMatch": False, "error": "", "errorCode": -1}
    assert seeded_store.exact_calls == []
    assert generator.calls == []


def test_exact_lookup_failure_falls_through_to_search(seeded_store):
    seeded_store.exact_error = StoreLookupFailure("read timeout")

    response = _service(seeded_store, ScriptedGenerator()).lookup("light year")

    assert response.exact_match is False
    assert [entry.phrase for entry in response.contents] == ["light year"]
    assert any("read timeout" in warning for warning in response.warnings)


def test_unexpected_error_becomes_internal_code(seeded_store):
    def explode(_phrase):
        raise RuntimeError("boom")

    seeded_store.exact_lookup = explode

    response = _service(seeded_store, ScriptedGenerator()).lookup("light year")

    assert response.error_code == ErrorCode.INTERNAL
    assert "boom" in response.error
    assert response.contents == []


@pytest.mark.parametrize(
    "body",
    [
        {"phrase": "light year"},
        {"words": "light year"},
        {"data": json.dumps({"words": "light year"})},
        json.dumps({"phrase": "light year"}).encode("utf-8"),
    ],
)
def test_handle_request_reads_phrase_from_body(seeded_store, body):
    payload = _service(seeded_store, ScriptedGenerator()).handle_request(body)

    assert payload["exactMatch"] is True
    assert payload["errorCode"] == -1
    assert payload["contents"][0]["phrase"] == "light year"


def test_handle_request_rejects_bad_body(seeded_store):
    payload = _service(seeded_store, ScriptedGenerator()).handle_request("{not json")

    assert payload["errorCode"] == ErrorCode.INVALID_REQUEST
    assert payload["contents"] == []


def test_latest_telemetry_records_resolution(seeded_store):
    events = []
    service = _service(
        seeded_store,
        ScriptedGenerator(generated("zzzz qqqq")),
        listeners=[lambda event_type, payload: events.append(event_type)],
    )

    service.lookup("zzzz qqqq")
    snapshot = service.get_latest_telemetry()

    assert snapshot["metadata"]["resolved_by"] == "generated"
    assert snapshot["metadata"]["state"] == "done"
    assert snapshot["metadata"]["generation.attempts"] == 1
    assert snapshot["counters"]["state.persist"] == 1
    assert "stage.combination_search" in snapshot["timings"]
    assert "trace_started" in events


def test_telemetry_marks_failed_generation(seeded_store, network_error):
    service = _service(seeded_store, ScriptedGenerator(network_error, network_error))

    service.lookup("zzzz qqqq")
    metadata = service.get_latest_telemetry()["metadata"]

    assert metadata["resolved_by"] == "generation_failed"
    assert metadata["state"] == "failed"


def test_malformed_generated_entry_is_retried_then_reported(seeded_store):
    bad_reply = {"entry": {"phrase": "zzzz qqqq", "meanings": 5}}
    generator = ScriptedGenerator(
        lambda phrase: parse_generation_payload(bad_reply, phrase),
        lambda phrase: parse_generation_payload(bad_reply, phrase),
    )

    response = _service(seeded_store, generator).lookup("zzzz qqqq")

    assert response.error_code == ErrorCode.GENERATION_UNAVAILABLE
    assert "meanings" in response.error
    assert response.contents == []
    assert len(generator.calls) == 2


def test_bad_entry_raised_by_generator_is_retried(seeded_store):
    def build_bad_entry(phrase):
        return GenerationOutcome(entry=Entry(phrase=phrase, types=7))

    generator = ScriptedGenerator(build_bad_entry, generated("zzzz qqqq"))

    response = _service(seeded_store, generator).lookup("zzzz qqqq")

    assert response.error_code == ErrorCode.NONE
    assert [entry.phrase for entry in response.contents] == ["zzzz qqqq"]
    assert len(generator.calls) == 2


@pytest.mark.parametrize("phrase", ["", "light year", "zzzz qqqq"])
def test_failing_listener_does_not_break_lookup(seeded_store, phrase):
    def broken_listener(event_type, payload):
        raise RuntimeError("listener broke")

    service = _service(
        seeded_store,
        ScriptedGenerator(generated("zzzz qqqq")),
        listeners=[broken_listener],
    )

    response = service.lookup(phrase)

    assert response.error_code == ErrorCode.NONE
    assert service.get_latest_telemetry()["metadata"]["result.error_code"] == -1


def test_lookup_with_trace_returns_own_snapshot(seeded_store):
    service = _service(seeded_store, ScriptedGenerator(generated("zzzz qqqq")))

    response, trace = service.lookup_with_trace("light year")
    service.lookup("zzzz qqqq")

    assert response.exact_match is True
    assert trace["metadata"]["input.phrase"] == "light year"
    assert trace["metadata"]["resolved_by"] == "exact"
    assert service.get_latest_telemetry()["metadata"]["input.phrase"] == "zzzz qqqq"
