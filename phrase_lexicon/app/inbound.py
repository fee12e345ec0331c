"""Parsing of inbound lookup request bodies."""

from __future__ import annotations

import json
from typing import Any, Mapping

from phrase_lexicon.core import InvalidArgument

_PHRASE_KEYS = ("phrase", "words")


def _decode(body: Any) -> Any:
    if isinstance(body, (bytes, bytearray)):
        body = body.decode("utf-8")
    if isinstance(body, str):
        if not body.strip():
            return {}
        try:
            return json.loads(body)
        except ValueError as exc:
            raise InvalidArgument(f"request body is not valid JSON: {exc}") from exc
    return body


def _phrase_from(payload: Mapping[str, Any]) -> Any:
    for key in _PHRASE_KEYS:
        if payload.get(key) is not None:
            return payload[key]
    return None


def parse_lookup_request(body: Mapping[str, Any] | str | bytes | None) -> str:
    """Extract the phrase to look up from a request body.

    The phrase is read from ``phrase`` (or the older ``words`` key). Clients
    that wrap their arguments send them in a ``data`` field, either as an
    object or as a JSON string. A missing or blank phrase comes back as
    ``""``, which the lookup answers with an empty response.
    """

    payload = _decode(body)
    if payload is None:
        return ""
    if not isinstance(payload, Mapping):
        raise InvalidArgument(f"request body must be an object, got {type(payload).__name__}")

    phrase = _phrase_from(payload)
    if phrase is None and payload.get("data") is not None:
        wrapped = _decode(payload["data"])
        if not isinstance(wrapped, Mapping):
            raise InvalidArgument("request 'data' field must be an object")
        phrase = _phrase_from(wrapped)

    if phrase is None:
        return ""
    if not isinstance(phrase, str):
        raise InvalidArgument(f"phrase must be a string, got {type(phrase).__name__}")
    return phrase


__all__ = ["parse_lookup_request"]
