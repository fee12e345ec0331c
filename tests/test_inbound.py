import json

import pytest

from phrase_lexicon.app.inbound import parse_lookup_request
from phrase_lexicon.core import InvalidArgument


@pytest.mark.parametrize(
    "body, expected",
    [
        ({"phrase": "light year"}, "light year"),
        ({"words": "light year"}, "light year"),
        ({"phrase": "light year", "words": "ignored"}, "light year"),
        ({"data": {"words": "blue sky"}}, "blue sky"),
        ({"data": json.dumps({"words": "blue sky"})}, "blue sky"),
        (json.dumps({"phrase": "blue sky"}), "blue sky"),
        (b'{"words": "blue sky"}', "blue sky"),
        (None, ""),
        ("", ""),
        ({}, ""),
        ({"phrase": "   "}, "   "),
    ],
)
def test_parse_lookup_request(body, expected):
    assert parse_lookup_request(body) == expected


@pytest.mark.parametrize(
    "body",
    [
        "{not json",
        "[1, 2]",
        {"phrase": 42},
        {"data": "[1]"},
        {"data": "not json"},
    ],
)
def test_parse_lookup_request_rejects_malformed_bodies(body):
    with pytest.raises(InvalidArgument):
        parse_lookup_request(body)
