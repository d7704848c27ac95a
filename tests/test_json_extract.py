"""JSON recovery tests: every malformed shape yields a ParseFailure, never an exception."""

import pytest

from storebot.parsing.json_extract import MAX_SCAN_CHARS, ParseFailure, extract_json_object


@pytest.mark.parametrize("text,expected", [
    ('{"intent": "off_topic"}', {"intent": "off_topic"}),
    ('```json\n{"a": 1}\n```', {"a": 1}),
    ('```\n{"a": 1}\n```', {"a": 1}),
    ('Claro, aquí está: {"a": {"b": [1, 2]}} ¡Saludos!', {"a": {"b": [1, 2]}}),
    ('{"a": "llave } dentro"} y {"b": 2}', {"a": "llave } dentro"}),
    ('{"a": "comillas \\" escapadas"}', {"a": 'comillas " escapadas'}),
])
def test_recovers_object(text, expected):
    assert extract_json_object(text) == expected


def test_first_object_wins():
    assert extract_json_object('{"a": 1}\n{"a": 2}') == {"a": 1}


@pytest.mark.parametrize("text,reason", [
    ("", "empty response"),
    ("   ", "empty response"),
    (None, "empty response"),
    ("no hay json aquí", "no JSON object found"),
    ('{"a": 1', "no JSON object found"),
    ("[1, 2, 3]", "JSON value is not an object"),
    ('"solo texto"', "JSON value is not an object"),
])
def test_failures_are_typed(text, reason):
    result = extract_json_object(text)
    assert isinstance(result, ParseFailure)
    assert result.reason == reason


def test_failure_keeps_raw_excerpt():
    result = extract_json_object("x" * 500)
    assert isinstance(result, ParseFailure)
    assert len(result.raw) == 200


@pytest.mark.parametrize("text", ["[" * 200000, '{"a": ' * 200000, "{" * 200000])
def test_deeply_nested_garbage_is_a_failure(text):
    assert isinstance(extract_json_object(text), ParseFailure)


def test_unclosed_brace_does_not_hide_later_object():
    assert extract_json_object('{ veamos... {"a": 1} listo') == {"a": 1}


def test_object_beyond_scan_window_is_ignored():
    text = "x" * (MAX_SCAN_CHARS + 10) + '{"a": 1}'
    assert isinstance(extract_json_object(text), ParseFailure)
