"""Tests for model response sanitizing."""

from sugarop.services.extraction.sanitizer import clean_json


def test_strips_prose_and_fences():
    raw = 'Here you go:\n```json\n{"a":1}\n```'
    assert clean_json(raw) == '{"a":1}'


def test_uppercase_json_fence():
    assert clean_json('```JSON\n{"b": 2}\n```') == '{"b": 2}'


def test_no_braces_returns_none():
    assert clean_json("I could not read this receipt.") is None


def test_closing_brace_before_opening_returns_none():
    assert clean_json("} nothing useful {") is None


def test_empty_input_returns_none():
    assert clean_json("") is None
    assert clean_json(None) is None


def test_nested_object_kept_whole():
    raw = 'Result: {"outer": {"inner": 1}} trailing text'
    assert clean_json(raw) == '{"outer": {"inner": 1}}'


def test_does_not_validate_json_syntax():
    assert clean_json("{not json}") == "{not json}"
