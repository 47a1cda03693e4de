"""Tests for JSON extraction from model output."""

from compiler.json_utils import extract_json_from_response, find_balanced_json


def test_json_in_markdown_fence():
    text = 'Sure!\n```json\n{"name": "Login", "steps": []}\n```\nLet me know.'

    assert extract_json_from_response(text) == {"name": "Login", "steps": []}


def test_braces_inside_strings():
    text = 'Result: {"selector": "div{x}", "snippet": "if (a) { b(\\"}\\") }"} trailing }'

    assert extract_json_from_response(text) == {"selector": "div{x}", "snippet": 'if (a) { b("}") }'}


def test_skips_balanced_non_json():
    text = "First try: { page.click(x) } and then {\"steps\": [1]}"

    assert extract_json_from_response(text) == {"steps": [1]}


def test_array():
    assert extract_json_from_response("values: [1, [2, 3]] done", json_type="array") == [1, [2, 3]]


def test_nothing_found():
    assert extract_json_from_response("no json here") is None
    assert extract_json_from_response("{ unbalanced", default={}) == {}


def test_find_balanced_json():
    assert find_balanced_json('x {"a": {"b": 1}} y') == '{"a": {"b": 1}}'
    assert find_balanced_json("{ open { closed }") == "{ closed }"
