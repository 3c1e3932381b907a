"""Tests for JSON extraction from model replies."""

from aiva.utils.response_formatter import ResponseFormatter


def test_delimited_json():
    text = f"Here you go {ResponseFormatter.format_json_response({'fullName': 'Jane'})} done"

    assert ResponseFormatter.extract_json_from_response(text) == {"fullName": "Jane"}


def test_markdown_block():
    text = 'Result:\n```json\n{"email": "jane@example.com"}\n```'

    assert ResponseFormatter.extract_json_from_response(text) == {"email": "jane@example.com"}


def test_embedded_object_with_braces_in_strings():
    text = 'The answer is {"incidentDescription": "bag {blue} was lost"} as requested.'

    assert ResponseFormatter.extract_json_from_response(text) == {
        "incidentDescription": "bag {blue} was lost"
    }


def test_no_json():
    assert ResponseFormatter.extract_json_from_response("I could not find anything.") is None
    assert ResponseFormatter.extract_json_from_response("") is None


def test_json_list_is_not_an_object():
    assert ResponseFormatter.extract_json_from_response('["a", "b"]') is None


def test_sanitize_strips_lead_in():
    cleaned = ResponseFormatter.sanitize_json_response('Here is the JSON: {"a": 1}')

    assert cleaned.startswith("{")
