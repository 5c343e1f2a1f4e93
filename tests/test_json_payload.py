import pytest

from content_worker.core.errors import EmptyResponseError, JSONParseError
from content_worker.services.llms.json_payload import extract_json_payload, find_balanced_json, strip_code_fences


def test_plain_json_object():
    assert extract_json_payload('{"verdict": "true", "confidence": 0.9}') == {"verdict": "true", "confidence": 0.9}


def test_strips_json_code_fence():
    raw = 'Here you go:\n```json\n{"claims": [{"text": "a"}]}\n```\nThanks'
    assert extract_json_payload(raw) == {"claims": [{"text": "a"}]}


def test_strips_bare_code_fence():
    assert strip_code_fences('```\n{"a": 1}\n```') == '{"a": 1}'


def test_stray_prose_around_object():
    raw = 'Sure! The answer is {"needsFactCheck": false, "confidence": 0.8} and nothing else.'
    assert extract_json_payload(raw) == {"needsFactCheck": False, "confidence": 0.8}


def test_first_balanced_array():
    assert extract_json_payload('result: ["a", "b"] trailing ] junk') == ["a", "b"]


def test_braces_inside_strings_are_ignored():
    raw = 'prefix {"text": "a } tricky { string", "n": 1} suffix {"other": 2}'
    assert extract_json_payload(raw) == {"text": "a } tricky { string", "n": 1}


def test_escaped_quotes_inside_strings():
    raw = '{"text": "she said \\"hi}\\"", "ok": true}'
    assert extract_json_payload(raw) == {"text": 'she said "hi}"', "ok": True}


def test_nested_structures():
    raw = 'x {"scores": {"epistemic": 0.5, "list": [1, {"a": 2}]}} y'
    assert find_balanced_json(raw) == '{"scores": {"epistemic": 0.5, "list": [1, {"a": 2}]}}'


def test_unbalanced_input_raises_parse_error_with_raw_text():
    raw = '{"claims": [{"text": "unterminated"'
    with pytest.raises(JSONParseError) as exc_info:
        extract_json_payload(raw)
    assert exc_info.value.raw_text == raw
    assert exc_info.value.is_retryable is True


def test_no_json_at_all():
    with pytest.raises(JSONParseError):
        extract_json_payload("I cannot help with that.")


@pytest.mark.parametrize("raw", ["", "   \n", None])
def test_blank_response_is_empty_error(raw):
    with pytest.raises(EmptyResponseError):
        extract_json_payload(raw)
