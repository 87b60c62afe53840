"""Tests for shared LLM response parsing utilities."""

import pytest
from insightops.common.errors import ParseError
from insightops.common.llm_utils import decode_answer, parse_llm_json, parse_structured_answer


class TestParseLlmJson:
    def test_valid_json(self):
        assert parse_llm_json('{"key": "value"}') == {"key": "value"}

    def test_json_with_markdown_fences(self):
        raw = '```json\n{"answer": "Three days", "confidence": 0.9}\n```'
        assert parse_llm_json(raw) == {"answer": "Three days", "confidence": 0.9}

    def test_json_embedded_in_text(self):
        raw = 'Sure! {"answer": "Yes"} Hope that helps.'
        assert parse_llm_json(raw) == {"answer": "Yes"}

    def test_no_json_returns_empty_dict(self):
        assert parse_llm_json("This is not JSON at all") == {}

    def test_empty_string_returns_empty_dict(self):
        assert parse_llm_json("") == {}

    def test_top_level_list_is_not_an_object(self):
        assert parse_llm_json("[1, 2, 3]") == {}


class TestDecodeAnswer:
    def test_structured_answer(self):
        answer, confidence = decode_answer('{"answer": "Employees work remotely.", "confidence": 0.85}')
        assert answer == "Employees work remotely."
        assert confidence == pytest.approx(0.85)

    def test_missing_confidence_defaults(self):
        _, confidence = decode_answer('{"answer": "Employees work remotely."}')
        assert confidence == 0.5

    def test_plain_text_falls_back_to_raw(self):
        answer, confidence = decode_answer("  The office is open Monday to Friday.  ")
        assert answer == "The office is open Monday to Friday."
        assert confidence == 0.5

    def test_confidence_clamped(self):
        _, confidence = decode_answer('{"answer": "Clamped answer", "confidence": 7}')
        assert confidence == 1.0

    def test_non_numeric_confidence(self):
        _, confidence = decode_answer('{"answer": "Some answer", "confidence": "high"}')
        assert confidence == 0.5

    def test_none_never_raises(self):
        assert decode_answer(None) == ("", 0.5)


class TestParseStructuredAnswer:
    def test_structured(self):
        assert parse_structured_answer('{"answer": " Yes ", "confidence": 2}') == ("Yes", 1.0)

    def test_missing_answer_raises(self):
        with pytest.raises(ParseError):
            parse_structured_answer('{"confidence": 0.9}')
