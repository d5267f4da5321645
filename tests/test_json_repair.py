"""Defensive parsing of model output plus strict schema validation."""
import pytest

from sheet_assistant.models import ANSWER_SCHEMA, PLAN_SCHEMA
from sheet_assistant.utils.json_repair import (
    extract_json_span,
    parse_and_validate,
    parse_llm_json,
    repair_json_text,
    strip_markdown_fences,
)


class TestExtraction:

    def test_strip_fences(self):
        assert strip_markdown_fences('```json\n{"a": 1}\n```') == '{"a": 1}'
        assert strip_markdown_fences("```\n{}\n```") == "{}"
        assert strip_markdown_fences('  {"a": 1} ') == '{"a": 1}'

    def test_span_between_first_and_last_brace(self):
        assert extract_json_span('Sure! {"a": {"b": 2}} Hope this helps.') == '{"a": {"b": 2}}'
        assert extract_json_span("no json here") == ""


class TestRepair:

    def test_bare_keys_and_values(self):
        data = parse_llm_json("{intent: count, filters: [{field: Date, operator: month, value: 6}]}")
        assert data == {"intent": "count", "filters": [{"field": "Date", "operator": "month", "value": 6}]}

    def test_single_quotes_and_trailing_commas(self):
        data = parse_llm_json("{'intent': 'list', 'filters': [],}")
        assert data == {"intent": "list", "filters": []}

    def test_literals_kept(self):
        assert repair_json_text("{a: true, b: null}") == '{"a": true, "b": null}'

    def test_quoted_text_not_rewritten(self):
        data = parse_llm_json('{answer: "Note, B: x", source: "rows, all"}')
        assert data == {"answer": "Note, B: x", "source": "rows, all"}

    def test_valid_json_untouched(self):
        assert parse_llm_json('{"answer": "It is 3, per the data.", "source": "x"}')["answer"] == "It is 3, per the data."

    @pytest.mark.parametrize("text", ["", "nothing useful", "[1, 2, 3]", "{this is : not [ json"])
    def test_unrecoverable(self, text):
        with pytest.raises(ValueError):
            parse_llm_json(text)


class TestValidation:

    def test_plan_schema_accepts_valid_plan(self):
        text = '```json\n{"filters": [{"field": "Location", "operator": "equals", "value": "a st"}], "fields": [], "intent": "list"}\n```'
        assert parse_and_validate(text, PLAN_SCHEMA)["intent"] == "list"

    @pytest.mark.parametrize("text", [
        '{"filters": [], "intent": "summarize"}',
        '{"filters": [{"field": "Date", "operator": "between", "value": 1}], "intent": "list"}',
        '{"intent": "count"}',
        '{"filters": "Location", "intent": "count"}',
    ])
    def test_plan_schema_rejects_shape_mismatch(self, text):
        with pytest.raises(ValueError):
            parse_and_validate(text, PLAN_SCHEMA)

    def test_answer_schema_is_strict(self):
        assert parse_and_validate('{"answer": "2 records", "source": "Date"}', ANSWER_SCHEMA) == {
            "answer": "2 records", "source": "Date",
        }
        with pytest.raises(ValueError):
            parse_and_validate('{"answer": "2", "source": "x", "extra": 1}', ANSWER_SCHEMA)
        with pytest.raises(ValueError):
            parse_and_validate('{"answer": "2 records"}', ANSWER_SCHEMA)
