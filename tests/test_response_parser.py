"""
Tests for completion parsing and stage result validation
"""

import pytest

from models.lesson_models import InteractionResult, PlanResult, SectionResult
from utils.exceptions import MalformedCompletion
from utils.response_parser import extract_json, parse_completion


@pytest.mark.unit
class TestExtractJson:
    def test_raw_json_with_surrounding_whitespace(self):
        assert extract_json('  \n{"a": [1, 2], "b": null}\n ') == {"a": [1, 2], "b": None}

    def test_fenced_json_inside_prose(self):
        text = 'Here is your lesson:\n```json\n{"content": "# Hooks", "estimatedSeconds": 120}\n```\nEnjoy!'
        assert extract_json(text) == {"content": "# Hooks", "estimatedSeconds": 120}

    def test_raw_array(self):
        assert extract_json("[1, 2, 3]") == [1, 2, 3]

    @pytest.mark.parametrize("text", [
        "I cannot help with that.",
        "```python\nprint('hi')\n```",
        "",
    ])
    def test_non_json_raises_malformed_completion(self, text):
        with pytest.raises(MalformedCompletion):
            extract_json(text)

    def test_broken_fenced_json_raises_malformed_completion(self):
        with pytest.raises(MalformedCompletion):
            extract_json('```json\n{"content": \n```')

    @pytest.mark.parametrize("text", [
        "[" * 100000,
        "```json\n" + "[" * 100000 + "\n```",
    ])
    def test_absurdly_deep_nesting_is_malformed(self, text):
        with pytest.raises(MalformedCompletion):
            extract_json(text)


@pytest.mark.unit
class TestParseCompletion:
    def test_plan_outline_is_sorted_and_renumbered(self):
        raw = (
            '{"topic": "Hooks", "title": "Hooks 101", "description": "d", "outline": ['
            '{"sequenceNumber": 5, "title": "Effects"}, '
            '{"sequenceNumber": 2, "title": "Intro"}, '
            '{"sequenceNumber": 3, "title": "State"}]}'
        )
        plan = parse_completion(raw, PlanResult)

        assert [(i.sequenceNumber, i.title) for i in plan.outline] == [
            (1, "Intro"), (2, "State"), (3, "Effects"),
        ]

    def test_plan_missing_outline_is_malformed(self):
        with pytest.raises(MalformedCompletion) as exc_info:
            parse_completion('{"topic": "t", "title": "x", "description": "d"}', PlanResult)
        assert "outline" in exc_info.value.context["fields"]

    def test_plan_with_empty_outline_is_malformed(self):
        with pytest.raises(MalformedCompletion):
            parse_completion('{"topic": "t", "title": "x", "description": "d", "outline": []}', PlanResult)

    def test_section_keeps_any_estimate_for_the_generator(self):
        result = parse_completion('{"content": "text", "estimatedSeconds": "soon"}', SectionResult)
        assert result.estimatedSeconds == "soon"

    def test_section_with_blank_content_is_malformed(self):
        with pytest.raises(MalformedCompletion):
            parse_completion('{"content": "   "}', SectionResult)

    def test_json_array_is_not_a_stage_result(self):
        with pytest.raises(MalformedCompletion):
            parse_completion("[1, 2]", SectionResult)

    @pytest.mark.parametrize("raw_completion, expected", [
        (42, 42),
        (42.6, 43),
        ("75", 75),
        ("50%", 50),
        (130, 100),
        (-5, 0),
    ])
    def test_interaction_completion_is_coerced_and_clamped(self, raw_completion, expected):
        raw = f'{{"aiResponse": "hi", "completion": {raw_completion!r}}}'.replace("'", '"')
        assert parse_completion(raw, InteractionResult).completion == expected

    @pytest.mark.parametrize("raw", [
        '{"aiResponse": "hi"}',
        '{"aiResponse": "hi", "completion": "lots"}',
        '{"aiResponse": "hi", "completion": true}',
        '{"completion": 10}',
    ])
    def test_interaction_missing_or_bad_fields_are_malformed(self, raw):
        with pytest.raises(MalformedCompletion):
            parse_completion(raw, InteractionResult)
