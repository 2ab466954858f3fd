"""Tests for OutputParser."""

import pytest

from worldarc.errors import GenerationValidationError
from worldarc.models.generation import ArcSummary, DynamicBeat
from worldarc.parsing.output_parser import OutputParser


class TestExtractJson:
    """Tests for locating JSON inside free text."""

    def test_fenced_block(self):
        text = 'Sure!\n```json\n{"summary": "x"}\n```\nAnything else?'
        assert OutputParser.extract_json(text) == '{"summary": "x"}'

    def test_unlabelled_fence(self):
        assert OutputParser.extract_json('```\n{"a": 1}\n```') == '{"a": 1}'

    def test_balanced_object_in_prose(self):
        text = 'The beat is {"beatName": "Ash", "nested": {"k": 1}} as requested.'
        assert OutputParser.extract_json(text) == '{"beatName": "Ash", "nested": {"k": 1}}'

    def test_braces_inside_strings_ignored(self):
        text = 'prefix {"description": "a } tricky { \\" value"} suffix'
        assert OutputParser.extract_json(text) == '{"description": "a } tricky { \\" value"}'

    def test_whole_text_when_nothing_found(self):
        assert OutputParser.extract_json("  no json here  ") == "no json here"


class TestParse:
    """Tests for parse-and-validate."""

    def test_camel_case_payload(self):
        text = (
            '{"beatName": "Ash Fall", "description": "Grey skies.", '
            '"worldDirectives": ["masks"], "emergingConflicts": ["hoarding"], '
            '"environmentalChanges": null}'
        )
        beat = OutputParser.parse(text, DynamicBeat)
        assert beat.beat_name == "Ash Fall"
        assert beat.environmental_changes is None

    @pytest.mark.parametrize("text", ["", "   ", None])
    def test_empty_output(self, text):
        with pytest.raises(GenerationValidationError, match="Empty"):
            OutputParser.parse(text, ArcSummary)

    def test_malformed_json(self):
        with pytest.raises(GenerationValidationError, match="Could not parse") as excinfo:
            OutputParser.parse('{"summary": ', ArcSummary)
        assert excinfo.value.raw_response == '{"summary": '

    def test_schema_mismatch(self):
        with pytest.raises(GenerationValidationError, match="does not match"):
            OutputParser.parse('{"beatName": "Only a name"}', DynamicBeat)
