"""Tests for generation payload schemas and the fixed arc structure."""

import pytest
from pydantic import ValidationError

from worldarc.models.generation import AnchorBeat, ArcAnchors, ArcSummary, DynamicBeat
from worldarc.models.structure import (
    ANCHOR_INDICES,
    ARC_LENGTH,
    BEAT_STRUCTURE,
    beat_info,
    beat_type_for,
)
from worldarc.models.world import BeatType


def _anchor(index, name="A"):
    return {
        "beatIndex": index,
        "beatName": name,
        "description": "d",
        "worldDirectives": [],
        "majorEvents": [],
        "emergentStorylines": [],
    }


class TestArcStructure:
    """Tests for the fifteen-slot layout."""

    def test_table_covers_every_slot(self):
        assert [b.index for b in BEAT_STRUCTURE] == list(range(ARC_LENGTH))
        assert BEAT_STRUCTURE[0].label == "Opening Image"
        assert BEAT_STRUCTURE[14].label == "Future Seeds"

    def test_type_by_index(self):
        for index in range(ARC_LENGTH):
            expected = BeatType.ANCHOR if index in ANCHOR_INDICES else BeatType.DYNAMIC
            assert beat_type_for(index) is expected

    @pytest.mark.parametrize("index", [-1, 15])
    def test_type_out_of_range(self, index):
        with pytest.raises(ValueError):
            beat_type_for(index)

    def test_beat_info_out_of_range(self):
        assert beat_info(3).label == "Catalyst"
        assert beat_info(20) is None


class TestArcAnchors:
    """Tests for the anchor payload."""

    def test_valid_payload(self):
        anchors = ArcAnchors.model_validate(
            {"anchors": [_anchor(0), _anchor(7), _anchor(14)], "arcDescription": "x"}
        )
        assert anchors.arc_description == "x"
        assert anchors.anchors[1].beat_index == 7

    def test_description_optional(self):
        anchors = ArcAnchors.model_validate({"anchors": [_anchor(0), _anchor(7), _anchor(14)]})
        assert anchors.arc_description == ""

    @pytest.mark.parametrize("count", [2, 4])
    def test_exactly_three(self, count):
        payload = [_anchor(i) for i in (0, 7, 14, 14)[:count]]
        with pytest.raises(ValidationError):
            ArcAnchors.model_validate({"anchors": payload})

    def test_declared_index_must_be_anchor_slot(self):
        with pytest.raises(ValidationError):
            AnchorBeat.model_validate(_anchor(3))

    def test_declared_indices_distinct(self):
        with pytest.raises(ValidationError, match="distinct"):
            ArcAnchors.model_validate({"anchors": [_anchor(0), _anchor(0), _anchor(14)]})

    def test_schema_uses_camel_case(self):
        props = AnchorBeat.model_json_schema()["properties"]
        assert "beatIndex" in props
        assert "emergentStorylines" in props


class TestDynamicBeatAndSummary:
    """Tests for the per-beat and summary payloads."""

    def test_snake_case_population(self):
        beat = DynamicBeat(
            beat_name="n", description="d", world_directives=[], emerging_conflicts=["c"]
        )
        assert beat.environmental_changes is None
        assert beat.model_dump(by_alias=True)["emergingConflicts"] == ["c"]

    def test_dynamic_beat_requires_conflicts(self):
        with pytest.raises(ValidationError):
            DynamicBeat.model_validate({"beatName": "n", "description": "d", "worldDirectives": []})

    def test_summary_defaults(self):
        summary = ArcSummary.model_validate({"summary": "s"})
        assert summary.major_changes == []
        assert summary.thematic_progression == ""
