"""Structured payloads returned by the generation gateway.

These are the tool-call schemas the LLM fills in. Field names travel as
camelCase on the wire (``beatName``) and are snake_case in Python.
"""

from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from worldarc.models.structure import ANCHOR_INDICES


class _ToolPayload(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class AnchorBeat(_ToolPayload):
    """One of the three structural beats that bound an arc."""

    beat_index: int = Field(
        description="Which anchor slot this beat represents: 0, 7 or 14",
    )
    beat_name: str = Field(description="Evocative name for this world era or event")
    description: str = Field(
        description="The world state and the changes under way during this beat",
    )
    world_directives: List[str] = Field(
        description="Systemic rules for how factions, regions and systems behave",
    )
    major_events: List[str] = Field(
        description="Major events or phenomena occurring during this period",
    )
    emergent_storylines: List[str] = Field(
        description="3-5 storylines inhabitants might engage with",
    )

    @field_validator("beat_index")
    @classmethod
    def _anchor_slot(cls, value: int) -> int:
        if value not in ANCHOR_INDICES:
            raise ValueError(f"beatIndex must be one of {ANCHOR_INDICES}, got {value}")
        return value


class ArcAnchors(_ToolPayload):
    """Opening state (0), catalyst (7) and new equilibrium (14) of a new arc."""

    anchors: List[AnchorBeat] = Field(
        min_length=3,
        max_length=3,
        description="Exactly three anchors, in order: beat 0, beat 7, beat 14",
    )
    arc_description: str = Field(
        default="",
        description="A detailed description of the arc's theme and trajectory",
    )

    @model_validator(mode="after")
    def _distinct_slots(self) -> "ArcAnchors":
        indices = [a.beat_index for a in self.anchors]
        if len(set(indices)) != len(indices):
            raise ValueError(f"anchor beatIndex values must be distinct, got {indices}")
        return self


class DynamicBeat(_ToolPayload):
    """A single beat generated between two anchors."""

    beat_name: str = Field(description="Evocative title that captures the essence")
    description: str = Field(
        description="3-5 sentences painting the full picture of what is happening",
    )
    world_directives: List[str] = Field(
        description="3-5 systemic changes affecting everyone",
    )
    emerging_conflicts: List[str] = Field(
        description="3-5 new tensions or opportunities",
    )
    environmental_changes: Optional[List[str]] = Field(
        default=None,
        description="null, or 2-3 physical or magical changes to the world",
    )


class ArcSummary(_ToolPayload):
    """Durable record of what an arc did to the world, fed to later arcs."""

    summary: str = Field(description="2-3 paragraph summary of the world transformation")
    major_changes: List[str] = Field(default_factory=list)
    affected_regions: List[str] = Field(default_factory=list)
    thematic_progression: str = ""
    future_implications: List[str] = Field(default_factory=list)
