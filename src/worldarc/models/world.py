"""Read models for the persisted world, its arcs, beats and events."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


# ─── Enumerations ────────────────────────────────────────────────────────


class ArcStatus(str, Enum):
    ACTIVE = "active"
    COMPLETED = "completed"


class BeatType(str, Enum):
    ANCHOR = "anchor"
    DYNAMIC = "dynamic"


class EventType(str, Enum):
    PLAYER_ACTION = "player_action"
    SYSTEM_EVENT = "system_event"
    WORLD_EVENT = "world_event"


class ImpactLevel(str, Enum):
    MINOR = "minor"
    MODERATE = "moderate"
    MAJOR = "major"


# ─── Entities ────────────────────────────────────────────────────────────


class World(BaseModel):
    """The persistent narrative universe. Tracks, but does not own, its active arc."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    description: str
    current_arc_id: Optional[int] = None
    created_at: datetime
    updated_at: Optional[datetime] = None


class Arc(BaseModel):
    """One complete story cycle for a world: fifteen beats, active until summarised."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    world_id: int
    arc_number: int = Field(ge=1)
    story_name: str
    story_idea: str
    detailed_description: str = ""
    status: ArcStatus = ArcStatus.ACTIVE
    summary: Optional[str] = None
    created_at: datetime
    completed_at: Optional[datetime] = None


class Beat(BaseModel):
    """A single narrative step at a fixed slot of its arc."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    arc_id: int
    beat_index: int = Field(ge=0, le=14)
    beat_type: BeatType
    beat_name: str
    description: str
    world_directives: List[str] = Field(default_factory=list)
    emergent_storylines: List[str] = Field(default_factory=list)
    created_at: datetime


class BeatContent(BaseModel):
    """The generated part of a beat, before it is slotted into an arc."""

    beat_name: str
    description: str
    world_directives: List[str] = Field(default_factory=list)
    emergent_storylines: List[str] = Field(default_factory=list)


class NewWorldEvent(BaseModel):
    """Input for the append-only event log."""

    world_id: int
    event_type: EventType
    impact_level: ImpactLevel
    description: str
    arc_id: Optional[int] = None
    beat_id: Optional[int] = None


class WorldEvent(NewWorldEvent):
    model_config = ConfigDict(from_attributes=True)

    id: int
    created_at: datetime


# ─── Composite results ───────────────────────────────────────────────────


class ArcCreation(BaseModel):
    arc: Arc
    anchors: List[Beat]


class ArcCompleted(BaseModel):
    """Returned by ``progress_arc`` instead of a beat once all slots are filled."""

    arc: Arc


class WorldState(BaseModel):
    """Read-only snapshot of a world, assembled fresh on every call."""

    world: World
    current_arc: Optional[Arc] = None
    current_beats: List[Beat] = Field(default_factory=list)
    recent_events: List[WorldEvent] = Field(default_factory=list)
