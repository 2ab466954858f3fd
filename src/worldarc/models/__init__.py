from worldarc.models.world import (
    Arc,
    ArcCompleted,
    ArcCreation,
    ArcStatus,
    Beat,
    BeatContent,
    BeatType,
    EventType,
    ImpactLevel,
    NewWorldEvent,
    World,
    WorldEvent,
    WorldState,
)
from worldarc.models.generation import (
    AnchorBeat,
    ArcAnchors,
    ArcSummary,
    DynamicBeat,
)
from worldarc.models.structure import (
    ANCHOR_INDICES,
    ARC_LENGTH,
    BEAT_STRUCTURE,
    BeatInfo,
    beat_type_for,
)

__all__ = [
    "Arc",
    "ArcCompleted",
    "ArcCreation",
    "ArcStatus",
    "Beat",
    "BeatContent",
    "BeatType",
    "EventType",
    "ImpactLevel",
    "NewWorldEvent",
    "World",
    "WorldEvent",
    "WorldState",
    "AnchorBeat",
    "ArcAnchors",
    "ArcSummary",
    "DynamicBeat",
    "ANCHOR_INDICES",
    "ARC_LENGTH",
    "BEAT_STRUCTURE",
    "BeatInfo",
    "beat_type_for",
]
