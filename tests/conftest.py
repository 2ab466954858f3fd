"""Pytest fixtures for worldarc tests."""

from typing import List, Optional, Sequence

import pytest

from worldarc.db.database import create_engine, create_session_factory, init_db
from worldarc.db.repository import WorldRepository
from worldarc.models.generation import AnchorBeat, ArcAnchors, ArcSummary, DynamicBeat
from worldarc.models.world import Beat
from worldarc.services.arc_engine import ArcProgressionEngine
from worldarc.services.notifications import Notification, NotificationBus

ANCHOR_NAMES = ("The Quiet Age", "The Shattering", "The Long Dawn")


def make_anchor(index: int, name: str) -> AnchorBeat:
    return AnchorBeat(
        beat_index=index,
        beat_name=name,
        description=f"{name}: the world at slot {index}.",
        world_directives=[f"directive {index}"],
        major_events=[f"event {index}"],
        emergent_storylines=[f"storyline {index}"],
    )


def make_anchors(count: int = 3, names: Sequence[str] = ANCHOR_NAMES) -> ArcAnchors:
    """Build an anchor payload; counts other than 3 bypass schema validation."""
    slots = [0, 7, 14, 7]
    anchors = [make_anchor(slots[i], names[i % len(names)]) for i in range(count)]
    if count == 3:
        return ArcAnchors(anchors=anchors, arc_description="An age ends and another begins.")
    return ArcAnchors.model_construct(anchors=anchors, arc_description="")


class FakeGateway:
    """Scripted generation gateway that records every call it receives."""

    def __init__(self) -> None:
        self.anchors: ArcAnchors = make_anchors()
        self.summary: Optional[ArcSummary] = ArcSummary(summary="The old order fell.")
        self.summary_error: Optional[Exception] = None
        self.beat_error: Optional[Exception] = None
        self.anchor_calls: List[dict] = []
        self.beat_calls: List[dict] = []
        self.summary_calls: List[dict] = []

    async def generate_anchors(
        self,
        world_name: str,
        world_description: str,
        story_idea: Optional[str],
        previous_arc_summaries: Sequence[str],
    ) -> ArcAnchors:
        self.anchor_calls.append(
            {
                "world_name": world_name,
                "world_description": world_description,
                "story_idea": story_idea,
                "previous_arc_summaries": list(previous_arc_summaries),
            }
        )
        return self.anchors

    async def generate_dynamic_beat(
        self,
        world_name: str,
        world_description: str,
        target_index: int,
        previous_beats: Sequence[Beat],
        upcoming_anchor: Beat,
        recent_events_text: str,
        arc_description: str = "",
    ) -> DynamicBeat:
        self.beat_calls.append(
            {
                "world_name": world_name,
                "world_description": world_description,
                "target_index": target_index,
                "previous_indices": [b.beat_index for b in previous_beats],
                "anchor_index": upcoming_anchor.beat_index,
                "recent_events_text": recent_events_text,
                "arc_description": arc_description,
            }
        )
        if self.beat_error is not None:
            raise self.beat_error
        return DynamicBeat(
            beat_name=f"Beat {target_index}",
            description=f"Things happen at slot {target_index}.",
            world_directives=["markets close"],
            emerging_conflicts=[f"conflict {target_index}"],
        )

    async def generate_summary(
        self,
        arc_name: str,
        arc_idea: str,
        beat_descriptions_text: str,
    ) -> ArcSummary:
        self.summary_calls.append(
            {
                "arc_name": arc_name,
                "arc_idea": arc_idea,
                "beat_descriptions_text": beat_descriptions_text,
            }
        )
        if self.summary_error is not None:
            raise self.summary_error
        return self.summary


@pytest.fixture
async def db_engine(tmp_path):
    """Fresh SQLite file per test."""
    engine = create_engine(f"sqlite+aiosqlite:///{tmp_path / 'worldarc-test.db'}")
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def repository(db_engine) -> WorldRepository:
    return WorldRepository(create_session_factory(db_engine))


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture
def bus() -> NotificationBus:
    return NotificationBus()


@pytest.fixture
def published(bus) -> List[Notification]:
    """Every notification the bus delivers, in order."""
    received: List[Notification] = []

    async def record(notification: Notification) -> None:
        received.append(notification)

    bus.subscribe("*", record)
    return received


@pytest.fixture
def engine(repository, gateway, bus, published) -> ArcProgressionEngine:
    return ArcProgressionEngine(repository, gateway, bus)
