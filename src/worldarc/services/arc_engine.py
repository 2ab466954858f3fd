"""Arc progression engine: the lifecycle of a world's story arcs.

An arc is fifteen beat slots. Three anchors (0, 7, 14) are generated
together when the arc opens; the twelve dynamic beats between them are
generated one per ``progress_arc`` call, always filling the lowest empty
slot and always steering toward the next anchor above it. When every slot
is filled the next call closes the arc:

    create_arc ──► active ──progress_arc × 12──► full ──progress_arc──► completed
                      │                                                   ▲
                      └──────────────────── complete_arc ─────────────────┘

The engine talks to three collaborators handed in at construction: the
repository (storage), the generation gateway (LLM) and a notifier
(observers). It retries nothing and swallows nothing except a failed
summary, which degrades to a fixed literal so an arc can always close.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Iterable, List, Optional, Sequence, Union

from worldarc.db.repository import WorldRepository
from worldarc.errors import ArcStateError, GenerationValidationError, NotFoundError
from worldarc.models.generation import AnchorBeat, ArcAnchors, DynamicBeat
from worldarc.models.structure import ANCHOR_INDICES, ARC_LENGTH
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
from worldarc.services import notifications
from worldarc.services.generation import GenerationGateway
from worldarc.services.notifications import Notifier, NullNotifier

log = logging.getLogger(__name__)

UNTITLED_ARC_NAME = "Untitled World Arc"
AUTO_STORY_IDEA = "Auto-generated world story arc"
FALLBACK_SUMMARY = "Arc completed without significant world changes."

PREVIOUS_ARCS_CONTEXT = 3
RECENT_EVENTS_CONTEXT = 5
STATE_EVENTS = 20


# ---------------------------------------------------------------------------
# Pure helpers
# ---------------------------------------------------------------------------


def next_beat_index(beats: Iterable[Beat]) -> int:
    """Lowest empty slot in 0..14; 0 when the arc is full."""
    taken = {b.beat_index for b in beats}
    for index in range(ARC_LENGTH):
        if index not in taken:
            return index
    return 0


def current_beat(beats: Iterable[Beat]) -> Optional[Beat]:
    """Last beat of the unbroken run starting at slot 0.

    Dynamic beats always fill the lowest empty slot, so this is the beat the
    arc has actually reached. Pre-seeded anchors further ahead do not count:
    with only 0, 7 and 14 present the arc is still at 0.
    """
    by_index = {b.beat_index: b for b in beats}
    reached = None
    for index in range(ARC_LENGTH):
        if index not in by_index:
            break
        reached = by_index[index]
    return reached


def find_next_anchor(beats: Iterable[Beat], index: int) -> Optional[Beat]:
    """Earliest anchor beat strictly after *index*."""
    later = [b for b in beats if b.beat_type == BeatType.ANCHOR and b.beat_index > index]
    return min(later, key=lambda b: b.beat_index, default=None)


def format_events_context(events: Sequence[WorldEvent]) -> str:
    return "\n".join(f"[{e.impact_level.value}] {e.description}" for e in events)


def build_summary_input(beats: Iterable[Beat]) -> str:
    ordered = sorted(beats, key=lambda b: b.beat_index)
    return "\n\n".join(
        f"Beat {b.beat_index} ({b.beat_name}): {b.description[:200]}..."
        for b in ordered
    )


def format_previous_arcs(arcs: Sequence[Arc], limit: int = PREVIOUS_ARCS_CONTEXT) -> List[str]:
    """Completed arcs with a summary, oldest first, at most the last *limit*."""
    done = [
        a for a in sorted(arcs, key=lambda a: a.arc_number)
        if a.status == ArcStatus.COMPLETED and a.summary
    ]
    return [f"Arc {a.arc_number}: {a.story_name}\n{a.summary}" for a in done[-limit:]]


def _anchor_content(anchor: AnchorBeat) -> BeatContent:
    return BeatContent(
        beat_name=anchor.beat_name,
        description=anchor.description,
        world_directives=list(anchor.world_directives),
        emergent_storylines=list(anchor.emergent_storylines),
    )


def _dynamic_content(beat: DynamicBeat) -> BeatContent:
    return BeatContent(
        beat_name=beat.beat_name,
        description=beat.description,
        world_directives=list(beat.world_directives),
        emergent_storylines=list(beat.emerging_conflicts),
    )


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------


class ArcProgressionEngine:
    """Creates, advances and closes world arcs."""

    def __init__(
        self,
        repository: WorldRepository,
        gateway: GenerationGateway,
        notifier: Notifier | None = None,
    ):
        self._repo = repository
        self._gateway = gateway
        self._notifier = notifier or NullNotifier()

    # ------------------------------------------------------------------
    # Worlds
    # ------------------------------------------------------------------

    async def create_world(self, name: str, description: str) -> World:
        world = await self._repo.create_world(name, description)
        await self._notifier.publish(
            notifications.WORLD_CREATED, {"world_id": world.id, "name": world.name}
        )
        return world

    async def get_world(self, world_id: int) -> World:
        world = await self._repo.get_world(world_id)
        if world is None:
            raise NotFoundError("World", world_id)
        return world

    async def list_worlds(self) -> List[World]:
        return await self._repo.list_worlds()

    # ------------------------------------------------------------------
    # Arc lifecycle
    # ------------------------------------------------------------------

    async def create_arc(
        self,
        world_id: int,
        world_name: str,
        world_description: str,
        story_idea: Optional[str] = None,
    ) -> ArcCreation:
        """Open a new arc: generate its three anchors and make it current.

        Nothing is written unless the gateway returns exactly three anchors.
        Anchors are slotted by position, first to 0, second to 7, third to 14.
        """
        await self.get_world(world_id)

        arcs = await self._repo.list_world_arcs(world_id)
        history = format_previous_arcs(arcs)
        log.debug("Arc history for world %d: %d summaries", world_id, len(history))

        generated: ArcAnchors = await self._gateway.generate_anchors(
            world_name, world_description, story_idea, history
        )
        if len(generated.anchors) != len(ANCHOR_INDICES):
            raise GenerationValidationError(
                f"Expected {len(ANCHOR_INDICES)} anchor beats, got {len(generated.anchors)}",
                world_id=world_id,
            )

        first_name = generated.anchors[0].beat_name
        arc, anchors = await self._repo.create_arc_with_anchors(
            world_id,
            story_name=first_name or UNTITLED_ARC_NAME,
            story_idea=story_idea or AUTO_STORY_IDEA,
            anchors=[
                (index, _anchor_content(anchor))
                for index, anchor in zip(ANCHOR_INDICES, generated.anchors)
            ],
            detailed_description=generated.arc_description or "",
        )
        log.info(
            "Arc %d opened for world %d: '%s' (#%d)",
            arc.id, world_id, arc.story_name, arc.arc_number,
        )
        await self._notifier.publish(
            notifications.ARC_CREATED,
            {"world_id": world_id, "arc_id": arc.id, "arc_name": arc.story_name},
        )
        return ArcCreation(arc=arc, anchors=anchors)

    async def progress_arc(
        self,
        world_id: int,
        arc_id: int,
        recent_events: Optional[str] = None,
    ) -> Union[Beat, ArcCompleted]:
        """Fill the lowest empty slot, or close the arc once all fifteen exist."""
        arc = await self._get_world_arc(world_id, arc_id)
        if arc.status == ArcStatus.COMPLETED:
            log.info("Arc %d already completed; nothing to progress", arc_id)
            return ArcCompleted(arc=arc)

        beats = await self._repo.get_arc_beats(arc_id)
        if len(beats) >= ARC_LENGTH:
            log.info("Arc %d is full; completing", arc_id)
            return ArcCompleted(arc=await self.complete_arc(world_id, arc_id))

        index = next_beat_index(beats)
        previous = [b for b in beats if b.beat_index < index]
        anchor = find_next_anchor(beats, index)
        if anchor is None:
            raise ArcStateError("No next anchor point found", arc_id=arc_id, beat_index=index)
        log.debug(
            "Arc %d: next slot %d, %d earlier beats, steering to anchor %d",
            arc_id, index, len(previous), anchor.beat_index,
        )

        context = recent_events
        if not context:
            events = await self._repo.get_recent_events(world_id, limit=RECENT_EVENTS_CONTEXT)
            context = format_events_context(events)

        world = await self.get_world(world_id)
        generated = await self._gateway.generate_dynamic_beat(
            world.name,
            world.description,
            index,
            previous,
            anchor,
            context,
            arc_description=arc.detailed_description,
        )

        beat = await self._repo.create_beat(
            arc_id, index, BeatType.DYNAMIC, _dynamic_content(generated)
        )
        await self._repo.create_event(
            NewWorldEvent(
                world_id=world_id,
                arc_id=arc_id,
                beat_id=beat.id,
                event_type=EventType.SYSTEM_EVENT,
                impact_level=ImpactLevel.MODERATE,
                description=f"New world beat generated: {beat.beat_name}",
            )
        )
        log.info("Arc %d: beat %d generated '%s'", arc_id, index, beat.beat_name)
        await self._notifier.publish(
            notifications.BEAT_CREATED,
            {
                "world_id": world_id,
                "arc_id": arc_id,
                "beat_id": beat.id,
                "beat_index": beat.beat_index,
                "beat_name": beat.beat_name,
            },
        )
        return beat

    async def complete_arc(self, world_id: int, arc_id: int) -> Arc:
        """Summarise and close an active arc, releasing the world's pointer."""
        arc = await self._get_world_arc(world_id, arc_id)
        if arc.status != ArcStatus.ACTIVE:
            raise ArcStateError(f"Arc {arc_id} is already {arc.status.value}", arc_id=arc_id)

        beats = await self._repo.get_arc_beats(arc_id)
        summary = await self._summarise(arc, beats)

        completed = await self._repo.complete_arc(arc_id, summary)
        await self._repo.create_event(
            NewWorldEvent(
                world_id=world_id,
                arc_id=arc_id,
                event_type=EventType.SYSTEM_EVENT,
                impact_level=ImpactLevel.MAJOR,
                description=f"World arc completed: {arc.story_name}. {summary}",
            )
        )
        log.info("Arc %d completed for world %d (%d beats)", arc_id, world_id, len(beats))
        await self._notifier.publish(
            notifications.ARC_COMPLETED,
            {
                "world_id": world_id,
                "arc_id": arc_id,
                "arc_name": arc.story_name,
                "summary": summary,
            },
        )
        return completed

    async def _summarise(self, arc: Arc, beats: Sequence[Beat]) -> str:
        try:
            result = await self._gateway.generate_summary(
                arc.story_name, arc.story_idea, build_summary_input(beats)
            )
        except Exception as exc:
            log.warning("Summary generation failed for arc %d, using fallback: %s", arc.id, exc)
            return FALLBACK_SUMMARY
        if not result.summary or not result.summary.strip():
            log.warning("Summary generation returned nothing for arc %d, using fallback", arc.id)
            return FALLBACK_SUMMARY
        return result.summary

    async def _get_world_arc(self, world_id: int, arc_id: int) -> Arc:
        arc = await self._repo.get_arc(arc_id)
        if arc is None or arc.world_id != world_id:
            raise NotFoundError("Arc", arc_id)
        return arc

    async def list_arcs(self, world_id: int) -> List[Arc]:
        await self.get_world(world_id)
        return await self._repo.list_world_arcs(world_id)

    async def get_current_beat(self, world_id: int, arc_id: int) -> Optional[Beat]:
        await self._get_world_arc(world_id, arc_id)
        return current_beat(await self._repo.get_arc_beats(arc_id))

    # ------------------------------------------------------------------
    # Events and state
    # ------------------------------------------------------------------

    async def record_world_event(self, event: NewWorldEvent) -> WorldEvent:
        """Append to the world's event log. Events are never edited afterwards."""
        recorded = await self._repo.create_event(event)
        await self._notifier.publish(
            notifications.EVENT_LOGGED,
            {
                "world_id": recorded.world_id,
                "event_id": recorded.id,
                "event_type": recorded.event_type.value,
                "impact_level": recorded.impact_level.value,
                "description": recorded.description,
            },
        )
        return recorded

    async def get_beat_events(self, beat_id: int) -> List[WorldEvent]:
        if await self._repo.get_beat(beat_id) is None:
            raise NotFoundError("Beat", beat_id)
        return await self._repo.get_beat_events(beat_id)

    async def list_events(
        self,
        world_id: int,
        *,
        event_type: Optional[EventType] = None,
        impact_level: Optional[ImpactLevel] = None,
        limit: int = 50,
        offset: int = 0,
        since: Optional[datetime] = None,
        until: Optional[datetime] = None,
    ) -> List[WorldEvent]:
        await self.get_world(world_id)
        return await self._repo.list_events(
            world_id,
            event_type=event_type,
            impact_level=impact_level,
            limit=limit,
            offset=offset,
            since=since,
            until=until,
        )

    async def get_world_state(self, world_id: int) -> WorldState:
        """Snapshot of the world, its current arc with beats, and recent events.

        A pointer to an arc that no longer exists yields no current arc.
        """
        world = await self.get_world(world_id)

        current_arc: Optional[Arc] = None
        current_beats: List[Beat] = []
        if world.current_arc_id is not None:
            current_arc = await self._repo.get_arc(world.current_arc_id)
            if current_arc is not None:
                current_beats = await self._repo.get_arc_beats(current_arc.id)

        recent = await self._repo.get_recent_events(world_id, limit=STATE_EVENTS)
        return WorldState(
            world=world,
            current_arc=current_arc,
            current_beats=current_beats,
            recent_events=recent,
        )
