"""Persistence boundary for worlds, arcs, beats and events.

Every method opens its own session and commits before returning, so the
values handed back are detached pydantic read models, never live ORM rows.
Uniqueness rules live in the schema (``tables.py``); this module turns
their violations into the ``ConflictError`` family.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import List, Optional, Sequence, Tuple

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from worldarc.db.tables import DBArc, DBBeat, DBEvent, DBWorld
from worldarc.errors import (
    ArcNumberConflictError,
    ArcStateError,
    BeatConflictError,
    NotFoundError,
)
from worldarc.models.structure import beat_type_for
from worldarc.models.world import (
    Arc,
    ArcStatus,
    Beat,
    BeatContent,
    BeatType,
    EventType,
    ImpactLevel,
    NewWorldEvent,
    World,
    WorldEvent,
)

log = logging.getLogger(__name__)

_ARC_NUMBER_ATTEMPTS = 3


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class WorldRepository:
    """Async SQLAlchemy repository over the four world tables."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    # =====================================================================
    #  WORLDS
    # =====================================================================

    async def create_world(self, name: str, description: str) -> World:
        async with self._session_factory() as session:
            row = DBWorld(
                name=name, description=description, current_arc_id=None, updated_at=None
            )
            session.add(row)
            await session.commit()
            log.info("World created: id=%d, name=%s", row.id, name)
            return World.model_validate(row)

    async def get_world(self, world_id: int) -> Optional[World]:
        async with self._session_factory() as session:
            row = await session.get(DBWorld, world_id)
            return World.model_validate(row) if row else None

    async def list_worlds(self) -> List[World]:
        async with self._session_factory() as session:
            result = await session.scalars(
                select(DBWorld).order_by(DBWorld.created_at.desc(), DBWorld.id.desc())
            )
            return [World.model_validate(r) for r in result]

    async def update_world_current_arc(
        self, world_id: int, arc_id: Optional[int]
    ) -> World:
        async with self._session_factory() as session:
            row = await session.get(DBWorld, world_id)
            if row is None:
                raise NotFoundError("World", world_id)
            row.current_arc_id = arc_id
            row.updated_at = _utcnow()
            await session.commit()
            log.debug("World %d current arc -> %s", world_id, arc_id)
            return World.model_validate(row)

    # =====================================================================
    #  ARCS
    # =====================================================================

    async def create_arc(
        self,
        world_id: int,
        story_name: str,
        story_idea: str,
        detailed_description: str = "",
    ) -> Arc:
        """Insert an active arc numbered after the world's latest one."""
        arc, _ = await self.create_arc_with_anchors(
            world_id,
            story_name,
            story_idea,
            anchors=(),
            detailed_description=detailed_description,
            set_current=False,
        )
        return arc

    async def create_arc_with_anchors(
        self,
        world_id: int,
        story_name: str,
        story_idea: str,
        anchors: Sequence[Tuple[int, BeatContent]],
        detailed_description: str = "",
        set_current: bool = True,
    ) -> Tuple[Arc, List[Beat]]:
        """Insert the arc, its anchor beats and the world's pointer in one transaction.

        ``arc_number`` is ``max + 1`` read inside the inserting transaction.
        A concurrent creator for the same world trips the
        ``(world_id, arc_number)`` unique constraint; the loser re-reads and
        tries again.
        """
        for attempt in range(1, _ARC_NUMBER_ATTEMPTS + 1):
            async with self._session_factory() as session:
                world = await session.get(DBWorld, world_id)
                if world is None:
                    raise NotFoundError("World", world_id)

                arc_number = await self._next_arc_number(session, world_id)
                arc = DBArc(
                    world_id=world_id,
                    arc_number=arc_number,
                    story_name=story_name,
                    story_idea=story_idea,
                    detailed_description=detailed_description,
                    status=ArcStatus.ACTIVE.value,
                    summary=None,
                    completed_at=None,
                )
                session.add(arc)
                try:
                    await session.flush()
                except IntegrityError:
                    await session.rollback()
                    log.warning(
                        "Arc number %d taken for world %d (attempt %d/%d)",
                        arc_number, world_id, attempt, _ARC_NUMBER_ATTEMPTS,
                    )
                    continue

                beats = [
                    self._new_beat_row(arc.id, index, beat_type_for(index), content)
                    for index, content in anchors
                ]
                session.add_all(beats)
                if set_current:
                    world.current_arc_id = arc.id
                    world.updated_at = _utcnow()
                await session.commit()

                log.info(
                    "Arc created: id=%d, world=%d, number=%d, anchors=%d",
                    arc.id, world_id, arc_number, len(beats),
                )
                return (
                    Arc.model_validate(arc),
                    [Beat.model_validate(b) for b in beats],
                )

        raise ArcNumberConflictError(
            f"Could not allocate an arc number for world {world_id} "
            f"after {_ARC_NUMBER_ATTEMPTS} attempts",
            world_id=world_id,
        )

    async def get_arc(self, arc_id: int) -> Optional[Arc]:
        async with self._session_factory() as session:
            row = await session.get(DBArc, arc_id)
            return Arc.model_validate(row) if row else None

    async def list_world_arcs(self, world_id: int) -> List[Arc]:
        async with self._session_factory() as session:
            result = await session.scalars(
                select(DBArc)
                .where(DBArc.world_id == world_id)
                .order_by(DBArc.arc_number.asc())
            )
            return [Arc.model_validate(r) for r in result]

    async def get_active_arc(self, world_id: int) -> Optional[Arc]:
        async with self._session_factory() as session:
            row = await session.scalar(
                select(DBArc)
                .where(DBArc.world_id == world_id, DBArc.status == ArcStatus.ACTIVE.value)
                .order_by(DBArc.arc_number.desc())
                .limit(1)
            )
            return Arc.model_validate(row) if row else None

    async def complete_arc(self, arc_id: int, summary: str) -> Arc:
        """Close an active arc and release the world's pointer if it targets it."""
        async with self._session_factory() as session:
            arc = await session.get(DBArc, arc_id)
            if arc is None:
                raise NotFoundError("Arc", arc_id)
            if arc.status != ArcStatus.ACTIVE.value:
                raise ArcStateError(
                    f"Arc {arc_id} is already {arc.status}", arc_id=arc_id
                )
            arc.status = ArcStatus.COMPLETED.value
            arc.summary = summary
            arc.completed_at = _utcnow()

            world = await session.get(DBWorld, arc.world_id)
            if world is not None and world.current_arc_id == arc_id:
                world.current_arc_id = None
                world.updated_at = _utcnow()
            await session.commit()
            log.info("Arc %d marked completed", arc_id)
            return Arc.model_validate(arc)

    @staticmethod
    async def _next_arc_number(session: AsyncSession, world_id: int) -> int:
        current = await session.scalar(
            select(func.max(DBArc.arc_number)).where(DBArc.world_id == world_id)
        )
        return (current or 0) + 1

    # =====================================================================
    #  BEATS
    # =====================================================================

    async def create_beat(
        self,
        arc_id: int,
        beat_index: int,
        beat_type: BeatType,
        content: BeatContent,
    ) -> Beat:
        """Insert a beat into an empty slot.

        Raises ``BeatConflictError`` when the slot is already filled; the
        existing beat is left untouched.
        """
        expected = beat_type_for(beat_index)
        if BeatType(beat_type) is not expected:
            raise ValueError(
                f"Beat {beat_index} must be {expected.value}, not {BeatType(beat_type).value}"
            )

        async with self._session_factory() as session:
            if await session.get(DBArc, arc_id) is None:
                raise NotFoundError("Arc", arc_id)
            row = self._new_beat_row(arc_id, beat_index, expected, content)
            session.add(row)
            try:
                await session.commit()
            except IntegrityError as exc:
                await session.rollback()
                log.warning("Beat slot %d of arc %d already filled", beat_index, arc_id)
                raise BeatConflictError(arc_id, beat_index) from exc
            log.info("Beat created: id=%d, arc=%d, index=%d", row.id, arc_id, beat_index)
            return Beat.model_validate(row)

    async def get_arc_beats(self, arc_id: int) -> List[Beat]:
        async with self._session_factory() as session:
            result = await session.scalars(
                select(DBBeat)
                .where(DBBeat.arc_id == arc_id)
                .order_by(DBBeat.beat_index.asc())
            )
            return [Beat.model_validate(r) for r in result]

    async def get_beat(self, beat_id: int) -> Optional[Beat]:
        async with self._session_factory() as session:
            row = await session.get(DBBeat, beat_id)
            return Beat.model_validate(row) if row else None

    @staticmethod
    def _new_beat_row(
        arc_id: int, beat_index: int, beat_type: BeatType, content: BeatContent
    ) -> DBBeat:
        return DBBeat(
            arc_id=arc_id,
            beat_index=beat_index,
            beat_type=beat_type.value,
            beat_name=content.beat_name,
            description=content.description,
            world_directives=list(content.world_directives),
            emergent_storylines=list(content.emergent_storylines),
        )

    # =====================================================================
    #  EVENTS
    # =====================================================================

    async def create_event(self, event: NewWorldEvent) -> WorldEvent:
        async with self._session_factory() as session:
            if await session.get(DBWorld, event.world_id) is None:
                raise NotFoundError("World", event.world_id)
            if event.arc_id is not None and await session.get(DBArc, event.arc_id) is None:
                raise NotFoundError("Arc", event.arc_id)
            if event.beat_id is not None and await session.get(DBBeat, event.beat_id) is None:
                raise NotFoundError("Beat", event.beat_id)
            row = DBEvent(
                world_id=event.world_id,
                arc_id=event.arc_id,
                beat_id=event.beat_id,
                event_type=EventType(event.event_type).value,
                impact_level=ImpactLevel(event.impact_level).value,
                description=event.description,
            )
            session.add(row)
            await session.commit()
            log.info(
                "Event logged: id=%d, world=%d, type=%s, impact=%s",
                row.id, event.world_id, row.event_type, row.impact_level,
            )
            return WorldEvent.model_validate(row)

    async def get_recent_events(self, world_id: int, limit: int = 20) -> List[WorldEvent]:
        """Newest first."""
        return await self.list_events(world_id, limit=limit)

    async def get_beat_events(self, beat_id: int) -> List[WorldEvent]:
        async with self._session_factory() as session:
            result = await session.scalars(
                select(DBEvent)
                .where(DBEvent.beat_id == beat_id)
                .order_by(DBEvent.created_at.desc(), DBEvent.id.desc())
            )
            return [WorldEvent.model_validate(r) for r in result]

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
        stmt = select(DBEvent).where(DBEvent.world_id == world_id)
        if event_type is not None:
            stmt = stmt.where(DBEvent.event_type == EventType(event_type).value)
        if impact_level is not None:
            stmt = stmt.where(DBEvent.impact_level == ImpactLevel(impact_level).value)
        if since is not None:
            stmt = stmt.where(DBEvent.created_at >= since)
        if until is not None:
            stmt = stmt.where(DBEvent.created_at <= until)
        stmt = (
            stmt.order_by(DBEvent.created_at.desc(), DBEvent.id.desc())
            .limit(limit)
            .offset(offset)
        )
        async with self._session_factory() as session:
            result = await session.scalars(stmt)
            return [WorldEvent.model_validate(r) for r in result]
