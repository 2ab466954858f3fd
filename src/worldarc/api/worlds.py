from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field

from fastapi import APIRouter, Depends, Query

from worldarc.api.dependencies import get_arc_engine
from worldarc.models.world import (
    Arc,
    ArcCompleted,
    Beat,
    EventType,
    ImpactLevel,
    NewWorldEvent,
)
from worldarc.services.arc_engine import ArcProgressionEngine

router = APIRouter(prefix="/api/worlds", tags=["worlds"])


class CreateWorldRequest(BaseModel):
    name: str = Field(min_length=1)
    description: str


class CreateArcRequest(BaseModel):
    story_idea: Optional[str] = None
    world_name: Optional[str] = None  # defaults to the stored world
    world_description: Optional[str] = None


class ProgressArcRequest(BaseModel):
    recent_events: Optional[str] = None


class ProgressArcResponse(BaseModel):
    completed: bool
    beat: Optional[Beat] = None
    arc: Optional[Arc] = None


class RecordEventRequest(BaseModel):
    event_type: EventType
    impact_level: ImpactLevel
    description: str
    arc_id: Optional[int] = None
    beat_id: Optional[int] = None


# ── Worlds ───────────────────────────────────────────────────────────────


@router.post("", status_code=201)
async def create_world(
    body: CreateWorldRequest,
    engine: ArcProgressionEngine = Depends(get_arc_engine),
):
    """Create a new world with no arcs."""
    world = await engine.create_world(body.name, body.description)
    return world.model_dump()


@router.get("")
async def list_worlds(engine: ArcProgressionEngine = Depends(get_arc_engine)):
    """List all worlds, newest first."""
    return [w.model_dump() for w in await engine.list_worlds()]


@router.get("/{world_id}")
async def get_world(
    world_id: int,
    engine: ArcProgressionEngine = Depends(get_arc_engine),
):
    world = await engine.get_world(world_id)
    return world.model_dump()


@router.get("/{world_id}/state")
async def get_world_state(
    world_id: int,
    engine: ArcProgressionEngine = Depends(get_arc_engine),
):
    """World, current arc with its beats, and the 20 newest events."""
    state = await engine.get_world_state(world_id)
    return state.model_dump()


# ── Arcs ─────────────────────────────────────────────────────────────────


@router.post("/{world_id}/arcs", status_code=201)
async def create_arc(
    world_id: int,
    body: CreateArcRequest,
    engine: ArcProgressionEngine = Depends(get_arc_engine),
):
    """Generate the three anchor beats of a new arc and make it current."""
    world = await engine.get_world(world_id)
    created = await engine.create_arc(
        world_id,
        body.world_name or world.name,
        body.world_description or world.description,
        body.story_idea,
    )
    return created.model_dump()


@router.get("/{world_id}/arcs")
async def list_arcs(
    world_id: int,
    engine: ArcProgressionEngine = Depends(get_arc_engine),
):
    return [a.model_dump() for a in await engine.list_arcs(world_id)]


@router.post("/{world_id}/arcs/{arc_id}/progress")
async def progress_arc(
    world_id: int,
    arc_id: int,
    body: Optional[ProgressArcRequest] = None,
    engine: ArcProgressionEngine = Depends(get_arc_engine),
):
    """Generate the next dynamic beat, or complete the arc once it is full."""
    result = await engine.progress_arc(
        world_id, arc_id, body.recent_events if body else None
    )
    if isinstance(result, ArcCompleted):
        response = ProgressArcResponse(completed=True, arc=result.arc)
    else:
        response = ProgressArcResponse(completed=False, beat=result)
    return response.model_dump()


@router.post("/{world_id}/arcs/{arc_id}/complete")
async def complete_arc(
    world_id: int,
    arc_id: int,
    engine: ArcProgressionEngine = Depends(get_arc_engine),
):
    """Summarise and close the arc early."""
    arc = await engine.complete_arc(world_id, arc_id)
    return arc.model_dump()


@router.get("/{world_id}/arcs/{arc_id}/current-beat")
async def get_current_beat(
    world_id: int,
    arc_id: int,
    engine: ArcProgressionEngine = Depends(get_arc_engine),
):
    beat = await engine.get_current_beat(world_id, arc_id)
    return beat.model_dump() if beat else None


# ── Events ───────────────────────────────────────────────────────────────


@router.post("/{world_id}/events", status_code=201)
async def record_event(
    world_id: int,
    body: RecordEventRequest,
    engine: ArcProgressionEngine = Depends(get_arc_engine),
):
    """Append an event to the world's log."""
    event = await engine.record_world_event(
        NewWorldEvent(world_id=world_id, **body.model_dump())
    )
    return event.model_dump()


@router.get("/{world_id}/events")
async def list_events(
    world_id: int,
    event_type: Optional[EventType] = None,
    impact_level: Optional[ImpactLevel] = None,
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    engine: ArcProgressionEngine = Depends(get_arc_engine),
):
    """Events of a world, newest first."""
    events = await engine.list_events(
        world_id,
        event_type=event_type,
        impact_level=impact_level,
        limit=limit,
        offset=offset,
    )
    return [e.model_dump() for e in events]
