from __future__ import annotations

from fastapi import APIRouter, Depends

from worldarc.api.dependencies import get_arc_engine
from worldarc.services.arc_engine import ArcProgressionEngine

router = APIRouter(prefix="/api/beats", tags=["beats"])


@router.get("/{beat_id}/events")
async def get_beat_events(
    beat_id: int,
    engine: ArcProgressionEngine = Depends(get_arc_engine),
):
    """Events linked to a beat, newest first."""
    return [e.model_dump() for e in await engine.get_beat_events(beat_id)]
