"""Event-driven beat generation.

Logged world events pile up per world. Once enough of them are major, or
once a world has gone a day without a new beat, the world's current arc is
advanced by one ``progress_arc`` call with the buffered events handed to
the generator as recent history. The buffer then starts over.

Staleness is only checked when an event arrives; there is no background
scheduler.
"""

from __future__ import annotations

import logging
import time
from collections import defaultdict
from typing import Any, Callable, Dict, List, Optional, Union

from worldarc.models.world import ArcCompleted, Beat, ImpactLevel
from worldarc.services import notifications
from worldarc.services.arc_engine import ArcProgressionEngine
from worldarc.services.notifications import Notification, NotificationBus

log = logging.getLogger(__name__)

DEFAULT_MAJOR_EVENTS = 3
DEFAULT_STALE_AFTER = 24 * 60 * 60


class EventDrivenBeats:
    """``world.eventLogged`` subscriber that advances a world's current arc."""

    def __init__(
        self,
        engine_factory: Callable[[], ArcProgressionEngine],
        major_events: int = DEFAULT_MAJOR_EVENTS,
        stale_after: float = DEFAULT_STALE_AFTER,
        clock: Callable[[], float] = time.monotonic,
    ):
        if major_events < 1:
            raise ValueError("major_events must be at least 1")
        self._engine_factory = engine_factory
        self._major_events = major_events
        self._stale_after = stale_after
        self._clock = clock
        self._started = clock()
        self._last_advance: Dict[int, float] = {}
        self._buffers: Dict[int, List[Dict[str, Any]]] = defaultdict(list)

    def attach(self, bus: NotificationBus) -> None:
        bus.subscribe(notifications.EVENT_LOGGED, self.on_event_logged)

    def detach(self, bus: NotificationBus) -> None:
        bus.unsubscribe(notifications.EVENT_LOGGED, self.on_event_logged)

    def pending(self, world_id: int) -> int:
        return len(self._buffers.get(world_id, []))

    async def on_event_logged(self, notification: Notification) -> None:
        world_id = notification.payload["world_id"]
        buffer = self._buffers[world_id]
        buffer.append(notification.payload)
        majors = sum(1 for e in buffer if e.get("impact_level") == ImpactLevel.MAJOR.value)
        log.debug(
            "World %d: %d buffered event(s), %d/%d major",
            world_id, len(buffer), majors, self._major_events,
        )
        since = self._clock() - self._last_advance.get(world_id, self._started)
        stale = since >= self._stale_after
        if majors < self._major_events and not stale:
            return

        events = self._buffers.pop(world_id)
        try:
            await self.advance(world_id, events)
        except Exception:
            # Keep the events so the next one retries with full context
            self._buffers[world_id][:0] = events
            raise
        self._last_advance[world_id] = self._clock()

    async def advance(
        self, world_id: int, events: List[Dict[str, Any]]
    ) -> Optional[Union[Beat, ArcCompleted]]:
        """Progress the world's current arc with *events* as context."""
        engine = self._engine_factory()
        world = await engine.get_world(world_id)
        if world.current_arc_id is None:
            log.info(
                "World %d has no current arc; dropping %d buffered event(s)",
                world_id, len(events),
            )
            return None

        context = "\n".join(
            f"[{e.get('impact_level', '')}] {e.get('description', '')}" for e in events
        )
        log.info(
            "World %d: %d event(s) reached the threshold, advancing arc %d",
            world_id, len(events), world.current_arc_id,
        )
        return await engine.progress_arc(world_id, world.current_arc_id, recent_events=context)
