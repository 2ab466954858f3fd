"""Shared FastAPI dependencies: collaborators wired into the arc engine per request."""

from __future__ import annotations

import logging

from fastapi import Depends

from worldarc.config import settings
from worldarc.db.database import async_session
from worldarc.db.repository import WorldRepository
from worldarc.errors import GenerationError
from worldarc.llm.registry import get_provider
from worldarc.prompts.loader import PromptLoader
from worldarc.services.arc_engine import ArcProgressionEngine
from worldarc.services.auto_progress import EventDrivenBeats
from worldarc.services.generation import GenerationGateway, LLMGenerationGateway
from worldarc.services.notifications import NotificationBus

log = logging.getLogger(__name__)

# --- Process-wide singletons ---

_prompts = PromptLoader()
_bus = NotificationBus()


async def _log_notification(notification) -> None:
    log.info("[%s] %s", notification.topic, notification.payload)


_bus.subscribe("*", _log_notification)


def get_notification_bus() -> NotificationBus:
    return _bus


def get_repository() -> WorldRepository:
    return WorldRepository(async_session)


def get_generation_gateway() -> GenerationGateway:
    return LLMGenerationGateway(get_provider(), _prompts)


class _LazyGateway:
    """Defers provider construction until the first generation call.

    Read-only endpoints therefore work without any API key configured.
    """

    def __init__(self) -> None:
        self._gateway: GenerationGateway | None = None

    def _resolve(self) -> GenerationGateway:
        if self._gateway is None:
            try:
                self._gateway = get_generation_gateway()
            except ValueError as exc:
                raise GenerationError(str(exc)) from exc
        return self._gateway

    async def generate_anchors(self, *args, **kwargs):
        return await self._resolve().generate_anchors(*args, **kwargs)

    async def generate_dynamic_beat(self, *args, **kwargs):
        return await self._resolve().generate_dynamic_beat(*args, **kwargs)

    async def generate_summary(self, *args, **kwargs):
        return await self._resolve().generate_summary(*args, **kwargs)


def get_gateway() -> GenerationGateway:
    return _LazyGateway()


def get_arc_engine(
    repository: WorldRepository = Depends(get_repository),
    gateway: GenerationGateway = Depends(get_gateway),
    bus: NotificationBus = Depends(get_notification_bus),
) -> ArcProgressionEngine:
    return ArcProgressionEngine(repository, gateway, bus)


def _background_engine() -> ArcProgressionEngine:
    return ArcProgressionEngine(get_repository(), get_gateway(), _bus)


if settings.auto_beat_major_events > 0:
    EventDrivenBeats(_background_engine, settings.auto_beat_major_events).attach(_bus)
