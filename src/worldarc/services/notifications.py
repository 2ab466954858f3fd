"""Outbound notifications about arc lifecycle changes.

The engine publishes and moves on: subscribers observe, they never steer.
A subscriber that raises is logged and skipped, so engine correctness does
not depend on who is listening.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, List, Protocol

log = logging.getLogger(__name__)

WORLD_CREATED = "world.created"
ARC_CREATED = "world.arcCreated"
BEAT_CREATED = "world.beatCreated"
ARC_COMPLETED = "world.arcCompleted"
EVENT_LOGGED = "world.eventLogged"

ALL_TOPICS = "*"


@dataclass(frozen=True)
class Notification:
    topic: str
    payload: Dict[str, Any]
    ts: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


Handler = Callable[[Notification], Awaitable[None]]


class Notifier(Protocol):
    async def publish(self, topic: str, payload: Dict[str, Any]) -> None: ...


class NullNotifier:
    """Drops every notification."""

    async def publish(self, topic: str, payload: Dict[str, Any]) -> None:
        return None


class NotificationBus:
    """In-process pub/sub; handlers run in subscription order on the caller's loop."""

    def __init__(self) -> None:
        self._handlers: Dict[str, List[Handler]] = defaultdict(list)

    def subscribe(self, topic: str, handler: Handler) -> None:
        """Register *handler* for *topic*, or for every topic with ``"*"``."""
        self._handlers[topic].append(handler)

    def unsubscribe(self, topic: str, handler: Handler) -> None:
        handlers = self._handlers.get(topic, [])
        if handler in handlers:
            handlers.remove(handler)

    async def publish(self, topic: str, payload: Dict[str, Any]) -> None:
        notification = Notification(topic=topic, payload=dict(payload))
        handlers = [*self._handlers.get(topic, []), *self._handlers.get(ALL_TOPICS, [])]
        log.debug("Publishing %s to %d handler(s)", topic, len(handlers))
        for handler in handlers:
            try:
                await handler(notification)
            except Exception as exc:
                log.warning("Notification handler for %s failed: %s", topic, exc)
