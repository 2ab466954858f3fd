"""Error taxonomy shared by the repository, the generation gateway and the engine.

The HTTP layer maps each family onto a status code; the engine itself only
raises and propagates.
"""

from __future__ import annotations

from typing import Any


class WorldArcError(Exception):
    """Base class for every failure the core reports to its callers."""

    def __init__(self, message: str, **context: Any):
        super().__init__(message)
        self.message = message
        self.context = context


class NotFoundError(WorldArcError):
    """A world, arc or beat required by the operation does not exist."""

    def __init__(self, entity: str, entity_id: Any):
        super().__init__(f"{entity} not found", entity=entity, entity_id=entity_id)
        self.entity = entity
        self.entity_id = entity_id


class ConflictError(WorldArcError):
    """A uniqueness rule at the storage level rejected the write."""


class BeatConflictError(ConflictError):
    """Another writer already filled this ``(arc_id, beat_index)`` slot."""

    def __init__(self, arc_id: int, beat_index: int):
        super().__init__(
            f"Beat {beat_index} already exists for arc {arc_id}",
            arc_id=arc_id,
            beat_index=beat_index,
        )
        self.arc_id = arc_id
        self.beat_index = beat_index


class ArcNumberConflictError(ConflictError):
    """Concurrent arc creation kept colliding on the next arc number."""


class GenerationError(WorldArcError):
    """The LLM provider failed: network, timeout, quota or API error."""


class GenerationValidationError(GenerationError):
    """The provider answered, but the payload does not match the schema."""

    def __init__(self, message: str, raw_response: str = "", **context: Any):
        super().__init__(message, raw_response=raw_response[:500], **context)
        self.raw_response = raw_response


class ArcStateError(WorldArcError):
    """The arc is in a state the requested transition cannot start from."""
