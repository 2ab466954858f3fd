"""Generation gateway: the three structured LLM calls the arc engine relies on.

    generate_anchors       → ArcAnchors    (beats 0, 7, 14 + arc description)
    generate_dynamic_beat  → DynamicBeat   (one beat between two anchors)
    generate_summary       → ArcSummary    (continuity record of a finished arc)

Each call either returns a schema-valid payload or raises ``GenerationError``.
Malformed output and unreachable providers are the same failure kind to
the engine; only the log lines tell them apart.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Optional, Protocol, Sequence, TypeVar

from pydantic import BaseModel

from worldarc.config import settings
from worldarc.errors import GenerationError
from worldarc.llm.base import LLMProvider
from worldarc.models.generation import ArcAnchors, ArcSummary, DynamicBeat
from worldarc.models.structure import beat_info
from worldarc.models.world import Beat
from worldarc.prompts.loader import PromptLoader

log = logging.getLogger(__name__)

T = TypeVar("T", bound=BaseModel)

ANCHORS_TOOL = "generate_world_arc_anchors"
DYNAMIC_BEAT_TOOL = "generate_dynamic_world_beat"
SUMMARY_TOOL = "generate_arc_summary"

NO_EVENTS_TEXT = "No specific events recorded."


class GenerationGateway(Protocol):
    """What the arc engine needs from a story generator."""

    async def generate_anchors(
        self,
        world_name: str,
        world_description: str,
        story_idea: Optional[str],
        previous_arc_summaries: Sequence[str],
    ) -> ArcAnchors: ...

    async def generate_dynamic_beat(
        self,
        world_name: str,
        world_description: str,
        target_index: int,
        previous_beats: Sequence[Beat],
        upcoming_anchor: Beat,
        recent_events_text: str,
        arc_description: str = "",
    ) -> DynamicBeat: ...

    async def generate_summary(
        self,
        arc_name: str,
        arc_idea: str,
        beat_descriptions_text: str,
    ) -> ArcSummary: ...


# ---------------------------------------------------------------------------
# Prompt fragments
# ---------------------------------------------------------------------------


def previous_arcs_section(previous_arc_summaries: Sequence[str]) -> str:
    if not previous_arc_summaries:
        return ""
    history = "\n\n".join(previous_arc_summaries)
    return (
        "\nIMPORTANT WORLD HISTORY:\n"
        "This world has experienced previous story arcs that should inform this "
        "new era. Review this history to ensure continuity:\n\n"
        f"{history}\n\n"
        "The new arc should acknowledge and build upon this world history, "
        "showing meaningful evolution and consequences rather than resetting.\n"
    )


def story_seed(story_idea: Optional[str]) -> str:
    if story_idea:
        return f"Story idea: <story_idea>{story_idea}</story_idea>"
    return (
        "Based on the world's current state, generate an appropriate and "
        "engaging story arc."
    )


def previous_beats_text(beats: Sequence[Beat]) -> str:
    lines = [
        f"Beat {b.beat_index}: {b.beat_name} - {b.description[:200]}..."
        for b in beats
    ]
    return "\n".join(lines) or "(no earlier beats)"


def next_anchor_text(anchor: Beat) -> str:
    return f"Beat #{anchor.beat_index} ({anchor.beat_name}): {anchor.description}"


# ---------------------------------------------------------------------------
# LLM-backed implementation
# ---------------------------------------------------------------------------


class LLMGenerationGateway:
    """Generation gateway that renders prompt templates and forces one tool call."""

    def __init__(
        self,
        llm: LLMProvider,
        prompts: PromptLoader | None = None,
        timeout: float | None = None,
    ):
        self._llm = llm
        self._prompts = prompts or PromptLoader()
        self._timeout = timeout if timeout is not None else settings.generation_timeout

    async def generate_anchors(
        self,
        world_name: str,
        world_description: str,
        story_idea: Optional[str],
        previous_arc_summaries: Sequence[str],
    ) -> ArcAnchors:
        user_prompt = self._prompts.user(
            "ANCHOR",
            world_name=world_name,
            world_description=world_description,
            previous_arcs_section=previous_arcs_section(previous_arc_summaries),
            story_seed=story_seed(story_idea),
        )
        result = await self._call(
            "ANCHOR",
            user_prompt,
            ArcAnchors,
            tool_name=ANCHORS_TOOL,
            tool_description="Return the three anchor beats (0, 7, 14) of a new world arc.",
            temperature=settings.anchor_temperature,
            max_tokens=settings.anchor_max_tokens,
        )
        log.info("Generated anchors for %s: %s",
                 world_name, [a.beat_name for a in result.anchors])
        return result

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
        info = beat_info(target_index)
        user_prompt = self._prompts.user(
            "DYNAMIC_BEAT",
            beat_index=str(target_index),
            beat_label=info.label if info else "Unknown Beat",
            beat_purpose=info.purpose if info else "Advance the story coherently.",
            world_name=world_name,
            world_description=world_description,
            arc_description=arc_description or "Standard progression",
            recent_events=recent_events_text or NO_EVENTS_TEXT,
            previous_beats=previous_beats_text(previous_beats),
            next_anchor=next_anchor_text(upcoming_anchor),
        )
        result = await self._call(
            "DYNAMIC_BEAT",
            user_prompt,
            DynamicBeat,
            tool_name=DYNAMIC_BEAT_TOOL,
            tool_description="Return the next dynamic beat of the world arc.",
            temperature=settings.beat_temperature,
            max_tokens=settings.beat_max_tokens,
        )
        log.info("Generated beat %d for %s: %s", target_index, world_name, result.beat_name)
        return result

    async def generate_summary(
        self,
        arc_name: str,
        arc_idea: str,
        beat_descriptions_text: str,
    ) -> ArcSummary:
        user_prompt = self._prompts.user(
            "ARC_SUMMARY",
            arc_name=arc_name,
            arc_idea=arc_idea,
            beat_descriptions=beat_descriptions_text,
        )
        result = await self._call(
            "ARC_SUMMARY",
            user_prompt,
            ArcSummary,
            tool_name=SUMMARY_TOOL,
            tool_description="Return the continuity summary of a completed world arc.",
            temperature=settings.summary_temperature,
            max_tokens=settings.summary_max_tokens,
        )
        log.info("Generated arc summary for %s (%d chars)", arc_name, len(result.summary))
        return result

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _call(
        self,
        operation: str,
        user_prompt: str,
        response_model: type[T],
        *,
        tool_name: str,
        tool_description: str,
        temperature: float,
        max_tokens: int,
    ) -> T:
        system_prompt = self._prompts.system(operation, tool_name=tool_name)
        log.debug("AI call: tool=%s, model=%s", tool_name, self._llm.model)
        try:
            return await asyncio.wait_for(
                self._llm.complete_structured(
                    system_prompt,
                    user_prompt,
                    response_model,
                    tool_name=tool_name,
                    tool_description=tool_description,
                    temperature=temperature,
                    max_tokens=max_tokens,
                ),
                timeout=self._timeout,
            )
        except GenerationError:
            raise
        except asyncio.TimeoutError as exc:
            log.error("AI call %s timed out after %.0fs", tool_name, self._timeout)
            raise GenerationError(
                f"{tool_name} timed out after {self._timeout:.0f}s", tool=tool_name
            ) from exc
        except Exception as exc:
            log.error("AI call %s failed: %s", tool_name, exc)
            raise GenerationError(f"{tool_name} failed: {exc}", tool=tool_name) from exc
