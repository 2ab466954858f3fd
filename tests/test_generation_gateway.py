"""Tests for the LLM-backed generation gateway and the providers under it."""

import asyncio
import json
from datetime import datetime
from types import SimpleNamespace
from unittest.mock import AsyncMock

import pytest

from worldarc.errors import GenerationError, GenerationValidationError
from worldarc.llm.anthropic import AnthropicProvider
from worldarc.llm.base import LLMProvider
from worldarc.llm.openai import OpenAIProvider
from worldarc.models.generation import ArcAnchors, ArcSummary, DynamicBeat
from worldarc.models.world import Beat, BeatType
from worldarc.services.generation import (
    ANCHORS_TOOL,
    DYNAMIC_BEAT_TOOL,
    NO_EVENTS_TEXT,
    SUMMARY_TOOL,
    LLMGenerationGateway,
    next_anchor_text,
    previous_arcs_section,
    previous_beats_text,
    story_seed,
)

ANCHORS_JSON = {
    "anchors": [
        {
            "beatIndex": i,
            "beatName": name,
            "description": f"{name} description",
            "worldDirectives": ["d"],
            "majorEvents": ["e"],
            "emergentStorylines": ["s"],
        }
        for i, name in ((0, "Calm"), (7, "Storm"), (14, "After"))
    ],
    "arcDescription": "Weather as history.",
}


def _beat(index, name="Anchor", beat_type=BeatType.ANCHOR, description="desc"):
    return Beat(
        id=index + 1,
        arc_id=1,
        beat_index=index,
        beat_type=beat_type,
        beat_name=name,
        description=description,
        created_at=datetime(2025, 1, 1),
    )


class ScriptedProvider(LLMProvider):
    """LLMProvider that returns or raises whatever the test scripts."""

    name = "scripted"

    def __init__(self, result=None, error=None, delay=0.0):
        super().__init__(model="scripted-1")
        self.result = result
        self.error = error
        self.delay = delay
        self.calls = []

    async def complete_structured(self, system_prompt, user_prompt, response_model, *,
                                  tool_name, tool_description="", temperature=None,
                                  max_tokens=2000):
        self.calls.append(
            {
                "system": system_prompt,
                "user": user_prompt,
                "model": response_model,
                "tool_name": tool_name,
                "temperature": temperature,
                "max_tokens": max_tokens,
            }
        )
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.result


class TestPromptFragments:
    """Tests for the text fragments woven into prompts."""

    def test_previous_arcs_section_empty(self):
        assert previous_arcs_section([]) == ""

    def test_previous_arcs_section_lists_history(self):
        text = previous_arcs_section(["Arc 1: Old\nIt ended."])
        assert "WORLD HISTORY" in text
        assert "Arc 1: Old\nIt ended." in text

    def test_story_seed(self):
        assert story_seed("Dragons return") == "Story idea: <story_idea>Dragons return</story_idea>"
        assert "current state" in story_seed(None)

    def test_previous_beats_text_truncates(self):
        beats = [_beat(0, "Start", description="y" * 300)]
        assert previous_beats_text(beats) == f"Beat 0: Start - {'y' * 200}..."

    def test_next_anchor_text(self):
        assert next_anchor_text(_beat(7, "Storm")) == "Beat #7 (Storm): desc"


class TestLLMGenerationGateway:
    """Tests for the three gateway operations."""

    async def test_anchors_forwarded_with_settings(self):
        expected = ArcAnchors.model_validate(ANCHORS_JSON)
        provider = ScriptedProvider(result=expected)
        gateway = LLMGenerationGateway(provider)
        result = await gateway.generate_anchors("Aria", "Islands", "Dragons", ["Arc 1: Old\nDone"])
        assert result is expected
        call = provider.calls[0]
        assert call["tool_name"] == ANCHORS_TOOL
        assert call["model"] is ArcAnchors
        assert call["temperature"] == 0.9
        assert call["max_tokens"] == 3000
        assert "Aria" in call["user"]
        assert "<story_idea>Dragons</story_idea>" in call["user"]
        assert "Arc 1: Old" in call["user"]
        assert ANCHORS_TOOL in call["system"]

    async def test_dynamic_beat_prompt(self):
        expected = DynamicBeat(
            beat_name="Rumours",
            description="Whispers spread.",
            world_directives=["x"],
            emerging_conflicts=["y"],
        )
        provider = ScriptedProvider(result=expected)
        gateway = LLMGenerationGateway(provider)
        result = await gateway.generate_dynamic_beat(
            "Aria", "Islands", 1, [_beat(0, "Calm")], _beat(7, "Storm"), "", "Weather as history."
        )
        assert result is expected
        call = provider.calls[0]
        assert call["tool_name"] == DYNAMIC_BEAT_TOOL
        assert call["temperature"] == 0.85
        assert call["max_tokens"] == 2000
        assert "Rising Tensions" in call["user"]
        assert NO_EVENTS_TEXT in call["user"]
        assert "Beat #7 (Storm): desc" in call["user"]
        assert "Beat 0: Calm - desc..." in call["user"]
        assert "Weather as history." in call["user"]

    async def test_summary_prompt(self):
        expected = ArcSummary(summary="All changed.")
        provider = ScriptedProvider(result=expected)
        gateway = LLMGenerationGateway(provider)
        result = await gateway.generate_summary("Calm", "Dragons", "Beat 0 (Calm): desc...")
        assert result.summary == "All changed."
        call = provider.calls[0]
        assert call["tool_name"] == SUMMARY_TOOL
        assert call["temperature"] == 0.7
        assert call["max_tokens"] == 1000
        assert "Beat 0 (Calm): desc..." in call["user"]

    async def test_validation_error_passes_through(self):
        provider = ScriptedProvider(error=GenerationValidationError("bad payload"))
        gateway = LLMGenerationGateway(provider)
        with pytest.raises(GenerationValidationError):
            await gateway.generate_summary("Calm", "idea", "text")

    async def test_unexpected_error_wrapped(self):
        provider = ScriptedProvider(error=ConnectionError("reset by peer"))
        gateway = LLMGenerationGateway(provider)
        with pytest.raises(GenerationError, match="reset by peer") as excinfo:
            await gateway.generate_summary("Calm", "idea", "text")
        assert isinstance(excinfo.value.__cause__, ConnectionError)

    async def test_timeout_becomes_generation_error(self):
        provider = ScriptedProvider(result=ArcSummary(summary="late"), delay=1.0)
        gateway = LLMGenerationGateway(provider, timeout=0.01)
        with pytest.raises(GenerationError, match="timed out"):
            await gateway.generate_summary("Calm", "idea", "text")


def _openai_response(tool_calls=None, content=None):
    message = SimpleNamespace(tool_calls=tool_calls, content=content)
    return SimpleNamespace(choices=[SimpleNamespace(message=message)], usage=None)


def _tool_call(name, arguments):
    return SimpleNamespace(function=SimpleNamespace(name=name, arguments=arguments))


class TestOpenAIProvider:
    """Tests for forced function calling against a mocked client."""

    def _provider(self, response):
        provider = OpenAIProvider(api_key="test-key")
        provider._client.chat.completions.create = AsyncMock(return_value=response)
        return provider

    async def test_tool_call_validated(self):
        response = _openai_response([_tool_call(ANCHORS_TOOL, json.dumps(ANCHORS_JSON))])
        provider = self._provider(response)
        result = await provider.complete_structured(
            "sys", "user", ArcAnchors, tool_name=ANCHORS_TOOL
        )
        assert [a.beat_index for a in result.anchors] == [0, 7, 14]
        kwargs = provider._client.chat.completions.create.call_args.kwargs
        assert kwargs["tool_choice"] == {"type": "function", "function": {"name": ANCHORS_TOOL}}
        assert kwargs["tools"][0]["function"]["name"] == ANCHORS_TOOL
        assert kwargs["model"] == provider.model

    async def test_invalid_arguments_rejected(self):
        broken = dict(ANCHORS_JSON, anchors=ANCHORS_JSON["anchors"][:2])
        response = _openai_response([_tool_call(ANCHORS_TOOL, json.dumps(broken))])
        provider = self._provider(response)
        with pytest.raises(GenerationValidationError):
            await provider.complete_structured("sys", "user", ArcAnchors, tool_name=ANCHORS_TOOL)

    async def test_text_answer_falls_back_to_parser(self):
        text = 'Here you go:\n```json\n{"summary": "Quiet years."}\n```'
        provider = self._provider(_openai_response(content=text))
        result = await provider.complete_structured(
            "sys", "user", ArcSummary, tool_name=SUMMARY_TOOL
        )
        assert result.summary == "Quiet years."


class TestAnthropicProvider:
    """Tests for forced tool use against a mocked client."""

    def _provider(self, blocks):
        provider = AnthropicProvider(api_key="test-key")
        provider._client.messages.create = AsyncMock(
            return_value=SimpleNamespace(content=blocks)
        )
        return provider

    async def test_tool_use_block_validated(self):
        block = SimpleNamespace(type="tool_use", name=SUMMARY_TOOL, input={"summary": "Done."})
        provider = self._provider([block])
        result = await provider.complete_structured(
            "sys", "user", ArcSummary, tool_name=SUMMARY_TOOL, temperature=1.4
        )
        assert result.summary == "Done."
        kwargs = provider._client.messages.create.call_args.kwargs
        assert kwargs["tool_choice"] == {"type": "tool", "name": SUMMARY_TOOL}
        assert kwargs["temperature"] == 1.0

    async def test_invalid_tool_input_rejected(self):
        block = SimpleNamespace(type="tool_use", name=SUMMARY_TOOL, input={"nothing": True})
        provider = self._provider([block])
        with pytest.raises(GenerationValidationError):
            await provider.complete_structured("sys", "user", ArcSummary, tool_name=SUMMARY_TOOL)
