from __future__ import annotations

import logging
from typing import TypeVar

from anthropic import AnthropicError, AsyncAnthropic
from pydantic import BaseModel, ValidationError

from worldarc.errors import GenerationError, GenerationValidationError
from worldarc.llm.base import LLMProvider
from worldarc.parsing.output_parser import OutputParser

T = TypeVar("T", bound=BaseModel)
log = logging.getLogger(__name__)


class AnthropicProvider(LLMProvider):
    """LLM provider backed by the Anthropic API."""

    name = "anthropic"
    DEFAULT_MODEL = "claude-sonnet-4-5-20250929"

    MODELS = [
        "claude-sonnet-4-5-20250929",
        "claude-haiku-4-5-20251001",
    ]

    def __init__(
        self,
        api_key: str,
        model: str | None = None,
        temperature: float = 0.8,
        timeout: float | None = None,
    ):
        super().__init__(model=model or self.DEFAULT_MODEL, temperature=temperature)
        if timeout is None:
            self._client = AsyncAnthropic(api_key=api_key)
        else:
            self._client = AsyncAnthropic(api_key=api_key, timeout=timeout)

    def _temperature(self, temperature: float | None) -> float:
        temp = temperature if temperature is not None else self.temperature
        return min(temp, 1.0)

    async def complete_structured(
        self,
        system_prompt: str,
        user_prompt: str,
        response_model: type[T],
        *,
        tool_name: str,
        tool_description: str = "",
        temperature: float | None = None,
        max_tokens: int = 2000,
    ) -> T:
        """Use Anthropic tool-use to extract structured output."""
        log.info("Anthropic structured: model=%s, tool=%s, target=%s",
                 self.model, tool_name, response_model.__name__)
        try:
            response = await self._client.messages.create(
                model=self.model,
                max_tokens=max_tokens,
                temperature=self._temperature(temperature),
                system=system_prompt,
                messages=[{"role": "user", "content": user_prompt}],
                tools=[
                    {
                        "name": tool_name,
                        "description": tool_description
                        or f"Return the result as a {response_model.__name__} object.",
                        "input_schema": response_model.model_json_schema(),
                    }
                ],
                tool_choice={"type": "tool", "name": tool_name},
            )
        except AnthropicError as exc:
            log.error("Anthropic API error: %s", exc)
            raise GenerationError(f"Anthropic request failed: {exc}", provider=self.name) from exc

        for block in response.content:
            if block.type == "tool_use" and block.name == tool_name:
                try:
                    result = response_model.model_validate(block.input)
                except ValidationError as exc:
                    log.error("Anthropic tool input invalid for %s: %s",
                              response_model.__name__, exc)
                    raise GenerationValidationError(
                        f"{tool_name} input does not match {response_model.__name__}: "
                        f"{exc.error_count()} error(s)",
                        raw_response=str(block.input),
                        tool=tool_name,
                    ) from exc
                log.info("Anthropic structured via tool_use OK")
                return result

        log.warning("Anthropic: no tool_use block found, falling back to text parse")
        raw = "\n".join(b.text for b in response.content if b.type == "text")
        return OutputParser.parse(raw, response_model)
