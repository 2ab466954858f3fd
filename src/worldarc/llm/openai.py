from __future__ import annotations

import logging
from typing import TypeVar

from openai import AsyncOpenAI, OpenAIError
from pydantic import BaseModel, ValidationError

from worldarc.errors import GenerationError, GenerationValidationError
from worldarc.llm.base import LLMProvider
from worldarc.parsing.output_parser import OutputParser

T = TypeVar("T", bound=BaseModel)
log = logging.getLogger(__name__)


class OpenAIProvider(LLMProvider):
    """LLM provider backed by the OpenAI API (or any OpenAI-compatible gateway)."""

    name = "openai"
    DEFAULT_MODEL = "gpt-4o-mini"

    MODELS = [
        "gpt-4o-mini",
        "gpt-4o",
        "gpt-4.1",
        "gpt-4.1-mini",
    ]

    def __init__(
        self,
        api_key: str,
        model: str | None = None,
        temperature: float = 0.8,
        base_url: str | None = None,
        timeout: float | None = None,
    ):
        super().__init__(model=model or self.DEFAULT_MODEL, temperature=temperature)
        self._client = AsyncOpenAI(api_key=api_key, base_url=base_url or None, timeout=timeout)

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
        log.info("OpenAI structured: model=%s, tool=%s, target=%s",
                 self.model, tool_name, response_model.__name__)
        tool = {
            "type": "function",
            "function": {
                "name": tool_name,
                "description": tool_description
                or f"Return the result as a {response_model.__name__} object.",
                "parameters": response_model.model_json_schema(),
            },
        }
        try:
            response = await self._client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": user_prompt},
                ],
                tools=[tool],
                tool_choice={"type": "function", "function": {"name": tool_name}},
                temperature=temperature if temperature is not None else self.temperature,
                max_tokens=max_tokens,
            )
        except OpenAIError as exc:
            log.error("OpenAI API error: %s", exc)
            raise GenerationError(f"OpenAI request failed: {exc}", provider=self.name) from exc

        if not response.choices:
            raise GenerationValidationError("OpenAI returned no choices", tool=tool_name)
        message = response.choices[0].message
        usage = getattr(response, "usage", None)
        if usage is not None:
            log.info("OpenAI usage: prompt=%s, completion=%s",
                     usage.prompt_tokens, usage.completion_tokens)

        for call in message.tool_calls or []:
            if call.function.name != tool_name:
                continue
            raw = call.function.arguments or ""
            try:
                result = response_model.model_validate_json(raw)
            except ValidationError as exc:
                log.error("OpenAI tool arguments invalid for %s: %s; raw[:300]=%s",
                          response_model.__name__, exc, raw[:300])
                raise GenerationValidationError(
                    f"{tool_name} arguments do not match {response_model.__name__}: "
                    f"{exc.error_count()} error(s)",
                    raw_response=raw,
                    tool=tool_name,
                ) from exc
            log.info("OpenAI structured parse OK: %s", response_model.__name__)
            return result

        # Some OpenAI-compatible gateways ignore tool_choice and answer in text
        log.warning("OpenAI: no %s tool call found, falling back to text parse", tool_name)
        return OutputParser.parse(message.content or "", response_model)
