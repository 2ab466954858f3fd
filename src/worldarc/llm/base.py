from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TypeVar

from pydantic import BaseModel

T = TypeVar("T", bound=BaseModel)


class LLMProvider(ABC):
    """Abstract base for all LLM providers (OpenAI, Anthropic).

    Implementations raise ``GenerationError`` for transport / API failures
    and ``GenerationValidationError`` when the answer does not fit the
    requested schema. They never return a partially valid object.
    """

    name: str = ""

    def __init__(self, model: str, temperature: float = 0.8):
        self.model = model
        self.temperature = temperature

    @abstractmethod
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
        """Force a single tool call named *tool_name* and validate its arguments."""
