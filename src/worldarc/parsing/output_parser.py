from __future__ import annotations

import json
import re
from typing import TypeVar

from pydantic import BaseModel, ValidationError

from worldarc.errors import GenerationValidationError

T = TypeVar("T", bound=BaseModel)


class OutputParser:
    """Parse LLM text output into validated Pydantic models.

    Used when a provider answers in prose instead of the forced tool call.
    Anything that does not validate is rejected; there is no partial result.
    """

    @staticmethod
    def extract_json(text: str) -> str:
        """Return the most likely JSON object embedded in *text*.

        Handles common LLM patterns:
        - Raw JSON objects
        - JSON wrapped in ```json ... ``` fences
        - JSON embedded in surrounding prose
        """
        fenced = re.search(r"```(?:json)?\s*\n?(.*?)```", text, re.DOTALL)
        if fenced:
            return fenced.group(1).strip()

        start = text.find("{")
        if start != -1:
            depth = 0
            in_string = False
            escaped = False
            for i in range(start, len(text)):
                ch = text[i]
                if in_string:
                    if escaped:
                        escaped = False
                    elif ch == "\\":
                        escaped = True
                    elif ch == '"':
                        in_string = False
                    continue
                if ch == '"':
                    in_string = True
                elif ch == "{":
                    depth += 1
                elif ch == "}":
                    depth -= 1
                    if depth == 0:
                        return text[start : i + 1]

        return text.strip()

    @classmethod
    def parse(cls, text: str, model: type[T]) -> T:
        """Extract JSON from *text* and validate against *model*."""
        if not text or not text.strip():
            raise GenerationValidationError(
                f"Empty LLM output, expected {model.__name__}", raw_response=text or ""
            )
        candidate = cls.extract_json(text)
        try:
            data = json.loads(candidate)
        except json.JSONDecodeError as exc:
            raise GenerationValidationError(
                f"Could not parse LLM output into {model.__name__}: {exc.msg}",
                raw_response=text,
            ) from exc
        try:
            return model.model_validate(data)
        except ValidationError as exc:
            raise GenerationValidationError(
                f"LLM output does not match {model.__name__}: "
                f"{exc.error_count()} error(s)",
                raw_response=text,
            ) from exc
