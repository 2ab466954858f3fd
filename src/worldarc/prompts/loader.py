from __future__ import annotations

from pathlib import Path

from worldarc.config import settings

WORLD_PROMPTS = "world"


class PromptLoader:
    """System/user prompt pairs for the generation operations.

    Every operation ``OP`` ships two templates under
    ``<templates_dir>/<category>/``: ``OP_SYSTEM.txt`` and ``OP_USER.txt``.
    Placeholders are written ``{variable_name}``.
    """

    def __init__(
        self,
        templates_dir: str | Path | None = None,
        category: str = WORLD_PROMPTS,
    ):
        self._dir = Path(templates_dir or settings.prompts_dir) / category
        self._cache: dict[str, str] = {}

    def load(self, name: str) -> str:
        if name not in self._cache:
            self._cache[name] = (self._dir / f"{name}.txt").read_text(encoding="utf-8")
        return self._cache[name]

    def render(self, name: str, **variables: str) -> str:
        """Substitute only the given placeholders.

        Unknown ``{...}`` sequences, such as braces in a JSON example, stay
        as written.
        """
        text = self.load(name)
        for key, value in variables.items():
            text = text.replace("{" + key + "}", value)
        return text.strip() + "\n"

    def system(self, operation: str, **variables: str) -> str:
        return self.render(f"{operation}_SYSTEM", **variables)

    def user(self, operation: str, **variables: str) -> str:
        return self.render(f"{operation}_USER", **variables)
