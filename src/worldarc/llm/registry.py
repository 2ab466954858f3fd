from __future__ import annotations

import logging

from worldarc.config import settings
from worldarc.llm.base import LLMProvider
from worldarc.llm.openai import OpenAIProvider
from worldarc.llm.anthropic import AnthropicProvider

log = logging.getLogger(__name__)

_PROVIDER_MAP = {
    "openai": (OpenAIProvider, "openai_api_key"),
    "anthropic": (AnthropicProvider, "anthropic_api_key"),
}


def get_provider(
    name: str | None = None,
    model: str | None = None,
    temperature: float | None = None,
) -> LLMProvider:
    """Instantiate an LLM provider by name and optional explicit model.

    Parameters
    ----------
    name:
        ``"openai"`` | ``"anthropic"``. Defaults to ``settings.default_provider``.
    model:
        Explicit model id. Falls back to ``settings.default_model`` and then
        to the provider's own default.
    temperature:
        Provider-level default; each gateway operation still passes its own.
    """
    name = name or settings.default_provider
    if name not in _PROVIDER_MAP:
        raise ValueError(
            f"Unknown provider '{name}'. Choose from: {list(_PROVIDER_MAP)}"
        )

    cls, key_attr = _PROVIDER_MAP[name]
    api_key = getattr(settings, key_attr)
    if not api_key:
        raise ValueError(
            f"API key for provider '{name}' is not configured "
            f"(set {key_attr.upper()} in .env)."
        )

    chosen_model = model or settings.default_model or cls.DEFAULT_MODEL
    temp = temperature if temperature is not None else 0.8

    log.info("Creating %s provider: model=%s, temperature=%.2f", name, chosen_model, temp)
    if cls is OpenAIProvider:
        return OpenAIProvider(
            api_key=api_key,
            model=chosen_model,
            temperature=temp,
            base_url=settings.openai_base_url or None,
            timeout=settings.generation_timeout,
        )
    return cls(
        api_key=api_key,
        model=chosen_model,
        temperature=temp,
        timeout=settings.generation_timeout,
    )


def list_providers() -> dict:
    """Return info about all providers and whether each one is configured."""
    result = {}
    for name, (cls, key_attr) in _PROVIDER_MAP.items():
        api_key = getattr(settings, key_attr)
        result[name] = {
            "configured": bool(api_key),
            "default_model": cls.DEFAULT_MODEL,
            "models": cls.MODELS,
            "is_default": name == settings.default_provider,
        }
    return result
