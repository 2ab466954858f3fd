from __future__ import annotations

from fastapi import APIRouter

from worldarc.config import settings
from worldarc.llm.registry import list_providers

router = APIRouter(prefix="/api/providers", tags=["providers"])


@router.get("")
def get_providers():
    """List the LLM providers, whether each has a key, and their models."""
    return {
        "default": settings.default_provider,
        "default_model": settings.default_model or None,
        "providers": list_providers(),
    }
