from __future__ import annotations

from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


_PROJECT_ROOT = Path(__file__).resolve().parents[2]
_PACKAGE_DIR = Path(__file__).resolve().parent


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=str(_PROJECT_ROOT / ".env"),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # --- Provider API keys ---
    openai_api_key: str = ""
    anthropic_api_key: str = ""

    # OpenAI-compatible gateway (e.g. https://openrouter.ai/api/v1); empty = api.openai.com
    openai_base_url: str = ""

    # --- Default provider ---
    default_provider: str = "openai"  # openai | anthropic
    default_model: str = ""  # empty = provider default

    # --- Sampling per generation operation ---
    anchor_temperature: float = 0.9
    beat_temperature: float = 0.85
    summary_temperature: float = 0.7
    anchor_max_tokens: int = 3000
    beat_max_tokens: int = 2000
    summary_max_tokens: int = 1000

    # Seconds before a provider call is abandoned
    generation_timeout: float = 120.0

    # Major events that trigger the next beat of a world's current arc; 0 = off
    auto_beat_major_events: int = 3

    # --- Paths ---
    prompts_dir: str = str(_PACKAGE_DIR / "prompts" / "templates")

    # --- Database ---
    database_url: str = f"sqlite+aiosqlite:///{_PROJECT_ROOT / 'worldarc.db'}"

    # --- Logging ---
    log_level: str = "INFO"


settings = Settings()
