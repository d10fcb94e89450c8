# config.py
"""Configuration settings for the Liminal story engine.
Uses Pydantic BaseSettings for automatic environment variable loading.
"""

from __future__ import annotations

import structlog
from dotenv import load_dotenv
from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

load_dotenv()

logger = structlog.get_logger()

_PLACEHOLDER_KEYS = {"", "nope", "demo-key", "changeme"}


class StorySettings(BaseSettings):
    """Full configuration for the story engine."""

    # Provider endpoints and credentials
    OPENAI_API_BASE: str = "https://api.openai.com/v1"
    OPENAI_API_KEY: str = "nope"
    ANTHROPIC_API_BASE: str = "https://api.anthropic.com"
    ANTHROPIC_API_KEY: str = "nope"
    ANTHROPIC_API_VERSION: str = "2023-06-01"

    # Narrative models
    NARRATIVE_MODEL: str = "gpt-4o"
    FALLBACK_NARRATIVE_MODEL: str | None = None
    ANTHROPIC_NARRATIVE_MODEL: str = "claude-3-haiku-20240307"
    TEMPERATURE_NARRATIVE: float = 0.7
    MAX_GENERATION_TOKENS: int = 500
    SYSTEM_PROMPT: str = (
        "You are the narrative engine of an interactive story set in liminal "
        "transit spaces. Write one or two sentences, build tension through "
        "restraint, never use emojis, and always end with exactly one binary "
        'question followed by "(Y/N)".'
    )

    # Costs per token (USD), used for cost estimates only
    OPENAI_COST_PER_TOKEN: float = 0.00001
    ANTHROPIC_COST_PER_TOKEN: float = 0.0000025

    # Routing
    PROVIDER_TIMEOUT_SECONDS: float = 10.0
    PROVIDERS_FILE: str | None = None
    ENABLE_OFFLINE_PROVIDER: bool = True

    # Story context
    PROMPT_RECENT_BEATS: int = 3
    MAX_PROMPT_CHARS: int = 4000
    OPENING_NARRATIVE: str = (
        "The bus halts at dawn. Officials demand your ticket. Hand it over? (Y/N)"
    )

    # Tokenization
    TIKTOKEN_DEFAULT_ENCODING: str = "cl100k_base"
    FALLBACK_CHARS_PER_TOKEN: float = 4.0
    TOKENIZER_CACHE_SIZE: int = 10

    # Persistence
    SESSION_STORE_DIR: str = "story_sessions"

    # Logging & UI
    LOG_LEVEL_STR: str = Field("INFO", alias="STORY_LOG_LEVEL")
    LOG_FORMAT: str = (
        "%(asctime)s - %(levelname)s - [%(name)s:%(funcName)s:%(lineno)d] - %(message)s"
    )
    LOG_DATE_FORMAT: str = "%Y-%m-%d %H:%M:%S"
    LOG_FILE: str | None = None
    ENABLE_RICH_LOGGING: bool = True

    @model_validator(mode="after")
    def set_dynamic_model_defaults(self) -> StorySettings:
        if self.FALLBACK_NARRATIVE_MODEL is None:
            self.FALLBACK_NARRATIVE_MODEL = "gpt-4o-mini"
        if self.OPENAI_API_KEY.strip().lower() in _PLACEHOLDER_KEYS:
            logger.warning(
                "OPENAI_API_KEY is a placeholder; the OpenAI provider will fail "
                "and routing will fall back to the next provider."
            )
        if self.ANTHROPIC_API_KEY.strip().lower() in _PLACEHOLDER_KEYS:
            logger.warning(
                "ANTHROPIC_API_KEY is a placeholder; the Anthropic provider will "
                "fail and routing will fall back to the next provider."
            )
        return self

    @model_validator(mode="after")
    def check_positive_limits(self) -> StorySettings:
        if self.PROVIDER_TIMEOUT_SECONDS <= 0:
            raise ValueError("PROVIDER_TIMEOUT_SECONDS must be positive")
        if self.PROMPT_RECENT_BEATS < 1:
            raise ValueError("PROMPT_RECENT_BEATS must be at least 1")
        if self.MAX_PROMPT_CHARS < 200:
            raise ValueError("MAX_PROMPT_CHARS must be at least 200")
        return self

    model_config = SettingsConfigDict(
        env_prefix="", env_file=".env", populate_by_name=True
    )


settings = StorySettings()
