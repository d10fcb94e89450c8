# providers/models.py
"""Static provider configuration and response validation."""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator

from core.usage import TokenUsage

CHOICE_MARKER = "(Y/N)"
ENDING_MARKER = "(Restart?)"
_MARKER_RE = re.compile(r"\((?:Y/N|Restart\?)\)\s*$", re.IGNORECASE)
_ENDING_RE = re.compile(r"\(Restart\?\)\s*$", re.IGNORECASE)
_CHOICE_PROMPT_RE = re.compile(r"([^.!?]*\?)\s*\(Y/N\)\s*$", re.IGNORECASE)


class ProviderKind(str, Enum):
    """The closed set of supported narrative backends."""

    OPENAI = "openai"
    ANTHROPIC = "anthropic"
    OFFLINE = "offline"


class ProviderDescriptor(BaseModel):
    """Read-only description of one provider, loaded once at startup."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(min_length=1)
    kind: ProviderKind
    priority: int = 0
    capabilities: frozenset[str] = frozenset()
    cost_per_token: float = Field(default=0.0, ge=0.0)
    model: str | None = None
    api_base: str | None = None
    temperature: float = 0.7
    max_tokens: int = Field(default=500, gt=0)
    enabled: bool = True

    @field_validator("capabilities", mode="before")
    @classmethod
    def _coerce_capabilities(cls, value: object) -> object:
        if value is None:
            return frozenset()
        if isinstance(value, str):
            return frozenset({value})
        return value


@dataclass(frozen=True)
class ProviderReply:
    """Raw narrative text plus token usage, when the backend reports it."""

    text: str
    usage: TokenUsage | None = None


def validate_response(text: str | None) -> bool:
    """Return True when ``text`` looks like a usable story beat.

    The beat must be non-empty and end with ``(Y/N)`` or the story-ending
    marker ``(Restart?)``.
    """
    if not isinstance(text, str):
        return False
    stripped = text.strip()
    if not stripped:
        return False
    match = _MARKER_RE.search(stripped)
    # a bare marker with no narrative in front of it is not a beat
    return bool(match) and bool(stripped[: match.start()].strip())


def is_ending(text: str) -> bool:
    """Return True when ``text`` ends the story."""
    return bool(_ENDING_RE.search(text.strip()))


def extract_choice_prompt(text: str) -> str:
    """Return the question that precedes ``(Y/N)``, or ``"Continue?"``."""
    match = _CHOICE_PROMPT_RE.search(text.strip())
    if match and match.group(1).strip():
        return match.group(1).strip()
    return "Continue?"
