# story/models.py
"""Value types describing a story session's history."""

from __future__ import annotations

import re
import uuid
from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from core.errors import ValidationError

SEED_PATTERN = re.compile(r"^[a-zA-Z0-9_-]{1,50}$")


class Choice(str, Enum):
    """The reader's binary decision."""

    YES = "Y"
    NO = "N"

    @classmethod
    def parse(cls, value: Choice | str) -> Choice:
        """Return the choice for ``value`` or raise ``ValidationError``."""
        if isinstance(value, Choice):
            return value
        if isinstance(value, str):
            normalized = value.strip().upper()
            for member in cls:
                if member.value == normalized:
                    return member
        raise ValidationError(f"Choice must be 'Y' or 'N', got {value!r}")


def validate_seed(seed: object) -> str:
    """Return ``seed`` unchanged if it is a valid story seed."""
    if not isinstance(seed, str) or not SEED_PATTERN.fullmatch(seed):
        raise ValidationError(
            "Seed must be 1-50 characters of letters, digits, '-' or '_'"
        )
    return seed


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class StoryBeat(BaseModel):
    """One resolved choice and the narrative that answered it."""

    model_config = ConfigDict(frozen=True)

    choice: Choice
    narrative_text: str
    provider_id: str
    timestamp: datetime = Field(default_factory=_utcnow)


class StoryContext(BaseModel):
    """Seed plus the append-only history of a session."""

    model_config = ConfigDict(frozen=True)

    seed: str
    history: tuple[StoryBeat, ...] = ()
    derived_summary: str | None = None
    session_id: str = Field(default_factory=lambda: uuid.uuid4().hex)

    @property
    def beat_count(self) -> int:
        return len(self.history)

    @property
    def last_beat(self) -> StoryBeat | None:
        return self.history[-1] if self.history else None
