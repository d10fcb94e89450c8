# orchestration/models.py
"""State enums and transient records used by the router and sessions."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from core.errors import ProviderErrorKind
from core.usage import TokenUsage
from story.models import StoryContext


class RouterState(str, Enum):
    IDLE = "idle"
    ATTEMPTING = "attempting"
    SUCCEEDED = "succeeded"
    EXHAUSTED = "exhausted"


class SessionState(str, Enum):
    CREATED = "created"
    AWAITING_CHOICE = "awaiting_choice"
    GENERATING = "generating"
    COMPLETED = "completed"


class AttemptOutcome(str, Enum):
    SUCCESS = "success"
    FAILURE = "failure"


@dataclass(frozen=True)
class GenerationAttempt:
    """What happened when one provider was tried for one request."""

    provider_id: str
    started_at: datetime
    outcome: AttemptOutcome
    narrative: str | None = None
    reason: str | None = None
    error_kind: ProviderErrorKind | None = None
    duration_seconds: float = 0.0
    usage: TokenUsage | None = None
    cost: float = 0.0

    @property
    def succeeded(self) -> bool:
        return self.outcome is AttemptOutcome.SUCCESS


@dataclass(frozen=True)
class RoutingResult:
    """The accepted narrative and the attempts it took to get it."""

    narrative: str
    provider_id: str
    attempts: list[GenerationAttempt] = field(default_factory=list)

    @property
    def fallback_used(self) -> bool:
        return len(self.attempts) > 1


@dataclass(frozen=True)
class ChoiceOutcome:
    """Returned to the caller after a successful choice."""

    context: StoryContext
    narrative: str
    state: SessionState
    provider_id: str
    ended: bool = False
