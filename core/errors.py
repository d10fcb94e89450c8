# core/errors.py
"""Exception hierarchy for the story engine.

Every failure is scoped to a single request: callers can catch
``StoryEngineError`` and keep the process (and the session) alive.
"""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:  # pragma: no cover - for type hints only
    from orchestration.models import GenerationAttempt


class StoryEngineError(Exception):
    """Base class for all engine errors."""


class ValidationError(StoryEngineError):
    """User-correctable bad input, such as a malformed seed or choice."""


class InvalidStateError(StoryEngineError):
    """An operation was requested in a state that does not allow it."""


class ProviderConfigError(StoryEngineError):
    """Provider configuration could not be loaded or is inconsistent."""


class ProviderErrorKind(str, Enum):
    TIMEOUT = "timeout"
    INVALID_RESPONSE = "invalid_response"
    QUOTA_EXCEEDED = "quota_exceeded"
    UNKNOWN = "unknown"


class ProviderError(StoryEngineError):
    """A single provider attempt failed."""

    def __init__(
        self,
        kind: ProviderErrorKind,
        message: str = "",
        provider_id: str | None = None,
    ) -> None:
        self.kind = kind
        self.provider_id = provider_id
        super().__init__(message or kind.value)


class GenerationErrorKind(str, Enum):
    ALL_PROVIDERS_FAILED = "all_providers_failed"


class GenerationError(StoryEngineError):
    """Every configured provider failed for one generation request."""

    def __init__(
        self,
        attempts: list[GenerationAttempt],
        kind: GenerationErrorKind = GenerationErrorKind.ALL_PROVIDERS_FAILED,
    ) -> None:
        self.kind = kind
        self.attempts = list(attempts)
        reasons = "; ".join(f"{a.provider_id}: {a.reason}" for a in self.attempts)
        super().__init__(
            f"{kind.value} after {len(self.attempts)} attempt(s)"
            + (f" ({reasons})" if reasons else "")
        )
