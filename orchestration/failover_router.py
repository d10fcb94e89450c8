# orchestration/failover_router.py
"""Sequential failover across prioritised narrative providers."""

from __future__ import annotations

import asyncio
import time
from collections.abc import Sequence
from datetime import datetime, timezone

import structlog

from config import settings
from core.errors import (
    GenerationError,
    ProviderConfigError,
    ProviderError,
    ProviderErrorKind,
)
from core.tokens import count_tokens
from core.usage import TokenUsage
from providers.adapters import ProviderAdapter
from story.models import Choice, StoryContext

from .models import AttemptOutcome, GenerationAttempt, RouterState, RoutingResult

logger = structlog.get_logger(__name__)


def order_adapters(adapters: Sequence[ProviderAdapter]) -> list[ProviderAdapter]:
    """Enabled adapters by ascending priority; ties keep configuration order."""
    enabled = [a for a in adapters if a.descriptor.enabled]
    return sorted(enabled, key=lambda a: a.descriptor.priority)


class RoutingRequest:
    """State machine for a single generation request.

    ``IDLE -> ATTEMPTING(i) -> SUCCEEDED | EXHAUSTED``. Attempts are recorded
    as they finish so that a caller cancelling mid-flight still sees them.
    """

    def __init__(self, adapters: list[ProviderAdapter], timeout: float) -> None:
        self._adapters = adapters
        self._timeout = timeout
        self.state = RouterState.IDLE
        self.current_index: int | None = None
        self.attempts: list[GenerationAttempt] = []

    async def run(
        self, prompt: str, context: StoryContext, choice: Choice | None = None
    ) -> RoutingResult:
        if self.state is not RouterState.IDLE:
            raise RuntimeError("A routing request can only be run once")

        try:
            for index, adapter in enumerate(self._adapters):
                self.state = RouterState.ATTEMPTING
                self.current_index = index
                attempt = await self._attempt(adapter, prompt, context, choice)
                self.attempts.append(attempt)
                if attempt.succeeded:
                    self.state = RouterState.SUCCEEDED
                    return RoutingResult(
                        narrative=attempt.narrative or "",
                        provider_id=adapter.id,
                        attempts=list(self.attempts),
                    )
                if index + 1 < len(self._adapters):
                    logger.info(
                        "Provider failed; failing over.",
                        provider=adapter.id,
                        next_provider=self._adapters[index + 1].id,
                        reason=attempt.reason,
                        session_id=context.session_id,
                    )
        except asyncio.CancelledError:
            self.state = RouterState.IDLE
            self.current_index = None
            raise

        self.state = RouterState.EXHAUSTED
        logger.error(
            "All narrative providers failed.",
            attempts=len(self.attempts),
            session_id=context.session_id,
        )
        raise GenerationError(self.attempts)

    async def _attempt(
        self,
        adapter: ProviderAdapter,
        prompt: str,
        context: StoryContext,
        choice: Choice | None,
    ) -> GenerationAttempt:
        started_at = datetime.now(timezone.utc)
        start = time.monotonic()

        def failure(
            kind: ProviderErrorKind,
            reason: str,
            usage: TokenUsage | None = None,
        ) -> GenerationAttempt:
            return GenerationAttempt(
                provider_id=adapter.id,
                started_at=started_at,
                outcome=AttemptOutcome.FAILURE,
                reason=reason,
                error_kind=kind,
                duration_seconds=time.monotonic() - start,
                usage=usage,
                cost=adapter.estimate_cost(usage.total_tokens) if usage else 0.0,
            )

        try:
            reply = await asyncio.wait_for(
                adapter.generate(prompt, context, choice=choice, timeout=self._timeout),
                timeout=self._timeout,
            )
        except asyncio.TimeoutError:
            return failure(
                ProviderErrorKind.TIMEOUT, f"timed out after {self._timeout:.1f}s"
            )
        except ProviderError as exc:
            return failure(exc.kind, str(exc))
        except Exception as exc:
            logger.warning(
                "Unexpected provider error.",
                provider=adapter.id,
                error=str(exc),
                exc_info=True,
            )
            return failure(ProviderErrorKind.UNKNOWN, f"{type(exc).__name__}: {exc}")

        # rejected replies were still billed
        usage = reply.usage or _estimate_usage(adapter, prompt, reply.text or "")
        if not adapter.validate(reply.text):
            logger.warning(
                "Provider returned an invalid beat.",
                provider=adapter.id,
                snippet=(reply.text or "")[:80],
            )
            return failure(
                ProviderErrorKind.INVALID_RESPONSE,
                "response failed validation (empty or missing choice marker)",
                usage,
            )

        return GenerationAttempt(
            provider_id=adapter.id,
            started_at=started_at,
            outcome=AttemptOutcome.SUCCESS,
            narrative=reply.text.strip(),
            duration_seconds=time.monotonic() - start,
            usage=usage,
            cost=adapter.estimate_cost(usage.total_tokens),
        )


def _estimate_usage(adapter: ProviderAdapter, prompt: str, text: str) -> TokenUsage:
    model_name = adapter.descriptor.model or settings.NARRATIVE_MODEL
    prompt_tokens = count_tokens(prompt, model_name)
    completion_tokens = count_tokens(text, model_name)
    return TokenUsage(prompt_tokens, completion_tokens, prompt_tokens + completion_tokens)


class FailoverRouter:
    """Try providers one at a time until one returns a valid beat."""

    def __init__(
        self,
        adapters: Sequence[ProviderAdapter],
        timeout: float | None = None,
    ) -> None:
        self.adapters = order_adapters(adapters)
        if not self.adapters:
            raise ProviderConfigError(
                "FailoverRouter needs at least one enabled provider"
            )
        self.timeout = (
            settings.PROVIDER_TIMEOUT_SECONDS if timeout is None else timeout
        )
        logger.debug(
            "FailoverRouter initialized.",
            order=[a.id for a in self.adapters],
            timeout=self.timeout,
        )

    @property
    def provider_order(self) -> list[str]:
        return [a.id for a in self.adapters]

    def begin(self) -> RoutingRequest:
        """Start a new, independent routing request."""
        return RoutingRequest(self.adapters, self.timeout)

    async def route(
        self, prompt: str, context: StoryContext, choice: Choice | None = None
    ) -> RoutingResult:
        return await self.begin().run(prompt, context, choice)

    async def aclose(self) -> None:
        for adapter in self.adapters:
            await adapter.aclose()
