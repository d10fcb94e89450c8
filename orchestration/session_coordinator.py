# orchestration/session_coordinator.py
"""Per-session state machine tying the context store to the router."""

from __future__ import annotations

import asyncio
import inspect
from collections.abc import Awaitable, Callable
from datetime import datetime, timezone
from typing import Any

import structlog

from config import settings
from core.errors import GenerationError, InvalidStateError
from providers.models import is_ending
from story import context_store
from story.models import Choice, StoryBeat, StoryContext

from .failover_router import FailoverRouter
from .models import ChoiceOutcome, GenerationAttempt, SessionState

logger = structlog.get_logger(__name__)

SessionUpdatedHook = Callable[[StoryContext], Awaitable[Any] | Any]
AttemptsHook = Callable[[list[GenerationAttempt]], Awaitable[Any] | Any]


class SessionCoordinator:
    """Drive one story session: ``start``, repeated ``choose``, ``complete``.

    At most one ``choose`` may be in flight; a second call while generating
    fails fast with ``InvalidStateError``. A failed or cancelled choice leaves
    the context exactly as it was.
    """

    def __init__(
        self,
        router: FailoverRouter,
        on_session_updated: SessionUpdatedHook | None = None,
        on_attempts: AttemptsHook | None = None,
        opening_narrative: str | None = None,
    ) -> None:
        self._router = router
        self._on_session_updated = on_session_updated
        self._on_attempts = on_attempts
        self._opening = (
            settings.OPENING_NARRATIVE if opening_narrative is None else opening_narrative
        )
        self.state = SessionState.CREATED
        self._context: StoryContext | None = None
        self._narrative: str | None = None

    @property
    def context(self) -> StoryContext | None:
        return self._context

    @property
    def narrative(self) -> str | None:
        """The narrative line the reader is currently answering."""
        return self._narrative

    @property
    def session_id(self) -> str | None:
        return self._context.session_id if self._context else None

    def start(self, seed: str, session_id: str | None = None) -> StoryContext:
        """Validate ``seed`` and open the session."""
        if self.state is not SessionState.CREATED:
            raise InvalidStateError(f"Cannot start a session in state {self.state.value}")
        context = context_store.new_context(seed, session_id=session_id)
        self._context = context
        self._narrative = self._opening
        self.state = SessionState.AWAITING_CHOICE
        logger.info("Story session started.", session_id=context.session_id, seed=seed)
        return context

    def resume(self, context: StoryContext) -> None:
        """Open the session from a previously persisted context."""
        if self.state is not SessionState.CREATED:
            raise InvalidStateError(f"Cannot resume a session in state {self.state.value}")
        self._context = context
        last = context.last_beat
        self._narrative = last.narrative_text if last else self._opening
        self.state = (
            SessionState.COMPLETED
            if last and is_ending(last.narrative_text)
            else SessionState.AWAITING_CHOICE
        )
        logger.info(
            "Story session resumed.",
            session_id=context.session_id,
            beats=context.beat_count,
            state=self.state.value,
        )

    async def choose(self, choice: Choice | str) -> ChoiceOutcome:
        """Resolve the reader's choice into the next story beat.

        The session stays in ``GENERATING`` until the telemetry and
        persistence hooks have returned, so a second ``choose`` issued while
        a hook is still running is rejected as well.
        """
        if self.state is not SessionState.AWAITING_CHOICE:
            raise InvalidStateError(f"Cannot choose in state {self.state.value}")
        if self._context is None:
            raise InvalidStateError("Cannot choose before the session has a context")
        parsed = Choice.parse(choice)

        previous = self._context
        self.state = SessionState.GENERATING
        final_state = SessionState.AWAITING_CHOICE
        request = self._router.begin()
        try:
            try:
                prompt = context_store.build_prompt(previous, pending_choice=parsed)
                result = await request.run(prompt, previous, parsed)
            except asyncio.CancelledError:
                logger.info(
                    "Choice cancelled; context unchanged.",
                    session_id=previous.session_id,
                )
                await self._emit_attempts(request.attempts)
                raise
            except GenerationError:
                await self._emit_attempts(request.attempts)
                raise

            beat = StoryBeat(
                choice=parsed,
                narrative_text=result.narrative,
                provider_id=result.provider_id,
                timestamp=datetime.now(timezone.utc),
            )
            updated = context_store.append(previous, beat)
            self._context = updated
            self._narrative = result.narrative
            ended = is_ending(result.narrative)
            final_state = (
                SessionState.COMPLETED if ended else SessionState.AWAITING_CHOICE
            )

            logger.info(
                "Story beat appended.",
                session_id=updated.session_id,
                beats=updated.beat_count,
                provider=result.provider_id,
                fallback_used=result.fallback_used,
                ended=ended,
            )
            await self._emit_attempts(result.attempts)
            await self._notify_updated(updated)
        finally:
            self.state = final_state

        return ChoiceOutcome(
            context=updated,
            narrative=result.narrative,
            state=final_state,
            provider_id=result.provider_id,
            ended=ended,
        )

    def complete(self) -> StoryContext | None:
        """Close the session; later choices are rejected."""
        if self.state is SessionState.GENERATING:
            raise InvalidStateError("Cannot complete a session while generating")
        if self.state is not SessionState.COMPLETED:
            self.state = SessionState.COMPLETED
            logger.info("Story session completed.", session_id=self.session_id)
        return self._context

    async def _emit_attempts(self, attempts: list[GenerationAttempt]) -> None:
        if self._on_attempts is None or not attempts:
            return
        try:
            result = self._on_attempts(list(attempts))
            if inspect.isawaitable(result):
                await result
        except Exception as exc:
            logger.warning(
                "Telemetry hook failed; ignoring.",
                session_id=self.session_id,
                error=str(exc),
                exc_info=True,
            )

    async def _notify_updated(self, context: StoryContext) -> None:
        if self._on_session_updated is None:
            return
        try:
            result = self._on_session_updated(context)
            if inspect.isawaitable(result):
                await result
        except Exception as exc:
            logger.error(
                "Persistence hook failed; the beat is kept in memory.",
                session_id=context.session_id,
                error=str(exc),
                exc_info=True,
            )
