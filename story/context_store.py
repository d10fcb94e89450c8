# story/context_store.py
"""Pure transformations over ``StoryContext`` values.

Nothing in this module performs I/O, reads the clock or uses randomness, so
``build_prompt`` is deterministic for a given context and arguments.
"""

from __future__ import annotations

import structlog

from config import settings
from prompt_renderer import render_prompt

from .models import Choice, StoryBeat, StoryContext, validate_seed

logger = structlog.get_logger(__name__)

PROMPT_TEMPLATE = "story_beat.j2"
TRUNCATION_MARKER = "\n... (truncated)"
BEAT_TRUNCATION_MARKER = "(truncated) ..."


def new_context(seed: str, session_id: str | None = None) -> StoryContext:
    """Create the initial, empty-history context for ``seed``."""
    validate_seed(seed)
    if session_id is None:
        return StoryContext(seed=seed)
    return StoryContext(seed=seed, session_id=session_id)


def append(context: StoryContext, beat: StoryBeat) -> StoryContext:
    """Return a new context with ``beat`` appended to the history."""
    return context.model_copy(update={"history": (*context.history, beat)})


def with_summary(context: StoryContext, summary: str | None) -> StoryContext:
    """Return a new context carrying ``summary`` as its derived summary."""
    return context.model_copy(update={"derived_summary": summary})


def select_beats(
    history: tuple[StoryBeat, ...], max_recent_beats: int
) -> tuple[tuple[StoryBeat, ...], tuple[StoryBeat, ...]]:
    """Split ``history`` into (omitted, kept) keeping the newest beats."""
    if max_recent_beats < 1:
        raise ValueError("max_recent_beats must be at least 1")
    if len(history) <= max_recent_beats:
        return (), history
    cut = len(history) - max_recent_beats
    return history[:cut], history[cut:]


def _shorten_beat(beat: StoryBeat, overflow: int) -> StoryBeat:
    """Drop the oldest ``overflow`` characters of a beat, keeping its ending."""
    text = beat.narrative_text
    keep = max(0, len(text) - overflow - len(BEAT_TRUNCATION_MARKER) - 1)
    tail = text[-keep:] if keep else ""
    return beat.model_copy(
        update={"narrative_text": f"{BEAT_TRUNCATION_MARKER} {tail}".rstrip()}
    )


def _render(
    context: StoryContext,
    omitted: tuple[StoryBeat, ...],
    kept: tuple[StoryBeat, ...],
    pending_choice: Choice | None,
    opening: str,
) -> str:
    return render_prompt(
        PROMPT_TEMPLATE,
        {
            "seed": context.seed,
            "summary": context.derived_summary,
            "opening": opening,
            "omitted_count": len(omitted),
            "omitted_choices": " ".join(b.choice.value for b in omitted),
            "beats": kept,
            "pending_choice": pending_choice,
        },
    ).strip()


def build_prompt(
    context: StoryContext,
    pending_choice: Choice | None = None,
    max_recent_beats: int | None = None,
    max_prompt_chars: int | None = None,
    opening: str | None = None,
) -> str:
    """Render the generation prompt for ``context``.

    The seed and the most recent ``max_recent_beats`` beats are kept verbatim;
    older beats are reduced to a count and their choice trail. If the result is
    still longer than ``max_prompt_chars`` the oldest kept beats are dropped
    (the newest always stays), then the start of the newest beat is cut so the
    seed, pending choice and marker instructions survive. Only if that is not
    enough is the rendered text itself cut.
    """
    recent = max_recent_beats or settings.PROMPT_RECENT_BEATS
    limit = max_prompt_chars or settings.MAX_PROMPT_CHARS
    opening_text = settings.OPENING_NARRATIVE if opening is None else opening

    omitted, kept = select_beats(context.history, recent)
    prompt = _render(context, omitted, kept, pending_choice, opening_text)

    while len(prompt) > limit and len(kept) > 1:
        omitted, kept = (*omitted, kept[0]), kept[1:]
        prompt = _render(context, omitted, kept, pending_choice, opening_text)

    if len(prompt) > limit and kept:
        logger.warning(
            "Prompt exceeds character bound even with one beat; shortening it.",
            session_id=context.session_id,
            length=len(prompt),
            limit=limit,
        )
        kept = (*kept[:-1], _shorten_beat(kept[-1], len(prompt) - limit))
        prompt = _render(context, omitted, kept, pending_choice, opening_text)

    if len(prompt) > limit:
        logger.warning(
            "Prompt still exceeds character bound; truncating.",
            session_id=context.session_id,
            length=len(prompt),
            limit=limit,
        )
        prompt = prompt[: limit - len(TRUNCATION_MARKER)] + TRUNCATION_MARKER
    return prompt
