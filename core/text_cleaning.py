# core/text_cleaning.py
"""Cleanup of raw model output before it is validated as a story beat."""

from __future__ import annotations

import re

import structlog

logger = structlog.get_logger(__name__)

_THINK_TAGS = (
    "think",
    "thought",
    "thinking",
    "reasoning",
    "analysis",
    "reflection",
)

_LEADING_CHATTER = [
    r"^\s*(Okay,\s*)?(Sure,\s*)?(Here's|Here is)\s+(the|your)\s+[\w\s]+?:\s*",
    r"^\s*Certainly! Here is the (text|story):\s*",
    r"^\s*(?:Output|Result|Response|Answer|Story)\s*:\s*",
]

_TRAILING_CHATTER = [
    r"\s*Let me know if you (need|have) any(thing else| other questions| further revisions| adjustments)\b.*?\.?[^\w\n]*$",
    r"\s*I hope this (meets your expectations|helps|is what you were looking for)\b.*?\.?[^\w\n]*$",
]


def clean_model_response(text: str) -> str:
    """Strip reasoning blocks, code fences and assistant chatter from ``text``."""
    if not isinstance(text, str):
        logger.warning(
            "clean_model_response received non-string input.",
            input_type=type(text).__name__,
        )
        return ""

    cleaned = text
    for tag in _THINK_TAGS:
        cleaned = re.sub(
            rf"<\s*{tag}\s*>.*?<\s*/\s*{tag}\s*>",
            "",
            cleaned,
            flags=re.DOTALL | re.IGNORECASE,
        )
        cleaned = re.sub(rf"<\s*/?\s*{tag}\s*/?\s*>", "", cleaned, flags=re.IGNORECASE)

    cleaned = re.sub(
        r"```(?:[a-zA-Z0-9_-]+)?\s*(.*?)\s*```", r"\1", cleaned, flags=re.DOTALL
    )

    for pattern in _LEADING_CHATTER:
        cleaned = re.sub(pattern, "", cleaned, count=1, flags=re.IGNORECASE).strip()
    for pattern in _TRAILING_CHATTER:
        cleaned = re.sub(
            pattern, "", cleaned, count=1, flags=re.IGNORECASE | re.MULTILINE
        ).strip()

    cleaned = cleaned.strip().strip('"').strip()
    cleaned = re.sub(r"\n{3,}", "\n\n", cleaned)

    if len(cleaned) < len(text):
        logger.debug(
            "clean_model_response trimmed output.",
            before=len(text),
            after=len(cleaned),
        )
    return cleaned
