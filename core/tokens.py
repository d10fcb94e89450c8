# core/tokens.py
"""Token counting helpers backed by tiktoken."""

from __future__ import annotations

import functools

import structlog
import tiktoken

from config import settings

logger = structlog.get_logger(__name__)


@functools.lru_cache(maxsize=settings.TOKENIZER_CACHE_SIZE)
def _get_tokenizer(model_name: str) -> tiktoken.Encoding | None:
    """
    Gets a tiktoken encoder for the given model name, with caching.
    Tries model-specific encoding, then the default, then returns None.
    """
    try:
        try:
            encoder = tiktoken.encoding_for_model(model_name)
        except KeyError:
            logger.debug(
                "No direct tiktoken encoding for model; using default.",
                model=model_name,
                encoding=settings.TIKTOKEN_DEFAULT_ENCODING,
            )
            encoder = tiktoken.get_encoding(settings.TIKTOKEN_DEFAULT_ENCODING)
        return encoder
    except Exception as e:
        # tiktoken downloads encodings lazily; offline hosts end up here
        logger.error(
            "Could not load tokenizer. Falling back to character heuristic.",
            model=model_name,
            error=str(e),
        )
        return None


def count_tokens(text: str, model_name: str) -> int:
    """Count the tokens in ``text`` for ``model_name``."""
    if not text:
        return 0

    encoder = _get_tokenizer(model_name)
    if encoder:
        return len(encoder.encode(text, allowed_special="all"))
    return int(len(text) / settings.FALLBACK_CHARS_PER_TOKEN)

