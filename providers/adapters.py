# providers/adapters.py
"""Adapters wrapping each supported narrative backend behind one interface.

The set of adapters is closed: ``providers.registry`` maps every
``ProviderKind`` to exactly one class below.
"""

from __future__ import annotations

import json
from typing import Any

import httpx
import structlog

from config import settings
from core.errors import ProviderError, ProviderErrorKind
from core.text_cleaning import clean_model_response
from core.usage import TokenUsage
from story.models import Choice, StoryContext
from story.rng import generate_world, hash_string_to_seed, mulberry32, offline_beat

from .models import ProviderDescriptor, ProviderKind, ProviderReply, validate_response

logger = structlog.get_logger(__name__)

_QUOTA_HINTS = ("quota", "insufficient_quota", "rate limit", "rate_limit", "credit")


class ProviderAdapter:
    """Base interface for all narrative providers."""

    kind: ProviderKind

    def __init__(self, descriptor: ProviderDescriptor) -> None:
        if descriptor.kind is not self.kind:
            raise ValueError(
                f"{type(self).__name__} cannot serve provider kind {descriptor.kind.value!r}"
            )
        self.descriptor = descriptor

    @property
    def id(self) -> str:
        return self.descriptor.id

    def supports(self, capability: str) -> bool:
        return capability in self.descriptor.capabilities

    def validate(self, response_text: str) -> bool:
        """Pure shape check on a generated beat."""
        return validate_response(response_text)

    def estimate_cost(self, token_count: int) -> float:
        return max(0, token_count) * self.descriptor.cost_per_token

    async def generate(
        self,
        prompt: str,
        context: StoryContext,
        choice: Choice | None = None,
        timeout: float | None = None,
    ) -> ProviderReply:
        """Return the next beat for ``prompt`` or raise ``ProviderError``."""
        raise NotImplementedError

    async def aclose(self) -> None:
        """Release any resources held by the adapter."""


class _HttpProviderAdapter(ProviderAdapter):
    """Shared plumbing for adapters that talk to an HTTP API via httpx."""

    default_api_base: str = ""

    def __init__(
        self,
        descriptor: ProviderDescriptor,
        api_key: str,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        super().__init__(descriptor)
        if not descriptor.model:
            raise ValueError(f"Provider '{descriptor.id}' requires a model name")
        self._api_key = api_key
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            timeout=settings.PROVIDER_TIMEOUT_SECONDS
        )

    @property
    def api_base(self) -> str:
        return (self.descriptor.api_base or self.default_api_base).rstrip("/")

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    def _headers(self) -> dict[str, str]:
        raise NotImplementedError

    def _payload(self, prompt: str) -> dict[str, Any]:
        raise NotImplementedError

    def _parse(self, data: dict[str, Any]) -> ProviderReply:
        raise NotImplementedError

    @property
    def _endpoint(self) -> str:
        raise NotImplementedError

    async def generate(
        self,
        prompt: str,
        context: StoryContext,
        choice: Choice | None = None,
        timeout: float | None = None,
    ) -> ProviderReply:
        effective_timeout = (
            settings.PROVIDER_TIMEOUT_SECONDS if timeout is None else timeout
        )
        logger.debug(
            "Calling narrative provider.",
            provider=self.id,
            model=self.descriptor.model,
            session_id=context.session_id,
            prompt_chars=len(prompt),
        )
        try:
            response = await self._client.post(
                self._endpoint,
                json=self._payload(prompt),
                headers=self._headers(),
                timeout=effective_timeout,
            )
            response.raise_for_status()
            data = response.json()
        except httpx.TimeoutException as exc:
            raise ProviderError(
                ProviderErrorKind.TIMEOUT, f"request timed out: {exc}", self.id
            ) from exc
        except httpx.HTTPStatusError as exc:
            raise ProviderError(
                _classify_status(exc.response),
                f"HTTP {exc.response.status_code}: {exc.response.text[:200]}",
                self.id,
            ) from exc
        except httpx.RequestError as exc:
            raise ProviderError(
                ProviderErrorKind.UNKNOWN, f"request error: {exc}", self.id
            ) from exc
        except json.JSONDecodeError as exc:
            raise ProviderError(
                ProviderErrorKind.INVALID_RESPONSE, f"undecodable body: {exc}", self.id
            ) from exc

        if not isinstance(data, dict):
            raise ProviderError(
                ProviderErrorKind.INVALID_RESPONSE, "response body is not an object", self.id
            )
        reply = self._parse(data)
        return ProviderReply(clean_model_response(reply.text), reply.usage)


def _classify_status(response: httpx.Response) -> ProviderErrorKind:
    if response.status_code == 429:
        return ProviderErrorKind.QUOTA_EXCEEDED
    if response.status_code in (402, 403):
        body = response.text.lower()
        if any(hint in body for hint in _QUOTA_HINTS):
            return ProviderErrorKind.QUOTA_EXCEEDED
    return ProviderErrorKind.UNKNOWN


def _completion_token_param(api_base: str) -> str:
    """Return the token count parameter expected by the endpoint."""
    if "api.openai.com" in api_base:
        return "max_completion_tokens"
    return "max_tokens"


class OpenAIChatAdapter(_HttpProviderAdapter):
    """OpenAI-compatible ``/chat/completions`` backend."""

    kind = ProviderKind.OPENAI
    default_api_base = "https://api.openai.com/v1"

    @property
    def _endpoint(self) -> str:
        return f"{self.api_base}/chat/completions"

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self._api_key}",
            "Content-Type": "application/json",
        }

    def _payload(self, prompt: str) -> dict[str, Any]:
        return {
            "model": self.descriptor.model,
            "messages": [
                {"role": "system", "content": settings.SYSTEM_PROMPT},
                {"role": "user", "content": prompt},
            ],
            "temperature": self.descriptor.temperature,
            _completion_token_param(self.api_base): self.descriptor.max_tokens,
            "stream": False,
        }

    def _parse(self, data: dict[str, Any]) -> ProviderReply:
        choices = data.get("choices")
        if not choices or not isinstance(choices, list):
            raise ProviderError(
                ProviderErrorKind.INVALID_RESPONSE, "missing choices", self.id
            )
        first = choices[0]
        if not isinstance(first, dict):
            raise ProviderError(
                ProviderErrorKind.INVALID_RESPONSE, "choice is not an object", self.id
            )
        message = first.get("message")
        if not isinstance(message, dict):
            message = {}
        content = message.get("content")
        if not isinstance(content, str):
            raise ProviderError(
                ProviderErrorKind.INVALID_RESPONSE, "missing message content", self.id
            )
        return ProviderReply(content, TokenUsage.from_openai(data.get("usage")))


class AnthropicMessagesAdapter(_HttpProviderAdapter):
    """Anthropic ``/v1/messages`` backend."""

    kind = ProviderKind.ANTHROPIC
    default_api_base = "https://api.anthropic.com"

    @property
    def _endpoint(self) -> str:
        return f"{self.api_base}/v1/messages"

    def _headers(self) -> dict[str, str]:
        return {
            "x-api-key": self._api_key,
            "anthropic-version": settings.ANTHROPIC_API_VERSION,
            "content-type": "application/json",
        }

    def _payload(self, prompt: str) -> dict[str, Any]:
        return {
            "model": self.descriptor.model,
            "system": settings.SYSTEM_PROMPT,
            "messages": [{"role": "user", "content": prompt}],
            "temperature": self.descriptor.temperature,
            "max_tokens": self.descriptor.max_tokens,
        }

    def _parse(self, data: dict[str, Any]) -> ProviderReply:
        blocks = data.get("content")
        if not isinstance(blocks, list):
            raise ProviderError(
                ProviderErrorKind.INVALID_RESPONSE, "missing content blocks", self.id
            )
        text = "".join(
            block.get("text", "")
            for block in blocks
            if isinstance(block, dict) and block.get("type") == "text"
        )
        return ProviderReply(text, TokenUsage.from_anthropic(data.get("usage")))


class OfflineSeededAdapter(ProviderAdapter):
    """Deterministic local generator; needs no network or credentials."""

    kind = ProviderKind.OFFLINE

    async def generate(
        self,
        prompt: str,
        context: StoryContext,
        choice: Choice | None = None,
        timeout: float | None = None,
    ) -> ProviderReply:
        position = f"{context.seed}:{len(context.history)}:{choice.value if choice else '-'}"
        rng = mulberry32(hash_string_to_seed(position))
        text = offline_beat(rng, choice.value if choice else None)
        if not context.history:
            world = generate_world(context.seed)
            text = (
                f"Your papers list you as {world.player_role}, bound for "
                f"{world.destination}. {text}"
            )
        prompt_tokens = int(len(prompt) / settings.FALLBACK_CHARS_PER_TOKEN)
        completion_tokens = int(len(text) / settings.FALLBACK_CHARS_PER_TOKEN)
        return ProviderReply(
            text,
            TokenUsage(prompt_tokens, completion_tokens, prompt_tokens + completion_tokens),
        )
