# core/usage.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Any


@dataclass
class TokenUsage:
    """Token usage reported by (or estimated for) one provider call."""

    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0

    @classmethod
    def from_openai(cls, usage: dict[str, Any] | None) -> TokenUsage | None:
        """Build from an OpenAI-style ``usage`` block."""
        if not isinstance(usage, dict):
            return None
        prompt = int(usage.get("prompt_tokens") or 0)
        completion = int(usage.get("completion_tokens") or 0)
        total = int(usage.get("total_tokens") or prompt + completion)
        return cls(prompt, completion, total)

    @classmethod
    def from_anthropic(cls, usage: dict[str, Any] | None) -> TokenUsage | None:
        """Build from an Anthropic-style ``usage`` block."""
        if not isinstance(usage, dict):
            return None
        prompt = int(usage.get("input_tokens") or 0)
        completion = int(usage.get("output_tokens") or 0)
        return cls(prompt, completion, prompt + completion)

    def add(self, usage: TokenUsage | None) -> None:
        """Accumulate usage values from another instance."""
        if not usage:
            return
        self.prompt_tokens += usage.prompt_tokens
        self.completion_tokens += usage.completion_tokens
        self.total_tokens += usage.total_tokens

    def as_dict(self) -> dict[str, int]:
        return {
            "prompt_tokens": self.prompt_tokens,
            "completion_tokens": self.completion_tokens,
            "total_tokens": self.total_tokens,
        }
