"""Narrative provider adapters and their configuration."""

from .adapters import (
    AnthropicMessagesAdapter,
    OfflineSeededAdapter,
    OpenAIChatAdapter,
    ProviderAdapter,
)
from .models import (
    CHOICE_MARKER,
    ENDING_MARKER,
    ProviderDescriptor,
    ProviderKind,
    ProviderReply,
    extract_choice_prompt,
    is_ending,
    validate_response,
)
from .registry import build_adapter, build_adapters, default_descriptors, load_descriptors

__all__ = [
    "ProviderAdapter",
    "OpenAIChatAdapter",
    "AnthropicMessagesAdapter",
    "OfflineSeededAdapter",
    "ProviderDescriptor",
    "ProviderKind",
    "ProviderReply",
    "CHOICE_MARKER",
    "ENDING_MARKER",
    "validate_response",
    "is_ending",
    "extract_choice_prompt",
    "build_adapter",
    "build_adapters",
    "default_descriptors",
    "load_descriptors",
]
