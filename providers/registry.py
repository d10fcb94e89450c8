# providers/registry.py
"""Provider descriptor loading and adapter construction."""

from __future__ import annotations

import os
from typing import Any

import httpx
import structlog
import yaml
from pydantic import ValidationError as PydanticValidationError

from config import StorySettings, settings
from core.errors import ProviderConfigError

from .adapters import (
    AnthropicMessagesAdapter,
    OfflineSeededAdapter,
    OpenAIChatAdapter,
    ProviderAdapter,
)
from .models import ProviderDescriptor, ProviderKind

logger = structlog.get_logger(__name__)

ADAPTER_TYPES: dict[ProviderKind, type[ProviderAdapter]] = {
    ProviderKind.OPENAI: OpenAIChatAdapter,
    ProviderKind.ANTHROPIC: AnthropicMessagesAdapter,
    ProviderKind.OFFLINE: OfflineSeededAdapter,
}


def default_descriptors(cfg: StorySettings = settings) -> list[ProviderDescriptor]:
    """Build the built-in provider list from settings."""
    descriptors = [
        ProviderDescriptor(
            id="openai-primary",
            kind=ProviderKind.OPENAI,
            priority=1,
            capabilities=frozenset({"narrative", "remote"}),
            cost_per_token=cfg.OPENAI_COST_PER_TOKEN,
            model=cfg.NARRATIVE_MODEL,
            api_base=cfg.OPENAI_API_BASE,
            temperature=cfg.TEMPERATURE_NARRATIVE,
            max_tokens=cfg.MAX_GENERATION_TOKENS,
        ),
        ProviderDescriptor(
            id="openai-fallback",
            kind=ProviderKind.OPENAI,
            priority=2,
            capabilities=frozenset({"narrative", "remote"}),
            cost_per_token=cfg.OPENAI_COST_PER_TOKEN / 10,
            model=cfg.FALLBACK_NARRATIVE_MODEL,
            api_base=cfg.OPENAI_API_BASE,
            temperature=cfg.TEMPERATURE_NARRATIVE,
            max_tokens=cfg.MAX_GENERATION_TOKENS,
        ),
        ProviderDescriptor(
            id="anthropic-fallback",
            kind=ProviderKind.ANTHROPIC,
            priority=3,
            capabilities=frozenset({"narrative", "remote"}),
            cost_per_token=cfg.ANTHROPIC_COST_PER_TOKEN,
            model=cfg.ANTHROPIC_NARRATIVE_MODEL,
            api_base=cfg.ANTHROPIC_API_BASE,
            temperature=cfg.TEMPERATURE_NARRATIVE,
            max_tokens=cfg.MAX_GENERATION_TOKENS,
        ),
    ]
    if cfg.ENABLE_OFFLINE_PROVIDER:
        descriptors.append(
            ProviderDescriptor(
                id="offline",
                kind=ProviderKind.OFFLINE,
                priority=99,
                capabilities=frozenset({"narrative", "offline", "deterministic"}),
            )
        )
    return descriptors


def parse_descriptors(data: Any) -> list[ProviderDescriptor]:
    """Validate a ``providers`` list (as parsed from YAML) into descriptors."""
    if isinstance(data, dict):
        data = data.get("providers")
    if not isinstance(data, list) or not data:
        raise ProviderConfigError("Provider configuration must be a non-empty list")

    descriptors: list[ProviderDescriptor] = []
    for index, raw in enumerate(data):
        if not isinstance(raw, dict):
            raise ProviderConfigError(f"Provider entry {index} is not a mapping")
        try:
            descriptors.append(ProviderDescriptor.model_validate(raw))
        except PydanticValidationError as exc:
            raise ProviderConfigError(f"Provider entry {index} is invalid: {exc}") from exc

    ids = [d.id for d in descriptors]
    duplicates = sorted({i for i in ids if ids.count(i) > 1})
    if duplicates:
        raise ProviderConfigError(f"Duplicate provider ids: {', '.join(duplicates)}")
    return descriptors


def load_descriptors_file(filepath: str) -> list[ProviderDescriptor]:
    """Load provider descriptors from a YAML file."""
    if not filepath.endswith((".yaml", ".yml")):
        raise ProviderConfigError(f"Provider file is not a YAML file: {filepath}")
    try:
        with open(filepath, encoding="utf-8") as f:
            content = yaml.safe_load(f)
    except FileNotFoundError as exc:
        raise ProviderConfigError(f"Provider file not found: {filepath}") from exc
    except yaml.YAMLError as exc:
        raise ProviderConfigError(f"Error parsing provider file {filepath}: {exc}") from exc
    descriptors = parse_descriptors(content)
    logger.info(
        "Loaded provider descriptors.",
        file_path=filepath,
        providers=[d.id for d in descriptors],
    )
    return descriptors


def load_descriptors(cfg: StorySettings = settings) -> list[ProviderDescriptor]:
    """Return descriptors from ``PROVIDERS_FILE`` or the built-in defaults."""
    if cfg.PROVIDERS_FILE:
        if os.path.exists(cfg.PROVIDERS_FILE):
            return load_descriptors_file(cfg.PROVIDERS_FILE)
        logger.warning(
            "Configured provider file not found. Using defaults.",
            file_path=cfg.PROVIDERS_FILE,
        )
    return default_descriptors(cfg)


def _api_key_for(kind: ProviderKind, cfg: StorySettings) -> str:
    if kind is ProviderKind.OPENAI:
        return cfg.OPENAI_API_KEY
    if kind is ProviderKind.ANTHROPIC:
        return cfg.ANTHROPIC_API_KEY
    return ""


def build_adapter(
    descriptor: ProviderDescriptor,
    cfg: StorySettings = settings,
    client: httpx.AsyncClient | None = None,
) -> ProviderAdapter:
    """Construct the adapter for ``descriptor`` with explicit credentials."""
    adapter_type = ADAPTER_TYPES[descriptor.kind]
    if adapter_type is OfflineSeededAdapter:
        return OfflineSeededAdapter(descriptor)
    return adapter_type(descriptor, api_key=_api_key_for(descriptor.kind, cfg), client=client)


def build_adapters(
    descriptors: list[ProviderDescriptor],
    cfg: StorySettings = settings,
    client: httpx.AsyncClient | None = None,
) -> list[ProviderAdapter]:
    """Construct adapters for every enabled descriptor, keeping list order."""
    adapters = [build_adapter(d, cfg, client) for d in descriptors if d.enabled]
    skipped = [d.id for d in descriptors if not d.enabled]
    if skipped:
        logger.info("Skipping disabled providers.", providers=skipped)
    return adapters
