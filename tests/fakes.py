# tests/fakes.py
"""Scripted provider adapters shared by the router and session tests."""

import asyncio

from core.errors import ProviderError, ProviderErrorKind
from core.usage import TokenUsage
from providers.adapters import ProviderAdapter
from providers.models import ProviderDescriptor, ProviderKind, ProviderReply


def make_descriptor(provider_id, priority=0, cost_per_token=0.0, enabled=True):
    return ProviderDescriptor(
        id=provider_id,
        kind=ProviderKind.OFFLINE,
        priority=priority,
        capabilities=frozenset({"narrative"}),
        cost_per_token=cost_per_token,
        enabled=enabled,
    )


class ScriptedAdapter(ProviderAdapter):
    """Returns a fixed reply, or raises a fixed error, and records calls."""

    kind = ProviderKind.OFFLINE

    def __init__(
        self,
        provider_id,
        priority=0,
        reply="It was dark. (Y/N)",
        error=None,
        usage=None,
        cost_per_token=0.0,
        enabled=True,
    ):
        super().__init__(
            make_descriptor(provider_id, priority, cost_per_token, enabled)
        )
        self.reply = reply
        self.error = error
        self.usage = usage or TokenUsage(10, 5, 15)
        self.calls = []

    async def generate(self, prompt, context, choice=None, timeout=None):
        self.calls.append((prompt, context, choice))
        if self.error is not None:
            raise self.error
        return ProviderReply(self.reply, self.usage)


class FailingAdapter(ScriptedAdapter):
    def __init__(self, provider_id, priority=0, kind=ProviderErrorKind.UNKNOWN):
        super().__init__(
            provider_id,
            priority,
            error=ProviderError(kind, f"{provider_id} is down", provider_id),
        )


class BlockingAdapter(ScriptedAdapter):
    """Waits on an event before replying, to hold a session in GENERATING."""

    def __init__(self, provider_id, priority=0, reply="It was dark. (Y/N)"):
        super().__init__(provider_id, priority, reply=reply)
        self.started = asyncio.Event()
        self.release = asyncio.Event()

    async def generate(self, prompt, context, choice=None, timeout=None):
        self.calls.append((prompt, context, choice))
        self.started.set()
        await self.release.wait()
        return ProviderReply(self.reply, self.usage)
