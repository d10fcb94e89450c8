from __future__ import annotations

import logging
from dataclasses import dataclass, field

from core.usage import TokenUsage

from .models import GenerationAttempt

logger = logging.getLogger(__name__)


@dataclass
class ProviderTotals:
    attempts: int = 0
    failures: int = 0
    cost: float = 0.0
    usage: TokenUsage = field(default_factory=TokenUsage)
    failure_kinds: dict[str, int] = field(default_factory=dict)


class CostAccountant:
    """Accumulate and log token usage and cost across providers.

    Instances are callable so they can be passed straight to a session as the
    ``on_attempts`` telemetry hook.
    """

    def __init__(self) -> None:
        self.total_cost: float = 0.0
        self.total_tokens: int = 0
        self.providers: dict[str, ProviderTotals] = {}

    def __call__(self, attempts: list[GenerationAttempt]) -> None:
        self.record_attempts(attempts)

    def record_attempts(self, attempts: list[GenerationAttempt]) -> None:
        for attempt in attempts:
            self.record_attempt(attempt)

    def record_attempt(self, attempt: GenerationAttempt) -> None:
        totals = self.providers.setdefault(attempt.provider_id, ProviderTotals())
        totals.attempts += 1
        totals.usage.add(attempt.usage)
        totals.cost += attempt.cost
        self.total_cost += attempt.cost
        if attempt.usage:
            self.total_tokens += attempt.usage.total_tokens

        if not attempt.succeeded:
            totals.failures += 1
            kind = attempt.error_kind.value if attempt.error_kind else "unknown"
            totals.failure_kinds[kind] = totals.failure_kinds.get(kind, 0) + 1
            logger.info(
                "Provider '%s' attempt failed (%s). Failures so far: %s, cost %.6f",
                attempt.provider_id,
                kind,
                totals.failures,
                attempt.cost,
            )
            return

        logger.info(
            "Tokens from '%s': %s (cost %.6f). Total this run: %s tokens, %.6f",
            attempt.provider_id,
            attempt.usage.total_tokens if attempt.usage else 0,
            attempt.cost,
            self.total_tokens,
            self.total_cost,
        )

    def get_provider_totals(self, provider_id: str) -> ProviderTotals:
        return self.providers.get(provider_id, ProviderTotals())

    def error_rate(self, provider_id: str) -> float:
        totals = self.providers.get(provider_id)
        if not totals or not totals.attempts:
            return 0.0
        return totals.failures / totals.attempts
