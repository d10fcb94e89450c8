# orchestration/cli_runner.py
"""Command-line runner playing one story session in the terminal."""

from __future__ import annotations

import asyncio

import structlog
from rich.console import Console
from rich.panel import Panel

from config import settings
from core.errors import GenerationError, ProviderConfigError, StoryEngineError
from providers.models import ProviderKind, extract_choice_prompt
from providers.registry import build_adapters, load_descriptors
from storage.session_store import JsonSessionStore
from utils.logging import setup_logging

from orchestration.cost_accountant import CostAccountant
from orchestration.failover_router import FailoverRouter
from orchestration.models import SessionState
from orchestration.session_coordinator import SessionCoordinator

logger = structlog.get_logger(__name__)

QUIT_WORDS = {"q", "quit", "exit"}


async def _read_line(console: Console, prompt: str) -> str:
    return await asyncio.to_thread(console.input, prompt)


async def _play(
    console: Console,
    session: SessionCoordinator,
    seed: str,
    resume_id: str | None,
    store: JsonSessionStore,
) -> None:
    if resume_id:
        context = await store.load(resume_id)
        if context is None:
            console.print(f"No saved session '{resume_id}'. Starting fresh.")
            session.start(seed)
        else:
            session.resume(context)
    else:
        session.start(seed)

    console.print(Panel(session.narrative or "", title=f"Session {session.session_id}"))
    while session.state is SessionState.AWAITING_CHOICE:
        question = extract_choice_prompt(session.narrative or "")
        answer = (
            await _read_line(console, f"[bold]{question} Y/N (q to quit)> [/bold]")
        ).strip()
        if answer.lower() in QUIT_WORDS:
            break
        try:
            outcome = await session.choose(answer)
        except GenerationError as exc:
            console.print(f"[red]No provider could continue the story:[/red] {exc}")
            continue
        except StoryEngineError as exc:
            console.print(f"[yellow]{exc}[/yellow]")
            continue
        console.print(Panel(outcome.narrative, subtitle=outcome.provider_id))
        if outcome.ended:
            console.print("[dim]The story has ended.[/dim]")
    session.complete()


def _build_router(offline_only: bool) -> FailoverRouter:
    descriptors = load_descriptors(settings)
    if offline_only:
        descriptors = [d for d in descriptors if d.kind is ProviderKind.OFFLINE]
        if not descriptors:
            raise ProviderConfigError(
                "--offline-only needs an offline provider; enable "
                "ENABLE_OFFLINE_PROVIDER or add one to PROVIDERS_FILE"
            )
    return FailoverRouter(build_adapters(descriptors, settings))


def run(seed: str, offline_only: bool = False, resume_id: str | None = None) -> None:
    """Build the provider stack and run one interactive session."""
    setup_logging()
    console = Console()
    try:
        router = _build_router(offline_only)
    except StoryEngineError as err:
        console.print(f"[red]{err}[/red]")
        return
    accountant = CostAccountant()
    store = JsonSessionStore()
    session = SessionCoordinator(
        router, on_session_updated=store.save, on_attempts=accountant
    )

    async def _run() -> None:
        try:
            await _play(console, session, seed, resume_id, store)
        finally:
            await router.aclose()

    try:
        asyncio.run(_run())
    except KeyboardInterrupt:
        logger.info("Story session interrupted; shutting down.")
    except StoryEngineError as err:
        console.print(f"[red]{err}[/red]")
    logger.info(
        "Session finished.",
        session_id=session.session_id,
        total_tokens=accountant.total_tokens,
        total_cost=round(accountant.total_cost, 6),
    )
