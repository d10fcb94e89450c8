# tests/test_session_coordinator.py

import asyncio
import unittest
from unittest.mock import AsyncMock, MagicMock

import pytest
from core.errors import GenerationError, InvalidStateError, ValidationError
from fakes import BlockingAdapter, FailingAdapter, ScriptedAdapter
from orchestration.failover_router import FailoverRouter
from orchestration.models import SessionState
from orchestration.session_coordinator import SessionCoordinator
from story.models import Choice

OPENING = "The bus halts at dawn. Officials demand your ticket. Hand it over? (Y/N)"


def make_session(*adapters, **kwargs):
    return SessionCoordinator(FailoverRouter(list(adapters)), **kwargs)


def test_start_with_valid_seed():
    session = make_session(ScriptedAdapter("p1"))
    context = session.start("transit-mystery")

    assert session.state is SessionState.AWAITING_CHOICE
    assert context.seed == "transit-mystery"
    assert context.history == ()
    assert session.narrative == OPENING


@pytest.mark.parametrize("seed", ["", "bad seed!", "x" * 51])
def test_start_with_invalid_seed(seed):
    session = make_session(ScriptedAdapter("p1"))
    with pytest.raises(ValidationError):
        session.start(seed)
    assert session.state is SessionState.CREATED
    assert session.context is None


def test_start_twice_rejected():
    session = make_session(ScriptedAdapter("p1"))
    session.start("seed")
    with pytest.raises(InvalidStateError):
        session.start("seed")


@pytest.mark.asyncio
async def test_choose_before_start_rejected():
    session = make_session(ScriptedAdapter("p1"))
    with pytest.raises(InvalidStateError):
        await session.choose("Y")


@pytest.mark.asyncio
async def test_invalid_choice_leaves_state_alone():
    adapter = ScriptedAdapter("p1")
    session = make_session(adapter)
    session.start("seed")
    with pytest.raises(ValidationError):
        await session.choose("maybe")
    assert session.state is SessionState.AWAITING_CHOICE
    assert adapter.calls == []


@pytest.mark.asyncio
async def test_successful_choice_appends_beat():
    adapter = ScriptedAdapter("p1", reply="It was dark. (Y/N)")
    session = make_session(adapter)
    session.start("seed")

    outcome = await session.choose("y")

    assert outcome.narrative == "It was dark. (Y/N)"
    assert outcome.provider_id == "p1"
    assert outcome.state is SessionState.AWAITING_CHOICE
    assert not outcome.ended
    assert session.state is SessionState.AWAITING_CHOICE
    beat = session.context.history[-1]
    assert beat.choice is Choice.YES
    assert beat.narrative_text == "It was dark. (Y/N)"
    assert beat.provider_id == "p1"
    assert session.narrative == "It was dark. (Y/N)"

    prompt, context, choice = adapter.calls[0]
    assert "The reader now chooses Y." in prompt
    assert context.history == ()
    assert choice is Choice.YES


@pytest.mark.asyncio
async def test_all_providers_failing_leaves_context_unchanged():
    session = make_session(FailingAdapter("p1", 1), FailingAdapter("p2", 2))
    before = session.start("seed")

    with pytest.raises(GenerationError) as excinfo:
        await session.choose(Choice.NO)

    assert session.context == before
    assert session.state is SessionState.AWAITING_CHOICE
    assert [a.provider_id for a in excinfo.value.attempts] == ["p1", "p2"]


@pytest.mark.asyncio
async def test_failover_beat_credits_backup_provider():
    session = make_session(FailingAdapter("primary", 1), ScriptedAdapter("backup", 2))
    session.start("seed")
    outcome = await session.choose("N")
    assert outcome.provider_id == "backup"
    assert session.context.history[-1].provider_id == "backup"


@pytest.mark.asyncio
async def test_ending_completes_session():
    session = make_session(ScriptedAdapter("p1", reply="The room exhales. (Restart?)"))
    session.start("seed")

    outcome = await session.choose("Y")

    assert outcome.ended
    assert session.state is SessionState.COMPLETED
    with pytest.raises(InvalidStateError):
        await session.choose("Y")


@pytest.mark.asyncio
async def test_hooks_called_once_per_success():
    on_updated = AsyncMock()
    on_attempts = MagicMock(return_value=None)
    session = make_session(
        FailingAdapter("a", 1),
        ScriptedAdapter("b", 2),
        on_session_updated=on_updated,
        on_attempts=on_attempts,
    )
    session.start("seed")

    outcome = await session.choose("Y")

    on_updated.assert_awaited_once_with(outcome.context)
    on_attempts.assert_called_once()
    attempts = on_attempts.call_args.args[0]
    assert [a.provider_id for a in attempts] == ["a", "b"]


@pytest.mark.asyncio
async def test_attempts_reported_on_failure_without_persisting():
    on_updated = AsyncMock()
    on_attempts = AsyncMock()
    session = make_session(
        FailingAdapter("a"), on_session_updated=on_updated, on_attempts=on_attempts
    )
    session.start("seed")

    with pytest.raises(GenerationError):
        await session.choose("Y")

    on_updated.assert_not_awaited()
    on_attempts.assert_awaited_once()


@pytest.mark.asyncio
async def test_hook_failures_do_not_fail_the_choice():
    session = make_session(
        ScriptedAdapter("p1"),
        on_session_updated=MagicMock(side_effect=OSError("disk full")),
        on_attempts=AsyncMock(side_effect=RuntimeError("telemetry down")),
    )
    session.start("seed")

    outcome = await session.choose("Y")

    assert outcome.narrative == "It was dark. (Y/N)"
    assert session.context.beat_count == 1


def test_complete_closes_session():
    session = make_session(ScriptedAdapter("p1"))
    session.start("seed")
    context = session.complete()
    assert session.state is SessionState.COMPLETED
    assert context is session.context


@pytest.mark.asyncio
async def test_choose_without_context_rejected():
    session = make_session(ScriptedAdapter("p1"))
    session.state = SessionState.AWAITING_CHOICE
    with pytest.raises(InvalidStateError):
        await session.choose("Y")


class TestConcurrentChoices(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self):
        self.adapter = BlockingAdapter("slow")
        self.session = make_session(self.adapter)
        self.before = self.session.start("seed")

    async def test_second_choice_rejected_while_generating(self):
        first = asyncio.create_task(self.session.choose("Y"))
        await self.adapter.started.wait()
        self.assertIs(self.session.state, SessionState.GENERATING)

        with self.assertRaises(InvalidStateError):
            await self.session.choose("N")
        with self.assertRaises(InvalidStateError):
            self.session.complete()

        self.adapter.release.set()
        outcome = await first
        self.assertEqual(outcome.context.beat_count, 1)
        self.assertEqual(len(self.adapter.calls), 1)
        self.assertIs(self.session.state, SessionState.AWAITING_CHOICE)

    async def test_cancel_restores_context(self):
        attempts_seen = []
        on_updated = AsyncMock()
        self.session._on_attempts = attempts_seen.append
        self.session._on_session_updated = on_updated

        task = asyncio.create_task(self.session.choose("Y"))
        await self.adapter.started.wait()
        task.cancel()
        with self.assertRaises(asyncio.CancelledError):
            await task

        self.assertIs(self.session.state, SessionState.AWAITING_CHOICE)
        self.assertEqual(self.session.context, self.before)
        self.assertEqual(attempts_seen, [])
        on_updated.assert_not_awaited()

        # the session stays usable after a cancelled choice
        self.adapter.release.set()
        outcome = await self.session.choose("N")
        self.assertEqual(outcome.context.history[-1].choice, Choice.NO)


class TestPersistenceInFlight(unittest.IsolatedAsyncioTestCase):
    async def test_second_choice_rejected_while_saving(self):
        saving = asyncio.Event()
        release = asyncio.Event()
        saved = []

        async def slow_save(context):
            saved.append(context)
            saving.set()
            await release.wait()

        adapter = ScriptedAdapter("p1")
        session = make_session(adapter, on_session_updated=slow_save)
        session.start("seed")

        first = asyncio.create_task(session.choose("Y"))
        await saving.wait()
        self.assertIs(session.state, SessionState.GENERATING)

        with self.assertRaises(InvalidStateError):
            await session.choose("N")
        self.assertEqual(len(adapter.calls), 1)

        release.set()
        outcome = await first
        self.assertIs(session.state, SessionState.AWAITING_CHOICE)
        self.assertIs(outcome.state, SessionState.AWAITING_CHOICE)
        self.assertEqual(session.context.beat_count, 1)
        self.assertEqual(len(saved), 1)


class TestResume(unittest.IsolatedAsyncioTestCase):
    async def test_resume_mid_story(self):
        seed_session = make_session(ScriptedAdapter("p1"))
        seed_session.start("seed")
        outcome = await seed_session.choose("Y")

        resumed = make_session(ScriptedAdapter("p2"))
        resumed.resume(outcome.context)
        self.assertIs(resumed.state, SessionState.AWAITING_CHOICE)
        self.assertEqual(resumed.narrative, "It was dark. (Y/N)")

        second = await resumed.choose("N")
        self.assertEqual(second.context.beat_count, 2)
        self.assertEqual(second.context.session_id, outcome.context.session_id)

    async def test_resume_finished_story(self):
        seed_session = make_session(ScriptedAdapter("p1", reply="Gone. (Restart?)"))
        seed_session.start("seed")
        outcome = await seed_session.choose("Y")

        resumed = make_session(ScriptedAdapter("p2"))
        resumed.resume(outcome.context)
        self.assertIs(resumed.state, SessionState.COMPLETED)
