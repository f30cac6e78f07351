import asyncio

import pytest

from questpilot.core.constants import FailureKind
from questpilot.modules.executor.lock import RunLock, RunLockBusy
from questpilot.modules.quests.types import ExecutionOutcome


@pytest.mark.asyncio
async def test_single_slot():
    lock = RunLock()
    run = lock.acquire("q1")

    assert lock.in_flight()
    assert lock.current is run
    with pytest.raises(RunLockBusy):
        lock.acquire("q2")

    lock.release(run)
    assert not lock.in_flight()
    assert lock.acquire("q2") is not run


@pytest.mark.asyncio
async def test_first_resolution_wins():
    lock = RunLock()
    run = lock.acquire("q1")

    first = ExecutionOutcome(success=True, message="first")
    assert run.resolve(first)
    assert not run.resolve(ExecutionOutcome(success=False, message="second"))
    assert await run.outcome is first


@pytest.mark.asyncio
async def test_release_resolves_pending_outcome_as_unknown():
    lock = RunLock()
    run = lock.acquire("q1")

    lock.release(run)

    outcome = await run.outcome
    assert not outcome.success
    assert outcome.failure == FailureKind.UNKNOWN
    assert outcome.task_id == "q1"


@pytest.mark.asyncio
async def test_release_after_cancel_cancels_outcome():
    lock = RunLock()
    run = lock.acquire("q1")

    lock.release(run, cancelled=True)

    with pytest.raises(asyncio.CancelledError):
        await run.outcome


@pytest.mark.asyncio
async def test_stale_release_keeps_newer_run():
    lock = RunLock()
    old = lock.acquire("q1")
    lock.release(old)
    new = lock.acquire("q2")

    lock.release(old)

    assert lock.current is new
