"""Resilient Entry Points (async) — admission, cancellation and retry delegation for tasks.

Invariants:
    - At most `limit` tasks past admission; unlimited tasks never block one another
    - Cancelling a task blocked on admission leaves no reservation
    - Cancelling a task inside the unit of work releases its slot and commits nothing
    - K transient failures then success → K+1 invocations, one commit
    - Limit reassignment while tasks hold old slots admits new tasks on the new gate
    - Latency policy matches the sync entry point (success-only)
"""

import asyncio
import logging

import pytest

from resilient_save.core.errors import AdmissionTimeoutError, InvalidSessionError
from resilient_save.services.resilience_config import ResilientSaveConfig
from resilient_save.services.resilient_execute import (
    resilient_execute_async, resilient_save_changes_async,
)

from tests.fakes import AsyncFlakyUnitOfWork, FakeAsyncSession, TerminalError


def _commit_warnings(caplog):
    return [
        r for r in caplog.records
        if r.levelno == logging.WARNING and r.getMessage().startswith("Transaction commit took")
    ]


async def test_missing_session_rejected():
    with pytest.raises(InvalidSessionError):
        await resilient_execute_async(None, AsyncFlakyUnitOfWork(), config=ResilientSaveConfig())


async def test_transient_failures_then_success():
    session = FakeAsyncSession()
    unit = AsyncFlakyUnitOfWork(failures=3, result="ok")

    result = await resilient_execute_async(session, unit, config=ResilientSaveConfig())

    assert result == "ok"
    assert unit.calls == 4
    assert session.commits == 1


async def test_terminal_error_releases_slot():
    config = ResilientSaveConfig(concurrent_save_changes_limit=2)
    unit = AsyncFlakyUnitOfWork(failures=1, error=TerminalError)

    with pytest.raises(TerminalError, match="attempt 1 failed"):
        await resilient_execute_async(FakeAsyncSession(), unit, config=config)

    assert unit.calls == 1
    assert config.admission_gate.in_flight == 0


async def test_save_changes_async_is_the_unit_of_work():
    session = FakeAsyncSession()
    assert await resilient_save_changes_async(session, config=ResilientSaveConfig()) == 1
    assert session.commits == 1


async def test_limit_bounds_concurrent_tasks():
    config = ResilientSaveConfig(concurrent_save_changes_limit=2)
    active = 0
    peak = 0

    async def unit():
        nonlocal active, peak
        active += 1
        peak = max(peak, active)
        await asyncio.sleep(0.01)
        active -= 1

    await asyncio.gather(*[
        resilient_execute_async(FakeAsyncSession(), unit, config=config) for _ in range(12)
    ])

    assert peak == 2
    assert config.admission_gate.in_flight == 0


async def test_unlimited_tasks_run_together():
    config = ResilientSaveConfig()
    inside = 0
    all_inside = asyncio.Event()

    async def unit():
        nonlocal inside
        inside += 1
        if inside == 10:
            all_inside.set()
        await asyncio.wait_for(all_inside.wait(), timeout=2)

    await asyncio.gather(*[
        resilient_execute_async(FakeAsyncSession(), unit, config=config) for _ in range(10)
    ])
    assert inside == 10


async def test_cancel_while_waiting_for_admission():
    config = ResilientSaveConfig(concurrent_save_changes_limit=1)
    gate = config.admission_gate
    release = asyncio.Event()

    async def holder():
        await release.wait()

    holding = asyncio.create_task(
        resilient_execute_async(FakeAsyncSession(), holder, config=config),
    )
    await asyncio.sleep(0)
    unit = AsyncFlakyUnitOfWork()
    waiting = asyncio.create_task(
        resilient_execute_async(FakeAsyncSession(), unit, config=config),
    )
    await asyncio.sleep(0)
    assert gate.waiting == 1

    waiting.cancel()
    with pytest.raises(asyncio.CancelledError):
        await waiting

    assert unit.calls == 0
    assert gate.waiting == 0
    assert gate.in_flight == 1

    release.set()
    await holding
    assert gate.in_flight == 0


async def test_cancel_inside_unit_of_work_releases_slot():
    config = ResilientSaveConfig(concurrent_save_changes_limit=1)
    session = FakeAsyncSession()
    started = asyncio.Event()

    async def unit():
        started.set()
        await asyncio.sleep(10)

    task = asyncio.create_task(resilient_execute_async(session, unit, config=config))
    await started.wait()
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task

    assert config.admission_gate.in_flight == 0
    assert session.commits == 0
    assert session.rollbacks == 1


async def test_caller_timeout_propagates_and_releases():
    config = ResilientSaveConfig(concurrent_save_changes_limit=1)

    async def unit():
        await asyncio.sleep(10)

    with pytest.raises(asyncio.TimeoutError):
        await asyncio.wait_for(
            resilient_execute_async(FakeAsyncSession(), unit, config=config), timeout=0.02,
        )

    assert config.admission_gate.in_flight == 0


async def test_admission_timeout():
    config = ResilientSaveConfig(concurrent_save_changes_limit=1)
    config.admission_gate.acquire()
    unit = AsyncFlakyUnitOfWork()

    with pytest.raises(AdmissionTimeoutError):
        await resilient_execute_async(
            FakeAsyncSession(), unit, config=config, acquire_timeout=0.02,
        )

    assert unit.calls == 0
    assert config.admission_gate.waiting == 0


async def test_limit_change_while_tasks_hold_slots():
    config = ResilientSaveConfig(concurrent_save_changes_limit=1)
    old_gate = config.admission_gate
    release = asyncio.Event()

    async def holder():
        await release.wait()
        return "old"

    held = asyncio.create_task(
        resilient_execute_async(FakeAsyncSession(), holder, config=config),
    )
    await asyncio.sleep(0)
    assert old_gate.in_flight == 1

    config.concurrent_save_changes_limit = 3
    new_gate = config.admission_gate

    results = await asyncio.wait_for(asyncio.gather(*[
        resilient_execute_async(FakeAsyncSession(), AsyncFlakyUnitOfWork(), config=config)
        for _ in range(3)
    ]), timeout=2)
    assert results == ["saved"] * 3

    release.set()
    assert await held == "old"
    assert old_gate.available == 1
    assert new_gate.available == 3


async def test_slow_call_logs_one_warning(caplog):
    caplog.set_level(logging.WARNING)
    config = ResilientSaveConfig(warn_long_running_ms=20)

    async def unit():
        await asyncio.sleep(0.03)

    await resilient_execute_async(FakeAsyncSession(), unit, config=config)

    records = _commit_warnings(caplog)
    assert len(records) == 1
    assert records[0].elapsed_ms >= 20


async def test_failed_call_is_not_timed(caplog):
    caplog.set_level(logging.WARNING)
    config = ResilientSaveConfig(warn_long_running_ms=0)
    unit = AsyncFlakyUnitOfWork(failures=1, error=TerminalError)

    with pytest.raises(TerminalError):
        await resilient_execute_async(FakeAsyncSession(), unit, config=config)

    assert _commit_warnings(caplog) == []
