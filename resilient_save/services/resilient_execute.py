"""Resilient Entry Points — admission gate + latency monitor + transactional retry unit.

Invariants:
    - Arguments are validated before any gate slot is requested
    - The gate is captured once, at call start; a limit change mid-call never moves
      the call to another gate
    - Every acquired slot is released exactly once: success, terminal error,
      retry exhaustion, timeout or cancellation
    - Results and errors of the execution strategy pass through unchanged

Design Decisions:
    - Plain functions taking the session first, so any object satisfying the session
      protocols works without subclassing
    - acquire_timeout bounds only the admission wait; everything after admission is
      governed by the execution strategy and the caller's own cancellation
"""

from resilient_save.core.errors import InvalidSessionError, InvalidUnitOfWorkError
from resilient_save.core.protocols import (
    AsyncResilientSession, AsyncUnitOfWork, ResilientSession, SavesChanges, UnitOfWork,
)
from resilient_save.services.admission_gate import admitted, admitted_async
from resilient_save.services.latency_monitor import LatencyMonitor
from resilient_save.services.resilience_config import ResilientSaveConfig, default_config
from resilient_save.services.transaction_unit import (
    AsyncTransactionalRetryUnit, TransactionalRetryUnit,
)


def _validate(session, unit_of_work) -> None:
    if session is None:
        raise InvalidSessionError()
    if not callable(unit_of_work):
        raise InvalidUnitOfWorkError(unit_of_work)


def _save_changes_of(session: SavesChanges):
    if session is None:
        raise InvalidSessionError()
    if not isinstance(session, SavesChanges):
        raise InvalidSessionError(
            f"{type(session).__name__} does not expose save_changes()",
        )
    return session.save_changes


def resilient_execute(
    session: ResilientSession,
    unit_of_work: UnitOfWork,
    *,
    config: ResilientSaveConfig | None = None,
    acquire_timeout: float | None = None,
):
    """Run `unit_of_work` in a retried transaction under the concurrency limit.

    Blocks the calling thread while the gate is full. Returns the unit of
    work's result from the attempt that committed.
    """
    _validate(session, unit_of_work)
    if config is None:
        config = default_config
    gate = config.admission_gate
    monitor = LatencyMonitor(config)

    with admitted(gate, acquire_timeout):
        stopwatch = monitor.start()
        result = TransactionalRetryUnit(session).execute(unit_of_work)
        monitor.observe(stopwatch)
    return result


async def resilient_execute_async(
    session: AsyncResilientSession,
    unit_of_work: AsyncUnitOfWork,
    *,
    config: ResilientSaveConfig | None = None,
    acquire_timeout: float | None = None,
):
    """Async twin of resilient_execute().

    Suspends the task while the gate is full; cancelling the task while it
    waits leaves no slot reserved, cancelling it later propagates into the
    execution strategy.
    """
    _validate(session, unit_of_work)
    if config is None:
        config = default_config
    gate = config.admission_gate
    monitor = LatencyMonitor(config)

    async with admitted_async(gate, acquire_timeout):
        stopwatch = monitor.start()
        result = await AsyncTransactionalRetryUnit(session).execute(unit_of_work)
        monitor.observe(stopwatch)
    return result


def resilient_save_changes(
    session: ResilientSession,
    *,
    config: ResilientSaveConfig | None = None,
    acquire_timeout: float | None = None,
):
    """Persist the session's pending changes resiliently (unit of work = save_changes)."""
    return resilient_execute(
        session, _save_changes_of(session),
        config=config, acquire_timeout=acquire_timeout,
    )


async def resilient_save_changes_async(
    session: AsyncResilientSession,
    *,
    config: ResilientSaveConfig | None = None,
    acquire_timeout: float | None = None,
):
    """Async twin of resilient_save_changes()."""
    return await resilient_execute_async(
        session, _save_changes_of(session),
        config=config, acquire_timeout=acquire_timeout,
    )
