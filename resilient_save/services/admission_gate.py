"""Admission Gate — bounded counting gate shared by threads and asyncio tasks.

Invariants:
    - 0 <= available <= capacity at all times; in_flight = capacity - available
    - available > 0 implies no queued waiters (a release hands its slot straight
      to the oldest waiter instead of incrementing the counter)
    - A waiter that gives up (timeout, cancellation, interrupt) never keeps a slot:
      if one was granted concurrently, it is handed back before the error propagates
    - Releasing more slots than were acquired raises AdmissionGateReleaseError

Design Decisions:
    - One threading.Lock guards the counter and the waiter queue, so sync callers
      (threads) and async callers (tasks on any event loop) share a single slot pool
    - Async waiters are woken with loop.call_soon_threadsafe: the releasing thread
      may not own the waiter's loop
    - The "granted" flag is the source of truth, set under the lock; futures and
      events only carry the wake-up
"""

import asyncio
import logging
import threading
from collections import deque
from contextlib import asynccontextmanager, contextmanager, nullcontext
from typing import AsyncIterator, Iterator

from resilient_save.core.errors import (
    AdmissionGateReleaseError, AdmissionTimeoutError, InvalidConfigurationError,
)

logger = logging.getLogger(__name__)


def _resolve(future: asyncio.Future) -> None:
    if not future.done():
        future.set_result(None)


class _Waiter:
    """A queued caller: a thread (event) or a task (loop + future)."""

    __slots__ = ("granted", "event", "loop", "future")

    def __init__(
        self,
        loop: asyncio.AbstractEventLoop | None = None,
        future: asyncio.Future | None = None,
    ):
        self.granted = False
        self.event = threading.Event() if loop is None else None
        self.loop = loop
        self.future = future

    def wake(self) -> None:
        if self.loop is None:
            self.event.set()
        else:
            self.loop.call_soon_threadsafe(_resolve, self.future)


class AdmissionGate:
    """Counting gate limiting how many resilient operations run at once."""

    def __init__(self, capacity: int):
        if isinstance(capacity, bool) or not isinstance(capacity, int) or capacity < 1:
            raise InvalidConfigurationError(
                "concurrent_save_changes_limit", capacity, "must be a positive integer",
            )
        self._capacity = capacity
        self._available = capacity
        self._lock = threading.Lock()
        self._waiters: deque[_Waiter] = deque()

    def __repr__(self) -> str:
        return (
            f"AdmissionGate(capacity={self._capacity}, "
            f"in_flight={self.in_flight}, waiting={self.waiting})"
        )

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def available(self) -> int:
        with self._lock:
            return self._available

    @property
    def in_flight(self) -> int:
        with self._lock:
            return self._capacity - self._available

    @property
    def waiting(self) -> int:
        with self._lock:
            return len(self._waiters)

    # ─── Acquire ─────────────────────────────────────────────────

    def acquire(self, timeout: float | None = None) -> None:
        """Block the calling thread until a slot is reserved.

        Raises AdmissionTimeoutError if `timeout` seconds pass first; no slot
        is held in that case.
        """
        with self._lock:
            if self._available > 0:
                self._available -= 1
                return
            waiter = _Waiter()
            self._waiters.append(waiter)

        try:
            signalled = waiter.event.wait(timeout)
        except BaseException:
            self._withdraw(waiter)
            raise
        if signalled:
            return
        self._expire(waiter, timeout)

    async def acquire_async(self, timeout: float | None = None) -> None:
        """Suspend the calling task until a slot is reserved.

        Cancellation while waiting propagates as asyncio.CancelledError with
        no slot held.
        """
        loop = asyncio.get_running_loop()
        with self._lock:
            if self._available > 0:
                self._available -= 1
                return
            waiter = _Waiter(loop, loop.create_future())
            self._waiters.append(waiter)

        try:
            if timeout is None:
                await waiter.future
            else:
                await asyncio.wait_for(waiter.future, timeout)
        except asyncio.TimeoutError:
            self._expire(waiter, timeout)
        except BaseException:
            self._withdraw(waiter)
            raise

    # ─── Release ─────────────────────────────────────────────────

    def release(self) -> None:
        """Return one slot, waking the oldest live waiter if any."""
        with self._lock:
            self._release_locked()

    def _release_locked(self) -> None:
        while self._waiters:
            waiter = self._waiters.popleft()
            waiter.granted = True
            try:
                waiter.wake()
            except RuntimeError:
                # waiter's event loop is closed
                waiter.granted = False
                continue
            return
        if self._available >= self._capacity:
            raise AdmissionGateReleaseError(self._capacity)
        self._available += 1

    def _withdraw(self, waiter: _Waiter) -> None:
        """Remove a waiter that gave up; hand back a slot granted in the meantime."""
        with self._lock:
            if waiter.granted:
                self._release_locked()
            else:
                self._waiters.remove(waiter)

    def _expire(self, waiter: _Waiter, timeout: float | None) -> None:
        with self._lock:
            if waiter.granted:
                return
            self._waiters.remove(waiter)
        logger.warning(
            f"Admission wait timed out after {timeout}s",
            extra={"concurrency_limit": self._capacity},
        )
        raise AdmissionTimeoutError(timeout, self._capacity)

    # ─── Scoped acquisition ─────────────────────────────────────

    @contextmanager
    def slot(self, timeout: float | None = None) -> Iterator["AdmissionGate"]:
        self.acquire(timeout)
        try:
            yield self
        finally:
            self.release()

    @asynccontextmanager
    async def slot_async(self, timeout: float | None = None) -> AsyncIterator["AdmissionGate"]:
        await self.acquire_async(timeout)
        try:
            yield self
        finally:
            self.release()


def admitted(gate: AdmissionGate | None, timeout: float | None = None):
    """Scoped slot on `gate`, or a no-op when concurrency is unlimited."""
    if gate is None:
        return nullcontext()
    return gate.slot(timeout)


def admitted_async(gate: AdmissionGate | None, timeout: float | None = None):
    """Async twin of admitted()."""
    if gate is None:
        return nullcontext()
    return gate.slot_async(timeout)
