"""Boundary Protocols — contracts between the resilience core and the data-access layer.

Invariants:
    - The core only calls create_execution_strategy(), begin_transaction() and the
      scope's commit(); no other session behavior is touched
    - An execution strategy may invoke the operation it is given 0..K times
    - Leaving a transaction scope without commit() discards the transaction

Design Decisions:
    - Protocol over ABC: structural subtyping, any session type with the right methods
      qualifies without inheriting from this package
    - Sync and async contracts kept separate: a sync session never has to expose
      coroutines and vice versa
"""

from collections.abc import Awaitable, Callable
from typing import Any, Protocol, TypeVar, runtime_checkable

T = TypeVar("T")

UnitOfWork = Callable[[], Any]
AsyncUnitOfWork = Callable[[], Any]  # coroutine function or plain callable


class ExecutionStrategy(Protocol):
    """Retry policy owned by the data-access layer.

    Decides whether a failure is transient and how long to wait before the
    next attempt. Returns the operation's result or raises its terminal error.
    """
    def execute(self, operation: Callable[[], T]) -> T: ...
    async def execute_async(self, operation: Callable[[], Awaitable[T]]) -> T: ...


class TransactionScope(Protocol):
    """One begin/commit boundary. Exiting without commit() rolls back."""
    def commit(self) -> None: ...
    def rollback(self) -> None: ...
    def __enter__(self) -> "TransactionScope": ...
    def __exit__(self, exc_type, exc, tb) -> bool | None: ...


class AsyncTransactionScope(Protocol):
    """Async counterpart of TransactionScope."""
    async def commit(self) -> None: ...
    async def rollback(self) -> None: ...
    async def __aenter__(self) -> "AsyncTransactionScope": ...
    async def __aexit__(self, exc_type, exc, tb) -> bool | None: ...


class ResilientSession(Protocol):
    """Structural contract for sessions accepted by resilient_execute()."""
    def create_execution_strategy(self) -> ExecutionStrategy: ...
    def begin_transaction(self) -> TransactionScope: ...


class AsyncResilientSession(Protocol):
    """Structural contract for sessions accepted by resilient_execute_async()."""
    def create_execution_strategy(self) -> ExecutionStrategy: ...
    async def begin_transaction(self) -> AsyncTransactionScope: ...


@runtime_checkable
class SavesChanges(Protocol):
    """Sessions that know how to stage their pending changes (flush).

    Checked at runtime by resilient_save_changes*(); the async adapters return a
    coroutine from save_changes().
    """
    def save_changes(self) -> Any: ...
