"""SQLAlchemy Session Adapters — expose Session/AsyncSession through the resilience protocols.

Invariants:
    - begin_transaction() joins the session's current (autobegun) transaction when one
      is active, otherwise begins a new one
    - Leaving a scope without commit() rolls the session back, so a retry always
      starts from a clean transaction
    - save_changes() re-stages every object it has seen pending (new or deleted) for the
      rest of one resilient call: a rollback expunges pending inserts, the retry puts
      them back. A new call starts with nothing staged, so an object abandoned by a
      terminal error is never sent again
    - SQLAlchemy exceptions propagate unchanged; classifying them is the strategy's job

Design Decisions:
    - Adapters wrap rather than subclass Session: works with any sessionmaker/
      async_sessionmaker configuration the host application already has
    - Modifications to already-persistent objects are expired by rollback; callers that
      need those retried make them inside the unit of work
"""

from collections.abc import Callable

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import Session

from resilient_save.core.protocols import ExecutionStrategy
from resilient_save.infrastructure.execution_strategies import NonRetryingExecutionStrategy

StrategyFactory = Callable[[], ExecutionStrategy]


class _StagedChanges:
    """Objects pending insert/delete, remembered across rollbacks.

    Holds strong references keyed by id(). Cleared when a resilient call starts
    (create_execution_strategy) and when it commits, so nothing carries over
    into the next call.
    """

    def __init__(self):
        self.new: dict[int, object] = {}
        self.deleted: dict[int, object] = {}

    def remember(self, new, deleted) -> None:
        for obj in new:
            self.new.setdefault(id(obj), obj)
        for obj in deleted:
            self.deleted.setdefault(id(obj), obj)

    def clear(self) -> None:
        self.new.clear()
        self.deleted.clear()


# ─── Sync ────────────────────────────────────────────────────────

class SqlAlchemyTransactionScope:
    """Begin/commit boundary over a sqlalchemy.orm.Session."""

    def __init__(self, owner: "SqlAlchemySession"):
        self._owner = owner
        session = owner.session
        self._transaction = (
            session.get_transaction() if session.in_transaction() else session.begin()
        )
        self._committed = False

    def commit(self) -> None:
        self._transaction.commit()
        self._committed = True
        self._owner._staged.clear()

    def rollback(self) -> None:
        self._owner.session.rollback()

    def __enter__(self) -> "SqlAlchemyTransactionScope":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if not self._committed and self._owner.session.in_transaction():
            self.rollback()


class SqlAlchemySession:
    """Sync session adapter for resilient_execute()/resilient_save_changes()."""

    def __init__(
        self,
        session: Session,
        strategy_factory: StrategyFactory = NonRetryingExecutionStrategy,
    ):
        self.session = session
        self._strategy_factory = strategy_factory
        self._staged = _StagedChanges()

    def create_execution_strategy(self) -> ExecutionStrategy:
        self._staged.clear()
        return self._strategy_factory()

    def begin_transaction(self) -> SqlAlchemyTransactionScope:
        return SqlAlchemyTransactionScope(self)

    def save_changes(self) -> None:
        """Flush pending inserts and deletes, re-staging any a rollback discarded."""
        self._staged.remember(self.session.new, self.session.deleted)
        self.session.add_all(
            [obj for obj in self._staged.new.values() if obj not in self.session],
        )
        for obj in self._staged.deleted.values():
            if obj in self.session and obj not in self.session.deleted:
                self.session.delete(obj)
        self.session.flush()


# ─── Async ───────────────────────────────────────────────────────

class AsyncSqlAlchemyTransactionScope:
    """Begin/commit boundary over a sqlalchemy.ext.asyncio.AsyncSession."""

    def __init__(self, owner: "AsyncSqlAlchemySession", transaction):
        self._owner = owner
        self._transaction = transaction
        self._committed = False

    @classmethod
    async def begin(cls, owner: "AsyncSqlAlchemySession") -> "AsyncSqlAlchemyTransactionScope":
        session = owner.session
        if session.in_transaction():
            transaction = session.get_transaction()
        else:
            transaction = await session.begin()
        return cls(owner, transaction)

    async def commit(self) -> None:
        await self._transaction.commit()
        self._committed = True
        self._owner._staged.clear()

    async def rollback(self) -> None:
        await self._owner.session.rollback()

    async def __aenter__(self) -> "AsyncSqlAlchemyTransactionScope":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        if not self._committed and self._owner.session.in_transaction():
            await self.rollback()


class AsyncSqlAlchemySession:
    """Async session adapter for resilient_execute_async()/resilient_save_changes_async()."""

    def __init__(
        self,
        session: AsyncSession,
        strategy_factory: StrategyFactory = NonRetryingExecutionStrategy,
    ):
        self.session = session
        self._strategy_factory = strategy_factory
        self._staged = _StagedChanges()

    def create_execution_strategy(self) -> ExecutionStrategy:
        self._staged.clear()
        return self._strategy_factory()

    async def begin_transaction(self) -> AsyncSqlAlchemyTransactionScope:
        return await AsyncSqlAlchemyTransactionScope.begin(self)

    async def save_changes(self) -> None:
        """Flush pending inserts and deletes, re-staging any a rollback discarded."""
        self._staged.remember(self.session.new, self.session.deleted)
        self.session.add_all(
            [obj for obj in self._staged.new.values() if obj not in self.session],
        )
        for obj in self._staged.deleted.values():
            if obj in self.session and obj not in self.session.deleted:
                await self.session.delete(obj)
        await self.session.flush()
