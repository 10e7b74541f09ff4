"""Transactional Retry Unit — one unit of work inside a transaction, retried as a whole.

Invariants:
    - The execution strategy receives "begin transaction → unit of work → commit" as a
      single operation, so every retry opens a fresh transaction
    - commit() is reached only if the unit of work returned without raising
    - The scope is closed on every path; an uncommitted scope is rolled back by the session
    - Errors are never caught or reinterpreted here — classification belongs to the strategy

Design Decisions:
    - Separate sync/async classes rather than one class with mode flags
    - Async units of work may be coroutine functions or plain callables
"""

import inspect
import logging

from resilient_save.core.errors import InvalidSessionError
from resilient_save.core.protocols import (
    AsyncResilientSession, AsyncUnitOfWork, ResilientSession, UnitOfWork,
)

logger = logging.getLogger(__name__)


class TransactionalRetryUnit:
    """Runs a unit of work through the session's execution strategy (sync)."""

    def __init__(self, session: ResilientSession):
        if session is None:
            raise InvalidSessionError()
        self._session = session

    def execute(self, unit_of_work: UnitOfWork):
        strategy = self._session.create_execution_strategy()
        attempts = 0

        def attempt():
            nonlocal attempts
            attempts += 1
            logger.debug("Resilient transaction attempt", extra={"attempt": attempts})
            with self._session.begin_transaction() as transaction:
                result = unit_of_work()
                transaction.commit()
            return result

        return strategy.execute(attempt)


class AsyncTransactionalRetryUnit:
    """Runs a unit of work through the session's execution strategy (async)."""

    def __init__(self, session: AsyncResilientSession):
        if session is None:
            raise InvalidSessionError()
        self._session = session

    async def execute(self, unit_of_work: AsyncUnitOfWork):
        strategy = self._session.create_execution_strategy()
        attempts = 0

        async def attempt():
            nonlocal attempts
            attempts += 1
            logger.debug("Resilient transaction attempt", extra={"attempt": attempts})
            transaction = await self._session.begin_transaction()
            async with transaction:
                result = unit_of_work()
                if inspect.isawaitable(result):
                    result = await result
                await transaction.commit()
            return result

        return await strategy.execute_async(attempt)
