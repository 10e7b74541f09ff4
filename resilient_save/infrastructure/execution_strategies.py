"""Execution Strategies — reference retry policies for sessions that lack their own.

Invariants:
    - NonRetryingExecutionStrategy invokes the operation exactly once
    - RetryingExecutionStrategy invokes it at most max_retries + 1 times and only
      retries errors it classifies as transient
    - The terminal error is re-raised unchanged (same object, same traceback)
    - Cancellation (BaseException) is never retried

Design Decisions:
    - Lives in infrastructure, not core: the resilience core only calls execute()/
      execute_async() and never classifies errors itself
    - Exponential backoff with ±25% jitter, capped at max_delay_ms
    - Transient classes are caller-supplied; SQLAlchemy OperationalError (deadlocks,
      dropped connections) is only the default
"""

import asyncio
import logging
import random
import time
from collections.abc import Awaitable, Callable
from typing import TypeVar

from sqlalchemy.exc import OperationalError

from resilient_save.config import Settings

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_TRANSIENT_ERRORS: tuple[type[BaseException], ...] = (OperationalError,)


class NonRetryingExecutionStrategy:
    """Runs the operation once; every error is terminal."""

    def execute(self, operation: Callable[[], T]) -> T:
        return operation()

    async def execute_async(self, operation: Callable[[], Awaitable[T]]) -> T:
        return await operation()


class RetryingExecutionStrategy:
    """Retries transient failures with exponential backoff."""

    def __init__(
        self,
        max_retries: int = 3,
        base_delay_ms: int = 100,
        max_delay_ms: int = 5_000,
        transient_errors: tuple[type[BaseException], ...] = DEFAULT_TRANSIENT_ERRORS,
        is_transient: Callable[[Exception], bool] | None = None,
        sleep: Callable[[float], None] = time.sleep,
        async_sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.max_retries = max_retries
        self.base_delay_ms = base_delay_ms
        self.max_delay_ms = max_delay_ms
        self.transient_errors = transient_errors
        self._is_transient = is_transient
        self._sleep = sleep
        self._async_sleep = async_sleep

    @classmethod
    def from_settings(cls, settings: Settings, **kwargs) -> "RetryingExecutionStrategy":
        return cls(
            max_retries=settings.retry_max_retries,
            base_delay_ms=settings.retry_base_delay_ms,
            max_delay_ms=settings.retry_max_delay_ms,
            **kwargs,
        )

    def execute(self, operation: Callable[[], T]) -> T:
        for attempt in range(self.max_retries + 1):
            try:
                return operation()
            except Exception as e:
                if not self._should_retry(e, attempt):
                    raise
                delay = self._backoff(attempt)
                self._log_retry(e, attempt, delay)
                self._sleep(delay / 1000)
        raise AssertionError("unreachable")  # pragma: no cover

    async def execute_async(self, operation: Callable[[], Awaitable[T]]) -> T:
        for attempt in range(self.max_retries + 1):
            try:
                return await operation()
            except Exception as e:
                if not self._should_retry(e, attempt):
                    raise
                delay = self._backoff(attempt)
                self._log_retry(e, attempt, delay)
                await self._async_sleep(delay / 1000)
        raise AssertionError("unreachable")  # pragma: no cover

    def is_transient(self, error: Exception) -> bool:
        if self._is_transient is not None:
            return self._is_transient(error)
        return isinstance(error, self.transient_errors)

    def _should_retry(self, error: Exception, attempt: int) -> bool:
        if not self.is_transient(error):
            return False
        if attempt >= self.max_retries:
            logger.error(
                f"Transient failure after {self.max_retries} retries: {error}",
                extra={
                    "attempt": attempt + 1, "max_retries": self.max_retries,
                    "error_type": type(error).__name__,
                },
            )
            return False
        return True

    def _log_retry(self, error: Exception, attempt: int, delay: int) -> None:
        logger.warning(
            f"Transient error, retry after {delay}ms: {error}",
            extra={
                "attempt": attempt + 1, "delay_ms": delay,
                "error_type": type(error).__name__,
            },
        )

    def _backoff(self, attempt: int) -> int:
        """Exponential backoff with ±25% jitter."""
        delay = min(self.max_delay_ms, (2 ** attempt) * self.base_delay_ms)
        return int(delay * random.uniform(0.75, 1.25))  # nosec B311
