"""Resilience Configuration — mutable settings shared by every resilient call.

Invariants:
    - The (limit, gate) pair is replaced as one immutable tuple under a lock:
      readers never observe a limit paired with another limit's gate
    - Assigning the limit always builds a fresh gate; holders of the previous gate
      keep releasing into it, so in-flight work may briefly exceed the new limit
    - Threshold and logger are plain attributes read lazily at check time

Design Decisions:
    - Injectable ResilientSaveConfig instead of module globals; default_config is the
      thin process-wide instance used when callers pass none
    - init_resilience() is the only place environment settings reach default_config
      (no import-time side effects)
"""

import logging
import threading

from resilient_save.config import Settings, get_settings
from resilient_save.core.errors import InvalidConfigurationError
from resilient_save.infrastructure.observability import setup_logging
from resilient_save.services.admission_gate import AdmissionGate

logger = logging.getLogger(__name__)

LogSink = logging.Logger | logging.LoggerAdapter


class ResilientSaveConfig:
    """Concurrency limit, long-running threshold and log sink for resilient saves."""

    def __init__(
        self,
        concurrent_save_changes_limit: int | None = None,
        warn_long_running_ms: int | None = None,
        logger: LogSink | None = None,
    ):
        self._lock = threading.Lock()
        self._admission: tuple[int | None, AdmissionGate | None] = (None, None)
        self._warn_long_running_ms: int | None = None
        self.concurrent_save_changes_limit = concurrent_save_changes_limit
        self.warn_long_running_ms = warn_long_running_ms
        self.logger = logger

    def __repr__(self) -> str:
        return (
            f"ResilientSaveConfig(concurrent_save_changes_limit={self.concurrent_save_changes_limit}, "
            f"warn_long_running_ms={self.warn_long_running_ms}, logger={self.logger!r})"
        )

    @classmethod
    def from_settings(
        cls, settings: Settings, logger: LogSink | None = None,
    ) -> "ResilientSaveConfig":
        return cls(
            concurrent_save_changes_limit=settings.concurrent_save_changes_limit,
            warn_long_running_ms=settings.warn_long_running_ms,
            logger=logger,
        )

    # ─── Concurrency limit ───────────────────────────────────────

    @property
    def concurrent_save_changes_limit(self) -> int | None:
        return self._admission[0]

    @concurrent_save_changes_limit.setter
    def concurrent_save_changes_limit(self, value: int | None) -> None:
        gate = AdmissionGate(value) if value is not None else None
        with self._lock:
            previous = self._admission[0]
            self._admission = (value, gate)
        if previous != value:
            logger.info(
                f"Concurrent save limit changed from {previous} to {value}",
                extra={"concurrency_limit": value},
            )

    @property
    def admission_gate(self) -> AdmissionGate | None:
        """Gate new calls are admitted against; None means unlimited."""
        return self._admission[1]

    # ─── Latency threshold ──────────────────────────────────────

    @property
    def warn_long_running_ms(self) -> int | None:
        return self._warn_long_running_ms

    @warn_long_running_ms.setter
    def warn_long_running_ms(self, value: int | None) -> None:
        if value is not None and (
            isinstance(value, bool) or not isinstance(value, int) or value < 0
        ):
            raise InvalidConfigurationError(
                "warn_long_running_ms", value, "must be a non-negative integer",
            )
        self._warn_long_running_ms = value

    def apply(self, settings: Settings) -> None:
        """Overwrite limit and threshold from environment settings."""
        self.concurrent_save_changes_limit = settings.concurrent_save_changes_limit
        self.warn_long_running_ms = settings.warn_long_running_ms


# Process-wide default (configured on startup via init_resilience)
default_config = ResilientSaveConfig()


def init_resilience(settings: Settings | None = None) -> ResilientSaveConfig:
    """Apply environment settings to default_config and set up package logging."""
    settings = settings or get_settings()
    setup_logging(settings.log_level, settings.log_format)
    default_config.apply(settings)
    return default_config
