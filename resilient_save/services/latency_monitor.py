"""Latency Monitor — times a whole resilient unit and warns when it runs long.

Invariants:
    - Timing spans every retry attempt plus all transaction overhead
    - At most one warning per observed call
    - Threshold and log sink are read from the configuration at check time, not at start
    - Without a log sink the warning goes to the "resilient_save.diagnostics" logger

Design Decisions:
    - Success-only policy: observe() is called after the unit returns; a unit that
      raises is never evaluated (same for sync and async entry points)
    - Injectable clock so tests control elapsed time without sleeping
"""

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass

from resilient_save.core.latency import (
    elapsed_milliseconds, format_commit_warning, is_long_running,
)

DIAGNOSTIC_LOGGER = "resilient_save.diagnostics"

_diagnostics = logging.getLogger(DIAGNOSTIC_LOGGER)


@dataclass
class Stopwatch:
    started_ns: int
    clock: Callable[[], int]

    def elapsed_ms(self) -> int:
        return elapsed_milliseconds(self.started_ns, self.clock())


class LatencyMonitor:
    """Warns about resilient saves whose duration reaches the configured threshold."""

    def __init__(self, config, clock: Callable[[], int] = time.perf_counter_ns):
        self._config = config
        self._clock = clock

    def start(self) -> Stopwatch:
        return Stopwatch(self._clock(), self._clock)

    def observe(self, stopwatch: Stopwatch) -> bool:
        """Emit the long-running warning if due. Returns True when one was logged."""
        threshold_ms = self._config.warn_long_running_ms
        if threshold_ms is None:
            return False
        elapsed_ms = stopwatch.elapsed_ms()
        if not is_long_running(elapsed_ms, threshold_ms):
            return False
        sink = self._config.logger or _diagnostics
        sink.warning(
            format_commit_warning(elapsed_ms),
            extra={"elapsed_ms": elapsed_ms, "threshold_ms": threshold_ms},
        )
        return True
