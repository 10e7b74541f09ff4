"""Latency Rules — pure threshold arithmetic for the long-running commit warning.

Invariants:
    - Elapsed time is measured in integer nanoseconds and reported in whole
      milliseconds, truncated (never rounded up)
    - A call reaches the threshold when elapsed_ms >= threshold_ms
    - No threshold (None) never warns
"""

COMMIT_WARNING_TEMPLATE = "Transaction commit took {elapsed_ms}ms"


def elapsed_milliseconds(started_ns: int, stopped_ns: int) -> int:
    """Whole milliseconds between two nanosecond clock readings."""
    return max(0, (stopped_ns - started_ns) // 1_000_000)


def is_long_running(elapsed_ms: int, threshold_ms: int | None) -> bool:
    if threshold_ms is None:
        return False
    return elapsed_ms >= threshold_ms


def format_commit_warning(elapsed_ms: int) -> str:
    return COMMIT_WARNING_TEMPLATE.format(elapsed_ms=elapsed_ms)
