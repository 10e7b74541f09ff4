"""Error Hierarchy — typed, categorized exceptions raised by the resilience wrapper itself.

Invariants:
    - Every error has a code (str), category (ErrorCategory), severity (ErrorSeverity)
    - Only configuration and admission failures live here; data-access errors raised
      by the unit of work or the execution strategy propagate unchanged, never wrapped
    - Configuration errors are raised before any admission gate slot is reserved

Design Decisions:
    - Single hierarchy with ResilientSaveError base: callers can catch the wrapper's own
      failures without catching database errors
    - AdmissionTimeoutError is also a TimeoutError and AdmissionGateReleaseError is also a
      ValueError, so generic handlers keep working
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any
from datetime import datetime, timezone


class ErrorSeverity(str, Enum):
    """Error severity for observability."""
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class ErrorCategory(str, Enum):
    """High-level error categories for routing and handling."""
    VALIDATION = "validation"
    CONFIGURATION = "configuration"
    TIMEOUT = "timeout"
    INTERNAL = "internal"


@dataclass
class ErrorContext:
    """Rich context for error observability and debugging."""
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    session_type: str | None = None
    concurrency_limit: int | None = None
    debug_info: dict[str, Any] | None = None


class ResilientSaveError(Exception):
    """Base exception for all errors raised by the resilience wrapper."""

    def __init__(
        self,
        message: str,
        code: str,
        category: ErrorCategory,
        severity: ErrorSeverity = ErrorSeverity.ERROR,
        context: ErrorContext | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.category = category
        self.severity = severity
        self.context = context or ErrorContext()

    def to_dict(self) -> dict:
        """Convert to a structured error envelope for logs and diagnostics."""
        return {
            "error": {
                "code": self.code,
                "message": self.message,
                "category": self.category.value,
                "severity": self.severity.value,
                "timestamp": self.context.timestamp.isoformat(),
                "context": {
                    "session_type": self.context.session_type,
                    "concurrency_limit": self.context.concurrency_limit,
                    "debug_info": self.context.debug_info,
                },
            }
        }


# ─── Argument / Configuration Errors ────────────────────────────

class InvalidSessionError(ResilientSaveError):
    """Entry point called without a usable session."""
    def __init__(self, message: str = "A session is required", context: ErrorContext | None = None):
        super().__init__(
            message, "INVALID_SESSION", ErrorCategory.VALIDATION,
            ErrorSeverity.ERROR, context,
        )


class InvalidUnitOfWorkError(ResilientSaveError):
    """Entry point called with a unit of work that is not callable."""
    def __init__(self, unit_of_work: object, context: ErrorContext | None = None):
        super().__init__(
            f"Unit of work must be a zero-argument callable, got {type(unit_of_work).__name__}",
            "INVALID_UNIT_OF_WORK", ErrorCategory.VALIDATION,
            ErrorSeverity.ERROR, context,
        )


class InvalidConfigurationError(ResilientSaveError):
    """A resilience setting was assigned an out-of-range value."""
    def __init__(self, setting: str, value: object, reason: str, context: ErrorContext | None = None):
        super().__init__(
            f"Invalid value for {setting}: {value!r} ({reason})",
            "INVALID_CONFIGURATION", ErrorCategory.CONFIGURATION,
            ErrorSeverity.ERROR, context,
        )
        self.setting = setting
        self.value = value


# ─── Admission Errors ───────────────────────────────────────────

class AdmissionTimeoutError(ResilientSaveError, TimeoutError):
    """Waiting for an admission gate slot exceeded the caller's timeout."""
    def __init__(self, timeout: float, capacity: int, context: ErrorContext | None = None):
        ctx = context or ErrorContext()
        ctx.concurrency_limit = capacity
        super().__init__(
            f"No admission slot became available within {timeout}s (limit {capacity})",
            "ADMISSION_TIMEOUT", ErrorCategory.TIMEOUT,
            ErrorSeverity.WARNING, ctx,
        )
        self.timeout = timeout


class AdmissionGateReleaseError(ResilientSaveError, ValueError):
    """Admission gate released more times than it was acquired."""
    def __init__(self, capacity: int, context: ErrorContext | None = None):
        ctx = context or ErrorContext()
        ctx.concurrency_limit = capacity
        super().__init__(
            f"Admission gate released beyond its capacity ({capacity})",
            "ADMISSION_OVER_RELEASE", ErrorCategory.INTERNAL,
            ErrorSeverity.CRITICAL, ctx,
        )
