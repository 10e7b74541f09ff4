"""Package Configuration — environment-driven settings via pydantic-settings.

Invariants:
    - Every setting is optional; an empty environment means unlimited concurrency,
      no latency warnings and the non-retrying execution strategy
    - get_settings() is cached (lru_cache) — single instance per process
    - Numeric limits are validated here, before they reach the admission gate

Design Decisions:
    - pydantic-settings over raw os.environ: validation, type coercion, .env file support
    - RESILIENT_SAVE_ prefix keeps the package's variables apart from the host application's
"""

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from functools import lru_cache


class Settings(BaseSettings):
    """Resilience settings from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="RESILIENT_SAVE_", env_file=".env", case_sensitive=False,
        extra="ignore",
    )

    # Admission gate
    concurrent_save_changes_limit: int | None = None

    # Latency monitor
    warn_long_running_ms: int | None = None

    # Reference retrying execution strategy
    retry_max_retries: int = 3
    retry_base_delay_ms: int = 100
    retry_max_delay_ms: int = 5_000

    # Observability
    log_level: str = "INFO"
    log_format: str = "json"

    @field_validator("concurrent_save_changes_limit")
    @classmethod
    def limit_must_be_positive(cls, v: int | None) -> int | None:
        if v is not None and v < 1:
            raise ValueError("concurrent_save_changes_limit must be >= 1")
        return v

    @field_validator("warn_long_running_ms", "retry_base_delay_ms", "retry_max_delay_ms")
    @classmethod
    def durations_must_not_be_negative(cls, v: int | None) -> int | None:
        if v is not None and v < 0:
            raise ValueError("durations must be >= 0 milliseconds")
        return v

    @field_validator("retry_max_retries")
    @classmethod
    def retries_must_not_be_negative(cls, v: int) -> int:
        if v < 0:
            raise ValueError("retry_max_retries must be >= 0")
        return v


@lru_cache
def get_settings() -> Settings:
    return Settings()
