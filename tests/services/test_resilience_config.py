"""Resilience Configuration — limit/gate coupling, validation, environment bootstrap.

Invariants:
    - Setting a limit creates a gate of that capacity; None removes it
    - Every assignment builds a new gate, even for the same value
    - Invalid limits/thresholds are rejected and leave the previous value in place
    - init_resilience() applies environment settings to default_config
"""

import logging

import pytest

from resilient_save.config import Settings
from resilient_save.core.errors import InvalidConfigurationError
from resilient_save.services.resilience_config import (
    ResilientSaveConfig, default_config, init_resilience,
)


def test_defaults_are_unlimited_and_silent():
    config = ResilientSaveConfig()
    assert config.concurrent_save_changes_limit is None
    assert config.admission_gate is None
    assert config.warn_long_running_ms is None
    assert config.logger is None


def test_limit_creates_sized_gate():
    config = ResilientSaveConfig(concurrent_save_changes_limit=4)
    assert config.admission_gate.capacity == 4


def test_reassigning_limit_swaps_gate():
    config = ResilientSaveConfig(concurrent_save_changes_limit=2)
    first = config.admission_gate
    config.concurrent_save_changes_limit = 2
    assert config.admission_gate is not first
    config.concurrent_save_changes_limit = 5
    assert config.admission_gate.capacity == 5


def test_clearing_limit_removes_gate():
    config = ResilientSaveConfig(concurrent_save_changes_limit=2)
    config.concurrent_save_changes_limit = None
    assert config.admission_gate is None


def test_invalid_limit_keeps_previous_gate():
    config = ResilientSaveConfig(concurrent_save_changes_limit=2)
    gate = config.admission_gate
    with pytest.raises(InvalidConfigurationError):
        config.concurrent_save_changes_limit = 0
    assert config.concurrent_save_changes_limit == 2
    assert config.admission_gate is gate


@pytest.mark.parametrize("value", [-1, 2.5, True])
def test_invalid_threshold_rejected(value):
    config = ResilientSaveConfig(warn_long_running_ms=100)
    with pytest.raises(InvalidConfigurationError):
        config.warn_long_running_ms = value
    assert config.warn_long_running_ms == 100


def test_limit_change_is_logged(caplog):
    caplog.set_level(logging.INFO, logger="resilient_save")
    config = ResilientSaveConfig()
    config.concurrent_save_changes_limit = 7
    assert any(
        getattr(r, "concurrency_limit", None) == 7 for r in caplog.records
    )


def test_from_settings():
    sink = logging.getLogger("tests.sink")
    settings = Settings(concurrent_save_changes_limit=3, warn_long_running_ms=250)
    config = ResilientSaveConfig.from_settings(settings, logger=sink)
    assert config.concurrent_save_changes_limit == 3
    assert config.warn_long_running_ms == 250
    assert config.logger is sink


def test_init_resilience_reads_environment(monkeypatch):
    monkeypatch.setenv("RESILIENT_SAVE_CONCURRENT_SAVE_CHANGES_LIMIT", "6")
    monkeypatch.setenv("RESILIENT_SAVE_WARN_LONG_RUNNING_MS", "1500")
    monkeypatch.setenv("RESILIENT_SAVE_LOG_FORMAT", "text")

    config = init_resilience()

    assert config is default_config
    assert default_config.concurrent_save_changes_limit == 6
    assert default_config.admission_gate.capacity == 6
    assert default_config.warn_long_running_ms == 1500


def test_init_resilience_with_explicit_settings():
    init_resilience(Settings(warn_long_running_ms=10))
    assert default_config.warn_long_running_ms == 10
    assert default_config.concurrent_save_changes_limit is None
