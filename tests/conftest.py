"""Root conftest — shared test configuration.

Invariants:
    - Every test starts with default_config unlimited, silent and logger-less
    - No RESILIENT_SAVE_* variable from the developer's shell leaks into a test
    - get_settings() cache cleared and package log handlers removed around each test
"""

import logging
import os

import pytest

from resilient_save.config import get_settings
from resilient_save.infrastructure.observability import PACKAGE_LOGGER
from resilient_save.services.resilience_config import default_config

for _name in [n for n in os.environ if n.upper().startswith("RESILIENT_SAVE_")]:
    del os.environ[_name]


@pytest.fixture(autouse=True)
def reset_default_config():
    get_settings.cache_clear()
    yield
    default_config.concurrent_save_changes_limit = None
    default_config.warn_long_running_ms = None
    default_config.logger = None
    get_settings.cache_clear()
    package_logger = logging.getLogger(PACKAGE_LOGGER)
    for handler in list(package_logger.handlers):
        if getattr(handler, "_resilient_save_handler", False):
            package_logger.removeHandler(handler)
    package_logger.setLevel(logging.NOTSET)
