"""resilient_save — bounded, retried, timed commits for transactional sessions.

Invariants:
    - Importing the package has no side effects (default_config starts unlimited and
      silent until init_resilience() or explicit assignment)

Design Decisions:
    - Entry points and configuration re-exported here; everything else is imported
      from its own module
"""

from resilient_save.services.resilience_config import (
    ResilientSaveConfig, default_config, init_resilience,
)
from resilient_save.services.resilient_execute import (
    resilient_execute, resilient_execute_async,
    resilient_save_changes, resilient_save_changes_async,
)

__all__ = [
    "ResilientSaveConfig",
    "default_config",
    "init_resilience",
    "resilient_execute",
    "resilient_execute_async",
    "resilient_save_changes",
    "resilient_save_changes_async",
]
