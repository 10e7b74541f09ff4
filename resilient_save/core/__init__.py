"""Core Layer — error hierarchy, boundary protocols, pure latency rules.

Invariants:
    - No module in core/ imports from services/ or infrastructure/
    - No IO, no threads, no event loops

Design Decisions:
    - Functional core separated from the stateful gate and the session adapters
"""
