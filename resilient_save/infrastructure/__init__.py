"""Infrastructure Layer — SQLAlchemy adapters, reference execution strategies, logging.

Invariants:
    - Infrastructure never imports from services/
    - Database errors are passed through, never mapped

Design Decisions:
    - Adapters over raw sessions: the core sees only the protocols in core/protocols.py
"""
