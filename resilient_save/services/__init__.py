"""Services Layer — admission gate, latency monitor, transactional retry unit, entry points.

Invariants:
    - Entry points compose the three components in a fixed order: gate → timer → unit
    - No service classifies data-access errors

Design Decisions:
    - One component per file for locality
"""
