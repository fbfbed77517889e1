"""Core Layer — pure domain logic, no IO, no async, no DB.

Invariants:
    - No module in core/ imports from services/, api/, infrastructure/, or db/
    - All functions are pure and deterministic (clocks are passed in, never read)

Design Decisions:
    - Functional core separated from imperative shell (ADR: ExMA impureim sandwich)
    - Lock ordering and code formatting live here so they can be tested without a store
"""
