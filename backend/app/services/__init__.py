"""Services Layer — sequence allocation, ledger mutation, and the race harness.

Invariants:
    - Services own transaction boundaries; routes never open transactions
    - Services depend on the TransactionalStore protocol, not on the singleton

Design Decisions:
    - One service per concurrency concern for locality (ADR: ExMA no god objects)
"""
