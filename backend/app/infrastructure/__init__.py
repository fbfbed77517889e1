"""Infrastructure Layer — store access and cross-cutting concerns.

Invariants:
    - Infrastructure never imports from core/ domain logic (errors excepted)
    - All store calls wrapped with rollback and error mapping

Design Decisions:
    - Resilient wrappers over raw engines (ADR: ExMA single responsibility)
"""
