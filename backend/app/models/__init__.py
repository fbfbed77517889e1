"""ORM Models — SQLAlchemy declarative models for the two store-owned entities.

Invariants:
    - All models inherit from Base (db/base.py)
    - Documents are insert-only; accounts are mutated only by the ledger service

Design Decisions:
    - One file per entity for locality (ADR: ExMA max 3-4 files to understand a feature)
    - All models imported here so Base.metadata is complete before create_all / alembic
"""

from app.models.document import Document  # noqa: F401
from app.models.account import Account  # noqa: F401
