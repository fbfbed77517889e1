"""Account ORM — one mutable fixed-point balance per owner.

Invariants:
    - owner_id is the primary key and the lock-ordering key
    - balance is NUMERIC(18, 2): Decimal in, Decimal out, never float arithmetic in Python
    - updated_at refreshed on every balance write

Design Decisions:
    - Accounts are provisioned outside the service (no create endpoint)
"""

from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import Integer, Numeric, DateTime
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base


class Account(Base):
    """Balance holder keyed by owner."""
    __tablename__ = "accounts"

    owner_id: Mapped[int] = mapped_column(
        Integer, primary_key=True, autoincrement=False,
    )
    balance: Mapped[Decimal] = mapped_column(
        Numeric(18, 2, asdecimal=True), nullable=False, default=Decimal("0"),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
