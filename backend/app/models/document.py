"""Document ORM — insert-only record numbered per UTC-day partition.

Invariants:
    - (date_prefix, sequence_number) unique: no two committed documents share a number
    - code unique and derived from (prefix, date_prefix, sequence_number)
    - Never updated or deleted by the application

Design Decisions:
    - Unique constraints are a backstop, not the mechanism: the allocator's exclusive
      lock prevents collisions, the constraints turn a bug into SequenceConflictError
    - JSON column for data: payload is opaque to the service
"""

from datetime import datetime, timezone

from sqlalchemy import String, Integer, DateTime, JSON, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base


class Document(Base):
    """Sequentially coded document."""
    __tablename__ = "documents"
    __table_args__ = (
        UniqueConstraint(
            "date_prefix", "sequence_number", name="uq_documents_partition_sequence",
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    code: Mapped[str] = mapped_column(String(40), nullable=False, unique=True)
    date_prefix: Mapped[str] = mapped_column(String(8), nullable=False, index=True)
    sequence_number: Mapped[int] = mapped_column(Integer, nullable=False)
    data: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
