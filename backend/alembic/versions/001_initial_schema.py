"""Initial schema — documents and accounts.

Revision ID: 001_initial
Revises: None
Create Date: 2026-10-18

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str = "001_initial"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "documents",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("code", sa.String(40), nullable=False, unique=True),
        sa.Column("date_prefix", sa.String(8), nullable=False),
        sa.Column("sequence_number", sa.Integer, nullable=False),
        sa.Column("data", sa.JSON, nullable=False),
        sa.Column(
            "created_at", sa.DateTime(timezone=True), nullable=False,
            server_default=sa.func.now(),
        ),
        sa.UniqueConstraint(
            "date_prefix", "sequence_number",
            name="uq_documents_partition_sequence",
        ),
    )
    op.create_index("ix_documents_date_prefix", "documents", ["date_prefix"])

    op.create_table(
        "accounts",
        sa.Column("owner_id", sa.Integer, primary_key=True, autoincrement=False),
        sa.Column(
            "balance", sa.Numeric(18, 2), nullable=False, server_default="0",
        ),
        sa.Column(
            "updated_at", sa.DateTime(timezone=True), nullable=False,
            server_default=sa.func.now(),
        ),
    )


def downgrade() -> None:
    op.drop_table("accounts")
    op.drop_index("ix_documents_date_prefix", table_name="documents")
    op.drop_table("documents")
