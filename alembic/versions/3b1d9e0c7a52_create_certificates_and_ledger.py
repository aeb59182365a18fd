"""create certificates and ledger_entries

Revision ID: 3b1d9e0c7a52
Revises:
Create Date: 2026-10-19 00:00:00.000000

"""

from collections.abc import Sequence

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "3b1d9e0c7a52"
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    op.create_table(
        "certificates",
        sa.Column("fingerprint", sa.String(length=160), primary_key=True),
        sa.Column("digest_version", sa.Integer(), nullable=False),
        sa.Column("canonical_bytes", sa.LargeBinary(), nullable=False),
        sa.Column("declared_format", sa.String(length=16), nullable=False),
        sa.Column("metadata_json", sa.Text(), nullable=False),
        sa.Column("submitted_at", sa.BigInteger(), nullable=False),
    )
    op.create_table(
        "ledger_entries",
        sa.Column("sequence", sa.BigInteger(), primary_key=True, autoincrement=False),
        sa.Column("kind", sa.String(length=16), nullable=False),
        sa.Column("verification_id", sa.String(length=32), nullable=False),
        sa.Column("fingerprint", sa.String(length=160), nullable=False),
        sa.Column("recorded_at", sa.BigInteger(), nullable=False),
        sa.Column("prev_hash", sa.String(length=64), nullable=False),
        sa.Column("entry_hash", sa.String(length=64), nullable=False, unique=True),
    )
    op.create_index(
        "uq_ledger_issue_fingerprint",
        "ledger_entries",
        ["fingerprint"],
        unique=True,
        postgresql_where=sa.text("kind = 'issue'"),
    )
    op.create_index(
        "uq_ledger_issue_verification_id",
        "ledger_entries",
        ["verification_id"],
        unique=True,
        postgresql_where=sa.text("kind = 'issue'"),
    )
    op.create_index(
        "uq_ledger_revoke_verification_id",
        "ledger_entries",
        ["verification_id"],
        unique=True,
        postgresql_where=sa.text("kind = 'revoke'"),
    )


def downgrade() -> None:
    op.drop_index("uq_ledger_revoke_verification_id", table_name="ledger_entries")
    op.drop_index("uq_ledger_issue_verification_id", table_name="ledger_entries")
    op.drop_index("uq_ledger_issue_fingerprint", table_name="ledger_entries")
    op.drop_table("ledger_entries")
    op.drop_table("certificates")
