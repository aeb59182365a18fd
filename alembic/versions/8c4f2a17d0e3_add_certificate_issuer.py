"""add certificates.issuer for per-issuer listings

Revision ID: 8c4f2a17d0e3
Revises: 3b1d9e0c7a52
Create Date: 2026-10-20 00:00:00.000000

"""

from collections.abc import Sequence

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "8c4f2a17d0e3"
down_revision: str | Sequence[str] | None = "3b1d9e0c7a52"
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    op.add_column("certificates", sa.Column("issuer", sa.String(length=512), nullable=True))
    op.execute("UPDATE certificates SET issuer = metadata_json::jsonb ->> 'issuer'")
    op.create_index("ix_certificates_issuer", "certificates", ["issuer"])


def downgrade() -> None:
    op.drop_index("ix_certificates_issuer", table_name="certificates")
    op.drop_column("certificates", "issuer")
