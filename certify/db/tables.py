"""SQLAlchemy table definitions.

These map to the frozen dataclass domain models in certify/models/.
Repos convert between SQLAlchemy rows and domain dataclasses.

Both tables are append-only: rows are inserted, never updated.
"""

from __future__ import annotations

from sqlalchemy import BigInteger, Index, Integer, LargeBinary, String, Text, text
from sqlalchemy.orm import Mapped, mapped_column

from certify.db.engine import Base


class CertificateRow(Base):
    __tablename__ = "certificates"

    # "v{version}:{hex digest}"; the primary key is the dedup constraint.
    fingerprint: Mapped[str] = mapped_column(String(160), primary_key=True)
    digest_version: Mapped[int] = mapped_column(Integer, nullable=False)
    canonical_bytes: Mapped[bytes] = mapped_column(LargeBinary, nullable=False)
    declared_format: Mapped[str] = mapped_column(String(16), nullable=False)
    metadata_json: Mapped[str] = mapped_column(Text, nullable=False, default="{}")
    # Copy of metadata["issuer"] for per-issuer listings.
    issuer: Mapped[str | None] = mapped_column(String(512), nullable=True, index=True)
    submitted_at: Mapped[int] = mapped_column(BigInteger, nullable=False)


class LedgerEntryRow(Base):
    __tablename__ = "ledger_entries"

    sequence: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=False)
    kind: Mapped[str] = mapped_column(String(16), nullable=False)  # issue|revoke
    verification_id: Mapped[str] = mapped_column(String(32), nullable=False)
    fingerprint: Mapped[str] = mapped_column(String(160), nullable=False)
    recorded_at: Mapped[int] = mapped_column(BigInteger, nullable=False)
    prev_hash: Mapped[str] = mapped_column(String(64), nullable=False)
    entry_hash: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)

    __table_args__ = (
        # At most one ID per fingerprint, one fingerprint per ID, one revocation per ID.
        Index(
            "uq_ledger_issue_fingerprint",
            "fingerprint",
            unique=True,
            postgresql_where=text("kind = 'issue'"),
        ),
        Index(
            "uq_ledger_issue_verification_id",
            "verification_id",
            unique=True,
            postgresql_where=text("kind = 'issue'"),
        ),
        Index(
            "uq_ledger_revoke_verification_id",
            "verification_id",
            unique=True,
            postgresql_where=text("kind = 'revoke'"),
        ),
    )
