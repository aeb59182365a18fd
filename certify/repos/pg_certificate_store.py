"""PostgreSQL implementation of CertificateStore."""

from __future__ import annotations

import datetime
import json

from sqlalchemy import func, select
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import AsyncSession

from certify.core.errors import StorageError
from certify.db.engine import storage_errors
from certify.db.tables import CertificateRow
from certify.models.certificate import CertificateRecord
from certify.services.fingerprint import Fingerprint


class PgCertificateStore:
    """Satisfies the CertificateStore Protocol using PostgreSQL.

    Dedup is a compare-and-insert on the primary key:
    INSERT ... ON CONFLICT DO NOTHING, then read back whichever row won.
    A concurrent inserter of the same key blocks on the unique index until
    the first transaction commits or rolls back, so there is no
    read-then-write window.
    """

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def put(
        self,
        fingerprint: Fingerprint,
        canonical_bytes: bytes,
        declared_format: str,
        metadata: dict[str, str],
    ) -> tuple[CertificateRecord, bool]:
        now = int(datetime.datetime.now(datetime.UTC).timestamp())
        stmt = (
            insert(CertificateRow)
            .values(
                fingerprint=fingerprint.key,
                digest_version=fingerprint.version,
                canonical_bytes=canonical_bytes,
                declared_format=declared_format,
                metadata_json=json.dumps(metadata, sort_keys=True),
                issuer=metadata.get("issuer"),
                submitted_at=now,
            )
            .on_conflict_do_nothing(index_elements=[CertificateRow.fingerprint])
            .returning(CertificateRow.fingerprint)
        )
        with storage_errors("certificate insert"):
            inserted = (await self._session.execute(stmt)).scalar_one_or_none()
            row = await self._load(fingerprint.key)

        if row is None:
            # The winner rolled back between our conflict and our read.
            raise StorageError(f"certificate row vanished for {fingerprint.label()}")
        return _row_to_record(row), inserted is not None

    async def get(self, fingerprint: Fingerprint) -> CertificateRecord | None:
        with storage_errors("certificate lookup"):
            row = await self._load(fingerprint.key)
        if row is None:
            return None
        return _row_to_record(row)

    async def count(self) -> int:
        with storage_errors("certificate count"):
            return (
                await self._session.execute(select(func.count()).select_from(CertificateRow))
            ).scalar_one()

    async def by_issuer(self, issuer: str) -> list[CertificateRecord]:
        stmt = (
            select(CertificateRow)
            .where(CertificateRow.issuer == issuer)
            .order_by(CertificateRow.submitted_at, CertificateRow.fingerprint)
        )
        with storage_errors("certificate issuer listing"):
            rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_record(r) for r in rows]

    async def _load(self, key: str) -> CertificateRow | None:
        stmt = select(CertificateRow).where(CertificateRow.fingerprint == key)
        return (await self._session.execute(stmt)).scalar_one_or_none()


def _row_to_record(row: CertificateRow) -> CertificateRecord:
    return CertificateRecord(
        fingerprint=Fingerprint.parse(row.fingerprint),
        canonical_bytes=row.canonical_bytes,
        declared_format=row.declared_format,
        submitted_at=row.submitted_at,
        metadata=json.loads(row.metadata_json or "{}"),
    )
