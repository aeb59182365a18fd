"""PostgreSQL implementation of IssuanceLedger.

Appends take a transaction-scoped advisory lock (pg_advisory_xact_lock),
which is the ledger's single global append lock.  It is released when the
request transaction commits or rolls back, so:

  - the tail of the hash chain cannot move under an appender
  - a second issue_or_get for the same fingerprint waits, then finds the
    committed binding instead of minting another ID
  - a cancelled request rolls back its entry along with its Store row

Reads need no lock: committed entries are immutable.
"""

from __future__ import annotations

import datetime

from sqlalchemy import func, select, text
from sqlalchemy.ext.asyncio import AsyncSession

from certify.db.engine import storage_errors
from certify.db.tables import LedgerEntryRow
from certify.models.ledger import (
    EntryKind,
    IdStatus,
    LedgerEntry,
    LedgerStats,
    Resolution,
    RevokeOutcome,
)
from certify.services.fingerprint import Fingerprint
from certify.services.ledger_chain import build_entry
from certify.services.verification_id import mint_verification_id

# Arbitrary 64-bit key shared by every certify-service instance ("certledg").
_APPEND_LOCK_KEY = 0x636572746C656467


class PgIssuanceLedger:
    """Satisfies the IssuanceLedger Protocol using PostgreSQL."""

    def __init__(self, session: AsyncSession, id_secret: bytes) -> None:
        self._session = session
        self._id_secret = id_secret

    async def _lock_appends(self) -> None:
        await self._session.execute(
            text("SELECT pg_advisory_xact_lock(:key)"), {"key": _APPEND_LOCK_KEY}
        )

    async def _tail(self) -> LedgerEntry | None:
        stmt = select(LedgerEntryRow).order_by(LedgerEntryRow.sequence.desc()).limit(1)
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        return _row_to_entry(row) if row is not None else None

    async def _issue_entry(
        self, *, fingerprint_key: str | None = None, verification_id: str | None = None
    ) -> LedgerEntryRow | None:
        stmt = select(LedgerEntryRow).where(LedgerEntryRow.kind == EntryKind.ISSUE.value)
        if fingerprint_key is not None:
            stmt = stmt.where(LedgerEntryRow.fingerprint == fingerprint_key)
        if verification_id is not None:
            stmt = stmt.where(LedgerEntryRow.verification_id == verification_id)
        return (await self._session.execute(stmt)).scalar_one_or_none()

    async def _revoke_entry(self, verification_id: str) -> LedgerEntryRow | None:
        stmt = select(LedgerEntryRow).where(
            LedgerEntryRow.kind == EntryKind.REVOKE.value,
            LedgerEntryRow.verification_id == verification_id,
        )
        return (await self._session.execute(stmt)).scalar_one_or_none()

    async def _append(
        self,
        kind: EntryKind,
        verification_id: str,
        fingerprint: Fingerprint,
        prev: LedgerEntry | None,
    ) -> LedgerEntry:
        entry = build_entry(
            prev=prev,
            kind=kind,
            verification_id=verification_id,
            fingerprint=fingerprint,
            recorded_at=int(datetime.datetime.now(datetime.UTC).timestamp()),
        )
        self._session.add(
            LedgerEntryRow(
                sequence=entry.sequence,
                kind=entry.kind.value,
                verification_id=entry.verification_id,
                fingerprint=entry.fingerprint.key,
                recorded_at=entry.recorded_at,
                prev_hash=entry.prev_hash,
                entry_hash=entry.entry_hash,
            )
        )
        await self._session.flush()
        return entry

    async def issue_or_get(self, fingerprint: Fingerprint) -> tuple[str, bool]:
        with storage_errors("ledger issue"):
            await self._lock_appends()
            existing = await self._issue_entry(fingerprint_key=fingerprint.key)
            if existing is not None:
                return existing.verification_id, False

            tail = await self._tail()
            sequence = 1 if tail is None else tail.sequence + 1
            verification_id = mint_verification_id(self._id_secret, fingerprint, sequence)
            while await self._issue_entry(verification_id=verification_id) is not None:
                verification_id = mint_verification_id(
                    self._id_secret, fingerprint, sequence
                )

            await self._append(EntryKind.ISSUE, verification_id, fingerprint, tail)
            return verification_id, True

    async def resolve(self, verification_id: str) -> Resolution | None:
        with storage_errors("ledger resolve"):
            issued = await self._issue_entry(verification_id=verification_id)
            if issued is None:
                return None
            revoked = await self._revoke_entry(verification_id)
        return Resolution(
            verification_id=verification_id,
            fingerprint=Fingerprint.parse(issued.fingerprint),
            status=IdStatus.REVOKED if revoked is not None else IdStatus.ACTIVE,
            issued_at=issued.recorded_at,
            revoked_at=revoked.recorded_at if revoked is not None else None,
        )

    async def lookup(self, fingerprint: Fingerprint) -> Resolution | None:
        with storage_errors("ledger lookup"):
            issued = await self._issue_entry(fingerprint_key=fingerprint.key)
        if issued is None:
            return None
        return await self.resolve(issued.verification_id)

    async def revoke(self, verification_id: str) -> RevokeOutcome:
        with storage_errors("ledger revoke"):
            await self._lock_appends()
            issued = await self._issue_entry(verification_id=verification_id)
            if issued is None:
                return RevokeOutcome.NOT_FOUND
            if await self._revoke_entry(verification_id) is not None:
                return RevokeOutcome.ALREADY_REVOKED
            await self._append(
                EntryKind.REVOKE,
                verification_id,
                Fingerprint.parse(issued.fingerprint),
                await self._tail(),
            )
            return RevokeOutcome.REVOKED

    async def history(self, verification_id: str) -> list[LedgerEntry]:
        stmt = (
            select(LedgerEntryRow)
            .where(LedgerEntryRow.verification_id == verification_id)
            .order_by(LedgerEntryRow.sequence)
        )
        with storage_errors("ledger history"):
            rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_entry(r) for r in rows]

    async def entries(self) -> list[LedgerEntry]:
        stmt = select(LedgerEntryRow).order_by(LedgerEntryRow.sequence)
        with storage_errors("ledger scan"):
            rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_entry(r) for r in rows]

    async def stats(self) -> LedgerStats:
        stmt = select(LedgerEntryRow.kind, func.count()).group_by(LedgerEntryRow.kind)
        with storage_errors("ledger stats"):
            counts = dict((await self._session.execute(stmt)).all())
        return LedgerStats(
            issued=counts.get(EntryKind.ISSUE.value, 0),
            revoked=counts.get(EntryKind.REVOKE.value, 0),
        )


def _row_to_entry(row: LedgerEntryRow) -> LedgerEntry:
    return LedgerEntry(
        sequence=row.sequence,
        kind=EntryKind(row.kind),
        verification_id=row.verification_id,
        fingerprint=Fingerprint.parse(row.fingerprint),
        recorded_at=row.recorded_at,
        prev_hash=row.prev_hash,
        entry_hash=row.entry_hash,
    )
