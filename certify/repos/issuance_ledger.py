from __future__ import annotations

import datetime
import threading
from typing import Protocol

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


def _now() -> int:
    return int(datetime.datetime.now(datetime.UTC).timestamp())


class IssuanceLedger(Protocol):
    async def issue_or_get(self, fingerprint: Fingerprint) -> tuple[str, bool]: ...
    async def resolve(self, verification_id: str) -> Resolution | None: ...
    async def lookup(self, fingerprint: Fingerprint) -> Resolution | None: ...
    async def revoke(self, verification_id: str) -> RevokeOutcome: ...
    async def history(self, verification_id: str) -> list[LedgerEntry]: ...
    async def entries(self) -> list[LedgerEntry]: ...
    async def stats(self) -> LedgerStats: ...


class InMemoryIssuanceLedger:
    """Append-only issuance log held in process memory.

    One global append lock serializes issue and revoke; the indexes are
    derived from the log and updated under the same lock, so a binding is
    visible to `resolve` the moment `issue_or_get` returns.
    """

    def __init__(self, id_secret: bytes) -> None:
        self._id_secret = id_secret
        self._log: list[LedgerEntry] = []
        self._issue_by_fp: dict[str, LedgerEntry] = {}
        self._issue_by_id: dict[str, LedgerEntry] = {}
        self._revoke_by_id: dict[str, LedgerEntry] = {}
        self._lock = threading.Lock()

    def _append(
        self, kind: EntryKind, verification_id: str, fingerprint: Fingerprint
    ) -> LedgerEntry:
        entry = build_entry(
            prev=self._log[-1] if self._log else None,
            kind=kind,
            verification_id=verification_id,
            fingerprint=fingerprint,
            recorded_at=_now(),
        )
        self._log.append(entry)
        return entry

    async def issue_or_get(self, fingerprint: Fingerprint) -> tuple[str, bool]:
        with self._lock:
            existing = self._issue_by_fp.get(fingerprint.key)
            if existing is not None:
                return existing.verification_id, False

            sequence = len(self._log) + 1
            verification_id = mint_verification_id(
                self._id_secret, fingerprint, sequence
            )
            while verification_id in self._issue_by_id:
                verification_id = mint_verification_id(
                    self._id_secret, fingerprint, sequence
                )

            entry = self._append(EntryKind.ISSUE, verification_id, fingerprint)
            self._issue_by_fp[fingerprint.key] = entry
            self._issue_by_id[verification_id] = entry
            return verification_id, True

    async def lookup(self, fingerprint: Fingerprint) -> Resolution | None:
        with self._lock:
            issued = self._issue_by_fp.get(fingerprint.key)
        if issued is None:
            return None
        return await self.resolve(issued.verification_id)

    async def resolve(self, verification_id: str) -> Resolution | None:
        with self._lock:
            issued = self._issue_by_id.get(verification_id)
            revoked = self._revoke_by_id.get(verification_id)
        if issued is None:
            return None
        return Resolution(
            verification_id=verification_id,
            fingerprint=issued.fingerprint,
            status=IdStatus.REVOKED if revoked is not None else IdStatus.ACTIVE,
            issued_at=issued.recorded_at,
            revoked_at=revoked.recorded_at if revoked is not None else None,
        )

    async def revoke(self, verification_id: str) -> RevokeOutcome:
        with self._lock:
            issued = self._issue_by_id.get(verification_id)
            if issued is None:
                return RevokeOutcome.NOT_FOUND
            if verification_id in self._revoke_by_id:
                return RevokeOutcome.ALREADY_REVOKED
            entry = self._append(EntryKind.REVOKE, verification_id, issued.fingerprint)
            self._revoke_by_id[verification_id] = entry
            return RevokeOutcome.REVOKED

    async def history(self, verification_id: str) -> list[LedgerEntry]:
        with self._lock:
            return [e for e in self._log if e.verification_id == verification_id]

    async def entries(self) -> list[LedgerEntry]:
        with self._lock:
            return list(self._log)

    async def stats(self) -> LedgerStats:
        with self._lock:
            return LedgerStats(
                issued=len(self._issue_by_id), revoked=len(self._revoke_by_id)
            )
