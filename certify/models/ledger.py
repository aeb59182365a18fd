from __future__ import annotations

import enum
from dataclasses import dataclass

from certify.services.fingerprint import Fingerprint


class EntryKind(str, enum.Enum):
    ISSUE = "issue"
    REVOKE = "revoke"


class IdStatus(str, enum.Enum):
    ACTIVE = "active"
    REVOKED = "revoked"


class RevokeOutcome(str, enum.Enum):
    REVOKED = "revoked"
    NOT_FOUND = "not_found"
    ALREADY_REVOKED = "already_revoked"


@dataclass(frozen=True, slots=True)
class LedgerEntry:
    """One append-only ledger record.

    A revocation is its own entry pointing at the same verification_id;
    issue entries are never edited.  `entry_hash` chains each entry to
    its predecessor (see services/ledger_chain.py).
    """

    sequence: int
    kind: EntryKind
    verification_id: str
    fingerprint: Fingerprint
    recorded_at: int
    prev_hash: str
    entry_hash: str


@dataclass(frozen=True, slots=True)
class Resolution:
    verification_id: str
    fingerprint: Fingerprint
    status: IdStatus
    issued_at: int
    revoked_at: int | None = None

    @property
    def is_revoked(self) -> bool:
        return self.status is IdStatus.REVOKED


@dataclass(frozen=True, slots=True)
class LedgerStats:
    issued: int
    revoked: int


@dataclass(frozen=True, slots=True)
class ChainAudit:
    ok: bool
    length: int
    broken_at: int | None = None  # sequence of the first bad entry
