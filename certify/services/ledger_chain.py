"""Hash chain over ledger entries.

Each entry's hash covers its own fields plus the previous entry's hash,
so editing, deleting or reordering any entry changes every hash after
it.  An auditor holding the latest hash can detect a rewritten history
without trusting the storage backend.

  entry_hash = sha256("prev_hash|sequence|kind|verification_id|fingerprint|recorded_at")
"""

from __future__ import annotations

import hashlib
import hmac
from collections.abc import Iterable

from certify.models.ledger import ChainAudit, EntryKind, LedgerEntry
from certify.services.fingerprint import Fingerprint

GENESIS_HASH = "0" * 64


def compute_entry_hash(
    *,
    prev_hash: str,
    sequence: int,
    kind: EntryKind,
    verification_id: str,
    fingerprint: Fingerprint,
    recorded_at: int,
) -> str:
    material = "|".join(
        (
            prev_hash,
            str(sequence),
            kind.value,
            verification_id,
            fingerprint.key,
            str(recorded_at),
        )
    )
    return hashlib.sha256(material.encode("utf-8")).hexdigest()


def build_entry(
    *,
    prev: LedgerEntry | None,
    kind: EntryKind,
    verification_id: str,
    fingerprint: Fingerprint,
    recorded_at: int,
) -> LedgerEntry:
    """Build the entry that follows `prev` (or the genesis entry)."""
    sequence = 1 if prev is None else prev.sequence + 1
    prev_hash = GENESIS_HASH if prev is None else prev.entry_hash
    return LedgerEntry(
        sequence=sequence,
        kind=kind,
        verification_id=verification_id,
        fingerprint=fingerprint,
        recorded_at=recorded_at,
        prev_hash=prev_hash,
        entry_hash=compute_entry_hash(
            prev_hash=prev_hash,
            sequence=sequence,
            kind=kind,
            verification_id=verification_id,
            fingerprint=fingerprint,
            recorded_at=recorded_at,
        ),
    )


def audit_chain(entries: Iterable[LedgerEntry]) -> ChainAudit:
    """Recompute every link; report the first entry that does not verify."""
    expected_prev = GENESIS_HASH
    expected_seq = 1
    length = 0
    for entry in entries:
        length += 1
        recomputed = compute_entry_hash(
            prev_hash=entry.prev_hash,
            sequence=entry.sequence,
            kind=entry.kind,
            verification_id=entry.verification_id,
            fingerprint=entry.fingerprint,
            recorded_at=entry.recorded_at,
        )
        if (
            entry.sequence != expected_seq
            or not hmac.compare_digest(entry.prev_hash, expected_prev)
            or not hmac.compare_digest(entry.entry_hash, recomputed)
        ):
            return ChainAudit(ok=False, length=length, broken_at=entry.sequence)
        expected_prev = entry.entry_hash
        expected_seq += 1
    return ChainAudit(ok=True, length=length)
