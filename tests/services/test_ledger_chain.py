from __future__ import annotations

import dataclasses

from certify.models.ledger import EntryKind, LedgerEntry
from certify.services.fingerprint import fingerprint
from certify.services.ledger_chain import GENESIS_HASH, audit_chain, build_entry


def _chain(n: int) -> list[LedgerEntry]:
    entries: list[LedgerEntry] = []
    for i in range(n):
        entries.append(
            build_entry(
                prev=entries[-1] if entries else None,
                kind=EntryKind.ISSUE,
                verification_id=f"id-{i}",
                fingerprint=fingerprint(f"doc {i}".encode()),
                recorded_at=1_700_000_000 + i,
            )
        )
    return entries


def test_first_entry_links_to_genesis() -> None:
    first = _chain(1)[0]
    assert first.sequence == 1
    assert first.prev_hash == GENESIS_HASH


def test_entries_link_to_predecessor() -> None:
    a, b, c = _chain(3)
    assert b.prev_hash == a.entry_hash
    assert c.prev_hash == b.entry_hash
    assert [e.sequence for e in (a, b, c)] == [1, 2, 3]


def test_audit_of_empty_chain_is_ok() -> None:
    result = audit_chain([])
    assert result.ok is True
    assert result.length == 0


def test_audit_of_intact_chain_is_ok() -> None:
    result = audit_chain(_chain(5))
    assert result.ok is True
    assert result.length == 5
    assert result.broken_at is None


def test_audit_detects_edited_entry() -> None:
    entries = _chain(4)
    entries[2] = dataclasses.replace(entries[2], verification_id="forged")
    result = audit_chain(entries)
    assert result.ok is False
    assert result.broken_at == 3


def test_audit_detects_deleted_entry() -> None:
    entries = _chain(4)
    del entries[1]
    result = audit_chain(entries)
    assert result.ok is False
    assert result.broken_at == 3


def test_audit_detects_reordering() -> None:
    entries = _chain(3)
    entries[0], entries[1] = entries[1], entries[0]
    assert audit_chain(entries).broken_at == 2
