from __future__ import annotations

import asyncio
import threading
from concurrent.futures import ThreadPoolExecutor

from certify.models.ledger import EntryKind, IdStatus, RevokeOutcome
from certify.repos.issuance_ledger import InMemoryIssuanceLedger
from certify.services.fingerprint import fingerprint
from certify.services.ledger_chain import audit_chain

SECRET = b"ledger-test-secret"


def test_issue_or_get_is_idempotent_per_fingerprint() -> None:
    ledger = InMemoryIssuanceLedger(SECRET)
    fp = fingerprint(b"doc")

    async def scenario():
        return await ledger.issue_or_get(fp), await ledger.issue_or_get(fp)

    (vid1, new1), (vid2, new2) = asyncio.run(scenario())
    assert (new1, new2) == (True, False)
    assert vid1 == vid2


def test_distinct_fingerprints_get_distinct_ids() -> None:
    ledger = InMemoryIssuanceLedger(SECRET)

    async def scenario():
        a, _ = await ledger.issue_or_get(fingerprint(b"a"))
        b, _ = await ledger.issue_or_get(fingerprint(b"b"))
        return a, b

    a, b = asyncio.run(scenario())
    assert a != b


def test_resolve_returns_binding() -> None:
    ledger = InMemoryIssuanceLedger(SECRET)
    fp = fingerprint(b"doc")

    async def scenario():
        vid, _ = await ledger.issue_or_get(fp)
        return vid, await ledger.resolve(vid)

    vid, resolution = asyncio.run(scenario())
    assert resolution is not None
    assert resolution.verification_id == vid
    assert resolution.fingerprint == fp
    assert resolution.status is IdStatus.ACTIVE
    assert resolution.revoked_at is None


def test_resolve_unknown_is_none() -> None:
    ledger = InMemoryIssuanceLedger(SECRET)
    assert asyncio.run(ledger.resolve("A" * 22)) is None


def test_revoke_outcomes() -> None:
    ledger = InMemoryIssuanceLedger(SECRET)

    async def scenario():
        vid, _ = await ledger.issue_or_get(fingerprint(b"doc"))
        return (
            await ledger.revoke(vid),
            await ledger.revoke(vid),
            await ledger.revoke("B" * 22),
            await ledger.resolve(vid),
        )

    first, second, missing, resolution = asyncio.run(scenario())
    assert first is RevokeOutcome.REVOKED
    assert second is RevokeOutcome.ALREADY_REVOKED
    assert missing is RevokeOutcome.NOT_FOUND
    assert resolution is not None
    assert resolution.is_revoked
    assert resolution.revoked_at is not None


def test_revocation_is_a_new_entry_and_issue_entry_is_unchanged() -> None:
    ledger = InMemoryIssuanceLedger(SECRET)

    async def scenario():
        vid, _ = await ledger.issue_or_get(fingerprint(b"doc"))
        before = await ledger.history(vid)
        await ledger.revoke(vid)
        after = await ledger.history(vid)
        return before, after

    before, after = asyncio.run(scenario())
    assert [e.kind for e in after] == [EntryKind.ISSUE, EntryKind.REVOKE]
    assert after[0] == before[0]


def test_revoked_fingerprint_is_not_reissued() -> None:
    ledger = InMemoryIssuanceLedger(SECRET)
    fp = fingerprint(b"doc")

    async def scenario():
        vid, _ = await ledger.issue_or_get(fp)
        await ledger.revoke(vid)
        return vid, await ledger.issue_or_get(fp)

    vid, (again, is_new) = asyncio.run(scenario())
    assert again == vid
    assert is_new is False


def test_entries_form_a_valid_chain() -> None:
    ledger = InMemoryIssuanceLedger(SECRET)

    async def scenario():
        vid, _ = await ledger.issue_or_get(fingerprint(b"a"))
        await ledger.issue_or_get(fingerprint(b"b"))
        await ledger.revoke(vid)
        return await ledger.entries()

    entries = asyncio.run(scenario())
    assert [e.sequence for e in entries] == [1, 2, 3]
    assert audit_chain(entries).ok


def test_stats_counts_issued_and_revoked() -> None:
    ledger = InMemoryIssuanceLedger(SECRET)

    async def scenario():
        vid, _ = await ledger.issue_or_get(fingerprint(b"a"))
        await ledger.issue_or_get(fingerprint(b"b"))
        await ledger.revoke(vid)
        return await ledger.stats()

    stats = asyncio.run(scenario())
    assert (stats.issued, stats.revoked) == (2, 1)


def test_concurrent_issue_binds_one_id() -> None:
    ledger = InMemoryIssuanceLedger(SECRET)
    fp = fingerprint(b"doc")

    async def scenario():
        return await asyncio.gather(*(ledger.issue_or_get(fp) for _ in range(25)))

    results = asyncio.run(scenario())
    assert len({vid for vid, _ in results}) == 1
    assert sum(1 for _, is_new in results if is_new) == 1


def test_threads_issuing_one_fingerprint_append_one_entry() -> None:
    ledger = InMemoryIssuanceLedger(SECRET)
    fp = fingerprint(b"doc")
    workers = 16
    barrier = threading.Barrier(workers)

    def issue() -> tuple[str, bool]:
        barrier.wait()
        return asyncio.run(ledger.issue_or_get(fp))

    with ThreadPoolExecutor(max_workers=workers) as pool:
        results = list(pool.map(lambda _: issue(), range(workers)))

    assert len({vid for vid, _ in results}) == 1
    assert sum(1 for _, is_new in results if is_new) == 1
    entries = asyncio.run(ledger.entries())
    assert len(entries) == 1
    assert audit_chain(entries).ok


def test_threads_issuing_distinct_fingerprints_keep_the_chain_intact() -> None:
    ledger = InMemoryIssuanceLedger(SECRET)
    workers = 16
    barrier = threading.Barrier(workers)

    def issue(n: int) -> tuple[str, bool]:
        barrier.wait()
        return asyncio.run(ledger.issue_or_get(fingerprint(f"doc-{n}".encode())))

    with ThreadPoolExecutor(max_workers=workers) as pool:
        results = list(pool.map(issue, range(workers)))

    assert len({vid for vid, _ in results}) == workers
    entries = asyncio.run(ledger.entries())
    assert [e.sequence for e in entries] == list(range(1, workers + 1))
    assert audit_chain(entries).ok


def test_lookup_by_fingerprint() -> None:
    ledger = InMemoryIssuanceLedger(SECRET)
    fp = fingerprint(b"doc")

    async def scenario():
        before = await ledger.lookup(fp)
        vid, _ = await ledger.issue_or_get(fp)
        await ledger.revoke(vid)
        return before, vid, await ledger.lookup(fp)

    before, vid, after = asyncio.run(scenario())
    assert before is None
    assert after is not None
    assert after.verification_id == vid
    assert after.status is IdStatus.REVOKED
