from __future__ import annotations

import asyncio

from certify.services.engine import CertifyEngine
from certify.services.fingerprint import fingerprint


def _submit(engine: CertifyEngine, text: str, metadata: dict[str, str]) -> str:
    result = asyncio.run(
        engine.issuance.submit_certificate(text.encode(), "text", metadata)
    )
    return result.verification_id


def test_lists_only_the_issuers_certificates(engine: CertifyEngine) -> None:
    first = _submit(engine, "Diploma one", {"issuer": "Uni A", "title": "BSc"})
    _submit(engine, "Diploma two", {"issuer": "Uni B", "title": "MSc"})
    third = _submit(engine, "Diploma three", {"issuer": "Uni A"})

    listing = asyncio.run(engine.issuers.certificates("Uni A"))
    assert [c.verification_id for c in listing] == [first, third]
    assert [c.title for c in listing] == ["BSc", None]
    assert all(c.issued_at > 0 and not c.revoked for c in listing)


def test_revoked_certificates_stay_listed(engine: CertifyEngine) -> None:
    vid = _submit(engine, "Diploma one", {"issuer": "Uni A"})
    asyncio.run(engine.issuance.revoke(vid, permitted=True))

    [entry] = asyncio.run(engine.issuers.certificates("Uni A"))
    assert entry.verification_id == vid
    assert entry.revoked


def test_issuer_name_is_normalized_like_metadata(engine: CertifyEngine) -> None:
    vid = _submit(engine, "Diploma one", {"issuer": "Université"})
    listing = asyncio.run(engine.issuers.certificates("  Université "))
    assert [c.verification_id for c in listing] == [vid]


def test_unknown_or_blank_issuer_is_empty(engine: CertifyEngine) -> None:
    _submit(engine, "Diploma one", {"issuer": "Uni A"})
    assert asyncio.run(engine.issuers.certificates("Uni Z")) == []
    assert asyncio.run(engine.issuers.certificates("   ")) == []


def test_unbound_store_record_is_not_listed(engine: CertifyEngine) -> None:
    fp = fingerprint(b"orphan\n")
    asyncio.run(engine.store.put(fp, b"orphan\n", "text", {"issuer": "Uni A"}))
    assert asyncio.run(engine.issuers.certificates("Uni A")) == []
