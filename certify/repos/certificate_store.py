from __future__ import annotations

import datetime
import threading
from typing import Protocol

from certify.models.certificate import CertificateRecord
from certify.services.fingerprint import Fingerprint


def _now() -> int:
    return int(datetime.datetime.now(datetime.UTC).timestamp())


class CertificateStore(Protocol):
    async def put(
        self,
        fingerprint: Fingerprint,
        canonical_bytes: bytes,
        declared_format: str,
        metadata: dict[str, str],
    ) -> tuple[CertificateRecord, bool]: ...
    async def get(self, fingerprint: Fingerprint) -> CertificateRecord | None: ...
    async def count(self) -> int: ...
    async def by_issuer(self, issuer: str) -> list[CertificateRecord]: ...


class InMemoryCertificateStore:
    """Content-addressed store for tests and single-process dev.

    `put` is compare-and-insert under a lock: exactly one caller creates
    the record for a fingerprint, every other caller gets that record back
    with is_new=False.  No await happens between the check and the insert.
    """

    def __init__(self) -> None:
        self._by_key: dict[str, CertificateRecord] = {}
        self._lock = threading.Lock()

    async def put(
        self,
        fingerprint: Fingerprint,
        canonical_bytes: bytes,
        declared_format: str,
        metadata: dict[str, str],
    ) -> tuple[CertificateRecord, bool]:
        with self._lock:
            existing = self._by_key.get(fingerprint.key)
            if existing is not None:
                return existing, False
            record = CertificateRecord(
                fingerprint=fingerprint,
                canonical_bytes=canonical_bytes,
                declared_format=declared_format,
                submitted_at=_now(),
                metadata=dict(metadata),
            )
            self._by_key[fingerprint.key] = record
            return record, True

    async def get(self, fingerprint: Fingerprint) -> CertificateRecord | None:
        return self._by_key.get(fingerprint.key)

    async def count(self) -> int:
        return len(self._by_key)

    async def by_issuer(self, issuer: str) -> list[CertificateRecord]:
        with self._lock:
            matches = [
                r for r in self._by_key.values() if r.metadata.get("issuer") == issuer
            ]
        return sorted(matches, key=lambda r: r.submitted_at)
