"""Verification: the read side of the engine.

An ID alone proves "something was registered under this ID".  Presenting
the document as well proves "this exact content is what was registered":
the content is re-canonicalized and re-fingerprinted under the algorithm
version the ID was bound with, then compared to the bound fingerprint.
"""

from __future__ import annotations

import logging

from certify.core.errors import FormatError
from certify.core.metrics import INTEGRITY_FAULTS, VERIFICATION_VERDICTS
from certify.models.ledger import Resolution
from certify.models.verdict import Verdict, VerdictKind
from certify.repos.certificate_store import CertificateStore
from certify.repos.issuance_ledger import IssuanceLedger
from certify.services.canonicalizer import SUPPORTED_FORMATS, canonicalize
from certify.services.fingerprint import ALGORITHMS, fingerprint
from certify.services.verification_id import is_well_formed

logger = logging.getLogger(__name__)


class VerificationService:
    def __init__(
        self,
        store: CertificateStore,
        ledger: IssuanceLedger,
        *,
        retired_digest_versions: frozenset[int] = frozenset(),
        max_document_bytes: int | None = None,
    ) -> None:
        self._store = store
        self._ledger = ledger
        self._retired = retired_digest_versions
        self._max_document_bytes = max_document_bytes

    async def verify_by_id(
        self,
        verification_id: str,
        presented: bytes | None = None,
        declared_format: str | None = None,
    ) -> Verdict:
        verdict = await self._verify(verification_id, presented, declared_format)
        VERIFICATION_VERDICTS.labels(verdict=verdict.kind.value).inc()
        logger.info(
            "Verification verdict=%s strict=%s",
            verdict.kind.value,
            presented is not None,
            extra={"verification_id": verification_id, "verdict": verdict.kind.value},
        )
        return verdict

    async def _verify(
        self,
        verification_id: str,
        presented: bytes | None,
        declared_format: str | None,
    ) -> Verdict:
        if not is_well_formed(verification_id):
            return Verdict(kind=VerdictKind.UNKNOWN, verification_id=verification_id)

        resolution = await self._ledger.resolve(verification_id)
        if resolution is None:
            return Verdict(kind=VerdictKind.UNKNOWN, verification_id=verification_id)
        if resolution.is_revoked:
            return _verdict(VerdictKind.REVOKED, resolution)

        bound = resolution.fingerprint
        if presented is not None and (
            bound.version in self._retired or bound.version not in ALGORITHMS
        ):
            logger.warning(
                "ID bound under retired digest version=%d; refusing to re-derive",
                bound.version,
                extra={"verification_id": verification_id},
            )
            return _verdict(VerdictKind.DIGEST_VERSION_MISMATCH, resolution)

        record = await self._store.get(bound)
        if record is None:
            INTEGRITY_FAULTS.inc()
            logger.error(
                "Ledger binds ID to fingerprint=%s but the Store has no record",
                bound.label(),
                extra={"verification_id": verification_id},
            )
            return _verdict(VerdictKind.INCONSISTENT, resolution)

        if presented is None:
            return _verdict(VerdictKind.AUTHENTIC, resolution, record.metadata)

        fmt = declared_format or record.declared_format
        if fmt not in SUPPORTED_FORMATS:
            raise FormatError(f"unsupported format {fmt!r}")
        try:
            canonical = canonicalize(presented, fmt, max_bytes=self._max_document_bytes)
        except FormatError as exc:
            # Unparseable content cannot be the registered content.
            logger.info(
                "Presented document does not canonicalize as %s: %s",
                fmt,
                exc,
                extra={"verification_id": verification_id},
            )
            return _verdict(VerdictKind.MISMATCH, resolution)
        if fingerprint(canonical, bound.version).matches(bound):
            return _verdict(VerdictKind.MATCH, resolution, record.metadata)
        return _verdict(VerdictKind.MISMATCH, resolution)


def _verdict(
    kind: VerdictKind,
    resolution: Resolution,
    metadata: dict[str, str] | None = None,
) -> Verdict:
    return Verdict(
        kind=kind,
        verification_id=resolution.verification_id,
        metadata=dict(metadata or {}),
        issued_at=resolution.issued_at,
        revoked_at=resolution.revoked_at,
    )
