"""Submission and revocation: the write side of the engine.

submit_certificate:
  1. canonicalize + fingerprint      (pure, fails fast with FormatError)
  2. take the per-fingerprint lock
  3. Store.put                        (dedup: one record per fingerprint)
  4. Ledger.issue_or_get              (one verification ID per fingerprint)

Step 1 happens before any lock or durable write, so unparseable input
never reaches the Store and never gets an ID.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Mapping

from certify.core.errors import FormatError, RevocationNotPermitted
from certify.core.metrics import CERTIFICATE_SUBMISSIONS, DIGEST_DURATION, REVOCATIONS
from certify.models.certificate import SubmissionResult
from certify.models.ledger import ChainAudit, RevokeOutcome
from certify.repos.certificate_store import CertificateStore
from certify.repos.issuance_ledger import IssuanceLedger
from certify.services.canonicalizer import canonicalize, normalize_metadata
from certify.services.fingerprint import CURRENT_VERSION, fingerprint
from certify.services.fingerprint_lock import FingerprintLock
from certify.services.ledger_chain import audit_chain

logger = logging.getLogger(__name__)


class IssuanceService:
    def __init__(
        self,
        store: CertificateStore,
        ledger: IssuanceLedger,
        locks: FingerprintLock,
        *,
        digest_version: int = CURRENT_VERSION,
        max_document_bytes: int | None = None,
    ) -> None:
        self._store = store
        self._ledger = ledger
        self._locks = locks
        self._digest_version = digest_version
        self._max_document_bytes = max_document_bytes

    async def submit_certificate(
        self,
        raw: bytes,
        declared_format: str,
        metadata: Mapping[str, str] | None = None,
    ) -> SubmissionResult:
        start = time.perf_counter()
        try:
            canonical = canonicalize(
                raw, declared_format, max_bytes=self._max_document_bytes
            )
            normalized = normalize_metadata(metadata, declared_format)
        except FormatError:
            CERTIFICATE_SUBMISSIONS.labels(status="rejected").inc()
            raise
        fp = fingerprint(canonical, self._digest_version)
        DIGEST_DURATION.observe(time.perf_counter() - start)

        async with self._locks.hold(fp.key):
            _, stored_new = await self._store.put(
                fp, canonical, declared_format, normalized
            )
            verification_id, newly_issued = await self._ledger.issue_or_get(fp)

        status = "issued" if newly_issued else "duplicate"
        CERTIFICATE_SUBMISSIONS.labels(status=status).inc()
        if newly_issued and not stored_new:
            # Store had the payload but the Ledger had no binding: a prior
            # submission stopped between the two writes.  This call repaired it.
            logger.warning(
                "Issued ID for previously stored fingerprint=%s", fp.label()
            )
        logger.info(
            "Certificate %s fingerprint=%s format=%s",
            status,
            fp.label(),
            declared_format,
            extra={"verification_id": verification_id},
        )
        return SubmissionResult(
            verification_id=verification_id, status=status, fingerprint=fp
        )

    async def revoke(self, verification_id: str, *, permitted: bool) -> RevokeOutcome:
        """Append a revocation.  `permitted` is the external policy decision."""
        if not permitted:
            REVOCATIONS.labels(outcome="forbidden").inc()
            logger.warning(
                "Revocation refused by policy",
                extra={"verification_id": verification_id},
            )
            raise RevocationNotPermitted(verification_id)

        outcome = await self._ledger.revoke(verification_id)
        REVOCATIONS.labels(outcome=outcome.value).inc()
        logger.info(
            "Revoke %s",
            outcome.value,
            extra={"verification_id": verification_id},
        )
        return outcome

    async def audit_ledger(self) -> ChainAudit:
        result = audit_chain(await self._ledger.entries())
        if not result.ok:
            logger.error(
                "Ledger hash chain broken at sequence=%s (length=%d)",
                result.broken_at,
                result.length,
            )
        return result
