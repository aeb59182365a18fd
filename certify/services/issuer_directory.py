"""Per-issuer listings: which certificates an organization has registered.

The issuer is the `issuer` metadata of the first upload.  Store records
the Ledger never bound (an interrupted submission) are left out until a
resubmission issues their ID.
"""

from __future__ import annotations

import unicodedata

from certify.models.certificate import IssuerCertificate
from certify.repos.certificate_store import CertificateStore
from certify.repos.issuance_ledger import IssuanceLedger


class IssuerDirectory:
    def __init__(self, store: CertificateStore, ledger: IssuanceLedger) -> None:
        self._store = store
        self._ledger = ledger

    async def certificates(self, issuer: str) -> list[IssuerCertificate]:
        # Same normalization the metadata went through at upload.
        issuer = unicodedata.normalize("NFC", issuer.strip())
        if not issuer:
            return []

        listing: list[IssuerCertificate] = []
        for record in await self._store.by_issuer(issuer):
            resolution = await self._ledger.lookup(record.fingerprint)
            if resolution is None:
                continue
            listing.append(
                IssuerCertificate(
                    verification_id=resolution.verification_id,
                    title=record.metadata.get("title"),
                    issued_at=resolution.issued_at,
                    revoked=resolution.is_revoked,
                )
            )
        return listing
