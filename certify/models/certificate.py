from __future__ import annotations

from dataclasses import dataclass, field

from certify.services.fingerprint import Fingerprint


@dataclass(frozen=True, slots=True)
class CertificateRecord:
    """Stored certificate payload, keyed by its fingerprint.

    Created on first sighting of a fingerprint and never mutated.
    `metadata` is informational and not part of the fingerprint.
    """

    fingerprint: Fingerprint
    canonical_bytes: bytes
    declared_format: str
    submitted_at: int
    metadata: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class SubmissionResult:
    verification_id: str
    status: str  # issued|duplicate
    fingerprint: Fingerprint

    @property
    def is_duplicate(self) -> bool:
        return self.status == "duplicate"


@dataclass(frozen=True, slots=True)
class IssuerCertificate:
    """One line of an issuer's certificate listing."""

    verification_id: str
    title: str | None
    issued_at: int
    revoked: bool
