"""Per-issuer registry listing.

- GET /v1/issuers/{issuer}/certificates : IDs registered under an issuer, with a count

Public like verification: an ID is meant to be shared, and the listing
carries no fingerprints or document content.
"""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel

from certify.api.dependencies import get_engine
from certify.services.engine import CertifyEngine

router = APIRouter(prefix="/v1/issuers", tags=["issuers"])


class IssuerCertificateOut(BaseModel):
    verification_id: str
    title: str | None
    issued_at: int
    status: str  # active|revoked


class IssuerCertificatesOut(BaseModel):
    issuer: str
    count: int
    certificates: list[IssuerCertificateOut]


@router.get("/{issuer}/certificates", response_model=IssuerCertificatesOut)
async def issuer_certificates(
    issuer: str,
    engine: Annotated[CertifyEngine, Depends(get_engine)],
) -> IssuerCertificatesOut:
    listing = await engine.issuers.certificates(issuer)
    if not listing:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="no certificates registered for this issuer",
        )
    return IssuerCertificatesOut(
        issuer=issuer,
        count=len(listing),
        certificates=[
            IssuerCertificateOut(
                verification_id=c.verification_id,
                title=c.title,
                issued_at=c.issued_at,
                status="revoked" if c.revoked else "active",
            )
            for c in listing
        ],
    )
